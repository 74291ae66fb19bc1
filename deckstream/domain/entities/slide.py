"""
Slide domain entity with core business rules.
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Layout(str, Enum):
    """Canonical layout names understood by the renderer."""

    INTRO = "intro"
    SPLIT_LEFT = "split-left"
    SPLIT_RIGHT = "split-right"
    CENTERED = "centered"
    QUOTE = "quote"
    FULL_IMAGE = "full-image"


def coerce_layout(value: Any) -> Layout:
    """Map any layout spelling to a canonical layout; unknown values become centered."""
    if isinstance(value, Layout):
        return value
    try:
        return Layout(str(value).strip().lower())
    except ValueError:
        return Layout.CENTERED


class Slide(BaseModel):
    model_config = ConfigDict(extra="ignore")

    slide_number: Optional[int] = Field(default=None, ge=1)
    title: str = ""
    content: str = ""  # markdown
    visual_needs_image: bool = False
    visual_description: str = ""
    layout_suggestion: Layout = Layout.CENTERED
    speaker_notes: str = ""
    estimated_duration: str = ""
    id: Optional[str] = None  # legacy opaque id, used by sort/info references

    @field_validator(
        "title",
        "content",
        "visual_description",
        "speaker_notes",
        "estimated_duration",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("visual_needs_image", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("layout_suggestion", mode="before")
    @classmethod
    def _coerce_layout(cls, value: Any) -> Layout:
        return coerce_layout(value)

    def matches_ref(self, ref: Any) -> bool:
        """Business rule: a reference names a slide by legacy id or by number."""
        ref_text = str(ref).strip()
        if self.id is not None and ref_text == self.id:
            return True
        return self.slide_number is not None and ref_text == str(self.slide_number)

    def patch_fields(self) -> Dict[str, Any]:
        """Fields explicitly present in the record this slide was parsed from."""
        return self.model_dump(exclude_unset=True, exclude={"slide_number", "id"})

    def merged_with(self, patch: Dict[str, Any]) -> "Slide":
        return self.model_copy(update=patch)

    def skeleton(self) -> Dict[str, Any]:
        """Token-saving view: number and title only."""
        return {"slide_number": self.slide_number, "title": self.title}

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def renumber(slides: Iterable[Slide]) -> List[Slide]:
    """Business rule: slide numbers are contiguous starting at 1, in list order."""
    return [
        slide
        if slide.slide_number == index
        else slide.model_copy(update={"slide_number": index})
        for index, slide in enumerate(slides, 1)
    ]


def max_slide_number(slides: Iterable[Slide]) -> int:
    return max((s.slide_number or 0 for s in slides), default=0)
