"""
Response delta value objects - the parsed shape of one model turn.

A delta is re-derived from the whole accumulated text on every chunk and is
never patched in place, so the models are frozen.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from deckstream.domain.entities.slide import Layout, Slide, coerce_layout
from deckstream.domain.value_objects.action import Action


class BatchOpType(str, Enum):
    UPDATE = "update"
    DELETE = "delete"


class BatchOp(BaseModel):
    """One step of a batch action: update or delete a single slide."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: BatchOpType
    slide_number: int = Field(ge=1)
    title: Optional[str] = None
    content: Optional[str] = None
    visual_needs_image: Optional[bool] = None
    visual_description: Optional[str] = None
    layout_suggestion: Optional[Layout] = None
    speaker_notes: Optional[str] = None
    estimated_duration: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        token = str(value).strip().lower()
        return "delete" if token == "del" else token

    @field_validator("layout_suggestion", mode="before")
    @classmethod
    def _coerce_layout(cls, value: Any) -> Optional[Layout]:
        return None if value is None else coerce_layout(value)

    def changes(self) -> Dict[str, Any]:
        """Slide fields this operation overwrites."""
        return self.model_dump(
            exclude_unset=True, exclude_none=True, exclude={"type", "slide_number"}
        )

    def describe(self) -> str:
        verb = "Deleted" if self.type == BatchOpType.DELETE else "Updated"
        return f"{verb} slide {self.slide_number}"


class ResponseDelta(BaseModel):
    """Action plus payload parsed from one snapshot of the stream."""

    model_config = ConfigDict(frozen=True)

    action: Optional[Action] = None
    slides: List[Slide] = Field(default_factory=list)
    # ask
    question: Optional[str] = None
    options: Optional[List[str]] = None
    allow_custom: Optional[bool] = None
    # response
    content: Optional[str] = None
    # info / delete
    slide_numbers: Optional[List[int]] = None
    slide_ids: Optional[List[str]] = None  # legacy id list
    # batch
    operations: Optional[List[BatchOp]] = None
    # sort (legacy ordered id list)
    new_order: Optional[List[str]] = None

    def has_payload(self) -> bool:
        """A snapshot is worth publishing once it names an action or holds slides."""
        return self.action is not None or bool(self.slides)
