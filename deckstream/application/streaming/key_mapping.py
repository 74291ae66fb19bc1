"""
Short-key normalization for the line-delimited wire format.

Models are asked to emit compact keys to save tokens. This module is the only
place that knows about them: every record leaving the parser carries long,
canonical key names.
"""

from typing import Any, Dict, Optional

from deckstream.domain.value_objects.action import Action

SLIDE_KEYS: Dict[str, str] = {
    "i": "slide_number",
    "t": "title",
    "c": "content",
    "v": "visual_needs_image",
    "d": "visual_description",
    "l": "layout_suggestion",
    "n": "speaker_notes",
}

HEADER_KEYS: Dict[str, str] = {
    "a": "action",
    "q": "question",
    "o": "options",
    "ac": "allow_custom",
    "allowCustom": "allow_custom",
    "allow_custom_input": "allow_custom",
    "c": "content",
    "s": "slide_numbers",
    "ids": "slide_ids",
    "slideIds": "slide_ids",
    "ops": "operations",
    "ord": "new_order",
    "newOrder": "new_order",
}

ACTION_TOKENS: Dict[str, Action] = {
    "create": Action.CREATE,
    "append": Action.APPEND,
    "update": Action.UPDATE,
    "del": Action.DELETE,
    "delete": Action.DELETE,
    "ask": Action.ASK,
    "chat": Action.RESPONSE,
    "response": Action.RESPONSE,
    "info": Action.INFO,
    "batch": Action.BATCH,
    "sort": Action.SORT,
}

LAYOUT_CODES: Dict[str, str] = {
    "left": "split-left",
    "right": "split-right",
    "center": "centered",
}


def map_action(token: Any) -> Optional[Action]:
    """Canonical action for a short or long token; None when unrecognized."""
    if token is None:
        return None
    return ACTION_TOKENS.get(str(token).strip().lower())


def map_layout(value: Any) -> Any:
    if isinstance(value, str):
        return LAYOUT_CODES.get(value.strip().lower(), value)
    return value


def _rename(record: Dict[str, Any], table: Dict[str, str]) -> Dict[str, Any]:
    # Long keys win: short aliases only fill gaps
    mapped = {k: v for k, v in record.items() if k not in table}
    for short, long in table.items():
        if short in record and long not in mapped:
            mapped[long] = record[short]
    return mapped


def normalize_slide_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """Map a slide (or batch operation) record to long key names."""
    mapped = _rename(record, SLIDE_KEYS)
    if "layout_suggestion" in mapped:
        mapped["layout_suggestion"] = map_layout(mapped["layout_suggestion"])
    return mapped


def normalize_header(record: Dict[str, Any]) -> Dict[str, Any]:
    """Map a header (or legacy whole-object) record to long key names."""
    mapped = _rename(record, HEADER_KEYS)
    if "action" in mapped:
        mapped["action"] = map_action(mapped["action"])
    return mapped


def has_slide_identity(record: Dict[str, Any]) -> bool:
    """A recovered object is slide-like when it names a number or a title."""
    return any(key in record for key in ("slide_number", "title", "i", "t"))
