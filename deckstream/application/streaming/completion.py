"""
Completion message extraction and salvage of misplaced slide data.

Models often follow the JSON payload with a short prose summary ("Here is
your deck!"). That trailing text is the completion message. Non-compliant
models sometimes put more slide objects there instead; salvage folds those
back into the delta.
"""

import json
from dataclasses import dataclass
from typing import Any, List, Optional

from deckstream.application.streaming.chunk_decoder import split_lines
from deckstream.application.streaming.key_mapping import has_slide_identity
from deckstream.application.streaming.partial_parser import (
    build_slides,
    find_object_end,
    repair_slide_array,
    strip_code_fences,
)
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.response_delta import ResponseDelta

_SALVAGE_MARKERS = (",", "{", "[")
# Actions that carry no slides and are overridden when salvage finds some
_COERCIBLE_ACTIONS = (None, Action.INFO, Action.ASK)


@dataclass(frozen=True)
class SalvageResult:
    delta: ResponseDelta
    completion_message: Optional[str]
    salvaged: int = 0


def extract_completion_message(text: str) -> Optional[str]:
    """Prose following the JSON payload, or None when there is none."""
    clean = strip_code_fences(text or "")
    if not clean:
        return None

    lines = [line.strip() for line in split_lines(clean) if line.strip()]
    if lines and _is_json_object(lines[0]):
        # Line-delimited: everything after the last record line
        last_record = max(i for i, line in enumerate(lines) if _is_json_object(line))
        trailing = "\n".join(lines[last_record + 1 :]).strip()
        return trailing or None

    start = clean.find("{")
    if start == -1:
        return None
    end = find_object_end(clean, start)
    if end is None:
        return None
    trailing = clean[end + 1 :].strip()
    return trailing or None


def salvage(delta: ResponseDelta, completion_message: Optional[str]) -> SalvageResult:
    """
    Recover slide objects that ended up in the completion message.

    Applies only when the trailing text looks like JSON (starts with ``,``,
    ``{`` or ``[``). Recovered slides are appended to the delta, and an
    ``info``/``ask``/missing action becomes ``append``.
    """
    text = (completion_message or "").strip()
    if not text.startswith(_SALVAGE_MARKERS):
        return SalvageResult(delta, completion_message)

    body = text.lstrip(",").strip()
    if body.startswith("{"):
        body = f"[{body.rstrip(',')}]" if not body.endswith("]") else f"[{body}"

    records = _load_records(body)
    slides = build_slides(
        [r for r in records if isinstance(r, dict) and has_slide_identity(r)]
    )
    if not slides:
        return SalvageResult(delta, completion_message)

    action = Action.APPEND if delta.action in _COERCIBLE_ACTIONS else delta.action
    merged = delta.model_copy(update={"action": action, "slides": delta.slides + slides})
    return SalvageResult(merged, None, salvaged=len(slides))


def _load_records(body: str) -> List[Any]:
    try:
        value = json.loads(body)
    except ValueError:
        return repair_slide_array(body)
    if isinstance(value, dict):
        return [value]
    return value if isinstance(value, list) else []


def _is_json_object(line: str) -> bool:
    if not line.startswith("{"):
        return False
    try:
        return isinstance(json.loads(line), dict)
    except ValueError:
        return False
