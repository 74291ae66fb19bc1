"""
Partial response parser.

Turns the visible text of a model turn, complete or cut off at any byte, into
a ``ResponseDelta``. The whole text is re-parsed on every chunk; nothing is
carried over between calls.

Two payload layouts are understood:

* line-delimited records: a header line carrying the action, then one slide
  record per line, with short or long keys;
* a single legacy JSON object ``{"action": ..., "slides": [...], ...}``.
"""

import json
import re
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from deckstream.application.streaming.chunk_decoder import split_lines
from deckstream.application.streaming.key_mapping import (
    has_slide_identity,
    map_action,
    normalize_header,
    normalize_slide_record,
)
from deckstream.domain.entities.slide import Slide
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.response_delta import BatchOp, ResponseDelta
from deckstream.infra.config.logging_config import get_logger

_log = get_logger("streaming.partial_parser")

_FENCE_LINE = re.compile(r"^[ \t]*```[\w-]*[ \t]*$", re.MULTILINE)
_ACTION_LONG = re.compile(r'"action"\s*:\s*"([A-Za-z_]+)"')
_ACTION_SHORT = re.compile(r'"a"\s*:\s*"([A-Za-z_]+)"')
_SLIDES_OPENER = re.compile(r'"slides"\s*:\s*\[')
_OPERATIONS_OPENER = re.compile(r'"(?:operations|ops)"\s*:\s*\[')
_STRING_FIELD = r'"{key}"\s*:\s*"((?:[^"\\]|\\.)*)"'
_ARRAY_FIELD = r'"{key}"\s*:\s*\[([^\]]*)\]'

# Actions whose legacy object is meaningful without a slides array
_SLIDELESS_ACTIONS = (Action.ASK, Action.RESPONSE, Action.BATCH)


def strip_code_fences(text: str) -> str:
    """Remove markdown fence lines such as ```json and ```."""
    return _FENCE_LINE.sub("", text).strip()


def parse_partial_response(text: str) -> ResponseDelta:
    """Best-effort delta for the current snapshot; never raises."""
    clean = strip_code_fences(text or "")
    if not clean:
        return ResponseDelta()

    delta = _parse_line_delimited(clean)
    if delta is not None:
        return delta

    delta = _parse_legacy_object(clean)
    if delta is not None:
        return delta

    return _parse_fragment(clean)


# ---- line-delimited records ----


def _parse_line_delimited(text: str) -> Optional[ResponseDelta]:
    lines = [line.strip() for line in split_lines(text) if line.strip()]
    header = _loads_object(lines[0]) if lines else None
    if header is None or not ("a" in header or "action" in header):
        return None

    fields = normalize_header(header)
    slides = list(fields.get("slides") or [])
    operations = list(fields.get("operations") or [])
    is_batch = fields.get("action") == Action.BATCH

    for line in lines[1:]:
        record = _loads_object(line)
        if record is None:
            # Slide still streaming, or trailing prose
            continue
        if is_batch and "type" in record:
            operations.append(record)
        else:
            slides.append(record)

    fields["slides"] = slides
    fields["operations"] = operations or None
    return build_delta(fields)


# ---- legacy single object ----


def _parse_legacy_object(text: str) -> Optional[ResponseDelta]:
    obj = _loads_object(text)
    if obj is None:
        start = text.find("{")
        end = find_object_end(text, start) if start != -1 else None
        if end is None:
            return None
        obj = _loads_object(text[start : end + 1])
        if obj is None:
            return None

    fields = normalize_header(obj)
    if not isinstance(fields.get("slides"), list) and (
        fields.get("action") not in _SLIDELESS_ACTIONS
    ):
        return None
    return build_delta(fields)


# ---- truncated object ----


def _parse_fragment(text: str) -> ResponseDelta:
    fields: Dict[str, Any] = {}

    match = _ACTION_LONG.search(text) or _ACTION_SHORT.search(text)
    if match:
        fields["action"] = map_action(match.group(1))

    opener = _SLIDES_OPENER.search(text)
    if opener:
        fields["slides"] = repair_slide_array(text[opener.end() - 1 :])

    opener = _OPERATIONS_OPENER.search(text)
    if opener:
        fields["operations"] = _scan_objects(text[opener.end() - 1 :])

    # Slide records also carry "content", so only read it for chat replies
    if fields.get("action") == Action.ASK:
        fields["question"] = _string_field(text, "question")
    if fields.get("action") == Action.RESPONSE:
        fields["content"] = _string_field(text, "content")
    for key in ("slide_numbers", "new_order", "options"):
        value = _array_field(text, key)
        if value is not None:
            fields[key] = value

    return build_delta(fields)


def repair_slide_array(text: str) -> List[Dict[str, Any]]:
    """
    Recover complete slide objects from a possibly truncated JSON array.

    ``text`` starts at the array's ``[``. The array is cut after its last
    ``}`` and closed; if that still does not parse, every balanced top-level
    object is scanned out individually. Returned records use long keys.
    Never raises.
    """
    start = text.find("[")
    if start == -1:
        return []
    body = text[start:]
    last = body.rfind("}")
    if last == -1:
        return []

    candidate = body[: last + 1].rstrip().rstrip(",") + "]"
    try:
        parsed = json.loads(candidate)
    except ValueError:
        parsed = None

    if isinstance(parsed, list):
        records: Iterable[Any] = parsed
    else:
        records = _scan_objects(body)

    return [
        normalize_slide_record(record)
        for record in records
        if isinstance(record, dict) and has_slide_identity(record)
    ]


def find_object_end(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` closing the object opened at ``start``, string-aware."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _scan_objects(text: str) -> List[Dict[str, Any]]:
    """Every complete top-level object inside the array that opens ``text``."""
    objects: List[Dict[str, Any]] = []
    index = text.find("[") + 1
    while index < len(text):
        char = text[index]
        if char == "]":
            break
        if char != "{":
            index += 1
            continue
        end = find_object_end(text, index)
        if end is None:
            break
        obj = _loads_object(text[index : end + 1])
        if obj is not None:
            objects.append(obj)
        index = end + 1
    return objects


# ---- delta assembly ----


def build_delta(fields: Dict[str, Any]) -> ResponseDelta:
    """Validate normalized fields into a delta, dropping malformed records."""
    numbers, refs = _split_refs(fields.get("slide_numbers"))
    slide_ids = [str(ref) for ref in _as_list(fields.get("slide_ids"))] + refs
    operations = _build_operations(fields.get("operations"))
    allow_custom = fields.get("allow_custom")

    values = {
        "action": fields.get("action"),
        "slides": build_slides(fields.get("slides")),
        "question": _text_or_none(fields.get("question")),
        "options": [str(o) for o in _as_list(fields.get("options"))] or None,
        "allow_custom": None if allow_custom is None else bool(allow_custom),
        "content": _text_or_none(fields.get("content")),
        "slide_numbers": numbers if fields.get("slide_numbers") is not None else None,
        "slide_ids": slide_ids or None,
        "operations": operations if fields.get("operations") is not None else None,
        "new_order": [str(r) for r in _as_list(fields.get("new_order"))] or None,
    }
    try:
        return ResponseDelta(**values)
    except ValidationError as exc:
        _log.debug("parser.delta_invalid", error=str(exc))
        return ResponseDelta(action=values["action"], slides=values["slides"])


def build_slides(records: Any) -> List[Slide]:
    slides: List[Slide] = []
    for record in _as_list(records):
        if not isinstance(record, dict):
            continue
        mapped = normalize_slide_record(record)
        if not has_slide_identity(mapped):
            continue
        try:
            slides.append(Slide.model_validate(mapped))
        except ValidationError:
            continue
    return slides


def _build_operations(records: Any) -> List[BatchOp]:
    operations: List[BatchOp] = []
    for record in _as_list(records):
        if not isinstance(record, dict):
            continue
        try:
            operations.append(BatchOp.model_validate(normalize_slide_record(record)))
        except ValidationError:
            continue
    return operations


def _split_refs(values: Any):
    """Separate slide numbers from legacy opaque ids in a reference list."""
    numbers: List[int] = []
    refs: List[str] = []
    for value in _as_list(values):
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            numbers.append(value)
        elif isinstance(value, str) and value.strip().isdigit():
            numbers.append(int(value.strip()))
        elif value is not None:
            refs.append(str(value))
    return [n for n in numbers if n >= 1], refs


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _string_field(text: str, key: str) -> Optional[str]:
    match = re.search(_STRING_FIELD.format(key=re.escape(key)), text)
    if not match:
        return None
    try:
        return json.loads(f'"{match.group(1)}"')
    except ValueError:
        return None


def _array_field(text: str, key: str) -> Optional[List[Any]]:
    match = re.search(_ARRAY_FIELD.format(key=re.escape(key)), text)
    if not match:
        return None
    try:
        value = json.loads(f"[{match.group(1)}]")
    except ValueError:
        return None
    return value if isinstance(value, list) else None
