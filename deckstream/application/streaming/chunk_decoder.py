"""
Chunk decoder for incremental backend responses.

The transport hands over the whole raw buffer received so far; the decoder
reads only the lines completed since the previous cursor and reports what
they contributed. It keeps no state of its own, so calling it twice with the
same buffer and cursor yields the same result.

Recognized line framings, tried in order:

    data: {"choices":[{"delta":{"content":"..."}}]}     SSE (OpenAI style)
    {"message":{"content":"..."},"done":false}          JSON per line (Ollama)
    [{"candidates":[{"content":{"parts":[...]}}]}       chunked JSON array (Gemini)
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

SSE_PREFIX = "data:"
SSE_DONE = "[DONE]"


@dataclass(frozen=True)
class ChunkResult:
    content: str = ""
    thinking: str = ""
    finish_reason: Optional[str] = None
    cursor: int = 0


def split_lines(text: str) -> List[str]:
    """
    Split on ``\\n`` only, dropping a trailing ``\\r``.

    ``str.splitlines`` also breaks on U+2028, U+2029 and U+0085, which JSON
    allows raw inside strings.
    """
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def decode_chunk(raw: str, cursor: int = 0, final: bool = False) -> ChunkResult:
    """
    Decode the lines of ``raw`` completed after ``cursor``.

    Only text up to and including the last newline is consumed; the
    unterminated tail is left for the next call, when it will have grown.
    With ``final=True`` (transport closed) the tail is consumed too.
    """
    if cursor < 0 or cursor > len(raw):
        raise ValueError(f"cursor {cursor} outside buffer of length {len(raw)}")

    end = len(raw) if final else raw.rfind("\n", cursor) + 1
    if end <= cursor:
        return ChunkResult(cursor=cursor)

    content: List[str] = []
    thinking: List[str] = []
    finish_reason: Optional[str] = None

    for line in split_lines(raw[cursor:end]):
        payload = _line_payload(line)
        if payload is None:
            continue
        text, thought, reason = extract_fields(payload)
        content.append(text)
        thinking.append(thought)
        if reason is not None:
            finish_reason = reason

    return ChunkResult(
        content="".join(content),
        thinking="".join(thinking),
        finish_reason=finish_reason,
        cursor=end,
    )


def decode_response_body(body: str) -> ChunkResult:
    """Single pass over a complete, non-streaming response body."""
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        # Some servers stream even when asked not to
        return decode_chunk(body, 0, final=True)
    if isinstance(payload, list):
        payload = payload[0] if payload and isinstance(payload[0], dict) else {}
    if not isinstance(payload, dict):
        return ChunkResult(cursor=len(body))
    text, thought, reason = extract_fields(payload)
    return ChunkResult(
        content=text, thinking=thought, finish_reason=reason, cursor=len(body)
    )


def _line_payload(line: str) -> Optional[Dict[str, Any]]:
    stripped = line.strip()
    if not stripped:
        return None

    if stripped.startswith(SSE_PREFIX):
        data = stripped[len(SSE_PREFIX) :].strip()
        if not data or data == SSE_DONE:
            return None
        return _loads_object(data)

    # Chunked JSON array: elements arrive one per line, separated by commas
    if stripped.startswith("["):
        stripped = stripped[1:].lstrip()
    if stripped.startswith(","):
        stripped = stripped[1:].lstrip()
    if stripped.endswith("]"):
        stripped = stripped[:-1].rstrip()
    if stripped.endswith(","):
        stripped = stripped[:-1].rstrip()
    if not stripped:
        return None
    return _loads_object(stripped)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        # Prefix of an object that is still arriving
        return None
    return value if isinstance(value, dict) else None


def extract_fields(payload: Dict[str, Any]) -> Tuple[str, str, Optional[str]]:
    """Return ``(content, thinking, finish_reason)`` for any known response shape."""
    content = ""
    thinking = ""
    reason: Optional[str] = None

    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        choice = choices[0]
        delta = choice.get("delta") or choice.get("message") or {}
        if isinstance(delta, dict):
            content += _text(delta.get("content"))
            thinking += _text(delta.get("reasoning_content"))
        reason = _reason(choice.get("finish_reason")) or reason

    candidates = payload.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        for part in parts:
            if not isinstance(part, dict):
                continue
            if part.get("thought"):
                thinking += _text(part.get("text"))
            else:
                content += _text(part.get("text"))
        reason = _reason(candidate.get("finishReason")) or reason

    message = payload.get("message")
    if isinstance(message, dict):
        content += _text(message.get("content"))
        thinking += _text(message.get("thinking"))

    content += _text(payload.get("response"))

    if payload.get("done") is True:
        reason = _reason(payload.get("done_reason")) or reason or "stop"

    return content, thinking, reason


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _reason(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
