"""
Finish reason value objects.

Backends report why generation stopped. Only a normal stop is silent; every
other reason is shown to the user with wording that depends on which feature
made the call.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple


class FinishReasonContext(str, Enum):
    GENERATE = "generate"
    ENHANCE = "enhance"
    SUGGESTION = "suggestion"
    COMPACT = "compact"


class FinishCategory(str, Enum):
    MAX_TOKENS = "max_tokens"
    SAFETY = "safety"
    RECITATION = "recitation"
    OTHER = "other"
    UNKNOWN = "unknown"


STOP_VALUES = ("STOP", "stop", "null", None)

_CATEGORY_BY_REASON: Dict[str, FinishCategory] = {
    "MAX_TOKENS": FinishCategory.MAX_TOKENS,
    "LENGTH": FinishCategory.MAX_TOKENS,
    "SAFETY": FinishCategory.SAFETY,
    "CONTENT_FILTER": FinishCategory.SAFETY,
    "PROHIBITED_CONTENT": FinishCategory.SAFETY,
    "RECITATION": FinishCategory.RECITATION,
    "OTHER": FinishCategory.OTHER,
}

# UNKNOWN is the per-context fallback and receives the raw reason.
_MESSAGES: Dict[Tuple[FinishReasonContext, FinishCategory], str] = {
    (FinishReasonContext.GENERATE, FinishCategory.MAX_TOKENS): "Generation limit reached (Max Tokens). Response may be truncated.",
    (FinishReasonContext.GENERATE, FinishCategory.SAFETY): "Content blocked by safety filters.",
    (FinishReasonContext.GENERATE, FinishCategory.RECITATION): "Generation stopped: Content matches existing data too closely (Recitation).",
    (FinishReasonContext.GENERATE, FinishCategory.OTHER): "Generation stopped due to an unknown miscellaneous reason.",
    (FinishReasonContext.GENERATE, FinishCategory.UNKNOWN): "Generation stopped early: {reason}",
    (FinishReasonContext.ENHANCE, FinishCategory.MAX_TOKENS): "Enhancement truncated: Max output tokens reached.",
    (FinishReasonContext.ENHANCE, FinishCategory.SAFETY): "Enhancement blocked by safety filters.",
    (FinishReasonContext.ENHANCE, FinishCategory.RECITATION): "Enhancement stopped: Copyright protection (Recitation).",
    (FinishReasonContext.ENHANCE, FinishCategory.UNKNOWN): "Generation stopped: {reason}",
    (FinishReasonContext.SUGGESTION, FinishCategory.MAX_TOKENS): "Suggestion limit reached.",
    (FinishReasonContext.SUGGESTION, FinishCategory.SAFETY): "Suggestions blocked by safety filters.",
    (FinishReasonContext.SUGGESTION, FinishCategory.RECITATION): "Suggestions blocked (Recitation).",
    (FinishReasonContext.SUGGESTION, FinishCategory.UNKNOWN): "Suggestion generation stopped: {reason}",
    (FinishReasonContext.COMPACT, FinishCategory.MAX_TOKENS): "Compaction truncated: Max output tokens reached.",
    (FinishReasonContext.COMPACT, FinishCategory.SAFETY): "Compaction blocked by safety filters.",
    (FinishReasonContext.COMPACT, FinishCategory.RECITATION): "Compaction stopped (Recitation).",
    (FinishReasonContext.COMPACT, FinishCategory.UNKNOWN): "Compaction stopped: {reason}",
}


def is_stop_reason(reason: Any) -> bool:
    """True when the reason means normal completion (no error)."""
    return reason in STOP_VALUES


def normalize_finish_reason(reason: Any) -> Optional[str]:
    """Return the reason as a string, or None when it signals no error."""
    if reason is None or is_stop_reason(reason):
        return None
    text = str(reason).strip()
    return text or None


def categorize(reason: str) -> FinishCategory:
    return _CATEGORY_BY_REASON.get(str(reason).upper(), FinishCategory.UNKNOWN)


def finish_reason_error(
    reason: Any,
    context: FinishReasonContext = FinishReasonContext.GENERATE,
) -> Optional[str]:
    """User-facing message for a non-stop finish reason, or None if there is no error."""
    normalized = normalize_finish_reason(reason)
    if normalized is None:
        return None
    context = FinishReasonContext(context)
    template = _MESSAGES.get((context, categorize(normalized)))
    if template is None:
        template = _MESSAGES[(context, FinishCategory.UNKNOWN)]
    return template.format(reason=normalized)
