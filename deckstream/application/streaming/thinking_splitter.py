"""
Separates ``<think>`` reasoning spans from user-visible content.

Always called on the full accumulated text, never on a delta, so repeated
calls over a growing buffer cannot duplicate reasoning.
"""

import re
from typing import Tuple

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_THINK_SPAN = re.compile(r"<think>(.*?)</think>", re.DOTALL)


def separate_thinking(text: str) -> Tuple[str, str]:
    """Return ``(thinking, content)`` for the accumulated text."""
    if not text:
        return "", ""

    thinking = [match.strip() for match in _THINK_SPAN.findall(text)]
    content = _THINK_SPAN.sub("", text)

    # Model is mid-reasoning: the open tag swallows the rest
    open_at = content.find(THINK_OPEN)
    if open_at != -1:
        thinking.append(content[open_at + len(THINK_OPEN) :].strip())
        content = content[:open_at]

    return "\n".join(part for part in thinking if part), content.strip()


def is_inside_think_tag(text: str) -> bool:
    """True while an opened ``<think>`` block has not been closed yet."""
    return text.count(THINK_OPEN) > text.count(THINK_CLOSE)
