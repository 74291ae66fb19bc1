"""
Clarification value object - an interactive question raised by the model.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple


@dataclass(frozen=True)
class Clarification:
    """
    Question with suggested answers.

    Skipping is an explicit flag rather than a magic answer string, so any text
    the user types is always a legitimate answer.
    """

    question: str
    options: Tuple[str, ...] = ()
    allow_custom: bool = False
    answer: Optional[str] = None
    skipped: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.skipped or self.answer is not None

    @property
    def is_custom_answer(self) -> bool:
        return self.answer is not None and self.answer not in self.options

    def answered(self, text: str) -> "Clarification":
        """Record the user's answer; custom text requires allow_custom."""
        if self.is_resolved:
            raise ValueError("Clarification already resolved")
        if text not in self.options and not self.allow_custom:
            raise ValueError("Custom answers are not allowed for this question")
        return replace(self, answer=text)

    def skip(self) -> "Clarification":
        if self.is_resolved:
            raise ValueError("Clarification already resolved")
        return replace(self, skipped=True)
