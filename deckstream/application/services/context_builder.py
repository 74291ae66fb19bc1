"""
Conversation context service.

Builds what a generation round sends besides the system prompt: the history
window, the deck-aware user prompt and attached images.
"""

import re
from typing import List, Sequence, Tuple

from deckstream.application.models import ImageInput
from deckstream.application.prompts import DeckChatPrompts
from deckstream.application.streaming.completion import extract_completion_message
from deckstream.domain.entities.conversation import (
    AttachedFile,
    ChatMessage,
    HistoryMessage,
    Session,
)
from deckstream.domain.entities.slide import Slide

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_DATA_URL_PREFIX = re.compile(r"^data:image/[^;]+;base64,")

HISTORY_ROLES = ("user", "assistant")


class ContextBuilder:
    """Turns a stored session into backend-ready conversation context."""

    def __init__(self, history_window: int = 10, max_prompt_chars: int = 50000):
        self.history_window = history_window
        self.max_prompt_chars = max_prompt_chars

    def sanitize_prompt(self, text: str) -> str:
        """Drop control characters other than newline, CR and tab; cap length."""
        return _CONTROL_CHARS.sub("", text or "")[: self.max_prompt_chars]

    def build_history(self, session: Session) -> Tuple[HistoryMessage, ...]:
        """
        History for the next round.

        With a compacted summary: the summary followed by every message after
        the compaction point. Otherwise the last ``history_window`` messages.
        """
        messages = [m for m in session.messages if m.role in HISTORY_ROLES]
        if session.compacted_context:
            summary = HistoryMessage(
                role="assistant",
                content=f"[Previous conversation summary: {session.compacted_context}]",
            )
            recent = session.messages[session.last_compacted_index :]
            return (summary,) + tuple(
                self.history_entry(m) for m in recent if m.role in HISTORY_ROLES
            )
        window = messages[-self.history_window :] if self.history_window > 0 else []
        return tuple(self.history_entry(m) for m in window)

    def history_entry(self, message: ChatMessage) -> HistoryMessage:
        return HistoryMessage(role=message.role, content=self.message_content(message))

    @staticmethod
    def message_content(message: ChatMessage) -> str:
        content = message.content or ""

        if message.role == "user" and message.attached_files:
            files = "\n\n".join(_describe_file(f) for f in message.attached_files)
            content = f"{content}\n\n{files}" if content.strip() else files

        if message.role == "assistant" and message.is_script_generation and message.slides:
            slide_list = ", ".join(f"{s.slide_number}. {s.title}" for s in message.slides)
            after_json = message.completion_message or extract_completion_message(content)
            if after_json:
                content = f"{after_json}\n[Slides: {slide_list}]"
            else:
                content = f"Generated {len(message.slides)} slides: {slide_list}"

        return content

    def build_prompt(
        self, prompt: str, deck: Sequence[Slide], selected: Sequence[Slide] = ()
    ) -> str:
        """Sanitized user prompt wrapped in the deck skeleton, if any."""
        return DeckChatPrompts.get_user_prompt(self.sanitize_prompt(prompt), deck, selected)

    @staticmethod
    def images(files: Sequence[AttachedFile]) -> Tuple[ImageInput, ...]:
        """Attached images as raw base64 with their mime type."""
        images: List[ImageInput] = []
        for f in files:
            if not f.is_image:
                continue
            images.append(
                ImageInput(
                    base64=_DATA_URL_PREFIX.sub("", f.content),
                    mime_type=f.mime_type or "image/jpeg",
                )
            )
        return tuple(images)


def _describe_file(attached: AttachedFile) -> str:
    if attached.is_image:
        return f"[Attached image: {attached.name}]"
    return f"[From file: {attached.name}]\n\n{attached.content}"
