"""
Conversation entities: chat messages and the per-project session.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from uuid import uuid4
from datetime import datetime, timezone

from deckstream.domain.entities.slide import Slide
from deckstream.domain.value_objects.clarification import Clarification


@dataclass(frozen=True)
class HistoryMessage:
    """One turn of conversation history as sent to the backend."""

    role: str  # "user" | "assistant"
    content: str


@dataclass
class AttachedFile:
    name: str
    content: str  # text body, or base64 (optionally a data URL) for images
    type: str = "text"  # "text" | "image"
    mime_type: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.type == "image"


@dataclass
class ChatMessage:
    role: str
    content: str
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    thinking: Optional[str] = None
    slides: Optional[List[Slide]] = None
    is_script_generation: bool = False
    completion_message: Optional[str] = None
    attached_files: List[AttachedFile] = field(default_factory=list)
    clarification: Optional[Clarification] = None


@dataclass
class Session:
    """A project: its deck, its chat log, and compaction bookkeeping."""

    id: str
    title: str = ""
    slides: List[Slide] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)
    compacted_context: Optional[str] = None
    last_compacted_index: int = 0

    def uncompacted_messages(self) -> List[ChatMessage]:
        return self.messages[self.last_compacted_index :]
