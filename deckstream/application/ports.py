"""
Application ports - abstract interfaces for external dependencies.

These interfaces define the contracts that the application layer needs
from external systems, following the Dependency Inversion Principle.
"""

from abc import ABC, abstractmethod
from typing import AsyncGenerator, List, Optional

from deckstream.application.models import CancelToken, ChatRequest
from deckstream.domain.entities.conversation import ChatMessage, Session
from deckstream.domain.entities.queue_item import QueueItem
from deckstream.domain.entities.slide import Slide
from deckstream.domain.value_objects.response_delta import ResponseDelta


class TransportPort(ABC):
    """Abstract interface for talking to an LLM backend."""

    @property
    @abstractmethod
    def streams(self) -> bool:
        """Whether responses arrive incrementally for the configured backend."""
        pass

    @abstractmethod
    def open(self, request: ChatRequest, cancel: CancelToken) -> AsyncGenerator[str, None]:
        """
        Send the request and yield the growing raw response buffer.

        Each yielded value is the whole body received so far. Non-streaming
        backends yield exactly once. Raises ``TransportError`` on HTTP or
        network failure and ``GenerationCancelled`` when the token fires.
        """
        pass


class GenerationCallbacks:
    """
    Receiver for streaming progress. Every hook is optional.

    Hooks are plain methods so adapters can subclass and override only what
    they need.
    """

    def on_token(self, text: str) -> None:
        """Visible text accumulated so far."""

    def on_thinking(self, thinking: str) -> None:
        """Combined reasoning accumulated so far."""

    def on_response_update(self, delta: ResponseDelta) -> None:
        """Latest parsed snapshot, when it names an action or holds slides."""

    def on_done(
        self,
        text: str,
        slides: List[Slide],
        thinking: str,
        completion_message: Optional[str],
    ) -> None:
        """Generation finished normally."""

    def on_error(self, message: str, status_code: Optional[int] = None) -> None:
        """Generation failed; ``message`` is ready for display."""


class SummarizerPort(ABC):
    """Abstract interface for the conversation summarizer."""

    @abstractmethod
    async def summarize(self, conversation_text: str) -> str:
        """Condense numbered conversation text into a short summary."""
        pass


class SessionStorePort(ABC):
    """Abstract repository interface for project sessions."""

    @abstractmethod
    async def get(self, project_id: str) -> Optional[Session]:
        """Get session by project ID."""
        pass

    @abstractmethod
    async def replace_slides(self, project_id: str, slides: List[Slide]) -> None:
        """Replace the deck of a session."""
        pass

    @abstractmethod
    async def add_message(self, project_id: str, message: ChatMessage) -> None:
        """Append a chat message to a session."""
        pass

    @abstractmethod
    async def save_compaction(
        self, project_id: str, summary: str, last_compacted_index: int
    ) -> None:
        """Store the conversation summary and the index it covers."""
        pass


class QueueListener:
    """Observer for queue item state changes. Every hook is optional."""

    def on_item_updated(self, item: QueueItem) -> None:
        """Item fields changed (status, streaming text, latest delta)."""
