"""
Application-level data carriers shared by use cases, services and adapters.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from deckstream.domain.entities.conversation import HistoryMessage
from deckstream.domain.exceptions import GenerationCancelled
from deckstream.domain.value_objects.response_delta import ResponseDelta


@dataclass(frozen=True)
class ImageInput:
    base64: str  # raw base64, no data URL prefix
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class ChatRequest:
    """Backend-neutral description of one generation call."""

    prompt: str
    model: str
    system_prompt: str = ""
    history: Tuple[HistoryMessage, ...] = ()
    images: Tuple[ImageInput, ...] = ()
    temperature: float = 0.0
    max_tokens: int = 65535
    stream: bool = True


@dataclass(frozen=True)
class PreparedRequest:
    """Wire-ready request: endpoint, headers and a JSON body for one backend."""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    stream: bool = True


class CancelToken:
    """
    Cancellation handle owned by one in-flight generation.

    The same token spans the retrieval round, so cancelling during the first
    round also prevents the second one from starting.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled()


@dataclass
class GenerationOutcome:
    """Terminal state of one streamed generation round."""

    text: str = ""  # visible text, reasoning tags removed
    raw_text: str = ""  # accumulated model output as received
    thinking: str = ""
    delta: ResponseDelta = field(default_factory=ResponseDelta)
    completion_message: Optional[str] = None
    finish_reason: Optional[str] = None
    finish_error: Optional[str] = None  # non-fatal, reported alongside content
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cancelled(self) -> bool:
        return self.error == GenerationCancelled().message

    @property
    def slides(self) -> List:
        return list(self.delta.slides)
