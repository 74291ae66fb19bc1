"""
Scripted transport for tests and offline runs.
"""

import asyncio
from typing import Iterable, List, Sequence

from deckstream.application.models import CancelToken, ChatRequest
from deckstream.application.ports import TransportPort
from deckstream.domain.exceptions import TransportError


class MockTransport(TransportPort):
    """
    Replays scripted responses, one script per ``open`` call.

    A script is a sequence of raw text pieces; the transport yields the
    growing buffer after each piece. A ``TransportError`` placed in a script
    is raised when reached.
    """

    def __init__(
        self,
        scripts: Iterable[Sequence[object]],
        streams: bool = True,
        delay: float = 0.0,
    ):
        self._scripts: List[Sequence[object]] = list(scripts)
        self._streams = streams
        self.delay = delay
        self.requests: List[ChatRequest] = []

    @property
    def streams(self) -> bool:
        return self._streams

    async def open(self, request: ChatRequest, cancel: CancelToken):
        self.requests.append(request)
        if not self._scripts:
            raise TransportError("No scripted response left")
        script = self._scripts.pop(0)

        buffer = ""
        for piece in script:
            if self.delay:
                await asyncio.sleep(self.delay)
            cancel.raise_if_cancelled()
            if isinstance(piece, TransportError):
                raise piece
            buffer += str(piece)
            if self._streams:
                yield buffer
        if not self._streams:
            yield buffer
