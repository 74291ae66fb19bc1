"""
httpx transport adapter.

Posts the backend request and yields the growing response body. Every await
on the network races the cancellation token, so cancelling aborts the request
or the stream immediately instead of waiting for the next chunk.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Optional, TypeVar

import httpx

from deckstream.application.models import CancelToken, ChatRequest
from deckstream.application.ports import TransportPort
from deckstream.domain.exceptions import GenerationCancelled, TransportError
from deckstream.infra.config.logging_config import get_logger
from deckstream.infra.llm.backends import BackendConfig
from deckstream.infra.llm.errors import describe_exception, describe_http_error
from deckstream.infra.llm.request_builder import build_request

T = TypeVar("T")


class HttpxTransport(TransportPort):
    def __init__(
        self,
        backend: BackendConfig,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.backend = backend
        self._client = client
        self._timeout = timeout
        self._log = get_logger("llm.httpx_transport")

    @property
    def streams(self) -> bool:
        return self.backend.streams

    async def open(self, request: ChatRequest, cancel: CancelToken) -> AsyncIterator[str]:
        prepared = build_request(self.backend, request)
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        response: Optional[httpx.Response] = None
        self._log.debug("llm.request", url=prepared.url, stream=prepared.stream)

        try:
            http_request = client.build_request(
                "POST", prepared.url, json=prepared.body, headers=prepared.headers
            )
            response = await _race(client.send(http_request, stream=True), cancel)

            if response.status_code >= 400:
                body = (await _race(response.aread(), cancel)).decode(
                    "utf-8", errors="replace"
                )
                self._log.warning(
                    "llm.http_error", status=response.status_code, body=body
                )
                raise describe_http_error(response.status_code, body, response.headers)

            buffer = ""
            chunks = response.aiter_text()
            while True:
                piece = await _race(_next_chunk(chunks), cancel)
                if piece is None:
                    break
                buffer += piece
                if prepared.stream:
                    yield buffer
            if not prepared.stream:
                yield buffer
        except (GenerationCancelled, TransportError):
            raise
        except httpx.HTTPError as exc:
            self._log.warning("llm.transport_failed", error=str(exc))
            raise describe_exception(exc) from exc
        finally:
            if response is not None:
                await response.aclose()
            if self._client is None:
                await client.aclose()


async def _race(awaitable: Awaitable[T], cancel: CancelToken) -> T:
    """Await ``awaitable`` unless the token fires first."""
    if cancel.is_cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GenerationCancelled()
    work = asyncio.ensure_future(awaitable)
    watcher = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        watcher.cancel()
    if work.done():
        return work.result()
    work.cancel()
    raise GenerationCancelled()


async def _next_chunk(chunks: AsyncIterator[str]) -> Optional[str]:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None
