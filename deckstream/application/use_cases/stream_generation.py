"""
Use Case: Stream one generation round

This use case handles:
1. Opening the backend stream through the transport port
2. Decoding newly completed lines into content, reasoning and finish reason
3. Splitting <think> spans out of the visible text
4. Re-parsing the whole visible text into a response delta on every chunk
5. Reporting progress and the terminal result through callbacks

Nothing raises past the callback boundary: every failure ends in
``on_error`` and a failed ``GenerationOutcome``. Cancellation is the one
exception to callbacks: it ends the round silently.
"""

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Optional

from deckstream.application.models import CancelToken, ChatRequest, GenerationOutcome
from deckstream.application.ports import GenerationCallbacks, TransportPort
from deckstream.application.streaming.chunk_decoder import (
    ChunkResult,
    decode_chunk,
    decode_response_body,
)
from deckstream.application.streaming.completion import extract_completion_message
from deckstream.application.streaming.partial_parser import parse_partial_response
from deckstream.application.streaming.thinking_splitter import separate_thinking
from deckstream.domain.exceptions import GenerationCancelled, TransportError
from deckstream.domain.value_objects.finish_reason import (
    FinishReasonContext,
    finish_reason_error,
)
from deckstream.domain.value_objects.response_delta import ResponseDelta
from deckstream.infra.config.logging_config import get_logger


@dataclass
class _StreamState:
    raw_content: str = ""
    api_thinking: str = ""
    visible: str = ""
    thinking: str = ""
    finish_reason: Optional[str] = None
    cursor: int = 0
    last_delta: ResponseDelta = field(default_factory=ResponseDelta)


class StreamGenerationUseCase:
    def __init__(
        self,
        transport: TransportPort,
        context: FinishReasonContext = FinishReasonContext.GENERATE,
    ):
        self.transport = transport
        self.context = context
        self._log = get_logger("usecase.stream_generation")

    async def execute(
        self,
        request: ChatRequest,
        callbacks: Optional[GenerationCallbacks] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GenerationOutcome:
        """
        Run one round against the backend.

        Args:
            request: Backend-neutral request description
            callbacks: Progress receiver; no-op when omitted
            cancel: Cancellation handle; a fresh one when omitted

        Returns:
            GenerationOutcome with the final delta, or an error message
        """
        callbacks = callbacks or GenerationCallbacks()
        cancel = cancel or CancelToken()
        state = _StreamState()
        self._log.info(
            "stream.start",
            model=request.model,
            history=len(request.history),
            streaming=self.transport.streams,
        )

        try:
            raw = ""
            async with aclosing(self.transport.open(request, cancel)) as stream:
                async for raw in stream:
                    cancel.raise_if_cancelled()
                    if self.transport.streams:
                        self._absorb(state, decode_chunk(raw, state.cursor), callbacks)

            cancel.raise_if_cancelled()
            if self.transport.streams:
                final = decode_chunk(raw, state.cursor, final=True)
            else:
                final = decode_response_body(raw)
            self._absorb(state, final, callbacks)
        except GenerationCancelled as exc:
            self._log.info("stream.cancelled")
            return GenerationOutcome(
                text=state.visible,
                raw_text=state.raw_content,
                thinking=state.thinking,
                error=exc.message,
            )
        except asyncio.CancelledError:
            self._log.info("stream.task_cancelled")
            raise
        except TransportError as exc:
            self._log.warning(
                "stream.transport_error", error=exc.message, status=exc.status_code
            )
            callbacks.on_error(exc.message, exc.status_code)
            return GenerationOutcome(
                text=state.visible,
                raw_text=state.raw_content,
                thinking=state.thinking,
                error=exc.message,
                status_code=exc.status_code,
            )
        except Exception as exc:
            self._log.exception("stream.failed", error=str(exc))
            message = str(exc) or "Connection failed"
            callbacks.on_error(message, None)
            return GenerationOutcome(
                text=state.visible,
                raw_text=state.raw_content,
                thinking=state.thinking,
                error=message,
            )

        return self._finish(state, callbacks)

    def _absorb(
        self, state: _StreamState, chunk: ChunkResult, callbacks: GenerationCallbacks
    ) -> None:
        state.cursor = chunk.cursor
        if chunk.finish_reason is not None:
            state.finish_reason = chunk.finish_reason
        if not chunk.content and not chunk.thinking:
            return

        state.raw_content += chunk.content
        state.api_thinking += chunk.thinking
        tag_thinking, visible = separate_thinking(state.raw_content)
        thinking = _combine(state.api_thinking, tag_thinking)

        if thinking != state.thinking:
            state.thinking = thinking
            callbacks.on_thinking(thinking)
        if visible != state.visible:
            state.visible = visible
            callbacks.on_token(visible)

            delta = parse_partial_response(visible)
            if delta.has_payload() and delta != state.last_delta:
                state.last_delta = delta
                callbacks.on_response_update(delta)

    def _finish(
        self, state: _StreamState, callbacks: GenerationCallbacks
    ) -> GenerationOutcome:
        delta = parse_partial_response(state.visible)
        completion_message = extract_completion_message(state.visible)
        finish_error = finish_reason_error(state.finish_reason, self.context)
        if finish_error:
            self._log.warning(
                "stream.finish_reason", reason=state.finish_reason, message=finish_error
            )

        self._log.info(
            "stream.done",
            action=delta.action.value if delta.action else None,
            slides=len(delta.slides),
            chars=len(state.raw_content),
        )
        callbacks.on_done(
            state.raw_content, list(delta.slides), state.thinking, completion_message
        )
        return GenerationOutcome(
            text=state.visible,
            raw_text=state.raw_content,
            thinking=state.thinking,
            delta=delta,
            completion_message=completion_message,
            finish_reason=state.finish_reason,
            finish_error=finish_error,
        )


def _combine(api_thinking: str, tag_thinking: str) -> str:
    return "\n".join(part for part in (api_thinking.strip(), tag_thinking) if part)
