"""
Generation Job Queue - serializes generation per project.

At most one item per project is in flight; later submissions for the same
project wait in FIFO order while other projects proceed concurrently. Each
in-flight item owns one cancellation token, which also covers its retrieval
round.

Per item:
1. Compact the conversation if it grew past the threshold
2. Build history and the deck-skeleton prompt
3. Stream a round, salvage stray slides, reconcile the delta
4. On ``info``, feed the requested slide bodies back and stream once more
5. Apply the resulting intents to the session store
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from deckstream.application.models import CancelToken, ChatRequest, GenerationOutcome
from deckstream.application.ports import (
    GenerationCallbacks,
    QueueListener,
    SessionStorePort,
    TransportPort,
)
from deckstream.application.prompts import DeckChatPrompts
from deckstream.application.services.compaction import ConversationCompactor
from deckstream.application.services.context_builder import ContextBuilder
from deckstream.application.streaming.completion import salvage
from deckstream.application.use_cases.stream_generation import StreamGenerationUseCase
from deckstream.domain.entities.conversation import AttachedFile, ChatMessage, Session
from deckstream.domain.entities.queue_item import QueueItem
from deckstream.domain.entities.slide import Slide
from deckstream.domain.exceptions import GenerationCancelled
from deckstream.domain.services.deck_reconciler import DeckReconciler, TurnContext
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.intents import (
    EmitChatMessage,
    EmitClarification,
    ReconcileResult,
    ReplaceDeck,
)
from deckstream.domain.value_objects.queue_status import QueueStatus
from deckstream.domain.value_objects.response_delta import ResponseDelta
from deckstream.infra.config.logging_config import bind_context, clear_context, get_logger

CANCELLED = GenerationCancelled().message
RETRIEVAL_THINKING_TEXT = "Reading slide details..."


@dataclass(frozen=True)
class QueueConfig:
    """Model parameters shared by every round the queue runs."""

    model: str
    system_prompt: str = DeckChatPrompts.get_system_prompt()
    temperature: float = 0.0
    max_tokens: int = 65535
    retrieval_rounds: int = 1


class _ItemCallbacks(GenerationCallbacks):
    """Mirrors streaming progress onto the queue item until it is cancelled."""

    def __init__(self, queue: "GenerationJobQueue", item: QueueItem, cancel: CancelToken):
        self.queue = queue
        self.item = item
        self.cancel = cancel

    def _live(self) -> bool:
        return not self.cancel.is_cancelled and not self.item.status.is_terminal()

    def on_token(self, text: str) -> None:
        if self._live():
            self.item.streaming_text = text
            self.queue._notify(self.item)

    def on_thinking(self, thinking: str) -> None:
        if self._live():
            self.item.thinking_text = thinking
            self.queue._notify(self.item)

    def on_response_update(self, delta: ResponseDelta) -> None:
        if self._live():
            self.item.apply_delta(delta)
            self.queue._notify(self.item)


class GenerationJobQueue:
    def __init__(
        self,
        transport: TransportPort,
        store: SessionStorePort,
        config: QueueConfig,
        context_builder: Optional[ContextBuilder] = None,
        compactor: Optional[ConversationCompactor] = None,
        reconciler: Optional[DeckReconciler] = None,
        listener: Optional[QueueListener] = None,
    ):
        self.transport = transport
        self.store = store
        self.config = config
        self.context_builder = context_builder or ContextBuilder()
        self.compactor = compactor
        self.reconciler = reconciler or DeckReconciler()
        self.listener = listener or QueueListener()
        self.items: List[QueueItem] = []
        self._active: Dict[str, QueueItem] = {}
        self._tokens: Dict[str, CancelToken] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._log = get_logger("service.job_queue")

    # ---- submission and management ----

    def submit(
        self,
        project_id: str,
        prompt: str,
        context_slides: Optional[Sequence[Slide]] = None,
        attached_files: Sequence[AttachedFile] = (),
        message_id: Optional[str] = None,
    ) -> QueueItem:
        """Queue one user turn; processing starts on the running event loop."""
        item = QueueItem(
            project_id=project_id,
            prompt=prompt,
            context_slides=list(context_slides) if context_slides else None,
            attached_files=list(attached_files),
            message_id=message_id,
        )
        self.items.append(item)
        self._log.info(
            "queue.item.submitted",
            project_id=project_id,
            item_id=item.id,
            queued=len(self._queued(project_id)),
        )
        self._notify(item)
        self._ensure_worker(project_id)
        return item

    def remove_queue_item(self, item_id: str) -> bool:
        """Drop an item that has not started yet."""
        item = self._find(item_id)
        if item is None or item.status != QueueStatus.QUEUED:
            return False
        self.items.remove(item)
        return True

    def cancel(self, project_id: str) -> bool:
        """Abort the in-flight item of a project. Queued items are kept."""
        token = self._tokens.get(project_id)
        item = self._active.get(project_id)
        if token is None or item is None:
            return False
        token.cancel()
        self._fail(item, CANCELLED)
        self._log.info("queue.item.cancelled", project_id=project_id, item_id=item.id)
        return True

    def cancel_all(self) -> int:
        return sum(1 for project_id in list(self._tokens) if self.cancel(project_id))

    def clear(self) -> None:
        """Forget every item that is not currently processing."""
        self.items = [i for i in self.items if i.status == QueueStatus.PROCESSING]

    def is_project_processing(self, project_id: str) -> bool:
        return project_id in self._active

    def get_active(self, project_id: str) -> Optional[QueueItem]:
        return self._active.get(project_id)

    async def wait_idle(self) -> None:
        """Wait until every project worker has drained its queue."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    # ---- workers ----

    def _ensure_worker(self, project_id: str) -> None:
        worker = self._workers.get(project_id)
        if worker is None or worker.done():
            self._workers[project_id] = asyncio.get_running_loop().create_task(
                self._drain(project_id)
            )

    async def _drain(self, project_id: str) -> None:
        try:
            while True:
                queued = self._queued(project_id)
                if not queued:
                    break
                await self._process(queued[0])
        finally:
            self._workers.pop(project_id, None)

    async def _process(self, item: QueueItem) -> None:
        project_id = item.project_id
        token = CancelToken()
        self._tokens[project_id] = token
        self._active[project_id] = item
        bind_context(project_id=project_id, item_id=item.id)
        self._log.info("queue.item.start")

        try:
            item.transition_to(QueueStatus.PROCESSING)
            item.streaming_text = ""
            item.thinking_text = ""
            self._notify(item)
            await self._run(item, token)
        except GenerationCancelled:
            self._fail(item, CANCELLED)
        except Exception as exc:
            self._log.exception("queue.item.failed", error=str(exc))
            self._fail(item, str(exc) or type(exc).__name__)
        finally:
            self._active.pop(project_id, None)
            self._tokens.pop(project_id, None)
            clear_context()

    async def _run(self, item: QueueItem, token: CancelToken) -> None:
        session = await self._session(item.project_id)
        if self.compactor is not None and await self.compactor.maybe_compact(session):
            session = await self._session(item.project_id)
        token.raise_if_cancelled()

        builder = self.context_builder
        history = builder.build_history(session)
        prompt = builder.build_prompt(item.prompt, session.slides, item.context_slides or ())
        images = builder.images(item.attached_files)
        remaining = self.config.retrieval_rounds
        generation = StreamGenerationUseCase(self.transport)

        while True:
            request = ChatRequest(
                prompt=prompt,
                model=self.config.model,
                system_prompt=self.config.system_prompt,
                history=history,
                images=images,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            outcome = await generation.execute(
                request, _ItemCallbacks(self, item, token), token
            )
            token.raise_if_cancelled()
            if not outcome.ok:
                self._fail(item, outcome.error)
                return

            salvaged = salvage(outcome.delta, outcome.completion_message)
            if salvaged.salvaged:
                self._log.warning("queue.item.salvaged", slides=salvaged.salvaged)
            item.apply_delta(salvaged.delta)

            deck = (await self._session(item.project_id)).slides
            token.raise_if_cancelled()
            result = self.reconciler.reconcile(
                deck,
                salvaged.delta,
                TurnContext(
                    prompt=item.prompt,
                    history=history,
                    raw_text=outcome.raw_text,
                    remaining_retrieval_rounds=remaining,
                ),
            )
            for warning in result.warnings:
                self._log.warning("queue.item.reconcile_warning", warning=warning)

            if result.failure is not None:
                self._fail(item, result.failure.message)
                return

            retrieval = result.retrieval
            if retrieval is None:
                await self._apply(item, token, result, outcome, salvaged.delta)
                self._complete(item, outcome, salvaged.completion_message)
                return

            self._log.info(
                "queue.item.retrieval_round",
                targets=list(retrieval.target_numbers),
                remaining=retrieval.remaining_rounds,
            )
            item.retrieval_targets = list(retrieval.target_numbers)
            item.retrieval_rounds_used += 1
            item.transition_to(QueueStatus.PROCESSING)
            item.streaming_text = None
            item.thinking_text = RETRIEVAL_THINKING_TEXT
            self._notify(item)

            history = result.history
            prompt = ""
            images = ()
            remaining = retrieval.remaining_rounds

    async def _apply(
        self,
        item: QueueItem,
        token: CancelToken,
        result: ReconcileResult,
        outcome: GenerationOutcome,
        delta: ResponseDelta,
    ) -> None:
        for intent in result.intents:
            token.raise_if_cancelled()
            if isinstance(intent, ReplaceDeck):
                await self.store.replace_slides(item.project_id, list(intent.slides))
                if intent.action != Action.BATCH:
                    token.raise_if_cancelled()
                    await self.store.add_message(
                        item.project_id,
                        ChatMessage(
                            role="assistant",
                            content=outcome.raw_text,
                            thinking=outcome.thinking or None,
                            slides=list(delta.slides) or None,
                            is_script_generation=bool(delta.slides),
                            completion_message=outcome.completion_message,
                        ),
                    )
            elif isinstance(intent, EmitChatMessage):
                await self.store.add_message(
                    item.project_id,
                    ChatMessage(role="assistant", content=intent.content),
                )
            elif isinstance(intent, EmitClarification):
                await self.store.add_message(
                    item.project_id,
                    ChatMessage(
                        role="assistant",
                        content=intent.clarification.question,
                        clarification=intent.clarification,
                    ),
                )

    # ---- item state ----

    def _complete(
        self, item: QueueItem, outcome: GenerationOutcome, completion: Optional[str]
    ) -> None:
        if item.status.is_terminal():
            return
        item.result = outcome.raw_text
        item.thinking = outcome.thinking or None
        item.completion_message = completion
        item.warning = outcome.finish_error
        item.transition_to(QueueStatus.DONE)
        item.clear_stream()
        self._log.info(
            "queue.item.done",
            action=item.response_action.value if item.response_action else None,
            slides=len(item.slides),
        )
        self._notify(item)

    def _fail(self, item: QueueItem, message: Optional[str]) -> None:
        if item.status.is_terminal():
            return
        item.error = message or "Connection failed"
        item.transition_to(QueueStatus.ERROR)
        item.clear_stream()
        self._log.info("queue.item.error", error=item.error)
        self._notify(item)

    def _notify(self, item: QueueItem) -> None:
        self.listener.on_item_updated(item)

    def _queued(self, project_id: str) -> List[QueueItem]:
        return [
            i
            for i in self.items
            if i.project_id == project_id and i.status == QueueStatus.QUEUED
        ]

    def _find(self, item_id: str) -> Optional[QueueItem]:
        return next((i for i in self.items if i.id == item_id), None)

    async def _session(self, project_id: str) -> Session:
        return await self.store.get(project_id) or Session(id=project_id)
