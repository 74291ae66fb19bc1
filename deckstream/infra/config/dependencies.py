"""
Dependency wiring: builds the generation queue from settings.
"""

from typing import Optional

from deckstream.application.ports import (
    QueueListener,
    SessionStorePort,
    SummarizerPort,
    TransportPort,
)
from deckstream.application.services.compaction import ConversationCompactor
from deckstream.application.services.context_builder import ContextBuilder
from deckstream.application.services.job_queue import GenerationJobQueue, QueueConfig
from deckstream.infra.config.logging_config import get_logger
from deckstream.infra.config.settings import Settings, get_settings
from deckstream.infra.llm.backends import resolve_backend
from deckstream.infra.llm.httpx_transport import HttpxTransport
from deckstream.infra.storage.in_memory_session_store import InMemorySessionStore


def build_job_queue(
    settings: Optional[Settings] = None,
    store: Optional[SessionStorePort] = None,
    transport: Optional[TransportPort] = None,
    summarizer: Optional[SummarizerPort] = None,
    listener: Optional[QueueListener] = None,
) -> GenerationJobQueue:
    """Create a job queue for the configured backend."""
    settings = settings or get_settings()
    backend = resolve_backend(settings=settings)
    store = store or InMemorySessionStore()
    transport = transport or HttpxTransport(backend, timeout=settings.request_timeout)

    compactor = None
    if summarizer is not None:
        compactor = ConversationCompactor(
            summarizer, store, threshold=settings.compaction_threshold
        )

    get_logger("dependencies").info(
        "queue.configured",
        backend=backend.type.value,
        endpoint=backend.endpoint,
        model=backend.model,
    )
    return GenerationJobQueue(
        transport=transport,
        store=store,
        config=QueueConfig(
            model=backend.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            retrieval_rounds=settings.retrieval_rounds,
        ),
        context_builder=ContextBuilder(
            history_window=settings.history_window,
            max_prompt_chars=settings.max_prompt_chars,
        ),
        compactor=compactor,
        listener=listener,
    )
