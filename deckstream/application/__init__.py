"""
Application layer - Use cases and generation orchestration.

This package contains the streaming codecs, the generation use case and the
per-project job queue that drive the domain reconciler.
"""

from .use_cases.stream_generation import StreamGenerationUseCase
from .services.job_queue import GenerationJobQueue, QueueConfig
from .services.context_builder import ContextBuilder
from .services.compaction import ConversationCompactor

__all__ = [
    "StreamGenerationUseCase",
    "GenerationJobQueue",
    "QueueConfig",
    "ContextBuilder",
    "ConversationCompactor",
]
