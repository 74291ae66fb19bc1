"""Application services exports."""

from .compaction import ConversationCompactor
from .context_builder import ContextBuilder
from .job_queue import GenerationJobQueue, QueueConfig

__all__ = ["ConversationCompactor", "ContextBuilder", "GenerationJobQueue", "QueueConfig"]
