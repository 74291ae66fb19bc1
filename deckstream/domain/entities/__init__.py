"""Domain entities exports."""

from .slide import Layout, Slide, renumber
from .conversation import AttachedFile, ChatMessage, HistoryMessage, Session

__all__ = [
    "Layout",
    "Slide",
    "renumber",
    "AttachedFile",
    "ChatMessage",
    "HistoryMessage",
    "Session",
]
