"""
Application-layer prompts.

Prompt text sent to the backend, plus the builders that wrap a user request in
the current deck context.
"""

from .deck_chat import DeckChatPrompts

__all__ = ["DeckChatPrompts"]
