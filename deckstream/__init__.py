"""Streaming delta protocol engine for conversational slide-deck generation."""

__version__ = "0.1.0"
