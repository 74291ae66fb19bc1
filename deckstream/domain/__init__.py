"""
Domain layer - slides, queue items and the deck reconciliation rules.

This package contains pure logic, independent of transports and storage.
"""

from .entities import Slide, Session
from .value_objects import Action, ResponseDelta
from .services import DeckReconciler

__all__ = ["Slide", "Session", "Action", "ResponseDelta", "DeckReconciler"]
