"""Domain services exports."""

from .deck_reconciler import DeckReconciler, TurnContext, merge_slides

__all__ = ["DeckReconciler", "TurnContext", "merge_slides"]
