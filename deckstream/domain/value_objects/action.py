"""
Action value object - what a model turn asks the engine to do with the deck.
"""

from enum import Enum


class Action(str, Enum):
    """Canonical actions of the delta protocol."""

    CREATE = "create"  # replace the whole deck
    APPEND = "append"  # add slides at the end
    UPDATE = "update"  # merge fields into existing slides
    DELETE = "delete"  # remove slides
    ASK = "ask"  # clarification question, deck untouched
    RESPONSE = "response"  # plain chat reply, deck untouched
    INFO = "info"  # request full slide bodies (retrieval round)
    BATCH = "batch"  # ordered list of update/delete operations
    SORT = "sort"  # reorder the deck

    def mutates_deck(self) -> bool:
        return self in (
            Action.CREATE,
            Action.APPEND,
            Action.UPDATE,
            Action.DELETE,
            Action.BATCH,
            Action.SORT,
        )

    def carries_slides(self) -> bool:
        return self in (Action.CREATE, Action.APPEND, Action.UPDATE)
