"""
Queue item status value object.
"""

from enum import Enum


class QueueStatus(str, Enum):
    """
    Lifecycle of one user turn in the generation queue.

    An item normally moves queued -> processing -> done/error exactly once.
    processing -> processing is allowed for the single bounded retrieval round.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"

    def can_transition_to(self, new_status: "QueueStatus") -> bool:
        valid_transitions = {
            QueueStatus.QUEUED: [QueueStatus.PROCESSING, QueueStatus.ERROR],
            QueueStatus.PROCESSING: [
                QueueStatus.PROCESSING,
                QueueStatus.DONE,
                QueueStatus.ERROR,
            ],
            QueueStatus.DONE: [],
            QueueStatus.ERROR: [],
        }
        return new_status in valid_transitions.get(self, [])

    def is_terminal(self) -> bool:
        return self in (QueueStatus.DONE, QueueStatus.ERROR)
