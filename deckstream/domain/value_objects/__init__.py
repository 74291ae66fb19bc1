"""
Domain value objects - immutable objects that represent concepts.
"""

from .action import Action
from .clarification import Clarification
from .finish_reason import FinishReasonContext, finish_reason_error
from .queue_status import QueueStatus
from .response_delta import BatchOp, BatchOpType, ResponseDelta

__all__ = [
    "Action",
    "Clarification",
    "FinishReasonContext",
    "finish_reason_error",
    "QueueStatus",
    "BatchOp",
    "BatchOpType",
    "ResponseDelta",
]
