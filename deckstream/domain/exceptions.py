"""
Domain and engine error types.

Every failure inside the engine is eventually converted into a human-readable
message for the caller; these exceptions carry that message plus a stable code.
"""

from typing import Optional


class DomainError(Exception):
    """Base class for engine errors."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class TransportError(DomainError):
    """Raised when the HTTP exchange with a backend fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message, "TRANSPORT_ERROR")
        self.status_code = status_code
        self.retry_after = retry_after


class GenerationCancelled(DomainError):
    """Raised when a generation is aborted through its cancellation handle."""

    def __init__(self):
        super().__init__("Cancelled", "CANCELLED")


class CompactionError(DomainError):
    """Raised when the conversation summary is unusable."""

    def __init__(self, reason: str):
        super().__init__(f"Compaction failed: {reason}", "COMPACTION_ERROR")


class InvalidStatusTransition(DomainError):
    """Raised when a queue item is moved to a status it cannot reach."""

    def __init__(self, current_status: str, new_status: str):
        super().__init__(
            f"Queue item is {current_status}, cannot move to {new_status}",
            "INVALID_STATUS_TRANSITION",
        )
