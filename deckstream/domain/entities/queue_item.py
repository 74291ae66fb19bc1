"""
Queue item entity - processing record for one user turn.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from uuid import uuid4

from deckstream.domain.entities.conversation import AttachedFile
from deckstream.domain.entities.slide import Slide
from deckstream.domain.exceptions import InvalidStatusTransition
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.queue_status import QueueStatus
from deckstream.domain.value_objects.response_delta import BatchOp, ResponseDelta


@dataclass
class QueueItem:
    project_id: str
    prompt: str
    id: str = field(default_factory=lambda: uuid4().hex)
    status: QueueStatus = QueueStatus.QUEUED

    # Request context
    context_slides: Optional[List[Slide]] = None
    attached_files: List[AttachedFile] = field(default_factory=list)
    message_id: Optional[str] = None

    # Live streaming state
    streaming_text: Optional[str] = None
    thinking_text: Optional[str] = None

    # Latest response delta
    slides: List[Slide] = field(default_factory=list)
    response_action: Optional[Action] = None
    question: Optional[str] = None
    options: Optional[List[str]] = None
    allow_custom: Optional[bool] = None
    content: Optional[str] = None
    slide_numbers: Optional[List[int]] = None
    operations: Optional[List[BatchOp]] = None
    has_received_action: bool = False

    # Retrieval round bookkeeping
    retrieval_targets: List[int] = field(default_factory=list)
    retrieval_rounds_used: int = 0

    # Outcome
    result: Optional[str] = None
    thinking: Optional[str] = None
    completion_message: Optional[str] = None
    warning: Optional[str] = None  # non-fatal finish-reason message
    error: Optional[str] = None

    def transition_to(self, new_status: QueueStatus) -> None:
        """Business rule: only valid lifecycle moves are accepted."""
        if not self.status.can_transition_to(new_status):
            raise InvalidStatusTransition(self.status.value, new_status.value)
        self.status = new_status

    def apply_delta(self, delta: ResponseDelta) -> None:
        """Replace the mirrored delta fields with a fresh snapshot."""
        self.slides = list(delta.slides)
        self.response_action = delta.action
        self.question = delta.question
        self.options = delta.options
        self.allow_custom = delta.allow_custom
        self.content = delta.content
        self.slide_numbers = delta.slide_numbers
        self.operations = delta.operations
        self.has_received_action = self.has_received_action or delta.action is not None

    def clear_stream(self) -> None:
        self.streaming_text = None
        self.thinking_text = None
