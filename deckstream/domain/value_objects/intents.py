"""
Side-effect intents produced by the deck reconciler.

The reconciler never touches the session itself; it describes what should
happen and the job queue carries it out.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from deckstream.domain.entities.conversation import HistoryMessage
from deckstream.domain.entities.slide import Slide
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.clarification import Clarification


@dataclass(frozen=True)
class ReplaceDeck:
    slides: Tuple[Slide, ...]
    action: Optional[Action] = None


@dataclass(frozen=True)
class EmitChatMessage:
    content: str


@dataclass(frozen=True)
class EmitClarification:
    clarification: Clarification


@dataclass(frozen=True)
class StartRetrievalRound:
    target_numbers: Tuple[int, ...]
    payload: str
    remaining_rounds: int


@dataclass(frozen=True)
class FailRequest:
    message: str


Intent = Union[
    ReplaceDeck, EmitChatMessage, EmitClarification, StartRetrievalRound, FailRequest
]


@dataclass(frozen=True)
class ReconcileResult:
    slides: Tuple[Slide, ...]
    history: Tuple[HistoryMessage, ...]
    intents: Tuple[Intent, ...]
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def failure(self) -> Optional[FailRequest]:
        return next((i for i in self.intents if isinstance(i, FailRequest)), None)

    @property
    def retrieval(self) -> Optional[StartRetrievalRound]:
        return next(
            (i for i in self.intents if isinstance(i, StartRetrievalRound)), None
        )

    def messages(self) -> List[Union[EmitChatMessage, EmitClarification]]:
        return [
            i for i in self.intents if isinstance(i, (EmitChatMessage, EmitClarification))
        ]
