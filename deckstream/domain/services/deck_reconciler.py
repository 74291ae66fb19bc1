"""
Domain service that folds a finished model turn into the deck.

The reconciler is a pure state machine over the response action. It receives
the current deck and conversation history, and returns the new deck, the new
history and a list of intents the caller must carry out. It never reads or
writes a session store.
"""

import json
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from deckstream.domain.entities.conversation import HistoryMessage
from deckstream.domain.entities.slide import Slide, max_slide_number, renumber
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.clarification import Clarification
from deckstream.domain.value_objects.intents import (
    EmitChatMessage,
    EmitClarification,
    FailRequest,
    Intent,
    ReconcileResult,
    ReplaceDeck,
    StartRetrievalRound,
)
from deckstream.domain.value_objects.response_delta import BatchOpType, ResponseDelta

INFO_DEAD_END_MESSAGE = (
    "AI Error: The system could not retrieve the requested information."
)
PARSE_FAILURE_MESSAGE = "AI Error: Could not understand the response format."

RETRIEVAL_PAYLOAD_TEMPLATE = """[SYSTEM: DATA_RETRIEVAL_RESULT]
Here is the FULL CONTENT of the slides you requested (or all slides):
{slides_json}

[CRITICAL INSTRUCTION]:
1. The user's ORIGINAL REQUEST was: "{original_request}"
2. You now have the full context required to fulfill this request.
3. **DO NOT** reply with "I have received the data".
4. **IMMEDIATELY** generate the JSON for the next logical action (e.g., "update" or "append")."""


@dataclass(frozen=True)
class TurnContext:
    """What the reconciler needs to know about the turn besides the delta."""

    prompt: str = ""
    history: Tuple[HistoryMessage, ...] = ()
    raw_text: str = ""
    remaining_retrieval_rounds: int = 1


def build_retrieval_payload(slides: Sequence[Slide], original_request: str) -> str:
    """Synthetic user turn carrying full slide bodies back to the model."""
    slides_json = json.dumps(
        [slide.to_payload() for slide in slides], indent=2, ensure_ascii=False
    )
    return RETRIEVAL_PAYLOAD_TEMPLATE.format(
        slides_json=slides_json,
        original_request=original_request or "User request unavailable",
    )


def merge_slides(current: Sequence[Slide], incoming: Sequence[Slide]) -> List[Slide]:
    """
    Overlay incoming slides onto the deck by slide number.

    Incoming slides replace the slide with the same number, unknown numbers are
    added, slides without a number go last. The result is renumbered.
    """
    by_number: Dict[int, Slide] = {
        s.slide_number: s for s in current if s.slide_number is not None
    }
    unnumbered: List[Slide] = [s for s in current if s.slide_number is None]
    for slide in incoming:
        if slide.slide_number is None:
            unnumbered.append(slide)
        else:
            by_number[slide.slide_number] = slide
    ordered = [by_number[n] for n in sorted(by_number)]
    return renumber(ordered + unnumbered)


class DeckReconciler:
    """
    Applies a response delta to a deck.

    | action   | effect                                                |
    |----------|-------------------------------------------------------|
    | create   | replace deck, renumber from 1                         |
    | append   | add at the end, numbering continues from max + 1      |
    | update   | merge given fields into matching slides               |
    | delete   | remove matching slides, renumber                      |
    | ask      | clarification message, deck untouched                 |
    | response | chat message, deck untouched                          |
    | batch    | ordered update/delete operations, renumber once       |
    | sort     | reorder by id list; omitted slides go last            |
    | info     | bounded retrieval round                               |
    """

    def __init__(self) -> None:
        self._handlers: Dict[
            Action, Callable[[List[Slide], ResponseDelta, TurnContext], ReconcileResult]
        ] = {
            Action.CREATE: self._create,
            Action.APPEND: self._append,
            Action.UPDATE: self._update,
            Action.DELETE: self._delete,
            Action.ASK: self._ask,
            Action.RESPONSE: self._respond,
            Action.BATCH: self._batch,
            Action.SORT: self._sort,
            Action.INFO: self._info,
        }

    def reconcile(
        self,
        deck: Sequence[Slide],
        delta: ResponseDelta,
        context: Optional[TurnContext] = None,
    ) -> ReconcileResult:
        context = context or TurnContext()
        current = list(deck)

        if delta.action is None or (delta.action == Action.INFO and delta.slides):
            # No usable action: slides alone still carry meaning
            if delta.slides:
                return self._mutated(
                    merge_slides(current, delta.slides), None, context
                )
            return self._failed(current, context, PARSE_FAILURE_MESSAGE)

        return self._handlers[delta.action](current, delta, context)

    # ---- result helpers ----

    @staticmethod
    def _result(
        slides: Iterable[Slide],
        context: TurnContext,
        intents: Iterable[Intent],
        warnings: Iterable[str] = (),
        history: Optional[Iterable[HistoryMessage]] = None,
    ) -> ReconcileResult:
        return ReconcileResult(
            slides=tuple(slides),
            history=tuple(context.history if history is None else history),
            intents=tuple(intents),
            warnings=tuple(warnings),
        )

    def _mutated(
        self,
        slides: List[Slide],
        action: Optional[Action],
        context: TurnContext,
        warnings: Iterable[str] = (),
        extra: Iterable[Intent] = (),
    ) -> ReconcileResult:
        intents: List[Intent] = [ReplaceDeck(tuple(slides), action), *extra]
        return self._result(slides, context, intents, warnings)

    def _failed(
        self, deck: List[Slide], context: TurnContext, message: str
    ) -> ReconcileResult:
        return self._result(deck, context, [FailRequest(message)])

    # ---- handlers ----

    def _create(self, deck, delta, context):
        if not delta.slides:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        return self._mutated(renumber(delta.slides), Action.CREATE, context)

    def _append(self, deck, delta, context):
        if not delta.slides:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        start = max_slide_number(deck) + 1
        added = [
            slide.model_copy(update={"slide_number": start + offset})
            for offset, slide in enumerate(delta.slides)
        ]
        return self._mutated(renumber(deck + added), Action.APPEND, context)

    def _update(self, deck, delta, context):
        if not delta.slides:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        updated = list(deck)
        warnings = []
        for incoming in delta.slides:
            index = _index_of(updated, incoming.slide_number)
            if index is None:
                warnings.append(f"update skipped: slide {incoming.slide_number} not found")
                continue
            updated[index] = updated[index].merged_with(incoming.patch_fields())
        return self._mutated(renumber(updated), Action.UPDATE, context, warnings)

    def _delete(self, deck, delta, context):
        targets = set(delta.slide_numbers or [])
        targets.update(s.slide_number for s in delta.slides if s.slide_number)
        targets.update(_resolve_refs(deck, delta.slide_ids or []))
        if not targets:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        kept = [s for s in deck if s.slide_number not in targets]
        warnings = []
        missing = targets - {s.slide_number for s in deck}
        if missing:
            warnings.append(f"delete skipped unknown slides {sorted(missing)}")
        return self._mutated(renumber(kept), Action.DELETE, context, warnings)

    def _ask(self, deck, delta, context):
        if not delta.question:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        clarification = Clarification(
            question=delta.question,
            options=tuple(delta.options or ()),
            allow_custom=bool(delta.allow_custom),
        )
        return self._result(deck, context, [EmitClarification(clarification)])

    def _respond(self, deck, delta, context):
        if not delta.content:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        return self._result(deck, context, [EmitChatMessage(delta.content)])

    def _batch(self, deck, delta, context):
        if not delta.operations:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        result = list(deck)
        warnings = []
        for op in delta.operations:
            index = _index_of(result, op.slide_number)
            if index is None:
                warnings.append(
                    f"batch {op.type.value} skipped: slide {op.slide_number} not found"
                )
                continue
            if op.type == BatchOpType.DELETE:
                result.pop(index)
            else:
                result[index] = result[index].merged_with(op.changes())
        summary = ", ".join(op.describe() for op in delta.operations)
        message = EmitChatMessage(
            f"I have applied {len(delta.operations)} changes: {summary}"
        )
        return self._mutated(
            renumber(result), Action.BATCH, context, warnings, extra=[message]
        )

    def _sort(self, deck, delta, context):
        if not delta.new_order:
            return self._failed(deck, context, PARSE_FAILURE_MESSAGE)
        remaining = list(deck)
        ordered: List[Slide] = []
        unknown = []
        for ref in delta.new_order:
            match = next((s for s in remaining if s.matches_ref(ref)), None)
            if match is None:
                unknown.append(str(ref))
                continue
            remaining.remove(match)
            ordered.append(match)
        warnings = []
        if unknown:
            warnings.append(f"sort ignored unknown ids {unknown}")
        if remaining:
            warnings.append(
                "sort omitted slides "
                f"{[s.slide_number for s in remaining]}; appended at the end"
            )
        return self._mutated(
            renumber(ordered + remaining), Action.SORT, context, warnings
        )

    def _info(self, deck, delta, context):
        if context.remaining_retrieval_rounds <= 0:
            return self._failed(deck, context, INFO_DEAD_END_MESSAGE)

        targets = list(delta.slide_numbers or [])
        targets.extend(_resolve_refs(deck, delta.slide_ids or []))
        if not targets:
            # No numbers given: fetch every slide
            targets = [s.slide_number for s in deck if s.slide_number]

        requested = [s for s in deck if s.slide_number in set(targets)]
        if not requested:
            return self._failed(deck, context, INFO_DEAD_END_MESSAGE)

        target_numbers = tuple(s.slide_number for s in requested)
        payload = build_retrieval_payload(requested, context.prompt)
        info_message = context.raw_text or json.dumps(
            {"action": "info", "slide_numbers": list(target_numbers)}
        )
        history = (
            *context.history,
            HistoryMessage(role="assistant", content=info_message),
            HistoryMessage(role="user", content=payload),
        )
        round_ = StartRetrievalRound(
            target_numbers=target_numbers,
            payload=payload,
            remaining_rounds=context.remaining_retrieval_rounds - 1,
        )
        return self._result(deck, context, [round_], history=history)


def _index_of(slides: Sequence[Slide], number: Optional[int]) -> Optional[int]:
    if number is None:
        return None
    return next((i for i, s in enumerate(slides) if s.slide_number == number), None)


def _resolve_refs(deck: Sequence[Slide], refs: Iterable[str]) -> List[int]:
    numbers = []
    for ref in refs:
        match = next((s for s in deck if s.matches_ref(ref)), None)
        if match is not None and match.slide_number is not None:
            numbers.append(match.slide_number)
    return numbers
