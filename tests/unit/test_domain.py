"""Unit tests for domain entities and value objects."""

import pytest

from deckstream.domain.entities.queue_item import QueueItem
from deckstream.domain.entities.slide import Layout, Slide, coerce_layout, renumber
from deckstream.domain.exceptions import InvalidStatusTransition
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.clarification import Clarification
from deckstream.domain.value_objects.finish_reason import (
    FinishReasonContext,
    finish_reason_error,
)
from deckstream.domain.value_objects.queue_status import QueueStatus
from deckstream.domain.value_objects.response_delta import BatchOp, BatchOpType, ResponseDelta


class TestSlide:
    def test_defaults(self):
        slide = Slide(slide_number=1, title="Intro")
        assert slide.content == ""
        assert slide.visual_needs_image is False
        assert slide.layout_suggestion == Layout.CENTERED

    def test_null_fields_become_defaults(self):
        slide = Slide.model_validate(
            {"slide_number": 1, "title": None, "visual_needs_image": None}
        )
        assert slide.title == ""
        assert slide.visual_needs_image is False

    @pytest.mark.parametrize(
        "value,expected",
        [("split-left", Layout.SPLIT_LEFT), ("INTRO", Layout.INTRO), ("diagonal", Layout.CENTERED)],
    )
    def test_coerce_layout(self, value, expected):
        assert coerce_layout(value) == expected

    def test_patch_fields_are_the_explicit_ones(self):
        slide = Slide.model_validate({"slide_number": 2, "title": "New", "speaker_notes": "x"})
        assert slide.patch_fields() == {"title": "New", "speaker_notes": "x"}

    def test_matches_ref_by_id_or_number(self):
        slide = Slide(slide_number=3, title="x", id="s-9")
        assert slide.matches_ref("s-9")
        assert slide.matches_ref(3)
        assert slide.matches_ref("3")
        assert not slide.matches_ref("4")

    def test_renumber(self):
        slides = [Slide(slide_number=7, title="a"), Slide(title="b"), Slide(slide_number=2, title="c")]
        assert [s.slide_number for s in renumber(slides)] == [1, 2, 3]
        assert [s.title for s in renumber(slides)] == ["a", "b", "c"]

    def test_slide_number_must_be_positive(self):
        with pytest.raises(ValueError):
            Slide(slide_number=0)


class TestQueueStatus:
    def test_valid_transitions(self):
        assert QueueStatus.QUEUED.can_transition_to(QueueStatus.PROCESSING)
        assert QueueStatus.PROCESSING.can_transition_to(QueueStatus.PROCESSING)
        assert QueueStatus.PROCESSING.can_transition_to(QueueStatus.DONE)
        assert QueueStatus.QUEUED.can_transition_to(QueueStatus.ERROR)

    def test_terminal_states_are_final(self):
        for status in (QueueStatus.DONE, QueueStatus.ERROR):
            assert status.is_terminal()
            assert not status.can_transition_to(QueueStatus.PROCESSING)

    def test_queue_item_rejects_invalid_move(self):
        item = QueueItem(project_id="p", prompt="x")
        with pytest.raises(InvalidStatusTransition):
            item.transition_to(QueueStatus.DONE)

    def test_apply_delta_tracks_action(self):
        item = QueueItem(project_id="p", prompt="x")
        item.apply_delta(ResponseDelta(action=Action.ASK, question="?"))
        item.apply_delta(ResponseDelta())
        assert item.has_received_action
        assert item.question is None


class TestClarification:
    def test_answer_from_options(self):
        clarification = Clarification(question="Tone?", options=("Formal", "Casual"))
        answered = clarification.answered("Formal")
        assert answered.is_resolved
        assert not answered.is_custom_answer

    def test_custom_answer_requires_permission(self):
        clarification = Clarification(question="Tone?", options=("Formal",))
        with pytest.raises(ValueError):
            clarification.answered("Playful")

        custom = Clarification(question="Tone?", options=("Formal",), allow_custom=True)
        assert custom.answered("Playful").is_custom_answer

    def test_skip_is_explicit(self):
        skipped = Clarification(question="Tone?", allow_custom=True).skip()
        assert skipped.skipped
        assert skipped.answer is None
        with pytest.raises(ValueError):
            skipped.answered("anything")

    def test_any_text_is_a_valid_answer(self):
        clarification = Clarification(question="Tone?", allow_custom=True)
        assert clarification.answered("skip").answer == "skip"


class TestBatchOp:
    def test_short_delete_token(self):
        op = BatchOp.model_validate({"type": "del", "slide_number": 2})
        assert op.type == BatchOpType.DELETE
        assert op.describe() == "Deleted slide 2"
        assert op.changes() == {}

    def test_update_changes(self):
        op = BatchOp.model_validate(
            {"type": "update", "slide_number": 1, "title": "T", "layout_suggestion": "Quote"}
        )
        assert op.changes() == {"title": "T", "layout_suggestion": Layout.QUOTE}
        assert op.describe() == "Updated slide 1"


class TestFinishReason:
    @pytest.mark.parametrize("reason", [None, "stop", "STOP", "null"])
    def test_normal_stop_is_silent(self, reason):
        assert finish_reason_error(reason) is None

    def test_max_tokens_for_generation(self):
        assert (
            finish_reason_error("MAX_TOKENS")
            == "Generation limit reached (Max Tokens). Response may be truncated."
        )

    def test_openai_length_is_max_tokens(self):
        assert finish_reason_error("length") == finish_reason_error("MAX_TOKENS")

    def test_wording_depends_on_context(self):
        assert (
            finish_reason_error("MAX_TOKENS", FinishReasonContext.ENHANCE)
            == "Enhancement truncated: Max output tokens reached."
        )
        assert (
            finish_reason_error("SAFETY", FinishReasonContext.COMPACT)
            == "Compaction blocked by safety filters."
        )

    def test_unknown_reason_is_reported_raw(self):
        assert finish_reason_error("weird") == "Generation stopped early: weird"
        assert (
            finish_reason_error("OTHER", FinishReasonContext.ENHANCE)
            == "Generation stopped: OTHER"
        )


class TestAction:
    def test_deck_mutation(self):
        assert Action.SORT.mutates_deck()
        assert not Action.INFO.mutates_deck()
        assert Action.UPDATE.carries_slides()
        assert not Action.DELETE.carries_slides()
