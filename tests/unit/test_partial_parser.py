"""Unit tests for the partial response parser and completion handling."""

import json

from deckstream.application.streaming.completion import (
    extract_completion_message,
    salvage,
)
from deckstream.application.streaming.partial_parser import (
    build_delta,
    find_object_end,
    parse_partial_response,
    repair_slide_array,
    strip_code_fences,
)
from deckstream.domain.entities.slide import Layout, Slide
from deckstream.domain.value_objects.action import Action
from deckstream.domain.value_objects.response_delta import BatchOpType, ResponseDelta
from tests._helpers.fakes import deck_lines

LEGACY_DECK = json.dumps(
    {
        "action": "create",
        "slides": [
            {"slide_number": 1, "title": "Intro", "content": "- why"},
            {"slide_number": 2, "title": "Plan", "content": "- how"},
            {"slide_number": 3, "title": "Close", "content": "- thanks"},
        ],
    },
    indent=2,
)


class TestRepairSlideArray:
    def test_truncated_single_object_yields_nothing(self):
        assert repair_slide_array('[{"slide_number":1,"title":"A","content":"x"') == []

    def test_keeps_complete_objects(self):
        text = '[{"slide_number":1,"title":"A"},{"slide_number":2,"ti'
        assert repair_slide_array(text) == [{"slide_number": 1, "title": "A"}]

    def test_braces_inside_strings(self):
        text = '[{"slide_number":1,"title":"{x}"},{"slide_number":2,"title":"y}'
        records = repair_slide_array(text)
        assert [r["title"] for r in records] == ["{x}"]

    def test_drops_records_without_identity(self):
        text = '[{"content":"orphan"},{"i":2,"t":"Kept"}]'
        assert repair_slide_array(text) == [{"slide_number": 2, "title": "Kept"}]

    def test_no_array(self):
        assert repair_slide_array("nothing here") == []


class TestLineDelimited:
    def test_create_with_short_keys(self):
        text = deck_lines(
            "create",
            [{"i": 1, "t": "Intro", "l": "left", "v": True}, {"i": 2, "t": "Body"}],
            trailing="Here is your deck!",
        )

        delta = parse_partial_response(text)

        assert delta.action == Action.CREATE
        assert [s.title for s in delta.slides] == ["Intro", "Body"]
        assert delta.slides[0].layout_suggestion == Layout.SPLIT_LEFT
        assert delta.slides[0].visual_needs_image is True

    def test_partial_last_record_is_ignored(self):
        text = deck_lines("append", [{"i": 4, "t": "Done"}]) + '\n{"i":5,"t":"Hal'
        delta = parse_partial_response(text)
        assert [s.slide_number for s in delta.slides] == [4]

    def test_unicode_line_separators_inside_records(self):
        text = "\n".join(
            [
                '{"a":"create"}',
                json.dumps({"i": 1, "t": "Intro", "c": "x\u0085y\u2029z"}, ensure_ascii=False),
                '{"i":2,"t":"Two"}',
            ]
        )
        delta = parse_partial_response(text)
        assert [s.title for s in delta.slides] == ["Intro", "Two"]
        assert delta.slides[0].content == "x\u0085y\u2029z"

    def test_header_only_has_payload(self):
        delta = parse_partial_response('{"a":"append"}')
        assert delta.action == Action.APPEND
        assert delta.slides == []
        assert delta.has_payload()

    def test_ask(self):
        delta = parse_partial_response(
            '{"a":"ask","q":"Which tone?","o":["Formal","Casual"],"ac":true}'
        )
        assert delta.action == Action.ASK
        assert delta.question == "Which tone?"
        assert delta.options == ["Formal", "Casual"]
        assert delta.allow_custom is True

    def test_chat(self):
        delta = parse_partial_response('{"a":"chat","c":"Hi there"}')
        assert delta.action == Action.RESPONSE
        assert delta.content == "Hi there"

    def test_delete_numbers(self):
        delta = parse_partial_response('{"a":"del","s":[2,3]}')
        assert delta.action == Action.DELETE
        assert delta.slide_numbers == [2, 3]

    def test_batch_operations(self):
        text = "\n".join(
            [
                '{"a":"batch"}',
                '{"type":"update","i":2,"t":"New title"}',
                '{"type":"del","i":3}',
            ]
        )

        delta = parse_partial_response(text)

        assert delta.action == Action.BATCH
        assert [op.type for op in delta.operations] == [BatchOpType.UPDATE, BatchOpType.DELETE]
        assert delta.operations[0].changes() == {"title": "New title"}
        assert delta.slides == []

    def test_update_records_keep_only_sent_fields(self):
        delta = parse_partial_response(deck_lines("update", [{"i": 2, "t": "Renamed"}]))
        assert delta.slides[0].patch_fields() == {"title": "Renamed"}

    def test_code_fences_are_stripped(self):
        text = "```json\n" + deck_lines("create", [{"i": 1, "t": "A"}]) + "\n```"
        assert [s.title for s in parse_partial_response(text).slides] == ["A"]


class TestLegacyObject:
    def test_whole_object(self):
        delta = parse_partial_response(LEGACY_DECK)
        assert delta.action == Action.CREATE
        assert [s.title for s in delta.slides] == ["Intro", "Plan", "Close"]

    def test_object_followed_by_prose(self):
        delta = parse_partial_response(LEGACY_DECK + "\nAll set!")
        assert len(delta.slides) == 3

    def test_truncated_object(self):
        text = '{"action":"create","slides":[{"slide_number":1,"title":"A","content":"x"'
        delta = parse_partial_response(text)
        assert delta.action == Action.CREATE
        assert delta.slides == []

    def test_prefixes_grow_monotonically(self):
        final_titles = [s.title for s in parse_partial_response(LEGACY_DECK).slides]

        for end in range(0, len(LEGACY_DECK) + 1, 5):
            titles = [s.title for s in parse_partial_response(LEGACY_DECK[:end]).slides]
            assert titles == final_titles[: len(titles)]

    def test_truncated_response_content(self):
        delta = parse_partial_response('{"action":"response","content":"Hello"')
        assert delta.action == Action.RESPONSE
        assert delta.content == "Hello"

    def test_slide_content_is_not_chat_content(self):
        delta = parse_partial_response('{"action":"create","slides":[{"title":"A","content":"x"}')
        assert delta.content is None

    def test_sort_order(self):
        delta = parse_partial_response('{"action":"sort","new_order":["s3","s1",2]}')
        assert delta.action == Action.SORT
        assert delta.new_order == ["s3", "s1", "2"]

    def test_plain_prose(self):
        delta = parse_partial_response("I cannot help with that.")
        assert delta.action is None
        assert delta.slides == []
        assert not delta.has_payload()


class TestHelpers:
    def test_find_object_end_is_string_aware(self):
        text = '{"a":"}{"} trailing'
        assert find_object_end(text, 0) == text.index(" trailing") - 1

    def test_find_object_end_unbalanced(self):
        assert find_object_end('{"a":{"b":1}', 0) is None

    def test_strip_code_fences(self):
        assert strip_code_fences("```json\n{}\n```") == "{}"

    def test_mixed_references_are_split(self):
        delta = build_delta({"action": Action.INFO, "slide_numbers": [1, "2", "s-abc"]})
        assert delta.slide_numbers == [1, 2]
        assert delta.slide_ids == ["s-abc"]


class TestCompletionMessage:
    def test_after_line_delimited_records(self):
        text = deck_lines("create", [{"i": 1, "t": "A"}], trailing="Here is your deck!")
        assert extract_completion_message(text) == "Here is your deck!"

    def test_none_without_trailing_text(self):
        assert extract_completion_message(deck_lines("create", [{"i": 1, "t": "A"}])) is None

    def test_after_legacy_object(self):
        assert extract_completion_message(LEGACY_DECK + "\n\nEnjoy.") == "Enjoy."

    def test_record_with_unicode_separator_is_not_prose(self):
        record = json.dumps({"i": 1, "t": "A", "c": "x\u2028y"}, ensure_ascii=False)
        text = '{"a":"create"}\n' + record + "\nAll set."
        assert extract_completion_message(text) == "All set."

    def test_plain_prose_has_no_completion(self):
        assert extract_completion_message("just words") is None


class TestSalvage:
    def test_stray_slides_become_append(self):
        text = '{"action":"info"}, {"slide_number": 4, "title": "Extra"}'
        delta = parse_partial_response(text)
        completion = extract_completion_message(text)

        result = salvage(delta, completion)

        assert result.salvaged == 1
        assert result.delta.action == Action.APPEND
        assert [s.title for s in result.delta.slides] == ["Extra"]
        assert result.completion_message is None

    def test_prose_is_left_alone(self):
        delta = ResponseDelta(action=Action.CREATE)
        result = salvage(delta, "Here is your deck!")
        assert result.delta is delta
        assert result.completion_message == "Here is your deck!"
        assert result.salvaged == 0

    def test_deck_action_is_kept(self):
        delta = ResponseDelta(action=Action.UPDATE, slides=[Slide(slide_number=1, title="A")])
        result = salvage(delta, '[{"slide_number": 2, "title": "B"}]')
        assert result.delta.action == Action.UPDATE
        assert [s.title for s in result.delta.slides] == ["A", "B"]

    def test_json_without_slides_is_kept_as_message(self):
        result = salvage(ResponseDelta(), '{"note": "nothing"}')
        assert result.salvaged == 0
        assert result.completion_message == '{"note": "nothing"}'
