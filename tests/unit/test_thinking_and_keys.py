"""Unit tests for <think> separation and short-key normalization."""

import pytest

from deckstream.application.streaming.key_mapping import (
    has_slide_identity,
    map_action,
    map_layout,
    normalize_header,
    normalize_slide_record,
)
from deckstream.application.streaming.thinking_splitter import (
    is_inside_think_tag,
    separate_thinking,
)
from deckstream.domain.value_objects.action import Action


class TestSeparateThinking:
    def test_closed_span(self):
        assert separate_thinking("<think>plan</think>Hello") == ("plan", "Hello")

    def test_unclosed_span_swallows_the_rest(self):
        assert separate_thinking('<think>still going {"a":') == ('still going {"a":', "")

    def test_multiple_spans_are_joined(self):
        text = "<think>a</think>x<think>b</think>y"
        assert separate_thinking(text) == ("a\nb", "xy")

    def test_no_tags(self):
        assert separate_thinking("  plain  ") == ("", "plain")

    def test_empty(self):
        assert separate_thinking("") == ("", "")

    def test_idempotent_on_content(self):
        _, content = separate_thinking("<think>r</think>{\"a\":\"chat\"}")
        assert separate_thinking(content) == ("", content)

    def test_growing_buffer_never_duplicates(self):
        full = "<think>step one</think>answer"
        snapshots = [separate_thinking(full[:n]) for n in range(len(full) + 1)]
        assert snapshots[-1] == ("step one", "answer")
        assert all(thinking.count("step one") <= 1 for thinking, _ in snapshots)

    def test_inside_think_tag(self):
        assert is_inside_think_tag("<think>abc")
        assert not is_inside_think_tag("<think>abc</think>")
        assert not is_inside_think_tag("abc")


class TestKeyMapping:
    @pytest.mark.parametrize(
        "token,expected",
        [
            ("create", Action.CREATE),
            ("del", Action.DELETE),
            ("delete", Action.DELETE),
            ("chat", Action.RESPONSE),
            ("response", Action.RESPONSE),
            (" INFO ", Action.INFO),
            ("bogus", None),
            (None, None),
        ],
    )
    def test_map_action(self, token, expected):
        assert map_action(token) == expected

    def test_slide_record_short_keys(self):
        record = normalize_slide_record(
            {"i": 1, "t": "Intro", "c": "- a", "v": True, "d": "sky", "l": "left", "n": "hi"}
        )
        assert record == {
            "slide_number": 1,
            "title": "Intro",
            "content": "- a",
            "visual_needs_image": True,
            "visual_description": "sky",
            "layout_suggestion": "split-left",
            "speaker_notes": "hi",
        }

    def test_long_keys_win_over_short(self):
        record = normalize_slide_record({"t": "short", "title": "long"})
        assert record["title"] == "long"

    def test_unknown_layout_code_passes_through(self):
        assert map_layout("quote") == "quote"
        assert map_layout("RIGHT") == "split-right"

    def test_header(self):
        header = normalize_header(
            {"a": "ask", "q": "Which tone?", "o": ["Formal", "Casual"], "ac": True}
        )
        assert header == {
            "action": Action.ASK,
            "question": "Which tone?",
            "options": ["Formal", "Casual"],
            "allow_custom": True,
        }

    def test_header_legacy_aliases(self):
        header = normalize_header({"action": "sort", "newOrder": ["2", "1"]})
        assert header["action"] == Action.SORT
        assert header["new_order"] == ["2", "1"]

    def test_slide_identity(self):
        assert has_slide_identity({"i": 3})
        assert has_slide_identity({"title": "x"})
        assert not has_slide_identity({"content": "orphan"})
