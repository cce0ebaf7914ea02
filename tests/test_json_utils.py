"""Tests for the response parse chain."""

import pytest

from dealpulse.core.exceptions import ResponseParseError
from dealpulse.intelligence.json_utils import (
    ResponseParser,
    coerce_json_payload,
    parse_direct,
    parse_fenced,
    strip_markers,
)


class TestResponseParser:
    """Test each strategy in the default chain."""

    def test_direct_json(self):
        assert coerce_json_payload('{"reasoning": "ok"}') == {"reasoning": "ok"}

    def test_fenced_markdown(self):
        text = 'Here you go:\n```json\n{"reasoning": "fenced"}\n```\nThanks!'
        assert coerce_json_payload(text) == {"reasoning": "fenced"}

    def test_prose_prefixed_object(self):
        text = 'Sure! Based on the data, {"reasoning": "greedy", "keyInsights": []} hope it helps'
        assert coerce_json_payload(text)["reasoning"] == "greedy"

    def test_marker_stripped_retry(self):
        text = (
            "\ufeffJSON: {\u201creasoning\u201d: \u201csmart quotes\u201d, "
            "\u201cnextActions\u201d: [],}"
        )
        assert coerce_json_payload(text) == {"reasoning": "smart quotes", "nextActions": []}

    def test_no_json_raises_parse_error(self):
        with pytest.raises(ResponseParseError):
            coerce_json_payload("I could not produce an analysis for this client.")

    def test_empty_payload(self):
        with pytest.raises(ResponseParseError, match="Empty payload"):
            ResponseParser().parse("   ")

    def test_array_is_not_an_object(self):
        with pytest.raises(ResponseParseError):
            parse_direct("[1, 2, 3]")

    def test_fenced_requires_a_block(self):
        with pytest.raises(ResponseParseError):
            parse_fenced('{"a": 1}')

    def test_fenced_skips_broken_block(self):
        text = '```json\n{bad}\n```\n```json\n{"a": 1}\n```'
        assert parse_fenced(text) == {"a": 1}
        assert coerce_json_payload(text) == {"a": 1}

    def test_fenced_reports_last_decode_error(self):
        with pytest.raises(ResponseParseError, match="fenced"):
            parse_fenced("```json\n{bad}\n```\n```json\n{worse}\n```")

    def test_registered_strategy_runs_last(self):
        def parse_key_value(text):
            key, _, value = text.partition("=")
            if not value:
                raise ResponseParseError("kv: no separator")
            return {key.strip(): value.strip()}

        parser = ResponseParser()
        parser.register(parse_key_value)
        assert parser.parse("reasoning = plain") == {"reasoning": "plain"}
        assert parser.parse('{"reasoning": "json"}') == {"reasoning": "json"}

    def test_strip_markers(self):
        assert strip_markers('```json\n{"a": [1, 2,],}\n```') == '{"a": [1, 2]}'
