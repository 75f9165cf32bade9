"""Tests for tools/llm_client.py — JSON recovery from model output."""

import pytest


class TestParseJsonResponse:
    def test_plain_json(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_json_with_prose(self):
        from tools.llm_client import parse_json_response
        text = 'Here you go:\n```json\n{"characters": ["Liam"]}\n```\nDone.'
        assert parse_json_response(text) == {"characters": ["Liam"]}

    def test_braces_inside_prose(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('Result: {"mood": "tense"} hope this helps') == {"mood": "tense"}

    def test_raw_newline_inside_string(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('{"text": "line one\nline two"}') == {"text": "line one\nline two"}

    def test_top_level_array_is_wrapped(self):
        from tools.llm_client import parse_json_response
        assert parse_json_response('[{"id": "a"}]') == {"items": [{"id": "a"}]}

    @pytest.mark.parametrize("text", ["", "no json here", "42"])
    def test_unrecoverable_raises_value_error(self, text):
        from tools.llm_client import parse_json_response
        with pytest.raises(ValueError):
            parse_json_response(text)


class TestAccessors:
    def test_get_list_takes_first_list_key(self):
        from tools.llm_client import get_list
        data = {"paragraphs": "oops", "translations": [1, 2]}
        assert get_list(data, "paragraphs", "translations") == [1, 2]
        assert get_list(data, "missing") == []

    def test_get_str_skips_blank_values(self):
        from tools.llm_client import get_str
        data = {"translated": "  ", "translation": " Привет "}
        assert get_str(data, "translated", "translation") == "Привет"
        assert get_str(data, "missing", default="x") == "x"
