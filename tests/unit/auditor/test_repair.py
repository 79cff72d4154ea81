"""Unit tests for JSON recovery from model output."""

import pytest

from auditor.repair import (
    balance_brackets,
    close_open_string,
    extract_json,
    strip_code_fences,
    strip_control_chars,
    strip_trailing_commas,
)


class TestCleanup:

    def test_json_fence(self):
        assert strip_code_fences('Вот ответ:\n```json\n{"a": 1}\n```\nГотово') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"

    def test_unterminated_fence(self):
        assert strip_code_fences('```json\n{"a": 1}') == '{"a": 1}'

    def test_control_chars_replaced(self):
        assert strip_control_chars("a\tb c d\x07e") == "a b c d e"

    def test_trailing_commas(self):
        assert strip_trailing_commas('{"a": [1, 2,], }') == '{"a": [1, 2]}'

    def test_balance_ignores_brackets_in_strings(self):
        assert balance_brackets('{"a": "[x", "b": [1') == '{"a": "[x", "b": [1]}'

    def test_close_open_string(self):
        assert close_open_string('{"a": "unfinished') == '{"a": ""'


class TestExtractJson:

    @pytest.mark.parametrize("raw", [None, "", "   \n"])
    def test_empty_input_gives_empty_result(self, raw):
        assert extract_json(raw) == {"chunkId": "unknown", "analysis": []}

    def test_valid_json_passes_through(self):
        assert extract_json('{"chunkId": "chunk_1", "analysis": []}') == {"chunkId": "chunk_1", "analysis": []}

    def test_prose_gives_failed_sentinel(self):
        assert extract_json("Извините, я не могу помочь с этим запросом.") == {"chunkId": "failed", "analysis": []}

    def test_truncated_mid_string(self):
        raw = '{"chunkId": "chunk_1", "analysis": [{"id": "p1", "category": "risk", "comment": "Срок не указ'
        value = extract_json(raw)
        assert value["chunkId"] == "chunk_1"
        assert value["analysis"][0]["id"] == "p1"
        assert value["analysis"][0]["category"] == "risk"

    def test_truncated_mid_array(self):
        raw = '{"chunkId": "chunk_2", "analysis": [{"id": "p4", "category": null}, {"id": "p5", '
        value = extract_json(raw)
        assert value["chunkId"] == "chunk_2"
        assert value["analysis"][0] == {"id": "p4", "category": None}

    def test_leading_prose_and_trailing_comma(self):
        value = extract_json('Результат: {"contradictions": [],}')
        assert value == {"contradictions": []}

    def test_verification_recovered_from_garbage(self):
        raw = '{"isContradiction": true, "severity": "high", "explanation": "Сроки ""расходятся"" '
        value = extract_json(raw)
        assert value["isContradiction"] is True
        assert value["severity"] == "high"

    @pytest.mark.parametrize("raw", [
        "{",
        "[[[",
        '{"a": }',
        "}}}{{{",
        '"""',
        '{"chunkId": ',
        "null",
    ])
    def test_never_raises(self, raw):
        extract_json(raw)
