"""Tests for JSON extraction from model responses."""
from __future__ import annotations

from lecture_assistant.llm_output import extract_json, iter_json_objects


class TestExtractJson:
    def test_bare_json(self):
        result = extract_json('{"questions": []}')
        assert result == {"questions": []}

    def test_code_fence_json(self):
        result = extract_json('Here:\n```json\n{"summary": "x"}\n```')
        assert result["summary"] == "x"

    def test_fence_wins_over_bare(self):
        text = 'Example: {"summary": "draft"}\n```json\n{"summary": "final"}\n```'
        assert extract_json(text, keys=("summary",))["summary"] == "final"

    def test_json_with_surrounding_text(self):
        result = extract_json('Sure:\n\n{"value": 42}\n\nHope that helps!')
        assert result["value"] == 42

    def test_think_block_ignored(self):
        text = '<think>maybe {"value": 1}</think>{"value": 2}'
        assert extract_json(text)["value"] == 2

    def test_prefers_last_object(self):
        assert extract_json('{"draft": true} then {"final": true}') == {"final": True}

    def test_prefers_object_with_key(self):
        text = '{"questions": [{"type": "single-choice"}]} Note: {"confidence": "high"}'
        assert extract_json(text, keys=("questions",)) == {"questions": [{"type": "single-choice"}]}

    def test_falls_back_when_no_key_matches(self):
        assert extract_json('{"a": 1} {"b": 2}', keys=("questions",)) == {"b": 2}

    def test_nested_braces_in_strings(self):
        text = 'Result: {"summary": "uses {curly} braces", "themes": []}'
        assert extract_json(text)["summary"] == "uses {curly} braces"

    def test_invalid_json(self):
        assert extract_json("This is not JSON at all.") is None

    def test_malformed_json(self):
        assert extract_json('{"questions": [') is None


class TestIterJsonObjects:
    def test_nested_objects_not_repeated(self):
        objs = list(iter_json_objects('{"outer": {"inner": 1}} {"next": 2}'))
        assert objs == [{"outer": {"inner": 1}}, {"next": 2}]

    def test_skips_broken_prefix(self):
        assert list(iter_json_objects('{broken {"ok": true}')) == [{"ok": True}]
