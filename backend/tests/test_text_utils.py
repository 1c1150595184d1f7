"""Tests for reply text helpers."""

import pytest

from lernbuddy.utils.text import load_json_or_default, shorten, split_json_block, strip_code_fence


class TestTextHelpers:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw",
        ['```json\n["a"]\n```', '```\n["a"]\n```', '["a"]', '  ["a"]  '],
    )
    def test_strip_code_fence(self, raw):
        assert strip_code_fence(raw) == '["a"]'

    @pytest.mark.unit
    def test_load_json_default(self):
        assert load_json_or_default("kein json", default=[]) == []

    @pytest.mark.unit
    def test_split_uses_last_block(self):
        text = 'Text\n```json\n{"a": 1}\n```\nMehr\n```json\n{"b": 2}\n```'

        prose, block = split_json_block(text)

        assert block == '{"b": 2}'
        assert prose.endswith("Mehr")

    @pytest.mark.unit
    def test_split_without_block(self):
        assert split_json_block("  Nur Text ") == ("Nur Text", None)

    @pytest.mark.unit
    def test_shorten(self):
        assert shorten("abcdefghij", limit=6) == "abc..."
        assert shorten("abc", limit=6) == "abc"
