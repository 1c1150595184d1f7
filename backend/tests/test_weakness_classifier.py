"""
Tests for weakness detection.

Tests cover:
- Keyword rules and the short-answer rule
- Model-based classification with keyword fallback
- Classifier selection from settings
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lernbuddy.services.weakness_classifier import (
    SHORT_RESPONSE_TAG,
    KeywordWeaknessClassifier,
    ModelWeaknessClassifier,
    get_weakness_classifier,
)


class TestKeywordWeaknessClassifier:
    """Tests for the fixed keyword rules."""

    @pytest.mark.unit
    async def test_detects_keyword(self):
        classifier = KeywordWeaknessClassifier()

        tags = await classifier.detect("Ich weiß nicht, wie das geht", learner_turns=4)

        assert tags == ["weiß nicht"]

    @pytest.mark.unit
    async def test_match_is_case_insensitive(self):
        classifier = KeywordWeaknessClassifier()

        tags = await classifier.detect("HILFE, das ist zu schwer!", learner_turns=1)

        assert set(tags) == {"hilfe", "zu schwer"}

    @pytest.mark.unit
    async def test_help_must_be_a_whole_word(self):
        classifier = KeywordWeaknessClassifier()

        assert await classifier.detect("Danke für die Hilfestellung", learner_turns=1) == []
        assert await classifier.detect("Das war echt hilfreich", learner_turns=1) == []
        assert await classifier.detect("Hilfe!", learner_turns=1) == ["hilfe"]

    @pytest.mark.unit
    async def test_stem_keyword_matches_inflections(self):
        classifier = KeywordWeaknessClassifier()

        tags = await classifier.detect("Das ist eine schwierige Aufgabe", learner_turns=1)

        assert tags == ["schwierig"]

    @pytest.mark.unit
    async def test_keyword_inside_other_word_is_ignored(self):
        classifier = KeywordWeaknessClassifier()

        tags = await classifier.detect("Die Selbsthilfegruppe trifft sich heute", learner_turns=1)

        assert tags == []

    @pytest.mark.unit
    async def test_short_answer_after_two_turns(self):
        classifier = KeywordWeaknessClassifier()

        assert await classifier.detect("ok", learner_turns=3) == [SHORT_RESPONSE_TAG]

    @pytest.mark.unit
    async def test_short_answer_early_is_fine(self):
        classifier = KeywordWeaknessClassifier()

        assert await classifier.detect("ok", learner_turns=2) == []

    @pytest.mark.unit
    async def test_ordinary_answer_has_no_tags(self):
        classifier = KeywordWeaknessClassifier()

        tags = await classifier.detect("Ich glaube, das Ergebnis ist 12", learner_turns=5)

        assert tags == []


class TestModelWeaknessClassifier:
    """Tests for the Claude-backed classifier."""

    @pytest.mark.unit
    async def test_uses_model_tags(self, mock_anthropic_client):
        mock_anthropic_client.messages.create.return_value.content = [
            MagicMock(text='```json\n["Unsicher", "verstehe nicht"]\n```')
        ]
        classifier = ModelWeaknessClassifier(client=mock_anthropic_client)

        tags = await classifier.detect("Hmm, ich bin mir da echt nicht sicher", learner_turns=3)

        assert tags == ["unsicher", "verstehe nicht"]
        mock_anthropic_client.messages.create.assert_awaited_once()

    @pytest.mark.unit
    async def test_keeps_short_answer_rule(self, mock_anthropic_client):
        classifier = ModelWeaknessClassifier(client=mock_anthropic_client)

        tags = await classifier.detect("nö", learner_turns=4)

        assert tags == [SHORT_RESPONSE_TAG]

    @pytest.mark.unit
    async def test_falls_back_to_keywords_on_error(self, mock_anthropic_client):
        mock_anthropic_client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))
        classifier = ModelWeaknessClassifier(client=mock_anthropic_client)

        tags = await classifier.detect("Keine Ahnung, echt", learner_turns=2)

        assert tags == ["keine ahnung"]

    @pytest.mark.unit
    async def test_falls_back_on_non_list_reply(self, mock_anthropic_client):
        mock_anthropic_client.messages.create.return_value.content = [
            MagicMock(text="Der Lerner wirkt verwirrt.")
        ]
        classifier = ModelWeaknessClassifier(client=mock_anthropic_client)

        tags = await classifier.detect("Das ist kompliziert", learner_turns=2)

        assert tags == ["kompliziert"]


class TestGetWeaknessClassifier:
    """Tests for selecting the classifier from settings."""

    @pytest.mark.unit
    def test_keywords_by_default(self):
        with patch("lernbuddy.services.weakness_classifier.settings") as mock_settings:
            mock_settings.weakness_classifier = "keywords"
            assert isinstance(get_weakness_classifier(), KeywordWeaknessClassifier)

    @pytest.mark.unit
    def test_model_classifier(self):
        with patch("lernbuddy.services.weakness_classifier.settings") as mock_settings, \
             patch("lernbuddy.services.base.settings") as base_settings:
            mock_settings.weakness_classifier = "model"
            mock_settings.model_weakness_classifier = "claude-haiku-4-5"
            base_settings.anthropic_api_key = "test-key"
            assert isinstance(get_weakness_classifier(), ModelWeaknessClassifier)

    @pytest.mark.unit
    def test_model_classifier_needs_key(self):
        with patch("lernbuddy.services.base.settings") as base_settings:
            base_settings.anthropic_api_key = ""
            with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
                ModelWeaknessClassifier()
