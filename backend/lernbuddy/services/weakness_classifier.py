"""Weakness detection on learner messages.

The progress updater only depends on the `WeaknessClassifier` interface, so the
fixed keyword rules can be replaced by the model-based classifier via settings.
"""

import logging
import re
from abc import ABC, abstractmethod

from anthropic import AsyncAnthropic

from lernbuddy.config import settings
from lernbuddy.services.base import BaseAnalyzer

logger = logging.getLogger(__name__)

WEAKNESS_KEYWORDS = [
    "weiß nicht",
    "weiss nicht",
    "verstehe nicht",
    "versteh ich nicht",
    "kapiere nicht",
    "kapier ich nicht",
    "keine ahnung",
    "schwierig",
    "zu schwer",
    "kompliziert",
    "verwirrt",
    "hilfe",
]

# Only these must stand alone; the others are stems ("schwierig" -> "schwieriger")
WHOLE_WORD_KEYWORDS = {"hilfe"}

SHORT_RESPONSE_TAG = "short_response"
SHORT_RESPONSE_MAX_LENGTH = 10
SHORT_RESPONSE_MIN_TURNS = 2


def _keyword_pattern(keyword: str) -> re.Pattern:
    """Keywords start at a word boundary, whole-word keywords also end at one."""
    end = r"\b" if keyword in WHOLE_WORD_KEYWORDS else ""
    return re.compile(rf"\b{re.escape(keyword)}{end}", re.IGNORECASE)


class WeaknessClassifier(ABC):
    """Detects signs that the learner is struggling in their latest message."""

    @abstractmethod
    async def detect(self, message: str, learner_turns: int) -> list[str]:
        """Return the weakness tags found; an empty list means no struggle."""
        pass


class KeywordWeaknessClassifier(WeaknessClassifier):
    """Case-insensitive keyword match plus a short-answer rule."""

    def __init__(self, keywords: list[str] | None = None) -> None:
        self.keywords = keywords or WEAKNESS_KEYWORDS
        self._patterns = [(keyword, _keyword_pattern(keyword)) for keyword in self.keywords]

    async def detect(self, message: str, learner_turns: int) -> list[str]:
        return self.detect_sync(message, learner_turns)

    def detect_sync(self, message: str, learner_turns: int) -> list[str]:
        tags = [keyword for keyword, pattern in self._patterns if pattern.search(message)]

        if (
            len(message.strip()) < SHORT_RESPONSE_MAX_LENGTH
            and learner_turns > SHORT_RESPONSE_MIN_TURNS
        ):
            tags.append(SHORT_RESPONSE_TAG)

        return tags


class ModelWeaknessClassifier(BaseAnalyzer, WeaknessClassifier):
    """Asks Claude for weakness tags, falling back to the keyword rules."""

    SYSTEM_PROMPT = """Du analysierst Nachrichten von Schülerinnen und Schülern an einen Lernbegleiter.
Erkenne, ob die Nachricht Schwierigkeiten, Unsicherheit oder Frustration zeigt.
Antworte NUR mit einem JSON-Array kurzer Stichworte (z.B. ["verstehe nicht", "unsicher"]).
Wenn keine Schwierigkeit erkennbar ist, antworte mit []."""

    def __init__(self, client: AsyncAnthropic | None = None) -> None:
        super().__init__(settings.model_weakness_classifier, client)
        self.fallback = KeywordWeaknessClassifier()

    async def detect(self, message: str, learner_turns: int) -> list[str]:
        try:
            tags = await self._call_claude_json(
                f"Nachricht: {message}",
                default=None,
                max_tokens=100,
                system=self.SYSTEM_PROMPT,
                context="weakness tags",
            )
        except Exception as e:
            logger.warning(f"[ModelWeaknessClassifier] Claude call failed, using keywords: {e}")
            return self.fallback.detect_sync(message, learner_turns)

        if not isinstance(tags, list):
            return self.fallback.detect_sync(message, learner_turns)

        tags = [str(tag).strip().lower() for tag in tags if str(tag).strip()]
        # The short-answer rule is structural, keep it regardless of the model
        if (
            len(message.strip()) < SHORT_RESPONSE_MAX_LENGTH
            and learner_turns > SHORT_RESPONSE_MIN_TURNS
            and SHORT_RESPONSE_TAG not in tags
        ):
            tags.append(SHORT_RESPONSE_TAG)
        return tags


def get_weakness_classifier() -> WeaknessClassifier:
    """Build the classifier configured in settings."""
    if settings.weakness_classifier == "model":
        return ModelWeaknessClassifier()
    return KeywordWeaknessClassifier()
