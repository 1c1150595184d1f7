"""Shared base for services that ask Claude for short structured answers."""

import logging
from typing import Any, TypeVar

from anthropic import AsyncAnthropic

from lernbuddy.config import settings
from lernbuddy.utils.text import load_json_or_default, strip_code_fence

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_anthropic_client(owner: str) -> AsyncAnthropic:
    """Create an Anthropic client from settings, failing loudly without a key."""
    api_key = settings.anthropic_api_key.strip().strip('"').strip("'")
    if not api_key:
        logger.error(f"[{owner}] ANTHROPIC_API_KEY is missing")
        raise ValueError("ANTHROPIC_API_KEY is not set in environment variables")
    return AsyncAnthropic(api_key=api_key, timeout=30.0)


class BaseAnalyzer:
    """
    Base class for Claude-powered analyzers.

    Subclasses get a configured client (or the one passed in, e.g. a mock)
    and two call helpers: plain text and decoded JSON with a fallback value.
    """

    def __init__(self, model: str, client: AsyncAnthropic | None = None) -> None:
        self.model = model
        self.client = client or build_anthropic_client(self.__class__.__name__)
        logger.info(f"[{self.__class__.__name__}] Using model: {self.model}")

    async def _call_claude(
        self,
        prompt: str,
        max_tokens: int = 500,
        system: str | None = None,
    ) -> str:
        """Send a single user turn and return the reply text without code fences."""
        request: dict[str, Any] = dict(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        if system:
            request["system"] = system

        response = await self.client.messages.create(**request)
        return strip_code_fence(response.content[0].text)

    async def _call_claude_json(
        self,
        prompt: str,
        default: T,
        max_tokens: int = 500,
        system: str | None = None,
        context: str = "",
    ) -> T | Any:
        """Like `_call_claude`, but decodes the reply; `default` if it is not JSON."""
        reply = await self._call_claude(prompt, max_tokens, system)
        return load_json_or_default(reply, default, context)
