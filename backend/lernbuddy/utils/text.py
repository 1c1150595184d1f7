"""Helpers for model replies: code fences, embedded JSON and log-safe snippets."""

import json
import logging
import re
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_CLOSING_FENCE = re.compile(r"\n?```\s*$")
_JSON_BLOCK = re.compile(r"```json[ \t]*\n?(.*?)(?:\n?```|$)", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence (with or without language tag)."""
    text = _OPENING_FENCE.sub("", text.strip(), count=1)
    return _CLOSING_FENCE.sub("", text, count=1).strip()


def load_json_or_default(text: str, default: T, context: str = "") -> T | Any:
    """
    Decode JSON from a model reply, fenced or not.

    Returns:
        The decoded value, or `default` when the reply is not valid JSON
    """
    try:
        return json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        where = f" ({context})" if context else ""
        logger.warning(f"Could not decode JSON{where}: {e}")
        return default


def split_json_block(text: str) -> tuple[str, str | None]:
    """
    Separate the prose of a reply from its last fenced ```json block.

    Returns:
        (prose, json_text) where json_text is None when the reply has no block
    """
    matches = list(_JSON_BLOCK.finditer(text))
    if not matches:
        return text.strip(), None
    last = matches[-1]
    return text[:last.start()].strip(), last.group(1).strip()


def shorten(text: str, limit: int = 100, marker: str = "...") -> str:
    """Cut text to at most `limit` characters for log lines."""
    return text if len(text) <= limit else text[:limit - len(marker)] + marker
