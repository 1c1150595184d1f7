"""Utility modules."""

from lernbuddy.utils.text import (
    load_json_or_default,
    shorten,
    split_json_block,
    strip_code_fence,
)

__all__ = [
    "load_json_or_default",
    "shorten",
    "split_json_block",
    "strip_code_fence",
]
