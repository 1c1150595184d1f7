"""Prompt templates for the learning buddy.

Usage:
    from lernbuddy.prompts import compose_system_prompt

    prompt = compose_system_prompt(personality="funny", profile=profile, ...)
"""

from lernbuddy.prompts.buddy_prompts import (
    PERSONALITY_STYLES,
    compose_system_prompt,
    describe_interactive_element,
)
from lernbuddy.prompts.task_prompts import (
    TASK_SIMPLIFIER_USER_PROMPT,
    get_task_simplifier_prompt,
)

__all__ = [
    "PERSONALITY_STYLES",
    "compose_system_prompt",
    "describe_interactive_element",
    "TASK_SIMPLIFIER_USER_PROMPT",
    "get_task_simplifier_prompt",
]
