"""Task simplifier: turns a photographed exercise into a simplified, structured task."""

import logging
from dataclasses import dataclass

import openai
from pydantic import ValidationError

from lernbuddy.config import settings
from lernbuddy.prompts import TASK_SIMPLIFIER_USER_PROMPT, get_task_simplifier_prompt
from lernbuddy.schemas import InteractiveElement
from lernbuddy.utils.text import load_json_or_default, split_json_block

logger = logging.getLogger(__name__)


class TaskSimplificationError(Exception):
    """The gateway could not simplify the task."""


@dataclass
class SimplifiedTask:
    simplified_content: str
    task_type: str | None = None
    interactive_element: InteractiveElement | None = None


def parse_simplifier_reply(reply: str) -> SimplifiedTask:
    """Split the model reply into the markdown task and its optional interactive element."""
    prose, json_text = split_json_block(reply)
    if json_text is None:
        return SimplifiedTask(simplified_content=prose)

    extra = load_json_or_default(json_text, {}, context="task simplifier")
    if not isinstance(extra, dict):
        return SimplifiedTask(simplified_content=prose)

    element = None
    if extra.get("interactiveElement"):
        try:
            element = InteractiveElement.model_validate(extra["interactiveElement"])
        except ValidationError as e:
            logger.warning(f"[TaskSimplifier] Ignoring malformed interactive element: {e}")

    return SimplifiedTask(
        simplified_content=prose,
        task_type=extra.get("taskType"),
        interactive_element=element,
    )


class TaskSimplifier:
    """Sends exercise images to the gateway's OpenAI-compatible API."""

    def __init__(self, client: openai.AsyncOpenAI | None = None) -> None:
        self._client = client

    def _get_client(self) -> openai.AsyncOpenAI:
        """Lazy-load the OpenAI client pointed at the gateway."""
        if self._client is None:
            api_key = settings.llm_gateway_api_key
            if not api_key:
                raise TaskSimplificationError("LLM gateway API key not configured")
            base_url = settings.llm_gateway_url.removesuffix("/chat/completions")
            self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def simplify(self, image_url: str, grade_level: int) -> SimplifiedTask:
        """Simplify the exercise shown at image_url for the given grade level."""
        logger.info(f"[TaskSimplifier] Simplifying {image_url} for grade {grade_level}")
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=settings.model_task_simplifier,
                messages=[
                    {"role": "system", "content": get_task_simplifier_prompt(grade_level)},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": TASK_SIMPLIFIER_USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_url}},
                        ],
                    },
                ],
            )
        except openai.APIError as e:
            logger.error(f"[TaskSimplifier] Gateway error: {e}")
            raise TaskSimplificationError(str(e)) from e

        content = response.choices[0].message.content or ""
        if not content.strip():
            raise TaskSimplificationError("Empty reply from gateway")

        task = parse_simplifier_reply(content)
        logger.info(
            f"[TaskSimplifier] Task simplified (type={task.task_type}, "
            f"interactive={task.interactive_element.type if task.interactive_element else 'none'})"
        )
        return task
