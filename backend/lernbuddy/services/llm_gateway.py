"""Client for the OpenAI-compatible LLM gateway with streamed chat completions."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from lernbuddy.config import settings
from lernbuddy.schemas import ChatMessage
from lernbuddy.utils.text import shorten

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """An upstream failure with the status and message shown to the learner."""

    status_code = 500
    user_message = "KI-Dienst nicht verfügbar"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail


class RateLimitedError(GatewayError):
    status_code = 429
    user_message = "Zu viele Anfragen. Bitte versuche es später."


class QuotaExhaustedError(GatewayError):
    status_code = 402
    user_message = "Zahlung erforderlich. Bitte Guthaben aufladen."


class GatewayUnavailableError(GatewayError):
    status_code = 503
    user_message = "Dein Buddy ist gerade nicht erreichbar. Bitte versuche es gleich noch einmal."


class GatewayRequestError(GatewayError):
    status_code = 500
    user_message = "KI-Dienst nicht verfügbar"


class GatewayStream:
    """An open upstream response whose bytes are relayed unchanged."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.response.aclose()

    async def aclose(self) -> None:
        await self.response.aclose()


class LLMGatewayClient:
    """
    Streams chat completions from the gateway.

    Transport errors and 5xx responses are retried with exponential backoff;
    429, 402 and other 4xx responses are not retried.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        max_attempts: int | None = None,
        backoff_base_seconds: float | None = None,
    ) -> None:
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, connect=10.0))
        self.url = url or settings.llm_gateway_url
        self.api_key = api_key if api_key is not None else settings.llm_gateway_api_key
        self.model = model or settings.model_buddy_chat
        self.max_attempts = max_attempts or settings.gateway_max_attempts
        self.backoff_base_seconds = (
            backoff_base_seconds
            if backoff_base_seconds is not None
            else settings.gateway_backoff_base_seconds
        )

    def _build_payload(self, system_prompt: str, messages: list[ChatMessage]) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                *({"role": m.role, "content": m.content} for m in messages),
            ],
            "stream": True,
        }

    async def open_stream(self, system_prompt: str, messages: list[ChatMessage]) -> GatewayStream:
        """
        Start a streamed completion.

        Returns:
            A GatewayStream positioned at the first upstream byte

        Raises:
            RateLimitedError, QuotaExhaustedError: on 429 / 402
            GatewayRequestError: on any other 4xx
            GatewayUnavailableError: when every attempt failed
        """
        if not self.api_key:
            raise GatewayRequestError("LLM gateway API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self._build_payload(system_prompt, messages)
        last_error = ""

        for attempt in range(self.max_attempts):
            attempt_number = attempt + 1
            request = self.client.build_request("POST", self.url, json=payload, headers=headers)
            try:
                response = await self.client.send(request, stream=True)
            except httpx.TransportError as e:
                last_error = f"transport error: {e}"
                logger.warning(
                    f"[LLMGatewayClient] Attempt {attempt_number}/{self.max_attempts} failed: {last_error}"
                )
            else:
                if response.status_code < 400:
                    if attempt:
                        logger.info(f"[LLMGatewayClient] Succeeded on attempt {attempt_number}")
                    return GatewayStream(response)

                body = (await response.aread()).decode("utf-8", errors="replace")
                await response.aclose()
                status = response.status_code

                if status == 429:
                    raise RateLimitedError(body)
                if status == 402:
                    raise QuotaExhaustedError(body)
                if status < 500:
                    logger.error(f"[LLMGatewayClient] Gateway error {status}: {shorten(body, 500)}")
                    raise GatewayRequestError(f"gateway returned {status}")

                last_error = f"status {status}: {shorten(body, 200)}"
                logger.warning(
                    f"[LLMGatewayClient] Attempt {attempt_number}/{self.max_attempts} failed: {last_error}"
                )

            if attempt_number < self.max_attempts:
                await asyncio.sleep(self.backoff_base_seconds * (2 ** attempt))

        logger.error(f"[LLMGatewayClient] Giving up after {self.max_attempts} attempts: {last_error}")
        raise GatewayUnavailableError(last_error)

    async def aclose(self) -> None:
        await self.client.aclose()
