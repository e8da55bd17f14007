"""
Coach model access: Anthropic and OpenAI behind one `complete` call.

Every call returns {"content": str, "usage": {"input_tokens", "output_tokens"},
"duration_ms": int}. `usage` is what the orchestrator bills against, so it is
always present (zeros when the provider reported nothing).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import anthropic
import openai

from backend.config import settings

logger = logging.getLogger(__name__)

# Rate limits, dropped connections and 5xx are worth another attempt
_TRANSIENT: dict[str, tuple[type[Exception], ...]] = {
    "anthropic": (anthropic.RateLimitError, anthropic.APIConnectionError, anthropic.InternalServerError),
    "openai": (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError),
}


class AIProvider:
    """
    Thin async wrapper over the provider SDKs.

    Clients are created on first use, so a deployment configured for one
    provider never needs the other's key. A missing key raises ValueError,
    which the coach treats like any other provider failure.
    """

    def __init__(
        self,
        anthropic_api_key: str | None = None,
        openai_api_key: str | None = None,
        max_retries: int = 1,
    ) -> None:
        self._keys = {
            "anthropic": anthropic_api_key or settings.ANTHROPIC_API_KEY,
            "openai": openai_api_key or settings.OPENAI_API_KEY,
        }
        self.max_retries = max_retries
        self._anthropic: anthropic.AsyncAnthropic | None = None
        self._openai: openai.AsyncOpenAI | None = None

    def _key_for(self, provider: str) -> str:
        key = self._keys.get(provider)
        if not key:
            raise ValueError(f"No API key configured for AI provider '{provider}'")
        return key

    @property
    def anthropic_client(self) -> anthropic.AsyncAnthropic:
        if self._anthropic is None:
            self._anthropic = anthropic.AsyncAnthropic(api_key=self._key_for("anthropic"))
        return self._anthropic

    @property
    def openai_client(self) -> openai.AsyncOpenAI:
        if self._openai is None:
            self._openai = openai.AsyncOpenAI(api_key=self._key_for("openai"))
        return self._openai

    async def complete(
        self,
        provider: str,
        model: str,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> dict[str, Any]:
        """
        Run one completion against `provider`.

        Raises:
            ValueError: unknown provider or missing key
            anthropic.APIError / openai.APIError: non-transient failure, or
                transient failures that outlasted the retries
        """
        handlers = {"anthropic": self._claude, "openai": self._gpt}
        if provider not in handlers:
            raise ValueError(f"Unknown AI provider '{provider}'")

        started = time.perf_counter()
        content, usage = await self._with_retries(
            provider, handlers[provider], model, system, messages, max_tokens, temperature
        )
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "%s %s: %d in / %d out tokens in %dms",
            provider,
            model,
            usage["input_tokens"],
            usage["output_tokens"],
            duration_ms,
        )
        return {"content": content, "usage": usage, "duration_ms": duration_ms}

    async def _with_retries(
        self,
        provider: str,
        call: Callable[..., Awaitable[tuple[str, dict[str, int]]]],
        *args: Any,
    ) -> tuple[str, dict[str, int]]:
        for attempt in range(self.max_retries + 1):
            try:
                return await call(*args)
            except _TRANSIENT[provider] as e:
                if attempt >= self.max_retries:
                    logger.error("%s call failed after %d attempt(s): %s", provider, attempt + 1, e)
                    raise
                delay = 2**attempt
                logger.warning("%s call failed (attempt %d), retrying in %ds: %s", provider, attempt + 1, delay, e)
                await asyncio.sleep(delay)
        raise AssertionError("unreachable")

    async def _claude(
        self,
        model: str,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict[str, int]]:
        # The block catalogue in the system prompt is identical across calls
        cached_system = [{"type": "text", "text": system, "cache_control": {"type": "ephemeral"}}]
        parts: list[str] = []
        usage = {"input_tokens": 0, "output_tokens": 0}

        async with self.anthropic_client.messages.stream(
            model=model,
            system=cached_system,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        ) as stream:
            async for event in stream:
                if event.type == "message_start":
                    usage["input_tokens"] = event.message.usage.input_tokens
                elif event.type == "content_block_delta" and hasattr(event.delta, "text"):
                    parts.append(event.delta.text)
                elif event.type == "message_delta":
                    usage["output_tokens"] = event.usage.output_tokens

        return "".join(parts), usage

    async def _gpt(
        self,
        model: str,
        system: str,
        messages: list[dict[str, Any]],
        max_tokens: int,
        temperature: float,
    ) -> tuple[str, dict[str, int]]:
        response = await self.openai_client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system}, *messages],
            max_tokens=max_tokens,
            temperature=temperature,
            response_format={"type": "json_object"},
        )
        usage = {"input_tokens": 0, "output_tokens": 0}
        if response.usage is not None:
            usage = {
                "input_tokens": response.usage.prompt_tokens,
                "output_tokens": response.usage.completion_tokens,
            }
        return response.choices[0].message.content or "", usage
