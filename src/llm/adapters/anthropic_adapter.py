# src/llm/adapters/anthropic_adapter.py - v2
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Retryable SDK errors are re-raised as
TransientBackendError so the retry layer never needs to know the SDK.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from distiller.core.errors import TransientBackendError
from distiller.llm.base_client import BaseLLMClient
from distiller.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)

_JSON_INSTRUCTION = "Respond with a single JSON object and nothing else."


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        timeout_s: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_s = timeout_s
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install anthropic"
                ) from e
            self.__client = anthropic.AsyncAnthropic(
                api_key=self._api_key or "", timeout=self._timeout_s,
            )
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.0,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Text completion via Anthropic Messages API."""
        if json_mode:
            system = f"{system}\n\n{_JSON_INSTRUCTION}" if system else _JSON_INSTRUCTION
        kwargs = self._build_kwargs(messages, system, max_tokens, temperature)

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            raise self._translate_error(e) from e
        latency_ms = int((time.monotonic() - start) * 1000)

        return LLMResponse(
            content=self._extract_content(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            raw_response=response,
        )

    @property
    def provider_name(self) -> str:
        return "anthropic"

    # --- Internal helpers ---

    def _build_kwargs(
        self,
        messages: list[Message],
        system: str | None,
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        if system:
            kwargs["system"] = system
        return kwargs

    @staticmethod
    def _translate_error(error: Exception) -> Exception:
        """Map retryable SDK errors onto TransientBackendError."""
        import anthropic

        if isinstance(error, anthropic.RateLimitError):
            return TransientBackendError(str(error), error_type="rate_limit")
        if isinstance(error, anthropic.APITimeoutError):
            return TransientBackendError(str(error), error_type="timeout")
        if isinstance(error, (anthropic.InternalServerError, anthropic.APIConnectionError)):
            return TransientBackendError(str(error), error_type="server_error")
        return error

    @staticmethod
    def _extract_content(response: Any) -> str:
        """Extract text from Anthropic response content blocks."""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
