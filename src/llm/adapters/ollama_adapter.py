# src/llm/adapters/ollama_adapter.py - v2
"""Ollama local LLM adapter implementing BaseLLMClient.

One AsyncClient per adapter, created on first call. HTTP 5xx answers and
refused connections surface as TransientBackendError.
"""

from __future__ import annotations

import time
from typing import Any

from distiller.core.errors import TransientBackendError
from distiller.llm.base_client import BaseLLMClient
from distiller.llm.models import LLMResponse, Message


def _to_chat_messages(messages: list[Message], system: str | None) -> list[dict[str, str]]:
    head = [{"role": "system", "content": system}] if system else []
    return head + [{"role": m.role, "content": m.content} for m in messages]


class OllamaAdapter(BaseLLMClient):
    """Ollama local inference adapter."""

    def __init__(
        self, model: str = "llama3", base_url: str = "http://localhost:11434", **kwargs: Any,
    ):
        self._model = model
        self._host = base_url
        self._chat_client = None

    def _client(self):
        if self._chat_client is None:
            import ollama

            self._chat_client = ollama.AsyncClient(host=self._host)
        return self._chat_client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 512,
        temperature: float = 0.0,
        json_mode: bool = False,
    ) -> LLMResponse:
        import ollama

        request: dict[str, Any] = {
            "model": self._model,
            "messages": _to_chat_messages(messages, system),
            "options": {"num_predict": max_tokens, "temperature": temperature},
        }
        if json_mode:
            request["format"] = "json"

        started = time.monotonic()
        try:
            reply = await self._client().chat(**request)
        except ollama.ResponseError as e:
            if (getattr(e, "status_code", 0) or 0) >= 500:
                raise TransientBackendError(str(e), error_type="server_error") from e
            raise
        except ConnectionError as e:
            raise TransientBackendError(str(e), error_type="server_error") from e

        return LLMResponse(
            content=reply["message"]["content"],
            input_tokens=reply.get("prompt_eval_count", 0) or 0,
            output_tokens=reply.get("eval_count", 0) or 0,
            model=self._model,
            provider="ollama",
            latency_ms=int((time.monotonic() - started) * 1000),
            raw_response=reply,
        )

    @property
    def provider_name(self) -> str:
        return "ollama"
