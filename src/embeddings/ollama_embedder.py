# src/embeddings/ollama_embedder.py - v1
"""Ollama embedding adapter (local inference).

Uses the Ollama REST API (``/api/embed``), which accepts a batch of inputs
in one request. The blocking HTTP call runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request

from distiller.core.errors import TransientBackendError
from distiller.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class OllamaEmbedder(BaseEmbedder):
    """Local embeddings via Ollama API."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        dimensions: int = 768,
        timeout_s: float = 30.0,
    ) -> None:
        self._model_name = model
        self._base_url = base_url.rstrip("/")
        self._dimensions = dimensions
        self._timeout_s = timeout_s

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._embed_batch, texts)

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        url = f"{self._base_url}/api/embed"
        payload = json.dumps({"model": self._model_name, "input": texts}).encode("utf-8")
        req = urllib.request.Request(
            url, data=payload, headers={"Content-Type": "application/json"}
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout_s) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code == 429:
                raise TransientBackendError(str(e), error_type="rate_limit") from e
            if e.code >= 500:
                raise TransientBackendError(str(e), error_type="server_error") from e
            raise
        except (urllib.error.URLError, TimeoutError) as e:
            raise TransientBackendError(str(e), error_type="timeout") from e

        embeddings = data.get("embeddings", [])
        if len(embeddings) != len(texts):
            raise RuntimeError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} "
                f"inputs (model {self._model_name})"
            )
        return embeddings

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model_name
