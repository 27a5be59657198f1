# src/embeddings/sentence_tf_embedder.py - v2
"""Local embeddings through sentence-transformers.

The model is loaded on first use inside the worker thread that encodes, so
neither loading nor encoding blocks the event loop. Vectors come back
L2-normalized, which makes the oracle's cosine a plain dot product.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from distiller.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder(BaseEmbedder):

    def __init__(self, model: str = "all-MiniLM-L6-v2", dimensions: int = 384) -> None:
        self._model_name = model
        self._dimensions = dimensions
        self._encoder = None
        self._load_lock = threading.Lock()

    def _load_encoder(self):
        with self._load_lock:
            if self._encoder is None:
                from sentence_transformers import SentenceTransformer

                encoder = SentenceTransformer(self._model_name)
                native = encoder.get_sentence_embedding_dimension()
                if native and native != self._dimensions:
                    logger.info(
                        "Model %s produces %d-d vectors (configured %d)",
                        self._model_name, native, self._dimensions,
                    )
                    self._dimensions = native
                self._encoder = encoder
        return self._encoder

    def _encode(self, texts: list[str]) -> list[list[float]]:
        vectors = self._load_encoder().encode(
            texts, show_progress_bar=False, normalize_embeddings=True,
        )
        return [v.tolist() for v in vectors]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, texts)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "sentence_transformers"

    @property
    def model_name(self) -> str:
        return self._model_name
