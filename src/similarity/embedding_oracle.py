# src/similarity/embedding_oracle.py - v1
"""Similarity oracle backed by embedding vectors and cosine similarity.

Cosine similarity is used directly as confidence (negative values clamp to
0). Vectors are cached per text for the lifetime of the oracle, so a run
embeds each principle's representative text once.
"""

from __future__ import annotations

import logging

import numpy as np

from distiller.core.similarity import cosine_similarity_vector
from distiller.embeddings.base_embedder import BaseEmbedder
from distiller.similarity.base_oracle import SimilarityJudgment, SimilarityOracle

logger = logging.getLogger(__name__)


class EmbeddingOracle(SimilarityOracle):
    """Cosine-similarity judge over a BaseEmbedder."""

    scored = True

    def __init__(self, embedder: BaseEmbedder, **kwargs) -> None:
        super().__init__(**kwargs)
        self._embedder = embedder
        self._cache: dict[str, np.ndarray] = {}

    @property
    def backend_name(self) -> str:
        return f"embedding:{self._embedder.provider_name}"

    async def _compare(self, text_a: str, text_b: str) -> SimilarityJudgment:
        vectors = await self._vectors([text_a, text_b])
        score = cosine_similarity_vector(vectors[0], vectors[1:2])[0]
        return self._judgment(float(score))

    async def _judge_all(
        self, text: str, candidates: list[str]
    ) -> list[SimilarityJudgment]:
        non_empty = [c for c in candidates if c.strip()]
        vectors = await self._vectors([text, *non_empty])
        scores = iter(cosine_similarity_vector(vectors[0], vectors[1:]).tolist())
        return [
            self._judgment(next(scores)) if c.strip()
            else SimilarityJudgment(equivalent=False, confidence=0.0)
            for c in candidates
        ]

    def _judgment(self, score: float) -> SimilarityJudgment:
        confidence = min(1.0, max(0.0, score))
        return SimilarityJudgment(
            equivalent=confidence >= self.threshold, confidence=confidence,
        )

    async def _vectors(self, texts: list[str]) -> np.ndarray:
        """Embed uncached texts in one batch; return vectors in input order."""
        missing = list(dict.fromkeys(t for t in texts if t not in self._cache))
        if missing:
            embedded = await self._call_backend(self._embedder.embed_texts, missing)
            if len(embedded) != len(missing):
                raise RuntimeError(
                    f"Embedder returned {len(embedded)} vectors for {len(missing)} texts"
                )
            for t, vec in zip(missing, embedded):
                self._cache[t] = np.asarray(vec, dtype=np.float64)
            logger.debug("Embedded %d new texts (%d cached)", len(missing), len(self._cache))
        return np.vstack([self._cache[t] for t in texts])
