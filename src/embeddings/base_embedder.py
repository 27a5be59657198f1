# src/embeddings/base_embedder.py - v1
"""Abstract embeddings interface backing the embedding similarity oracle."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Unified interface for all embedding providers."""

    @abstractmethod
    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts into vectors, one per input, in order."""

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.embed_texts([text])
        return vectors[0]

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Output vector dimensions."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier."""
