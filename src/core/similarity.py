# src/core/similarity.py - v2
"""Cosine similarity utilities over embedding vectors.

Pure numpy. Zero vectors are floored to a tiny norm so they compare as
0.0 instead of producing NaN.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)

_NORM_FLOOR = 1e-10


def cosine_similarity_matrix(embeddings: np.ndarray) -> np.ndarray:
    """Compute pairwise cosine similarity matrix.

    Args:
        embeddings: 2D array of shape (n_samples, n_features).

    Returns:
        Similarity matrix of shape (n_samples, n_samples) with values in [-1, 1].

    Raises:
        ValueError: If embeddings is not a 2D array.
    """
    if embeddings.ndim != 2:
        raise ValueError(f"Expected 2D array, got {embeddings.ndim}D")
    if embeddings.shape[0] == 0:
        return np.empty((0, 0), dtype=np.float64)

    normalized = _normalize(embeddings)
    return normalized @ normalized.T


def cosine_similarity_vector(query: np.ndarray, candidates: np.ndarray) -> np.ndarray:
    """Cosine similarity of one query vector against each candidate row.

    Args:
        query: 1D array of shape (n_features,).
        candidates: 2D array of shape (n_candidates, n_features).

    Returns:
        1D array of shape (n_candidates,).
    """
    if query.ndim != 1:
        raise ValueError(f"Expected 1D query, got {query.ndim}D")
    if candidates.ndim != 2:
        raise ValueError(f"Expected 2D candidates, got {candidates.ndim}D")
    if candidates.shape[0] == 0:
        return np.empty((0,), dtype=np.float64)
    if candidates.shape[1] != query.shape[0]:
        raise ValueError(
            f"Dimension mismatch: query has {query.shape[0]}, "
            f"candidates have {candidates.shape[1]}"
        )

    q = query / max(float(np.linalg.norm(query)), _NORM_FLOOR)
    return _normalize(candidates) @ q


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two 1D vectors."""
    return float(cosine_similarity_vector(a, b.reshape(1, -1))[0])


def _normalize(embeddings: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
    norms = np.maximum(norms, _NORM_FLOOR)
    return embeddings / norms
