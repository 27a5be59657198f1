# src/similarity/token_oracle.py - v1
"""Offline similarity oracle: Jaccard overlap of normalized word tokens.

No backend calls, fully deterministic. Used when neither embeddings nor a
language model are available, and by the negation conflict heuristic.
"""

from __future__ import annotations

import re

from distiller.similarity.base_oracle import SimilarityJudgment, SimilarityOracle

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def tokenize(text: str) -> set[str]:
    """Lowercase, strip punctuation, split on whitespace."""
    return set(_NON_WORD.sub("", text.lower()).split())


def jaccard_similarity(text_a: str, text_b: str) -> float:
    """Token-set Jaccard index; two empty texts count as identical."""
    tokens_a = tokenize(text_a)
    tokens_b = tokenize(text_b)
    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


class TokenOverlapOracle(SimilarityOracle):
    """Jaccard overlap used directly as confidence."""

    scored = True

    @property
    def backend_name(self) -> str:
        return "token_overlap"

    async def _compare(self, text_a: str, text_b: str) -> SimilarityJudgment:
        confidence = jaccard_similarity(text_a, text_b)
        return SimilarityJudgment(
            equivalent=confidence >= self.threshold, confidence=confidence,
        )
