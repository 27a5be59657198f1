# src/similarity/base_oracle.py - v2
"""Abstract similarity oracle: "are these two texts equivalent, how surely?"

Every backend answers through the same two calls. ``best_match`` must
return exactly what comparing the text against each candidate and keeping
the highest-confidence equivalent answer at or above the threshold would
return (earliest index on ties). Backends may override ``_judge_all`` to
batch work, never to change that selection.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from distiller.llm.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7


@dataclass(frozen=True)
class SimilarityJudgment:
    """Answer to a single pairwise comparison."""

    equivalent: bool
    confidence: float


@dataclass(frozen=True)
class MatchResult:
    """Best candidate for a text; ``index`` is None when nothing qualified."""

    index: int | None
    confidence: float

    @property
    def matched(self) -> bool:
        return self.index is not None


NO_MATCH = MatchResult(index=None, confidence=0.0)
_EMPTY_JUDGMENT = SimilarityJudgment(equivalent=False, confidence=0.0)


def select_best_match(
    judgments: list[SimilarityJudgment], threshold: float
) -> MatchResult:
    """Pick the highest-confidence equivalent judgment at or above threshold.

    Ties keep the earliest index. When nothing qualifies, the confidence of
    the strongest equivalent-but-too-weak judgment is reported.
    """
    best_index: int | None = None
    best_confidence = 0.0
    weak_confidence = 0.0

    for i, judgment in enumerate(judgments):
        if not judgment.equivalent:
            continue
        if judgment.confidence < threshold:
            weak_confidence = max(weak_confidence, judgment.confidence)
            continue
        if best_index is None or judgment.confidence > best_confidence:
            best_index = i
            best_confidence = judgment.confidence

    if best_index is None:
        return MatchResult(index=None, confidence=weak_confidence)
    return MatchResult(index=best_index, confidence=best_confidence)


class SimilarityOracle(ABC):
    """Pluggable semantic-equivalence judge.

    Args:
        threshold: Minimum confidence for a match (default 0.7).
        concurrency: Max outstanding backend calls issued by ``best_match``.
        retry_config: Backoff policy for transient backend failures.
        call_timeout_s: Per-call deadline; a timeout counts as transient.
    """

    #: True when the verdict is ``confidence >= threshold`` (score backends).
    scored: bool = False

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        concurrency: int = 5,
        retry_config: RetryConfig | None = None,
        call_timeout_s: float | None = None,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.threshold = threshold
        self._semaphore = asyncio.Semaphore(concurrency)
        self._retry_config = retry_config
        self._call_timeout_s = call_timeout_s

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier used in logs."""

    @abstractmethod
    async def _compare(self, text_a: str, text_b: str) -> SimilarityJudgment:
        """Backend comparison of two non-empty texts."""

    async def compare(self, text_a: str, text_b: str) -> SimilarityJudgment:
        """Judge whether two texts are semantically equivalent."""
        if not text_a.strip() or not text_b.strip():
            return _EMPTY_JUDGMENT
        return await self._compare(text_a, text_b)

    async def best_match(
        self, text: str, candidates: list[str], threshold: float | None = None,
    ) -> MatchResult:
        """Find the best equivalent candidate for ``text``.

        ``threshold`` replaces the oracle's own for this call only.
        """
        if not text.strip() or not candidates:
            return NO_MATCH
        limit = self.threshold if threshold is None else threshold
        judgments = await self._judge_all(text, candidates)
        if self.scored:
            judgments = [
                SimilarityJudgment(equivalent=j.confidence >= limit, confidence=j.confidence)
                for j in judgments
            ]
        return select_best_match(judgments, limit)

    async def _judge_all(
        self, text: str, candidates: list[str]
    ) -> list[SimilarityJudgment]:
        """Compare ``text`` against every candidate concurrently."""
        return list(
            await asyncio.gather(*(self.compare(text, c) for c in candidates))
        )

    async def _call_backend(
        self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any
    ) -> Any:
        """Run one backend call under the concurrency cap, deadline and retry policy."""

        async def _attempt() -> Any:
            if self._call_timeout_s is None:
                return await fn(*args, **kwargs)
            return await asyncio.wait_for(fn(*args, **kwargs), self._call_timeout_s)

        async with self._semaphore:
            return await with_retry(
                _attempt,
                operation=f"{self.backend_name} similarity",
                config=self._retry_config,
            )
