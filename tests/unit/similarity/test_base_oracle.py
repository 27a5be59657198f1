# tests/unit/similarity/test_base_oracle.py - v2
"""Tests for similarity/base_oracle.py - selection rule, retries, timeouts."""

from __future__ import annotations

import asyncio

import pytest

from distiller.core.errors import FatalRunError, TransientBackendError
from distiller.llm.retry import RetryConfig
from distiller.similarity.base_oracle import (
    NO_MATCH,
    SimilarityJudgment,
    SimilarityOracle,
    select_best_match,
)

FAST_RETRY = RetryConfig(max_retries=3, base_delay_s=0.0, jitter=False)


class FlakyOracle(SimilarityOracle):
    """Fails ``failures`` times with ``error`` before answering."""

    def __init__(self, failures, error, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures
        self.error = error
        self.attempts = 0

    @property
    def backend_name(self):
        return "flaky"

    async def _backend(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise self.error
        return SimilarityJudgment(equivalent=True, confidence=0.9)

    async def _compare(self, text_a, text_b):
        return await self._call_backend(self._backend)


class SlowOracle(SimilarityOracle):
    @property
    def backend_name(self):
        return "slow"

    async def _slow(self):
        await asyncio.sleep(1)
        return SimilarityJudgment(equivalent=True, confidence=1.0)

    async def _compare(self, text_a, text_b):
        return await self._call_backend(self._slow)


class TestSelectBestMatch:
    def test_highest_confidence_wins(self):
        judgments = [
            SimilarityJudgment(True, 0.75),
            SimilarityJudgment(True, 0.9),
            SimilarityJudgment(False, 0.95),
        ]
        result = select_best_match(judgments, 0.7)
        assert result.index == 1
        assert result.confidence == 0.9

    def test_ties_keep_earliest(self):
        judgments = [SimilarityJudgment(True, 0.8), SimilarityJudgment(True, 0.8)]
        assert select_best_match(judgments, 0.7).index == 0

    def test_nothing_qualifies_reports_weak_confidence(self):
        judgments = [SimilarityJudgment(True, 0.5), SimilarityJudgment(False, 0.9)]
        result = select_best_match(judgments, 0.7)
        assert not result.matched
        assert result.confidence == 0.5


class TestBestMatch:
    @pytest.mark.asyncio
    async def test_equals_compare_loop(self, oracle_cls):
        oracle = oracle_cls({
            ("honesty", "truth"): 0.8,
            ("honesty", "candor"): 0.92,
            ("honesty", "sincerity"): 0.92,
            ("honesty", "gardening"): 0.1,
        })
        candidates = ["truth", "gardening", "candor", "sincerity"]

        result = await oracle.best_match("honesty", candidates)

        expected_index, expected_conf = None, 0.0
        for i, c in enumerate(candidates):
            j = await oracle.compare("honesty", c)
            if j.equivalent and j.confidence >= oracle.threshold and (
                expected_index is None or j.confidence > expected_conf
            ):
                expected_index, expected_conf = i, j.confidence
        assert (result.index, result.confidence) == (expected_index, expected_conf)
        assert result.index == 2

    @pytest.mark.asyncio
    async def test_empty_inputs(self, oracle_cls):
        oracle = oracle_cls()
        assert await oracle.best_match("x", []) == NO_MATCH
        assert await oracle.best_match("   ", ["x"]) == NO_MATCH
        assert await oracle.compare("", "x") == SimilarityJudgment(False, 0.0)
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_threshold_override_rescores_score_backends(self, oracle_cls):
        oracle = oracle_cls({("honesty", "candor"): 0.87}, threshold=0.9)

        assert not (await oracle.best_match("honesty", ["candor"])).matched
        result = await oracle.best_match("honesty", ["candor"], threshold=0.85)
        assert result.matched
        assert result.confidence == 0.87
        assert oracle.threshold == 0.9

    @pytest.mark.asyncio
    async def test_threshold_override_keeps_backend_verdict(self):
        agreeing = FlakyOracle(0, None)
        assert (await agreeing.best_match("a", ["b"], threshold=0.85)).matched
        assert not (await agreeing.best_match("a", ["b"], threshold=0.95)).matched

    def test_threshold_validated(self, oracle_cls):
        with pytest.raises(ValueError):
            oracle_cls(threshold=1.5)


class TestBackendCalls:
    @pytest.mark.asyncio
    async def test_transient_failures_retried(self):
        oracle = FlakyOracle(
            2, TransientBackendError("429", error_type="rate_limit"), retry_config=FAST_RETRY,
        )
        judgment = await oracle.compare("a", "b")
        assert judgment.equivalent
        assert oracle.attempts == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_are_fatal(self):
        oracle = FlakyOracle(
            10, TransientBackendError("timeout", error_type="timeout"), retry_config=FAST_RETRY,
        )
        with pytest.raises(FatalRunError) as exc_info:
            await oracle.best_match("a", ["b"])
        assert exc_info.value.attempts == 4
        assert oracle.attempts == 4

    @pytest.mark.asyncio
    async def test_non_transient_fails_immediately(self):
        oracle = FlakyOracle(1, ValueError("bad request"), retry_config=FAST_RETRY)
        with pytest.raises(FatalRunError):
            await oracle.compare("a", "b")
        assert oracle.attempts == 1

    @pytest.mark.asyncio
    async def test_call_timeout_counts_as_transient(self):
        oracle = SlowOracle(
            call_timeout_s=0.01,
            retry_config=RetryConfig(max_retries=1, base_delay_s=0.0, jitter=False),
        )
        with pytest.raises(FatalRunError, match="timeout"):
            await oracle.compare("a", "b")
