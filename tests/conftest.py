# tests/conftest.py - v1
"""Shared test fixtures for all unit and integration tests.

Provides signal factories, deterministic in-memory oracles and a mock LLM
client. No external dependencies: every backend is faked.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from distiller.core.models import (
    Importance,
    Principle,
    ProvenanceOrigin,
    Signal,
    SourceKind,
    Stance,
)
from distiller.llm.models import LLMResponse
from distiller.similarity.base_oracle import SimilarityJudgment, SimilarityOracle
from distiller.similarity.conflict_oracle import ConflictOracle

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


# === FAKE ORACLES ===


class FakeSimilarityOracle(SimilarityOracle):
    """Equivalence looked up in a fixed table of text pairs.

    Identical texts score 1.0, listed pairs score their table value (in
    either order), everything else scores 0.0. Every backend comparison is
    recorded in ``calls``.
    """

    scored = True

    def __init__(
        self,
        pairs: dict[tuple[str, str], float] | None = None,
        threshold: float = 0.7,
        **kwargs,
    ) -> None:
        super().__init__(threshold=threshold, **kwargs)
        self._pairs: dict[frozenset[str], float] = {
            frozenset(k): v for k, v in (pairs or {}).items()
        }
        self.calls: list[tuple[str, str]] = []

    @property
    def backend_name(self) -> str:
        return "fake"

    def score(self, text_a: str, text_b: str) -> float:
        if text_a == text_b:
            return 1.0
        return self._pairs.get(frozenset((text_a, text_b)), 0.0)

    async def _compare(self, text_a: str, text_b: str) -> SimilarityJudgment:
        self.calls.append((text_a, text_b))
        confidence = self.score(text_a, text_b)
        return SimilarityJudgment(
            equivalent=confidence >= self.threshold, confidence=confidence,
        )


class FakeConflictOracle(ConflictOracle):
    """Conflicts looked up in a fixed table of unordered statement pairs."""

    def __init__(self, conflicts: dict[tuple[str, str], str] | None = None) -> None:
        self._conflicts: dict[frozenset[str], str] = {
            frozenset(k): v for k, v in (conflicts or {}).items()
        }
        self.calls: list[tuple[str, str]] = []

    async def check(self, statement_a: str, statement_b: str) -> str | None:
        self.calls.append((statement_a, statement_b))
        return self._conflicts.get(frozenset((statement_a, statement_b)))


# === FIXTURES: Signals ===


@pytest.fixture
def make_signal():
    """Factory for valid Signals; ``minutes`` offsets created_at from a fixed base."""

    def _make(
        signal_id: str,
        text: str,
        confidence: float = 0.8,
        stance: Stance = Stance.ASSERT,
        importance: Importance = Importance.SUPPORTING,
        provenance: ProvenanceOrigin = ProvenanceOrigin.SELF,
        source_kind: SourceKind = SourceKind.AGENT_INITIATED,
        dimension: str | None = None,
        minutes: int = 0,
        source: str | None = None,
    ) -> Signal:
        return Signal(
            id=signal_id,
            text=text,
            confidence=confidence,
            stance=stance,
            importance=importance,
            source_kind=source_kind,
            provenance_origin=provenance,
            created_at=BASE_TIME + timedelta(minutes=minutes),
            dimension=dimension,
            source=source,
        )

    return _make


@pytest.fixture
def honesty_signals(make_signal) -> list[Signal]:
    """Two equivalent core signals, both self-authored."""
    return [
        make_signal("s1", "I value honesty", confidence=0.9, importance=Importance.CORE),
        make_signal(
            "s2", "Truthfulness matters most to me", confidence=0.8,
            importance=Importance.CORE, minutes=1,
        ),
    ]


# === FIXTURES: Oracles ===


@pytest.fixture
def oracle_cls() -> type[FakeSimilarityOracle]:
    return FakeSimilarityOracle


@pytest.fixture
def conflict_oracle_cls() -> type[FakeConflictOracle]:
    return FakeConflictOracle


@pytest.fixture
def honesty_oracle() -> FakeSimilarityOracle:
    """Oracle that treats the two honesty statements as equivalent."""
    return FakeSimilarityOracle(
        {("I value honesty", "Truthfulness matters most to me"): 0.85}
    )


# === FIXTURES: Mock LLM ===


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    """Standard mock LLM response."""
    return LLMResponse(
        content='{"equivalent": true, "confidence": "high"}',
        input_tokens=100,
        output_tokens=12,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=300,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock BaseLLMClient with default response."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.provider_name = "anthropic"
    return client


# === FIXTURES: Principles ===


@pytest.fixture
def make_principle():
    """Factory for Principles whose derived fields match their signals."""

    def _make(principle_id: str, signals: list[Signal], dimension: str = "general") -> Principle:
        return Principle(
            id=principle_id,
            representative_text=signals[0].text,
            signals=signals,
            evidence_weight=sum(s.weighted_confidence for s in signals),
            dimension=dimension,
            provenance_diversity={s.provenance_origin for s in signals},
            founding_signal_id=signals[0].id,
        )

    return _make
