# tests/unit/cycle/test_cycle_manager.py - v2
"""Tests for cycle/cycle_manager.py - cycle mode decision and corpus lifecycle."""

from __future__ import annotations

import pytest

from distiller.core.models import (
    Axiom,
    AxiomTier,
    Corpus,
    CycleDecision,
    CycleMode,
    CycleThresholds,
)
from distiller.cycle.cycle_manager import (
    REASON_EMPTY_CORPUS,
    REASON_INCREMENTAL,
    REASON_NO_CORPUS,
    REASON_OVERRIDE,
    REASON_TRIGGERED,
    TRIGGER_HIERARCHY,
    TRIGGER_OVERRIDE,
    CycleManager,
    count_contradicted_axioms,
    count_new_principles,
    create_corpus,
    decide_cycle_mode,
    format_cycle_decision,
    update_corpus,
)


def _axiom(axiom_id, text, promotable=True):
    return Axiom(
        id=axiom_id,
        identity_key=axiom_id,
        text=text,
        tier=AxiomTier.DOMAIN,
        dimension="general",
        supporting_principle_ids=frozenset({f"p_{axiom_id}"}),
        promotable=promotable,
    )


@pytest.fixture
def principle_set(make_signal, make_principle):
    """Build principles whose representative texts are the given strings."""

    def _build(texts, prefix):
        return [
            make_principle(f"{prefix}_{i:02d}", [make_signal(f"{prefix}_s{i}", text)])
            for i, text in enumerate(texts)
        ]

    return _build


@pytest.fixture
def existing_corpus(principle_set):
    principles = principle_set([f"existing value {i}" for i in range(10)], "old")
    axioms = [_axiom(f"ax_{i}", f"existing value {i}") for i in range(3)]
    return Corpus(id="corpus-1", principles=principles, axioms=axioms, cycle_count=2)


def _new_run(principle_set, new_count):
    matched = [f"existing value {i}" for i in range(10 - new_count)]
    novel = [f"novel value {i}" for i in range(new_count)]
    return principle_set(matched + novel, "new")


class TestDecideCycleMode:
    @pytest.mark.asyncio
    async def test_two_new_of_ten_is_incremental(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        decision = await decide_cycle_mode(
            existing_corpus, _new_run(principle_set, 2),
            oracle_cls(), conflict_oracle_cls(),
        )
        assert decision.mode == CycleMode.INCREMENTAL
        assert decision.reason == REASON_INCREMENTAL
        assert decision.triggers == ()

    @pytest.mark.asyncio
    async def test_four_new_of_ten_is_full_resynthesis(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        decision = await decide_cycle_mode(
            existing_corpus, _new_run(principle_set, 4),
            oracle_cls(), conflict_oracle_cls(),
        )
        assert decision.mode == CycleMode.FULL_RESYNTHESIS
        assert decision.reason == REASON_TRIGGERED
        assert decision.triggers == ("New principles (40%) exceed threshold (30%)",)

    @pytest.mark.asyncio
    async def test_decision_is_idempotent(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        new = _new_run(principle_set, 4)
        manager = CycleManager(oracle_cls(), conflict_oracle_cls())
        first = await manager.decide(existing_corpus, new)
        second = await manager.decide(existing_corpus, new)
        assert first == second

    @pytest.mark.asyncio
    async def test_force_overrides_everything(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        similarity = oracle_cls()
        decision = await decide_cycle_mode(
            existing_corpus, _new_run(principle_set, 0),
            similarity, conflict_oracle_cls(), force_resynthesis=True,
        )
        assert decision == CycleDecision(
            mode=CycleMode.FULL_RESYNTHESIS,
            reason=REASON_OVERRIDE,
            triggers=(TRIGGER_OVERRIDE,),
        )
        assert similarity.calls == []

    @pytest.mark.asyncio
    async def test_no_corpus_is_initial(self, principle_set, oracle_cls, conflict_oracle_cls):
        decision = await decide_cycle_mode(
            None, principle_set(["a"], "new"), oracle_cls(), conflict_oracle_cls(),
        )
        assert decision.mode == CycleMode.INITIAL
        assert decision.reason == REASON_NO_CORPUS

    @pytest.mark.asyncio
    async def test_empty_corpus_is_initial(self, principle_set, oracle_cls, conflict_oracle_cls):
        empty = Corpus(id="empty")
        decision = await decide_cycle_mode(
            empty, principle_set(["a"], "new"), oracle_cls(), conflict_oracle_cls(),
        )
        assert decision.mode == CycleMode.INITIAL
        assert decision.reason == REASON_EMPTY_CORPUS

    @pytest.mark.asyncio
    async def test_weak_match_counts_as_new(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        # Equivalent at the clustering threshold but below the novelty bar.
        pairs = {(f"reworded {i}", f"existing value {i}"): 0.8 for i in range(4)}
        new = principle_set(
            [f"reworded {i}" for i in range(4)] + [f"existing value {i}" for i in range(4, 10)],
            "new",
        )
        decision = await decide_cycle_mode(
            existing_corpus, new, oracle_cls(pairs), conflict_oracle_cls(),
        )
        assert decision.mode == CycleMode.FULL_RESYNTHESIS

        lenient = CycleThresholds(novelty_similarity=0.75)
        decision = await decide_cycle_mode(
            existing_corpus, new, oracle_cls(pairs), conflict_oracle_cls(),
            thresholds=lenient,
        )
        assert decision.mode == CycleMode.INCREMENTAL

    @pytest.mark.asyncio
    async def test_contradictions_trigger_resynthesis(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        new = _new_run(principle_set, 1) + principle_set(["I never rest"], "contra")
        conflicts = {
            ("existing value 0", "I never rest"): "rest vs work",
            ("existing value 1", "I never rest"): "balance vs drive",
        }
        decision = await decide_cycle_mode(
            existing_corpus, new, oracle_cls(), conflict_oracle_cls(conflicts),
        )
        assert decision.mode == CycleMode.FULL_RESYNTHESIS
        assert decision.triggers == ("2 axioms contradicted by new evidence",)

    @pytest.mark.asyncio
    async def test_hierarchy_flag(
        self, existing_corpus, principle_set, oracle_cls, conflict_oracle_cls,
    ):
        decision = await decide_cycle_mode(
            existing_corpus, _new_run(principle_set, 0),
            oracle_cls(), conflict_oracle_cls(),
            thresholds=CycleThresholds(hierarchy_changed=True),
        )
        assert decision.triggers == (TRIGGER_HIERARCHY,)


class TestCountNewPrinciples:
    @pytest.mark.asyncio
    async def test_novelty_ignores_clustering_threshold(self, principle_set, oracle_cls):
        existing = principle_set(["I value honesty"], "old")
        candidates = principle_set(["Honesty matters to me"], "new")
        oracle = oracle_cls({("I value honesty", "Honesty matters to me"): 0.87}, threshold=0.9)

        assert await count_new_principles(existing, candidates, oracle, 0.85) == 0

    @pytest.mark.asyncio
    async def test_weak_match_counts_as_new(self, principle_set, oracle_cls):
        existing = principle_set(["I value honesty"], "old")
        candidates = principle_set(["Honesty matters to me", "I value honesty"], "new")
        oracle = oracle_cls({("I value honesty", "Honesty matters to me"): 0.8})

        assert await count_new_principles(existing, candidates, oracle, 0.85) == 1


class TestCountContradictedAxioms:
    @pytest.mark.asyncio
    async def test_counts_axioms_not_pairs(self, principle_set, conflict_oracle_cls):
        axioms = [_axiom("ax_1", "calm"), _axiom("ax_2", "bold", promotable=False)]
        candidates = principle_set(["rush", "hurry", "bold"], "new")
        oracle = conflict_oracle_cls({
            ("calm", "rush"): "pace",
            ("calm", "hurry"): "pace",
            ("bold", "bold"): "never asked",
        })
        assert await count_contradicted_axioms(axioms, candidates, oracle) == 1


class TestFormatting:
    def test_format_with_triggers(self):
        decision = CycleDecision(
            mode=CycleMode.FULL_RESYNTHESIS,
            reason=REASON_TRIGGERED,
            triggers=("a", "b"),
        )
        assert format_cycle_decision(decision) == (
            "Mode: full_resynthesis\n"
            "Reason: Significant changes detected\n"
            "Triggers:\n"
            "  - a\n"
            "  - b"
        )

    def test_format_without_triggers(self):
        decision = CycleDecision(mode=CycleMode.INITIAL, reason=REASON_NO_CORPUS)
        assert format_cycle_decision(decision) == "Mode: initial\nReason: No existing corpus"


class TestCorpusLifecycle:
    def test_create_starts_at_cycle_one(self, principle_set):
        corpus = create_corpus(principle_set(["a"], "p"), [])
        assert corpus.cycle_count == 1
        assert corpus.tensions == []
        assert len(corpus.principles) == 1

    def test_update_advances_cycle(self, existing_corpus, principle_set):
        updated = update_corpus(existing_corpus, principle_set(["b"], "p"), [])
        assert updated.id == existing_corpus.id
        assert updated.cycle_count == 3
        assert updated.updated_at >= existing_corpus.updated_at
        assert [p.representative_text for p in updated.principles] == ["b"]
        assert existing_corpus.cycle_count == 2
