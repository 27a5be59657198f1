# tests/unit/logging/test_context.py - v2
"""Tests for logging/context.py - contextual logging variables."""

from __future__ import annotations

from distiller.logging.context import (
    clear_context,
    get_context,
    set_run_context,
    set_stage_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.run_id is None
        assert ctx.cycle is None
        assert ctx.stage is None

    def test_set_run_context(self):
        set_run_context("run1", cycle=2)
        ctx = get_context()
        assert ctx.run_id == "run1"
        assert ctx.cycle == 2

    def test_as_dict_filters_none(self):
        set_stage_context("ingest")
        assert get_context().as_dict() == {"stage": "ingest"}

    def test_clear(self):
        set_run_context("run1", cycle=1)
        set_stage_context("cycle")
        clear_context()
        assert get_context().as_dict() == {}
