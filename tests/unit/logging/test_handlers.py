# tests/unit/logging/test_handlers.py - v2
"""Tests for logging/handlers.py - file rotation handler."""

from __future__ import annotations

import pytest

from distiller.logging.handlers import create_rotating_handler, parse_size


class TestParseSize:
    def test_mb(self):
        assert parse_size("10MB") == 10 * 1024 * 1024

    def test_case_insensitive(self):
        assert parse_size("512kb") == 512 * 1024

    def test_bare_bytes(self):
        assert parse_size("2048") == 2048

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid size"):
            parse_size("10bytes")


class TestCreateRotatingHandler:
    def test_creates_handler_and_parents(self, tmp_path):
        log_file = tmp_path / "nested" / "run.log"
        handler = create_rotating_handler(log_file, rotation="1MB", retention=5)
        try:
            assert handler.maxBytes == 1024 * 1024
            assert handler.backupCount == 5
            assert log_file.parent.is_dir()
        finally:
            handler.close()
