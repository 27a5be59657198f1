# src/core/errors.py - v1
"""Error taxonomy of a synthesis run.

Only TransientBackendError is retried. Everything that survives the retry
budget, a deadline or a cancellation surfaces as FatalRunError, and the run
produces no result at all.
"""

from __future__ import annotations


class TransientBackendError(Exception):
    """Similarity or classification backend failed in a retryable way."""

    def __init__(self, message: str, error_type: str = "unknown") -> None:
        self.error_type = error_type
        super().__init__(message)


class FatalRunError(Exception):
    """The enclosing run must abort; no partial corpus is produced."""

    def __init__(self, message: str, operation: str = "run", attempts: int = 0) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(message)


class MalformedClassifierResponse(ValueError):
    """Oracle answer could not be parsed.

    Never escapes the parsing layer: callers map it to the lowest
    confidence band and log a warning.
    """
