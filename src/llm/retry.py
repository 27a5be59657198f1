# src/llm/retry.py - v2
"""Retry policy with exponential backoff for oracle and classifier calls.

Transient failures (timeouts, rate limits, 5xx) are retried; anything else,
or a transient failure that outlives the retry budget, becomes a
FatalRunError so the run aborts instead of treating "no answer" as
"no match".
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from distiller.core.errors import FatalRunError, TransientBackendError

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_TYPES = frozenset({"timeout", "rate_limit", "server_error"})


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration shared by every backend call."""

    max_retries: int = 3
    base_delay_s: float = 0.5
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIG = RetryConfig()


def classify_error(error: BaseException) -> str:
    """Classify an exception into a retry error type."""
    if isinstance(error, TransientBackendError):
        return error.error_type if error.error_type in TRANSIENT_ERROR_TYPES else "server_error"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"

    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "429" in msg or "rate limit" in msg or "rate_limit" in msg or "ratelimit" in name:
        return "rate_limit"
    if "timeout" in name or "timeout" in msg or "timed out" in msg:
        return "timeout"
    if any(c in msg for c in ("500", "502", "503", "504", "overloaded")):
        return "server_error"
    if "connection" in name or "connection" in msg:
        return "server_error"
    return "unknown"


def is_transient(error: BaseException) -> bool:
    return classify_error(error) in TRANSIENT_ERROR_TYPES


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "backend call",
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Cancellation is never retried and propagates unchanged.

    Raises:
        FatalRunError: If the error is not transient or retries are exhausted.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except FatalRunError:
            raise
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1

            if error_type not in TRANSIENT_ERROR_TYPES:
                raise FatalRunError(
                    f"{operation} failed ({error_type}): {e}",
                    operation=operation,
                    attempts=attempts,
                ) from e

            if attempts > config.max_retries:
                raise FatalRunError(
                    f"{operation} failed after {attempts} attempts ({error_type}): {e}",
                    operation=operation,
                    attempts=attempts,
                ) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "%s: %s (attempt %d/%d), retrying in %.2fs",
                operation, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)
