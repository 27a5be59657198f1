# src/classification/base_classifier.py - v1
"""Boundary for the external signal-metadata classifier.

The classifier's own mechanics live outside this package. The engine only
calls it for signals that arrive without a dimension, with bounded
parallelism, and applies the non-empty fields of its answer.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from distiller.core.models import Signal, SignalClassification
from distiller.llm.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)


class BaseSignalClassifier(ABC):
    """Supplies dimension, stance, importance or source kind for a signal."""

    @abstractmethod
    async def classify(self, signal: Signal) -> SignalClassification:
        """Classify one signal; fields left as None are not changed."""


def apply_classification(signal: Signal, classification: SignalClassification) -> Signal:
    """Return a new Signal carrying the classifier's non-empty fields."""
    update = classification.model_dump(exclude_none=True)
    if not update:
        return signal
    return signal.model_copy(update=update)


async def classify_pending(
    signals: list[Signal],
    classifier: BaseSignalClassifier,
    concurrency: int = 5,
    retry_config: RetryConfig | None = None,
) -> list[Signal]:
    """Classify every signal lacking a dimension, preserving input order.

    Raises:
        FatalRunError: If a classification call exhausts its retries.
    """
    semaphore = asyncio.Semaphore(concurrency)

    async def _one(signal: Signal) -> Signal:
        if signal.dimension is not None:
            return signal
        async with semaphore:
            classification = await with_retry(
                classifier.classify, signal,
                operation="signal classification",
                config=retry_config,
            )
        return apply_classification(signal, classification)

    pending = sum(1 for s in signals if s.dimension is None)
    if pending:
        logger.info("Classifying %d/%d signals without a dimension", pending, len(signals))
    return list(await asyncio.gather(*(_one(s) for s in signals)))
