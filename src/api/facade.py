# src/api/facade.py - v2
"""Public API facade: single entry point for a synthesis run.

Usage:
    from distiller.api.facade import synthesize
    result = await synthesize(signals)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from distiller.config.settings import Settings
from distiller.core.models import Signal, SynthesisResult
from distiller.llm.retry import RetryConfig
from distiller.logging.logger import setup_logging
from distiller.pipeline.engine import SynthesisEngine
from distiller.storage.corpus_store import CorpusStore

if TYPE_CHECKING:
    from distiller.classification.base_classifier import BaseSignalClassifier
    from distiller.llm.base_client import BaseLLMClient
    from distiller.similarity.base_oracle import SimilarityOracle
    from distiller.similarity.conflict_oracle import ConflictOracle

logger = logging.getLogger(__name__)


async def synthesize(
    signals: list[Signal],
    settings: Settings | None = None,
    classifier: BaseSignalClassifier | None = None,
    similarity_oracle: SimilarityOracle | None = None,
    conflict_oracle: ConflictOracle | None = None,
    force_resynthesis: bool = False,
    save: bool = True,
    configure_logging: bool = False,
) -> SynthesisResult:
    """Run a synthesis cycle against the persisted corpus.

    Phases:
      1. Resolve settings and build oracles (unless injected)
      2. Take the corpus lock and load the previous snapshot
      3. Run the engine
      4. Persist the new snapshot on success

    Args:
        signals: Signals of this run.
        settings: Global settings. Loaded from .env if None.
        classifier: Optional metadata classifier for undimensioned signals.
        similarity_oracle: Override for the configured similarity backend.
        conflict_oracle: Override for the configured conflict backend.
        force_resynthesis: Manual override to full resynthesis.
        save: Write the resulting corpus to ``settings.corpus_dir``.
        configure_logging: Install the configured log handlers first.

    Returns:
        SynthesisResult with the new corpus snapshot.

    Raises:
        FatalRunError: If the run aborts; the persisted corpus is untouched.
        CorpusLockedError: If another live process is synthesizing.
    """
    settings = settings or Settings()
    if configure_logging:
        setup_logging(
            level=settings.log_level,
            log_format=settings.log_format,
            log_file=str(settings.log_file) if settings.log_file else None,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )

    retry_config = build_retry_config(settings)
    similarity_oracle = similarity_oracle or build_similarity_oracle(settings, retry_config)
    conflict_oracle = conflict_oracle or build_conflict_oracle(settings, retry_config)

    engine = SynthesisEngine(
        similarity_oracle,
        conflict_oracle,
        settings=settings,
        classifier=classifier,
        retry_config=retry_config,
    )

    store = CorpusStore(settings.corpus_dir)
    with store.lock():
        existing = store.load()
        logger.info(
            "Loaded corpus: %s",
            f"cycle {existing.cycle_count}, {len(existing.principles)} principles"
            if existing else "none",
        )
        result = await engine.run(signals, existing, force_resynthesis=force_resynthesis)
        if save:
            path = store.save(result.corpus)
            logger.info("Corpus saved to %s", path)

    return result


def build_retry_config(settings: Settings) -> RetryConfig:
    return RetryConfig(
        max_retries=settings.retry_max_attempts,
        base_delay_s=settings.retry_base_delay_s,
    )


def build_similarity_oracle(
    settings: Settings, retry_config: RetryConfig | None = None,
) -> SimilarityOracle:
    """Instantiate the configured similarity backend."""
    common = {
        "threshold": settings.similarity_threshold,
        "concurrency": settings.similarity_concurrency,
        "retry_config": retry_config,
    }
    backend = settings.similarity_backend

    if backend == "embedding":
        from distiller.embeddings.embedder_factory import create_embedder
        from distiller.similarity.embedding_oracle import EmbeddingOracle

        return EmbeddingOracle(create_embedder(settings), **common)

    if backend == "llm":
        from distiller.similarity.llm_oracle import LLMOracle

        return LLMOracle(
            _llm_client(settings),
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            **common,
        )

    from distiller.similarity.token_oracle import TokenOverlapOracle

    return TokenOverlapOracle(**common)


def build_conflict_oracle(
    settings: Settings, retry_config: RetryConfig | None = None,
) -> ConflictOracle:
    """Instantiate the configured conflict backend."""
    if settings.conflict_backend == "negation":
        from distiller.similarity.conflict_oracle import NegationConflictOracle

        return NegationConflictOracle()

    from distiller.similarity.conflict_oracle import LLMConflictOracle

    return LLMConflictOracle(
        _llm_client(settings),
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
        retry_config=retry_config,
    )


def _llm_client(settings: Settings) -> BaseLLMClient:
    from distiller.llm.client_factory import create_llm_client

    return create_llm_client(settings.llm_provider, settings.llm_model, settings)
