# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for every tunable of a synthesis run: oracle backends,
clustering and promotion thresholds, cycle triggers, concurrency caps and
logging. Numeric promotion thresholds are provisional and meant to be tuned
per corpus, which is why none of them is hardcoded elsewhere.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from distiller.core.models import CycleThresholds, PromotionCriteria


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    llm_provider: str = "anthropic"
    llm_model: str = "claude-sonnet-4-20250514"
    llm_temperature: float = 0.0
    llm_max_tokens: int = 512

    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === EMBEDDINGS ===
    embedding_provider: str = "ollama"
    embedding_dimensions: int = 768
    embedding_ollama_model: str = "nomic-embed-text"
    embedding_st_model: str = "all-MiniLM-L6-v2"

    # === Similarity oracle ===
    similarity_backend: Literal["embedding", "llm", "token"] = "embedding"
    similarity_threshold: float = 0.7
    similarity_concurrency: int = 5
    retry_max_attempts: int = 3
    retry_base_delay_s: float = 0.5

    # === Clustering ===
    default_dimension: str = "general"
    consolidate_after_ingest: bool = True
    orphan_min_evidence_weight: float = 1.0
    orphan_warning_rate: float = 0.5

    # === Promotion ===
    min_principle_count: int = 3
    min_provenance_diversity: int = 2
    require_external_or_questioning: bool = True
    core_dimensions: str = "identity,boundaries"
    core_evidence_threshold: float = 6.0
    domain_evidence_threshold: float = 3.0
    cognitive_load_cap: int = 25

    # === Tension detection ===
    conflict_backend: Literal["llm", "negation"] = "llm"
    tension_concurrency: int = 5
    tension_max_axioms: int = 25

    # === Cycle decision ===
    new_principle_ratio: float = 0.3
    contradiction_count: int = 2
    novelty_similarity: float = 0.85

    # === Run ===
    classification_concurrency: int = 5
    run_deadline_s: float | None = None
    corpus_dir: Path = Path("~/.distiller")

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "similarity_threshold",
        "novelty_similarity",
        "new_principle_ratio",
        "orphan_warning_rate",
        "llm_temperature",
    )
    @classmethod
    def validate_unit_interval(cls, v: float, info) -> float:  # noqa: N805
        """Ratios and similarity thresholds live in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"{info.field_name} must be within [0, 1], got {v}")
        return v

    @field_validator(
        "similarity_concurrency",
        "tension_concurrency",
        "classification_concurrency",
        "min_principle_count",
    )
    @classmethod
    def validate_positive(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.domain_evidence_threshold > self.core_evidence_threshold:
            errors.append(
                "DOMAIN_EVIDENCE_THRESHOLD must be <= CORE_EVIDENCE_THRESHOLD"
            )

        # Only three provenance origins exist.
        if not 1 <= self.min_provenance_diversity <= 3:
            errors.append("MIN_PROVENANCE_DIVERSITY must be between 1 and 3")

        if self.retry_max_attempts < 0:
            errors.append("RETRY_MAX_ATTEMPTS must be >= 0")

        if self.cognitive_load_cap < 1 or self.tension_max_axioms < 1:
            errors.append("COGNITIVE_LOAD_CAP and TENSION_MAX_AXIOMS must be >= 1")

        if self.run_deadline_s is not None and self.run_deadline_s <= 0:
            errors.append("RUN_DEADLINE_S must be positive when set")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def core_dimensions_set(self) -> frozenset[str]:
        """Parse comma-separated core dimensions."""
        return frozenset(
            d.strip() for d in self.core_dimensions.split(",") if d.strip()
        )

    def promotion_criteria(self) -> PromotionCriteria:
        """Build the promotion criteria used by the axiom promoter."""
        from distiller.core.models import PromotionCriteria

        return PromotionCriteria(
            min_principle_count=self.min_principle_count,
            min_provenance_diversity=self.min_provenance_diversity,
            require_external_or_questioning=self.require_external_or_questioning,
            core_dimensions=self.core_dimensions_set,
            core_evidence_threshold=self.core_evidence_threshold,
            domain_evidence_threshold=self.domain_evidence_threshold,
        )

    def cycle_thresholds(self) -> CycleThresholds:
        """Build the thresholds used by the cycle manager."""
        from distiller.core.models import CycleThresholds

        return CycleThresholds(
            new_principle_ratio=self.new_principle_ratio,
            contradiction_count=self.contradiction_count,
            novelty_similarity=self.novelty_similarity,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
