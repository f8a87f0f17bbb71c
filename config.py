"""
Configuration settings for the coursepilot planning core.

Uses Pydantic Settings for environment variable management with .env file support.
All numeric thresholds here are tunable defaults, not contracts.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Reproducibility
    # ========================================
    random_seed: int = Field(
        default=42,
        description="Seed shared by K-Means and the topic model",
    )

    # ========================================
    # Text features
    # ========================================
    max_vocabulary: int = Field(
        default=1000,
        description="Maximum number of TF-IDF terms kept for a corpus",
    )
    min_token_length: int = Field(
        default=3,
        description="Tokens shorter than this are dropped",
    )

    # ========================================
    # K-Means
    # ========================================
    kmeans_max_k: int = Field(default=10, description="Upper bound of the k search")
    kmeans_max_iter: int = Field(default=300, description="Lloyd iterations per run")
    kmeans_n_init: int = Field(default=10, description="K-Means++ restarts per k")

    # ========================================
    # Hierarchical
    # ========================================
    hierarchical_linkage: Literal["single", "complete", "average", "ward"] = Field(
        default="average",
        description="Agglomerative linkage criterion",
    )

    # ========================================
    # Topic model (LDA, Gibbs sampling)
    # ========================================
    lda_iterations: int = Field(default=60, description="Gibbs sweeps per topic count")
    lda_alpha: float = Field(default=0.1, description="Document-topic prior")
    lda_beta: float = Field(default=0.01, description="Topic-word prior")
    lda_max_topics: int = Field(default=12, description="Largest topic count tried")
    lda_min_documents: int = Field(default=4, description="Documents needed to fit topics")

    # ========================================
    # Strategy selection
    # ========================================
    small_corpus_threshold: int = Field(
        default=10,
        description="Below this many items hierarchical clustering is used",
    )
    large_corpus_threshold: int = Field(
        default=50,
        description="From this many items the topic model is considered",
    )
    ensemble_complexity_threshold: float = Field(
        default=0.75,
        description="Content complexity at which several strategies are ensembled",
    )
    min_acceptable_quality: float = Field(
        default=0.35,
        description="Quality below which a pinned strategy is overridden",
    )
    strategy_weight_margin: float = Field(
        default=0.2,
        description="Learned weight gap that moves the default away from K-Means",
    )
    detect_sequential: bool = Field(
        default=True,
        description="Keep numbered series (Lesson 1, Module 2, ...) in course order instead of clustering",
    )

    # ========================================
    # Duration balancing
    # ========================================
    min_utilization: float = Field(
        default=0.3,
        description="Modules below this share of the target get merged when possible",
    )
    unknown_duration_seconds: int = Field(
        default=600,
        description="Packing estimate for videos with unknown duration",
    )

    # ========================================
    # Phase time budgets (seconds)
    # ========================================
    featurize_timeout: float = Field(default=2.0, description="Featurization budget")
    clustering_timeout: float = Field(default=5.0, description="Clustering budget")
    balancing_timeout: float = Field(default=2.0, description="Balancing budget")
    optimization_timeout: float = Field(default=2.0, description="Optimization budget")

    # ========================================
    # Preference learning
    # ========================================
    profile_path: str = Field(
        default="~/.coursepilot/profile.json",
        description="JSON file holding the user preference profile",
    )
    learning_rate: float = Field(
        default=0.2,
        description="Weighted moving average rate used by auto-tune",
    )
    ab_min_samples: int = Field(
        default=10,
        description="Minimum ratings per arm before an A/B test can conclude",
    )
    ab_significance_level: float = Field(
        default=0.05,
        description="p-value below which an A/B winner is declared",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level for the CLI",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
