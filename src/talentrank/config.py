"""Configuration for the talentrank engine.

Settings are read from ``TALENTRANK_*`` environment variables and an optional
``.env`` file through pydantic-settings. Scoring weights are plain models that
are passed into the blender explicitly, so different callers can score with
different weights in the same process.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NEUTRAL_LEXICAL_SCORE = 0.5
NEUTRAL_SEMANTIC_SCORE = 0.5


class HybridWeights(BaseModel):
    """Weights for the retrieval-driven hybrid score."""

    lexical: float = Field(0.50, ge=0)
    semantic: float = Field(0.40, ge=0)
    skill_overlap: float = Field(0.10, ge=0)
    must_have_bonus: float = Field(0.10, ge=0)

    @model_validator(mode="after")
    def _ensure_positive_total_weight(self) -> "HybridWeights":
        if self.lexical + self.semantic + self.skill_overlap <= 0:
            raise ValueError("hybrid weights must have a positive total")
        return self


class TraditionalWeights(BaseModel):
    """Weights applied to each rule-based attribute sub-score."""

    skills: float = Field(0.35, ge=0)
    experience: float = Field(0.25, ge=0)
    education: float = Field(0.15, ge=0)
    certifications: float = Field(0.10, ge=0)
    location: float = Field(0.10, ge=0)
    salary: float = Field(0.05, ge=0)

    @model_validator(mode="after")
    def _ensure_positive_total_weight(self) -> "TraditionalWeights":
        if self.total_weight <= 0:
            raise ValueError("total_weight must be greater than 0")
        return self

    @property
    def total_weight(self) -> float:
        return (
            self.skills
            + self.experience
            + self.education
            + self.certifications
            + self.location
            + self.salary
        )


class BlendWeights(BaseModel):
    hybrid: float = Field(0.70, ge=0)
    traditional: float = Field(0.30, ge=0)

    @model_validator(mode="after")
    def _ensure_positive_total_weight(self) -> "BlendWeights":
        if self.hybrid + self.traditional <= 0:
            raise ValueError("blend weights must have a positive total")
        return self


class QualityThresholds(BaseModel):
    excellent: float = Field(0.85, ge=0, le=1)
    good: float = Field(0.70, ge=0, le=1)
    fair: float = Field(0.50, ge=0, le=1)

    @model_validator(mode="after")
    def _ensure_ordered(self) -> "QualityThresholds":
        if not self.excellent >= self.good >= self.fair:
            raise ValueError("quality thresholds must satisfy excellent >= good >= fair")
        return self


class ScoringWeights(BaseModel):
    """Complete weighting scheme handed to :class:`ScoreBlender`."""

    hybrid: HybridWeights = Field(default_factory=HybridWeights)
    traditional: TraditionalWeights = Field(default_factory=TraditionalWeights)
    blend: BlendWeights = Field(default_factory=BlendWeights)
    quality: QualityThresholds = Field(default_factory=QualityThresholds)


class Settings(BaseSettings):
    """Runtime settings for retrieval, retries, batching and logging.

    Every field can be set through a ``TALENTRANK_``-prefixed environment
    variable or a ``.env`` file. Nested weights use ``__`` as the separator,
    e.g. ``TALENTRANK_WEIGHTS__BLEND__HYBRID=0.6``.
    """

    model_config = SettingsConfigDict(
        env_prefix="TALENTRANK_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    shortlist_size: int = Field(200, ge=1)
    default_limit: int = Field(20, ge=1)
    default_min_score: float = Field(0.60, ge=0, le=1)
    neutral_lexical_score: float = Field(NEUTRAL_LEXICAL_SCORE, ge=0, le=1)
    neutral_semantic_score: float = Field(NEUTRAL_SEMANTIC_SCORE, ge=0, le=1)

    retry_attempts: int = Field(3, ge=1)
    retry_backoff: float = Field(0.5, ge=0)
    call_timeout: float = Field(10.0, gt=0)
    max_concurrency: int = Field(16, ge=1)

    batch_chunk_size: int = Field(10, ge=1)
    batch_chunk_delay: float = Field(0.1, ge=0)

    embedding_provider: str = Field("hashing", pattern="^(hashing|ollama)$")
    embedding_dim: int = Field(384, ge=8)
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "nomic-embed-text"

    sqlite_path: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "detailed"
    log_file: Optional[str] = None

    weights: ScoringWeights = Field(default_factory=ScoringWeights)

    @field_validator("sqlite_path", "log_file", mode="before")
    def _blank_is_unset(value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)"""
    return Settings()


__all__ = [
    "BlendWeights",
    "HybridWeights",
    "NEUTRAL_LEXICAL_SCORE",
    "NEUTRAL_SEMANTIC_SCORE",
    "QualityThresholds",
    "ScoringWeights",
    "Settings",
    "TraditionalWeights",
    "get_settings",
]
