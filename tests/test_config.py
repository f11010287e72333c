"""Tests for settings and scoring weight configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from talentrank.config import (
    QualityThresholds,
    ScoringWeights,
    Settings,
    TraditionalWeights,
    get_settings,
)


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.shortlist_size == 200
    assert settings.default_limit == 20
    assert settings.default_min_score == 0.60
    assert settings.neutral_lexical_score == 0.5
    assert settings.neutral_semantic_score == 0.5
    assert settings.weights.traditional.total_weight == pytest.approx(1.0)


def test_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("TALENTRANK_SHORTLIST_SIZE", "50")
    monkeypatch.setenv("TALENTRANK_EMBEDDING_PROVIDER", "ollama")
    monkeypatch.setenv("TALENTRANK_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("TALENTRANK_SQLITE_PATH", "  ")
    monkeypatch.setenv("SHORTLIST_SIZE", "7")

    settings = Settings(_env_file=None)

    assert settings.shortlist_size == 50
    assert settings.embedding_provider == "ollama"
    assert settings.log_level == "DEBUG"
    assert settings.sqlite_path is None


def test_nested_weights_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("TALENTRANK_WEIGHTS__BLEND__HYBRID", "0.6")
    monkeypatch.setenv("TALENTRANK_WEIGHTS__QUALITY__EXCELLENT", "0.9")

    settings = Settings(_env_file=None)

    assert settings.weights.blend.hybrid == 0.6
    assert settings.weights.blend.traditional == 0.30
    assert settings.weights.quality.excellent == 0.9
    assert settings.weights.hybrid.lexical == 0.50


def test_env_file_is_loaded(tmp_path, monkeypatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("TALENTRANK_DEFAULT_LIMIT=5\nTALENTRANK_CALL_TIMEOUT=2.5\n", encoding="utf-8")
    monkeypatch.delenv("TALENTRANK_DEFAULT_LIMIT", raising=False)

    settings = Settings(_env_file=str(env_file))

    assert settings.default_limit == 5
    assert settings.call_timeout == 2.5


def test_keyword_arguments_take_precedence(monkeypatch) -> None:
    monkeypatch.setenv("TALENTRANK_DEFAULT_LIMIT", "5")

    settings = Settings(_env_file=None, default_limit=7)

    assert settings.default_limit == 7


def test_invalid_values_are_rejected(monkeypatch) -> None:
    monkeypatch.setenv("TALENTRANK_EMBEDDING_PROVIDER", "openai")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
    monkeypatch.delenv("TALENTRANK_EMBEDDING_PROVIDER")
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_min_score=1.5)


def test_get_settings_is_cached(monkeypatch) -> None:
    get_settings.cache_clear()
    monkeypatch.setenv("TALENTRANK_MAX_CONCURRENCY", "4")
    try:
        first = get_settings()
        monkeypatch.setenv("TALENTRANK_MAX_CONCURRENCY", "8")

        assert get_settings() is first
        assert first.max_concurrency == 4
    finally:
        get_settings.cache_clear()


def test_weights_must_be_non_negative_with_positive_total() -> None:
    with pytest.raises(ValidationError):
        TraditionalWeights(skills=-0.1)
    with pytest.raises(ValidationError):
        TraditionalWeights(skills=0, experience=0, education=0, certifications=0, location=0, salary=0)


def test_quality_thresholds_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        QualityThresholds(excellent=0.6, good=0.7, fair=0.5)


def test_weights_round_trip_through_json() -> None:
    weights = ScoringWeights.model_validate({"blend": {"hybrid": 0.5, "traditional": 0.5}})

    assert weights.blend.hybrid == 0.5
    assert weights.hybrid.lexical == 0.50
