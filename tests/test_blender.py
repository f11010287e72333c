"""Tests for score blending and quality buckets."""

from __future__ import annotations

import pytest

from talentrank.blender import ScoreBlender
from talentrank.config import BlendWeights, HybridWeights, ScoringWeights, TraditionalWeights
from talentrank.models import AttributeScores, MatchQuality


def _attributes(**overrides) -> AttributeScores:
    data = dict(skills=100, experience=100, education=100, certifications=100, location=100, salary=100)
    data.update(overrides)
    return AttributeScores(**data)


def test_hybrid_score_adds_must_have_bonus() -> None:
    blender = ScoreBlender()

    without = blender.hybrid_score(0.8, 0.6, 0.5, False)
    with_bonus = blender.hybrid_score(0.8, 0.6, 0.5, True)

    assert without == pytest.approx(0.8 * 0.5 + 0.6 * 0.4 + 0.5 * 0.1)
    assert with_bonus == pytest.approx(without + 0.1)


def test_hybrid_score_can_exceed_one_but_final_is_clamped() -> None:
    blender = ScoreBlender()

    blended = blender.blend(
        lexical_normalized=1.0,
        semantic_similarity=1.0,
        skill_overlap=1.0,
        must_have_compliance=True,
        attributes=_attributes(),
    )

    assert blended.hybrid == pytest.approx(1.1)
    assert blended.traditional == pytest.approx(1.0)
    assert blended.final == 1.0
    assert blended.quality is MatchQuality.EXCELLENT


def test_traditional_score_is_weighted_average() -> None:
    blender = ScoreBlender()

    score = blender.traditional_score(_attributes(skills=50, salary=0))

    expected = (50 * 0.35 + 100 * 0.25 + 100 * 0.15 + 100 * 0.10 + 100 * 0.10) / 100
    assert score == pytest.approx(expected)


def test_traditional_score_divides_by_weight_total() -> None:
    weights = ScoringWeights(
        traditional=TraditionalWeights(
            skills=1, experience=1, education=0, certifications=0, location=0, salary=0
        )
    )

    score = ScoreBlender(weights).traditional_score(_attributes(skills=100, experience=50))

    assert score == pytest.approx(0.75)


def test_final_score_is_rounded() -> None:
    blender = ScoreBlender()

    assert blender.final_score(0.123456, 0.654321) == round(0.123456 * 0.7 + 0.654321 * 0.3, 4)
    assert blender.final_score(-1.0, 0.0) == 0.0


@pytest.mark.parametrize(
    "score, expected",
    [
        (0.85, MatchQuality.EXCELLENT),
        (0.8499, MatchQuality.GOOD),
        (0.70, MatchQuality.GOOD),
        (0.50, MatchQuality.FAIR),
        (0.4999, MatchQuality.POOR),
        (0.0, MatchQuality.POOR),
    ],
)
def test_quality_bucket_boundaries(score: float, expected: MatchQuality) -> None:
    assert ScoreBlender().quality_bucket(score) is expected


def test_custom_weights_change_the_blend() -> None:
    weights = ScoringWeights(
        hybrid=HybridWeights(lexical=1, semantic=0, skill_overlap=0, must_have_bonus=0),
        blend=BlendWeights(hybrid=1, traditional=0),
    )

    blended = ScoreBlender(weights).blend(
        lexical_normalized=0.42,
        semantic_similarity=0.9,
        skill_overlap=0.9,
        must_have_compliance=True,
        attributes=_attributes(),
    )

    assert blended.final == pytest.approx(0.42)
    assert blended.quality is MatchQuality.POOR
