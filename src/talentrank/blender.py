"""Combine retrieval signals and attribute scores into one final score."""

from __future__ import annotations

from dataclasses import dataclass

from .config import ScoringWeights
from .models import AttributeScores, MatchQuality


@dataclass(frozen=True)
class BlendedScore:
    hybrid: float
    traditional: float
    final: float
    quality: MatchQuality


class ScoreBlender:
    """Blends hybrid and traditional scores using an explicit weighting scheme.

    The hybrid score is ``lexical * w_lex + semantic * w_sem + overlap * w_skill``
    plus a flat bonus when every required skill is covered. It is not
    renormalized, so it can exceed 1.0; only the final score is clamped.
    """

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()

    def hybrid_score(
        self,
        lexical_normalized: float,
        semantic_similarity: float,
        skill_overlap: float,
        must_have_compliance: bool,
    ) -> float:
        w = self.weights.hybrid
        score = (
            lexical_normalized * w.lexical
            + semantic_similarity * w.semantic
            + skill_overlap * w.skill_overlap
        )
        if must_have_compliance:
            score += w.must_have_bonus
        return score

    def traditional_score(self, attributes: AttributeScores) -> float:
        w = self.weights.traditional
        weighted = (
            attributes.skills * w.skills
            + attributes.experience * w.experience
            + attributes.education * w.education
            + attributes.certifications * w.certifications
            + attributes.location * w.location
            + attributes.salary * w.salary
        )
        return min(1.0, weighted / 100 / w.total_weight)

    def final_score(self, hybrid: float, traditional: float) -> float:
        w = self.weights.blend
        score = hybrid * w.hybrid + traditional * w.traditional
        return round(min(1.0, max(0.0, score)), 4)

    def quality_bucket(self, score: float) -> MatchQuality:
        thresholds = self.weights.quality
        if score >= thresholds.excellent:
            return MatchQuality.EXCELLENT
        if score >= thresholds.good:
            return MatchQuality.GOOD
        if score >= thresholds.fair:
            return MatchQuality.FAIR
        return MatchQuality.POOR

    def blend(
        self,
        *,
        lexical_normalized: float,
        semantic_similarity: float,
        skill_overlap: float,
        must_have_compliance: bool,
        attributes: AttributeScores,
    ) -> BlendedScore:
        """Compute every composite score for one pair."""
        hybrid = self.hybrid_score(
            lexical_normalized, semantic_similarity, skill_overlap, must_have_compliance
        )
        traditional = self.traditional_score(attributes)
        final = self.final_score(hybrid, traditional)
        return BlendedScore(
            hybrid=hybrid,
            traditional=traditional,
            final=final,
            quality=self.quality_bucket(final),
        )


__all__ = ["BlendedScore", "ScoreBlender"]
