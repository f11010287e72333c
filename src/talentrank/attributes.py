"""Rule-based attribute scoring for a candidate/job pair.

Every scorer returns a value on a 0-100 scale. Experience and salary also
return a signed gap so that callers can explain the score.
"""

from __future__ import annotations

import math
import re
from typing import Optional, Tuple

from .models import AttributeScores, CandidateProfile, EducationLevel, JobPosting
from .skills import certification_match, skill_match_score

OVERQUALIFICATION_GRACE_YEARS = 2
OVERQUALIFICATION_STEP_YEARS = 3
OVERQUALIFICATION_STEP_PENALTY = 10
OVERQUALIFICATION_FLOOR = 80

EDUCATION_STEP_PENALTY = 20

NEUTRAL_SALARY_SCORE = 70.0
SALARY_MAX_FALLBACK_RATIO = 1.5


def score_experience(candidate_years: int, required_years: int) -> Tuple[float, int]:
    """Score experience years against the requirement.

    Meeting the requirement scores 100. Beyond a two year grace band every
    started block of three extra years costs 10 points, down to 80. Falling
    short scores 70 within one year, 50 within three years and 30 beyond.

    Returns:
        ``(score, gap)`` where ``gap = required_years - candidate_years``.
    """
    gap = required_years - candidate_years
    if candidate_years >= required_years:
        excess = candidate_years - required_years
        steps = math.ceil(max(0, excess - OVERQUALIFICATION_GRACE_YEARS) / OVERQUALIFICATION_STEP_YEARS)
        return float(max(OVERQUALIFICATION_FLOOR, 100 - OVERQUALIFICATION_STEP_PENALTY * steps)), gap
    if gap <= 1:
        return 70.0, gap
    if gap <= 3:
        return 50.0, gap
    return 30.0, gap


def score_education(candidate_level: EducationLevel, required_level: EducationLevel) -> float:
    candidate_level = EducationLevel.parse(candidate_level)
    required_level = EducationLevel.parse(required_level)
    if candidate_level >= required_level:
        return 100.0
    return float(max(0, 100 - (required_level - candidate_level) * EDUCATION_STEP_PENALTY))


def score_location(
    candidate_location: Optional[str],
    candidate_remote: bool,
    job_location: Optional[str],
    job_remote: bool,
) -> float:
    if job_remote and candidate_remote:
        return 100.0
    if job_remote:
        return 80.0
    if candidate_remote:
        return 60.0

    candidate_loc = _normalize_location(candidate_location)
    job_loc = _normalize_location(job_location)
    # Unknown on either side is "unknown fit", not a hard fail.
    if not candidate_loc or not job_loc:
        return 50.0
    if candidate_loc == job_loc:
        return 100.0
    if candidate_loc in job_loc or job_loc in candidate_loc:
        return 90.0
    return 50.0


def score_salary(
    expectation: Optional[float],
    job_min: Optional[float],
    job_max: Optional[float],
) -> Tuple[float, float]:
    """Score a salary expectation against a job's range.

    The acceptable band is ``[job_min, job_max]``; without a maximum it is
    ``[job_min, 1.5 * job_min]``.

    Returns:
        ``(score, gap)`` where the gap is the distance to the band, negative
        when the expectation is below the minimum and positive above the
        maximum.
    """
    if not expectation or not job_min:
        return NEUTRAL_SALARY_SCORE, 0.0

    effective_max = job_max if job_max else job_min * SALARY_MAX_FALLBACK_RATIO
    if job_min <= expectation <= effective_max:
        return 100.0, 0.0

    if expectation < job_min:
        shortfall = job_min - expectation
        percentage_gap = shortfall / job_min * 100
        if percentage_gap <= 10:
            score = 80.0
        elif percentage_gap <= 25:
            score = 60.0
        else:
            score = 40.0
        return score, -shortfall

    excess = expectation - effective_max
    percentage_gap = excess / expectation * 100
    if percentage_gap <= 20:
        score = 80.0
    elif percentage_gap <= 40:
        score = 60.0
    else:
        score = 40.0
    return score, excess


def score_attributes(candidate: CandidateProfile, job: JobPosting) -> AttributeScores:
    """Run every attribute scorer for one candidate/job pair."""
    experience, experience_gap = score_experience(
        candidate.years_experience or 0, job.required_years
    )
    salary, salary_gap = score_salary(
        candidate.salary_expectation, job.salary_min, job.salary_max
    )
    certifications, matched_certifications = certification_match(
        candidate.certifications, job.required_certifications
    )
    return AttributeScores(
        skills=skill_match_score(candidate.skills, job.required_skills, job.preferred_skills),
        experience=experience,
        education=score_education(candidate.education_level, job.required_education),
        certifications=certifications,
        location=score_location(
            candidate.location, candidate.remote_preference, job.location, job.remote
        ),
        salary=salary,
        experience_gap=experience_gap,
        salary_gap=salary_gap,
        matched_certifications=matched_certifications,
    )


def _normalize_location(value: Optional[str]) -> str:
    if not value:
        return ""
    return re.sub(r"\s+", " ", value.strip().lower())


__all__ = [
    "score_attributes",
    "score_education",
    "score_experience",
    "score_location",
    "score_salary",
]
