"""Skill and certification matching.

Two strings match when, lowercased, either one contains the other, so
"react" matches "react native" and "aws" matches "aws lambda".
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from .models import SkillOverlap

REQUIRED_SHARE = 70.0
PREFERRED_SHARE = 30.0


def skills_match(left: str, right: str) -> bool:
    a = left.strip().lower()
    b = right.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


def compute_skill_overlap(
    candidate_skills: Iterable[str],
    required_skills: Iterable[str],
    preferred_skills: Iterable[str],
) -> SkillOverlap:
    """Compare a candidate's skills with a job's required and preferred skills.

    Args:
        candidate_skills: Skills listed by the candidate.
        required_skills: Must-have skills of the job.
        preferred_skills: Nice-to-have skills of the job.

    Returns:
        A :class:`SkillOverlap` whose ``matched_skills`` are the lowercased
        candidate skills that match any job skill, and whose
        ``missing_skills`` are the lowercased required skills nothing
        matched. Preferred skills are never reported as missing. When the
        job lists no skills at all the overlap ratio is 1.0.
    """
    candidate = _normalized_list(candidate_skills)
    required = _normalized_list(required_skills)
    preferred = _normalized_list(preferred_skills)
    job_skills = _normalized_list(required + preferred)

    if not job_skills:
        return SkillOverlap(overlap_ratio=1.0, matched_skills=[], missing_skills=[])

    matched = [
        skill for skill in candidate if any(skills_match(skill, job) for job in job_skills)
    ]
    missing = [
        skill for skill in required if not any(skills_match(skill, own) for own in candidate)
    ]
    ratio = min(1.0, len(matched) / len(job_skills))
    return SkillOverlap(overlap_ratio=ratio, matched_skills=matched, missing_skills=missing)


def skill_match_score(
    candidate_skills: Iterable[str],
    required_skills: Iterable[str],
    preferred_skills: Iterable[str],
) -> float:
    """Attribute-style skill score on a 0-100 scale.

    Required skills carry 70 points and preferred skills 30, each share
    scaled by the fraction of that list the candidate covers. A list the job
    leaves empty awards its whole share.
    """
    candidate = _normalized_list(candidate_skills)
    required = _normalized_list(required_skills)
    preferred = _normalized_list(preferred_skills)

    return (
        REQUIRED_SHARE * _coverage(candidate, required)
        + PREFERRED_SHARE * _coverage(candidate, preferred)
    )


def certification_match(
    candidate_certifications: Sequence[str], required_certifications: Sequence[str]
) -> Tuple[float, List[str]]:
    """Score certifications on a 0-100 scale and list the matching ones."""
    required = _normalized_list(required_certifications)
    if not required:
        return 100.0, []

    held = [cert.strip() for cert in candidate_certifications if cert and cert.strip()]
    matched = [cert for cert in held if any(skills_match(cert, need) for need in required)]
    return min(100.0, 100.0 * len(matched) / len(required)), matched


def _coverage(candidate: List[str], wanted: List[str]) -> float:
    if not wanted:
        return 1.0
    hits = sum(1 for skill in wanted if any(skills_match(skill, own) for own in candidate))
    return hits / len(wanted)


def _normalized_list(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if not value or not value.strip():
            continue
        key = value.strip().lower()
        if key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


__all__ = [
    "certification_match",
    "compute_skill_overlap",
    "skill_match_score",
    "skills_match",
]
