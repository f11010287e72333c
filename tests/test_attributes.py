"""Tests for the rule-based attribute scorers."""

from __future__ import annotations

import pytest

from talentrank.attributes import (
    score_attributes,
    score_education,
    score_experience,
    score_location,
    score_salary,
)
from talentrank.models import CandidateProfile, EducationLevel, JobPosting


def _sample_candidate(**overrides):
    data = dict(
        id="cand-1",
        full_name="Alex Dev",
        job_title="Backend Engineer",
        skills=["Python", "FastAPI", "SQL"],
        years_experience=5,
        education_level="B.S. Computer Science",
        certifications=["AWS Certified Developer"],
        location="Berlin",
        remote_preference=False,
        salary_expectation=90000,
    )
    data.update(overrides)
    return CandidateProfile(**data)


def _sample_job(**overrides):
    data = dict(
        id="job-1",
        title="Backend Engineer",
        company="Acme Corp",
        required_skills=["Python", "FastAPI"],
        preferred_skills=["SQL"],
        required_years=4,
        required_education="bachelor",
        required_certifications=["AWS"],
        location="Berlin",
        remote=False,
        salary_min=85000,
        salary_max=100000,
    )
    data.update(overrides)
    return JobPosting(**data)


@pytest.mark.parametrize(
    "candidate_years, required_years, expected",
    [
        (5, 5, (100.0, 0)),
        (7, 5, (100.0, -2)),
        (8, 5, (90.0, -3)),
        (10, 5, (90.0, -5)),
        (12, 5, (80.0, -7)),
        (30, 5, (80.0, -25)),
        (4, 5, (70.0, 1)),
        (2, 5, (50.0, 3)),
        (0, 5, (30.0, 5)),
    ],
)
def test_experience_scoring(candidate_years: int, required_years: int, expected) -> None:
    assert score_experience(candidate_years, required_years) == expected


def test_education_penalizes_each_missing_level() -> None:
    assert score_education(EducationLevel.MASTER, EducationLevel.BACHELOR) == 100.0
    assert score_education(EducationLevel.BACHELOR, EducationLevel.MASTER) == 80.0
    assert score_education(EducationLevel.HIGH_SCHOOL, EducationLevel.DOCTORATE) == 20.0
    assert score_education(EducationLevel.NONE, EducationLevel.DOCTORATE) == 0.0
    assert score_education("PhD", "master's degree") == 100.0


def test_location_remote_combinations() -> None:
    assert score_location("Berlin", True, "Paris", True) == 100.0
    assert score_location("Berlin", False, "Paris", True) == 80.0
    assert score_location("Berlin", True, "Paris", False) == 60.0


def test_location_on_site_comparisons() -> None:
    assert score_location("  berlin ", False, "Berlin", False) == 100.0
    assert score_location("Berlin", False, "Berlin, Germany", False) == 90.0
    assert score_location("Paris", False, "Berlin", False) == 50.0
    assert score_location("", False, "Berlin", False) == 50.0


def test_salary_inside_band() -> None:
    assert score_salary(85000, 85000, 100000) == (100.0, 0.0)
    assert score_salary(100000, 85000, 100000) == (100.0, 0.0)


def test_salary_without_data_is_neutral() -> None:
    assert score_salary(None, 85000, 100000) == (70.0, 0.0)
    assert score_salary(90000, None, None) == (70.0, 0.0)


def test_salary_below_minimum_has_negative_gap() -> None:
    assert score_salary(95000, 100000, 120000) == (80.0, -5000.0)
    assert score_salary(80000, 100000, 120000) == (60.0, -20000.0)
    assert score_salary(50000, 100000, 120000) == (40.0, -50000.0)


def test_salary_above_maximum_has_positive_gap() -> None:
    assert score_salary(125000, 100000, 120000) == (80.0, 5000.0)
    assert score_salary(180000, 100000, 120000) == (60.0, 60000.0)
    assert score_salary(300000, 100000, 120000) == (40.0, 180000.0)


def test_salary_without_maximum_uses_wider_band() -> None:
    assert score_salary(140000, 100000, None) == (100.0, 0.0)
    assert score_salary(160000, 100000, None) == (80.0, 10000.0)


def test_score_attributes_combines_every_scorer() -> None:
    scores = score_attributes(_sample_candidate(), _sample_job())

    assert scores.skills == pytest.approx(100.0)
    assert scores.experience == 100.0
    assert scores.experience_gap == -1
    assert scores.education == 100.0
    assert scores.certifications == 100.0
    assert scores.matched_certifications == ["AWS Certified Developer"]
    assert scores.location == 100.0
    assert scores.salary == 100.0
    assert scores.salary_gap == 0.0


def test_score_attributes_uses_inferred_years() -> None:
    candidate = _sample_candidate(years_experience=None, experience_entries=["Dev at A", "Dev at B"])

    scores = score_attributes(candidate, _sample_job(required_years=2))

    assert scores.experience == 100.0
    assert scores.experience_gap == 0
