"""Data models for the talentrank matching engine."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator


class EducationLevel(IntEnum):
    """Ordinal education scale used for requirement comparisons."""

    NONE = 0
    HIGH_SCHOOL = 1
    ASSOCIATE = 2
    BACHELOR = 3
    MASTER = 4
    DOCTORATE = 5

    @classmethod
    def parse(cls, value: object) -> "EducationLevel":
        """Map free text such as ``"B.S. Computer Science"`` onto the scale.

        Unknown or empty values map to :attr:`NONE` so that a missing
        education field never imposes a requirement.
        """
        if isinstance(value, EducationLevel):
            return value
        if isinstance(value, int):
            return cls(max(0, min(int(value), cls.DOCTORATE)))
        if not isinstance(value, str):
            return cls.NONE
        text = value.strip().lower()
        if not text:
            return cls.NONE
        if text.upper() in cls.__members__:
            return cls[text.upper()]
        for pattern, level in _EDUCATION_PATTERNS:
            if re.search(pattern, text):
                return level
        return cls.NONE


# Checked in order; the first hit wins. Bare two-letter abbreviations ("ms",
# "ba") only count as degrees when followed by "in", "of" or "degree".
_DEGREE_CONTEXT = r"(?=\s+(?:in|of|degree)\b)"
_EDUCATION_PATTERNS: Tuple[Tuple[str, EducationLevel], ...] = (
    (r"\b(ph\.?\s?d|doctor(ate|al)?|d\.?phil|ed\.?d)\b", EducationLevel.DOCTORATE),
    (rf"\b(master'?s?|m\.?sc|m\.s\.?|m\.a\.?|m[sa]{_DEGREE_CONTEXT}|mba|m\.?eng)\b", EducationLevel.MASTER),
    (
        rf"\b(bachelor'?s?|b\.?sc|b\.s\.?|b\.a\.?|b[sa]{_DEGREE_CONTEXT}|b\.?eng|b\.?tech|undergraduate)\b",
        EducationLevel.BACHELOR,
    ),
    (r"\b(associate'?s?|a\.a\.s?|a\.s\.)", EducationLevel.ASSOCIATE),
    (r"\b(high[\s-]?school|secondary|ged|diploma)\b", EducationLevel.HIGH_SCHOOL),
)


class JobStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


class CorpusScope(str, Enum):
    JOBS = "jobs"
    CANDIDATES = "candidates"


class MatchDirection(str, Enum):
    """Which side of the pair issued the query."""

    CANDIDATE_TO_JOB = "candidate_to_job"
    JOB_TO_CANDIDATE = "job_to_candidate"

    @property
    def source_scope(self) -> CorpusScope:
        """Corpus the query entity comes from."""
        if self is MatchDirection.CANDIDATE_TO_JOB:
            return CorpusScope.CANDIDATES
        return CorpusScope.JOBS

    @property
    def target_scope(self) -> CorpusScope:
        """Corpus searched for matches."""
        if self is MatchDirection.CANDIDATE_TO_JOB:
            return CorpusScope.JOBS
        return CorpusScope.CANDIDATES


class MatchQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def _normalize_skill_list(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return []
    if not isinstance(values, list):
        return values
    seen = set()
    ordered_unique = []
    for item in values:
        normalized = item.strip() if isinstance(item, str) else item
        if isinstance(normalized, str) and normalized:
            key = normalized.lower()
            if key not in seen:
                ordered_unique.append(normalized)
                seen.add(key)
    return ordered_unique


def _join_text(*parts: Optional[str]) -> str:
    return " ".join(part.strip() for part in parts if part and part.strip())


class CandidateProfile(BaseModel):
    """Structured candidate record produced by the extraction workflow."""

    id: str = Field(..., min_length=1, description="Unique identifier for the candidate")
    full_name: Optional[str] = Field(default=None, description="Display name for the candidate")
    headline: str = Field(default="", description="Short professional headline")
    summary: str = Field(default="", description="Free-text profile summary")
    job_title: str = Field(default="", description="Current or most recent job title")
    resume_text: str = Field(default="", description="Plain text extracted from the resume")
    skills: List[str] = Field(
        default_factory=list,
        description="Skills or technologies the candidate lists",
    )
    years_experience: Optional[int] = Field(
        default=None,
        ge=0,
        description="Total years of experience; inferred from experience entries when absent",
    )
    experience_entries: List[str] = Field(
        default_factory=list,
        description="One entry per previous role, used to infer missing experience years",
    )
    education_level: EducationLevel = Field(
        default=EducationLevel.NONE, description="Highest education level reached"
    )
    certifications: List[str] = Field(default_factory=list)
    location: str = Field(default="", description="Where the candidate is based")
    remote_preference: bool = Field(
        default=False, description="Whether the candidate is looking for remote work"
    )
    salary_expectation: Optional[float] = Field(
        default=None,
        gt=0,
        description="Annual salary expectation in the same unit as job postings",
    )
    embedding: Optional[List[float]] = Field(
        default=None, description="Precomputed embedding of the candidate text"
    )

    @field_validator("skills", "certifications", mode="before")
    def _strip_and_dedupe(values: Optional[List[str]]) -> Optional[List[str]]:
        return _normalize_skill_list(values)

    @field_validator("education_level", mode="before")
    def _parse_education(value: object) -> EducationLevel:
        return EducationLevel.parse(value)

    @model_validator(mode="after")
    def _infer_years(self) -> "CandidateProfile":
        if self.years_experience is None:
            self.years_experience = len(self.experience_entries)
        return self

    def search_text(self) -> str:
        return _join_text(self.headline, self.summary, self.job_title, self.resume_text)

    def query_text(self) -> str:
        """Text used to query the job corpus: free text followed by skills."""
        return _join_text(self.search_text(), " ".join(self.skills))


class JobPosting(BaseModel):
    """Represents a job offer."""

    id: str = Field(..., min_length=1, description="Unique identifier for the job")
    title: str = Field(..., description="Title or name of the job role")
    company: Optional[str] = Field(
        default=None, description="Name of the company advertising the job"
    )
    description: str = Field(default="")
    requirements: str = Field(default="")
    responsibilities: str = Field(default="")
    required_skills: List[str] = Field(
        default_factory=list,
        description="Skills that are mandatory for the position",
    )
    preferred_skills: List[str] = Field(
        default_factory=list, description="Skills that are a bonus for the position"
    )
    required_years: int = Field(
        0,
        ge=0,
        description="Minimum experience expected for the role",
    )
    required_education: EducationLevel = Field(default=EducationLevel.NONE)
    required_certifications: List[str] = Field(default_factory=list)
    location: str = Field(default="", description="Primary location where the job is based")
    remote: bool = Field(default=False, description="Whether the job supports remote work")
    salary_min: Optional[float] = Field(
        default=None,
        gt=0,
        description="Lower bound of the salary range for the position",
    )
    salary_max: Optional[float] = Field(
        default=None,
        gt=0,
        description="Upper bound of the salary range for the position",
    )
    status: JobStatus = Field(default=JobStatus.ACTIVE)
    embedding: Optional[List[float]] = Field(
        default=None, description="Precomputed embedding of the job text"
    )

    @field_validator(
        "required_skills", "preferred_skills", "required_certifications", mode="before"
    )
    def _strip_and_dedupe(values: Optional[List[str]]) -> Optional[List[str]]:
        return _normalize_skill_list(values)

    @field_validator("required_education", mode="before")
    def _parse_education(value: object) -> EducationLevel:
        return EducationLevel.parse(value)

    @field_validator("salary_max")
    def _ensure_salary_range(
        salary_max: Optional[float], info: ValidationInfo
    ) -> Optional[float]:
        salary_min = info.data.get("salary_min") if info.data else None
        if salary_max is not None and salary_min is not None:
            if salary_max < salary_min:
                raise ValueError("salary_max cannot be lower than salary_min")
        return salary_max

    @model_validator(mode="after")
    def _make_skill_sets_disjoint(self) -> "JobPosting":
        required = {skill.lower() for skill in self.required_skills}
        self.preferred_skills = [
            skill for skill in self.preferred_skills if skill.lower() not in required
        ]
        return self

    @property
    def is_active(self) -> bool:
        return self.status == JobStatus.ACTIVE

    def search_text(self) -> str:
        return _join_text(self.title, self.description, self.requirements, self.responsibilities)

    def query_text(self) -> str:
        """Text used to query the candidate corpus: free text followed by skills."""
        skills = " ".join(self.required_skills + self.preferred_skills)
        return _join_text(self.search_text(), skills)


class SkillOverlap(BaseModel):
    """Result of comparing a candidate's skills with a job's skill sets."""

    overlap_ratio: float = Field(..., ge=0, le=1)
    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)

    @property
    def must_have_compliance(self) -> bool:
        return not self.missing_skills


class AttributeScores(BaseModel):
    """Rule-based sub-scores on a 0-100 scale."""

    skills: float = Field(..., ge=0, le=100)
    experience: float = Field(..., ge=0, le=100)
    education: float = Field(..., ge=0, le=100)
    certifications: float = Field(..., ge=0, le=100)
    location: float = Field(..., ge=0, le=100)
    salary: float = Field(..., ge=0, le=100)
    experience_gap: int = 0
    salary_gap: float = 0.0
    matched_certifications: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    """Persistable outcome of scoring one candidate/job pair."""

    candidate_id: str
    job_id: str
    direction: MatchDirection

    lexical_score: float = Field(..., ge=0, description="Raw BM25 score")
    lexical_normalized: float = Field(..., ge=0, le=1)
    semantic_similarity: float = Field(..., ge=0, le=1)
    skill_overlap: float = Field(..., ge=0, le=1)
    must_have_compliance: bool
    hybrid_score: float = Field(..., ge=0)
    traditional_score: float = Field(..., ge=0, le=1)
    final_score: float = Field(..., ge=0, le=1)
    quality: MatchQuality

    skill_match_score: float
    experience_score: float
    education_score: float
    certification_score: float
    location_score: float
    salary_score: float

    matched_skills: List[str] = Field(default_factory=list)
    missing_skills: List[str] = Field(default_factory=list)
    matched_certifications: List[str] = Field(default_factory=list)
    experience_gap: int = Field(
        0, description="Required years minus candidate years; negative when the candidate exceeds"
    )
    salary_gap: float = Field(
        0.0,
        description="Distance outside the acceptable band; negative below the minimum, positive above the maximum",
    )
    degraded_stages: List[str] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.candidate_id, self.job_id, self.direction.value)

    @property
    def document_id(self) -> str:
        """Identifier of the retrieved side of the pair."""
        if self.direction == MatchDirection.CANDIDATE_TO_JOB:
            return self.job_id
        return self.candidate_id


__all__ = [
    "AttributeScores",
    "CandidateProfile",
    "CorpusScope",
    "EducationLevel",
    "JobPosting",
    "JobStatus",
    "MatchDirection",
    "MatchQuality",
    "MatchResult",
    "SkillOverlap",
]
