"""Hybrid candidate/job matching engine."""

from .blender import BlendedScore, ScoreBlender
from .config import ScoringWeights, Settings, get_settings
from .engine import BatchReport, MatchingEngine, MatchRun, Stage
from .exceptions import (
    EmbeddingError,
    EntityNotFound,
    ExtractionError,
    InvalidInput,
    MatchingError,
    PairScoringFailed,
    RetrievalDegraded,
    UpstreamUnavailable,
)
from .models import (
    AttributeScores,
    CandidateProfile,
    CorpusScope,
    EducationLevel,
    JobPosting,
    JobStatus,
    MatchDirection,
    MatchQuality,
    MatchResult,
    SkillOverlap,
)
from .store import InMemoryStore, SQLiteMatchRepository

__all__ = [
    "AttributeScores",
    "BatchReport",
    "BlendedScore",
    "CandidateProfile",
    "CorpusScope",
    "EducationLevel",
    "EmbeddingError",
    "EntityNotFound",
    "ExtractionError",
    "InMemoryStore",
    "InvalidInput",
    "JobPosting",
    "JobStatus",
    "MatchDirection",
    "MatchQuality",
    "MatchResult",
    "MatchRun",
    "MatchingEngine",
    "MatchingError",
    "PairScoringFailed",
    "RetrievalDegraded",
    "SQLiteMatchRepository",
    "ScoreBlender",
    "ScoringWeights",
    "Settings",
    "SkillOverlap",
    "Stage",
    "UpstreamUnavailable",
    "get_settings",
]
