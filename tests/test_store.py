"""Tests for the in-memory corpus store and the SQLite match repository."""

from __future__ import annotations

import asyncio

from talentrank.models import (
    CandidateProfile,
    CorpusScope,
    JobPosting,
    MatchDirection,
    MatchQuality,
    MatchResult,
)
from talentrank.store import InMemoryStore, SQLiteMatchRepository


def _sample_result(**overrides) -> MatchResult:
    data = dict(
        candidate_id="cand-1",
        job_id="job-1",
        direction=MatchDirection.CANDIDATE_TO_JOB,
        lexical_score=3.2,
        lexical_normalized=1.0,
        semantic_similarity=0.7,
        skill_overlap=0.5,
        must_have_compliance=False,
        hybrid_score=0.83,
        traditional_score=0.8,
        final_score=0.821,
        quality=MatchQuality.GOOD,
        skill_match_score=70.0,
        experience_score=100.0,
        education_score=100.0,
        certification_score=100.0,
        location_score=50.0,
        salary_score=70.0,
        matched_skills=["python"],
        missing_skills=["aws"],
    )
    data.update(overrides)
    return MatchResult(**data)


def test_inactive_jobs_are_stored_but_not_searchable() -> None:
    store = InMemoryStore()
    store.add_job(JobPosting(id="job-1", title="Python developer"))
    store.add_job(JobPosting(id="job-2", title="Python developer", status="inactive"))

    assert asyncio.run(store.active_ids(CorpusScope.JOBS)) == ["job-1"]
    assert [doc_id for doc_id, _ in asyncio.run(store.lexical_rank("python", CorpusScope.JOBS, 10))] == ["job-1"]
    assert asyncio.run(store.get_job("job-2")) is not None


def test_deactivating_a_job_removes_it_from_the_index() -> None:
    store = InMemoryStore()
    store.add_job(JobPosting(id="job-1", title="Python developer"))
    store.add_job(JobPosting(id="job-1", title="Python developer", status="closed"))

    assert asyncio.run(store.lexical_rank("python", CorpusScope.JOBS, 10)) == []
    assert asyncio.run(store.fetch_active_jobs()) == []


def test_fetch_candidates_applies_predicate() -> None:
    store = InMemoryStore()
    store.add_candidate(CandidateProfile(id="cand-2", location="Berlin"))
    store.add_candidate(CandidateProfile(id="cand-1", location="Paris"))

    everyone = asyncio.run(store.fetch_candidates())
    berliners = asyncio.run(store.fetch_candidates(lambda candidate: candidate.location == "Berlin"))

    assert [candidate.id for candidate in everyone] == ["cand-1", "cand-2"]
    assert [candidate.id for candidate in berliners] == ["cand-2"]


def test_removed_candidates_leave_the_index() -> None:
    store = InMemoryStore()
    store.add_candidate(CandidateProfile(id="cand-1", headline="Python developer"))
    store.remove_candidate("cand-1")

    assert asyncio.run(store.get_candidate("cand-1")) is None
    assert asyncio.run(store.lexical_rank("python", CorpusScope.CANDIDATES, 10)) == []


def test_in_memory_upsert_overwrites_by_key() -> None:
    store = InMemoryStore()
    asyncio.run(store.upsert_match(_sample_result()))
    asyncio.run(store.upsert_match(_sample_result(final_score=0.9, quality=MatchQuality.EXCELLENT)))
    asyncio.run(store.upsert_match(_sample_result(direction=MatchDirection.JOB_TO_CANDIDATE)))

    matches = asyncio.run(store.list_matches(MatchDirection.CANDIDATE_TO_JOB))

    assert len(matches) == 1
    assert matches[0].final_score == 0.9
    assert len(asyncio.run(store.list_matches())) == 2


def test_sqlite_upsert_is_idempotent() -> None:
    with SQLiteMatchRepository(":memory:") as repository:
        asyncio.run(repository.upsert_match(_sample_result()))
        asyncio.run(repository.upsert_match(_sample_result(final_score=0.9, quality=MatchQuality.EXCELLENT)))

        stored = asyncio.run(repository.get_match("cand-1", "job-1", MatchDirection.CANDIDATE_TO_JOB))

        assert repository.count() == 1
        assert stored is not None
        assert stored.final_score == 0.9
        assert stored.quality is MatchQuality.EXCELLENT
        assert stored.missing_skills == ["aws"]


def test_sqlite_keeps_directions_apart(tmp_path) -> None:
    db_path = tmp_path / "nested" / "matches.db"
    with SQLiteMatchRepository(str(db_path)) as repository:
        asyncio.run(repository.upsert_match(_sample_result()))
        asyncio.run(repository.upsert_match(_sample_result(direction=MatchDirection.JOB_TO_CANDIDATE)))

        assert repository.count() == 2
        assert len(asyncio.run(repository.list_matches(MatchDirection.JOB_TO_CANDIDATE))) == 1
        assert asyncio.run(repository.get_match("cand-1", "job-2", MatchDirection.CANDIDATE_TO_JOB)) is None

    assert db_path.exists()
