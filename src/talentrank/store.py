"""
Corpus and match-record storage.

``InMemoryStore`` keeps candidates and jobs in dictionaries, indexes their
text with one :class:`BM25Index` per corpus, and stores match records keyed
by ``(candidate_id, job_id, direction)``. ``SQLiteMatchRepository``
persists match records in SQLite with the same composite key.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from .lexical import BM25Index
from .logging_config import get_logger
from .models import CandidateProfile, CorpusScope, JobPosting, MatchDirection, MatchResult

logger = get_logger(__name__)

MatchKey = Tuple[str, str, str]


class CorpusStore(Protocol):
    """Read side used by the matching engine."""

    async def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        ...

    async def get_job(self, job_id: str) -> Optional[JobPosting]:
        ...

    async def fetch_active_jobs(self, predicate: Optional[Callable[[JobPosting], bool]] = None) -> List[JobPosting]:
        ...

    async def fetch_candidates(self, predicate: Optional[Callable[[CandidateProfile], bool]] = None) -> List[CandidateProfile]:
        ...

    async def active_ids(self, scope: CorpusScope) -> List[str]:
        ...

    async def lexical_rank(self, query_text: str, scope: CorpusScope, limit: int) -> List[Tuple[str, float]]:
        ...


class MatchSink(Protocol):
    async def upsert_match(self, result: MatchResult) -> None:
        ...


class InMemoryStore:
    """Dictionary-backed corpus with in-process full-text ranking."""

    def __init__(self) -> None:
        self._candidates: Dict[str, CandidateProfile] = {}
        self._jobs: Dict[str, JobPosting] = {}
        self._indexes: Dict[CorpusScope, BM25Index] = {
            CorpusScope.JOBS: BM25Index(),
            CorpusScope.CANDIDATES: BM25Index(),
        }
        self._matches: Dict[MatchKey, MatchResult] = {}
        self._lock = threading.Lock()

    # -- corpus maintenance ---------------------------------------------

    def add_candidate(self, candidate: CandidateProfile) -> None:
        """Insert or replace a candidate and re-index its text."""
        self._candidates[candidate.id] = candidate
        self._indexes[CorpusScope.CANDIDATES].add(candidate.id, candidate.query_text())

    def add_job(self, job: JobPosting) -> None:
        """Insert or replace a job. Inactive jobs are kept but not indexed."""
        self._jobs[job.id] = job
        index = self._indexes[CorpusScope.JOBS]
        if job.is_active:
            index.add(job.id, job.query_text())
        else:
            index.remove(job.id)

    def remove_candidate(self, candidate_id: str) -> None:
        self._candidates.pop(candidate_id, None)
        self._indexes[CorpusScope.CANDIDATES].remove(candidate_id)

    # -- read side ------------------------------------------------------

    async def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        return self._candidates.get(candidate_id)

    async def get_job(self, job_id: str) -> Optional[JobPosting]:
        return self._jobs.get(job_id)

    async def fetch_active_jobs(self, predicate: Optional[Callable[[JobPosting], bool]] = None) -> List[JobPosting]:
        jobs = [job for job in self._jobs.values() if job.is_active]
        if predicate is not None:
            jobs = [job for job in jobs if predicate(job)]
        return sorted(jobs, key=lambda job: job.id)

    async def fetch_candidates(self, predicate: Optional[Callable[[CandidateProfile], bool]] = None) -> List[CandidateProfile]:
        candidates = list(self._candidates.values())
        if predicate is not None:
            candidates = [candidate for candidate in candidates if predicate(candidate)]
        return sorted(candidates, key=lambda candidate: candidate.id)

    async def active_ids(self, scope: CorpusScope) -> List[str]:
        if scope == CorpusScope.JOBS:
            return sorted(job.id for job in self._jobs.values() if job.is_active)
        return sorted(self._candidates)

    async def lexical_rank(self, query_text: str, scope: CorpusScope, limit: int) -> List[Tuple[str, float]]:
        return self._indexes[scope].rank(query_text, limit)

    # -- match records --------------------------------------------------

    async def upsert_match(self, result: MatchResult) -> None:
        """Insert or overwrite the record stored under ``result.key``."""
        with self._lock:
            self._matches[result.key] = result

    async def get_match(self, candidate_id: str, job_id: str, direction: MatchDirection) -> Optional[MatchResult]:
        return self._matches.get((candidate_id, job_id, MatchDirection(direction).value))

    async def list_matches(self, direction: Optional[MatchDirection] = None) -> List[MatchResult]:
        with self._lock:
            results = list(self._matches.values())
        if direction is not None:
            results = [result for result in results if result.direction == direction]
        return sorted(results, key=lambda result: result.key)


class SQLiteMatchRepository:
    """SQLite persistence for match records, one row per composite key.

    Statements run in a worker thread so a locked database file never stalls
    the event loop. ``timeout`` is how long SQLite waits on a lock before
    raising ``sqlite3.OperationalError``.
    """

    def __init__(self, db_path: str = "data/talentrank.db", timeout: float = 5.0):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info(f"Match repository ready at {db_path}")

    def _create_tables(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS match_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                candidate_id TEXT NOT NULL,
                job_id TEXT NOT NULL,
                direction TEXT NOT NULL, -- 'candidate_to_job' or 'job_to_candidate'
                final_score REAL NOT NULL,
                quality TEXT NOT NULL,
                payload TEXT NOT NULL, -- Full MatchResult as JSON
                calculated_at TIMESTAMP NOT NULL,
                UNIQUE (candidate_id, job_id, direction)
            )
        """)
        self.conn.commit()

    def close(self):
        with self._lock:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _upsert(self, result: MatchResult) -> None:
        with self._lock:
            try:
                self.conn.execute(
                    """
                    INSERT INTO match_results
                        (candidate_id, job_id, direction, final_score, quality, payload, calculated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (candidate_id, job_id, direction) DO UPDATE SET
                        final_score = excluded.final_score,
                        quality = excluded.quality,
                        payload = excluded.payload,
                        calculated_at = excluded.calculated_at
                    """,
                    (
                        result.candidate_id,
                        result.job_id,
                        result.direction.value,
                        result.final_score,
                        result.quality.value,
                        result.model_dump_json(),
                        result.calculated_at.isoformat(),
                    ),
                )
                self.conn.commit()
            except sqlite3.Error:
                self.conn.rollback()
                raise

    def _get(self, candidate_id: str, job_id: str, direction: str) -> Optional[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(
                "SELECT payload FROM match_results WHERE candidate_id = ? AND job_id = ? AND direction = ?",
                (candidate_id, job_id, direction),
            ).fetchone()

    def _select(self, query: str, params: Tuple) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(query, params).fetchall()

    async def upsert_match(self, result: MatchResult) -> None:
        await asyncio.to_thread(self._upsert, result)

    async def get_match(self, candidate_id: str, job_id: str, direction: MatchDirection) -> Optional[MatchResult]:
        row = await asyncio.to_thread(self._get, candidate_id, job_id, MatchDirection(direction).value)
        return MatchResult.model_validate_json(row["payload"]) if row else None

    async def list_matches(self, direction: Optional[MatchDirection] = None) -> List[MatchResult]:
        query = "SELECT payload FROM match_results"
        params: Tuple = ()
        if direction is not None:
            query += " WHERE direction = ?"
            params = (MatchDirection(direction).value,)
        query += " ORDER BY candidate_id, job_id, direction"
        rows = await asyncio.to_thread(self._select, query, params)
        return [MatchResult.model_validate_json(row["payload"]) for row in rows]

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) AS total FROM match_results").fetchone()["total"]


__all__ = ["CorpusStore", "InMemoryStore", "MatchSink", "SQLiteMatchRepository"]
