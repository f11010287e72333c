"""Match orchestration for the talentrank engine."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .attributes import score_attributes
from .blender import ScoreBlender
from .config import ScoringWeights, Settings
from .embeddings import Embedder, build_embedder
from .exceptions import (
    EntityNotFound,
    InvalidInput,
    MatchingError,
    PairScoringFailed,
    RetrievalDegraded,
    UpstreamUnavailable,
)
from .lexical import LexicalHit, LexicalOutcome, LexicalRetriever
from .logging_config import PerformanceMonitor, get_logger
from .models import CandidateProfile, CorpusScope, JobPosting, MatchDirection, MatchResult
from .retry import RetriesExhausted, call_with_retries
from .semantic import SemanticOutcome, SemanticRetriever
from .skills import compute_skill_overlap
from .store import CorpusStore, MatchSink

logger = get_logger(__name__)

Record = Union[CandidateProfile, JobPosting]


class Stage(str, Enum):
    """Pipeline stages of a single matching run, in order."""

    QUERY_BUILT = "query_built"
    LEXICAL_RETRIEVED = "lexical_retrieved"
    SEMANTIC_SCORED = "semantic_scored"
    PER_PAIR_SCORED = "per_pair_scored"
    FILTERED_SORTED = "filtered_sorted"
    PERSISTED = "persisted"


@dataclass
class MatchRun:
    """Everything one matching run produced."""

    query_entity_id: str
    direction: MatchDirection
    results: List[MatchResult] = field(default_factory=list)
    degradations: List[RetrievalDegraded] = field(default_factory=list)
    failures: List[PairScoringFailed] = field(default_factory=list)
    shortlist_size: int = 0

    @property
    def degraded(self) -> bool:
        return bool(self.degradations)


@dataclass
class BatchReport:
    direction: MatchDirection
    processed_ids: List[str] = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    total_persisted: int = 0
    cancelled: bool = False


@dataclass
class _PairInput:
    doc_id: str
    candidate: CandidateProfile
    job: JobPosting
    lexical: LexicalHit


def rank_results(results: Sequence[MatchResult], min_score: float, limit: int) -> List[MatchResult]:
    """Drop results below ``min_score``, order them and keep the top ``limit``.

    Order is final score descending, then skill overlap descending, then
    document id ascending.
    """
    kept = [result for result in results if result.final_score >= min_score]
    kept.sort(key=lambda result: (-result.final_score, -result.skill_overlap, result.document_id))
    return kept[:limit]


class MatchingEngine:
    """Ranks one side of the marketplace against the other.

    A run retrieves a lexical shortlist from the target corpus, scores the
    shortlist semantically, scores every pair on skills and attributes,
    blends the signals, keeps the best results and upserts them.
    """

    def __init__(
        self,
        store: CorpusStore,
        embedder: Optional[Embedder] = None,
        settings: Optional[Settings] = None,
        weights: Optional[ScoringWeights] = None,
        match_sink: Optional[MatchSink] = None,
    ) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.embedder = embedder or build_embedder(self.settings)
        self.blender = ScoreBlender(weights or self.settings.weights)
        self.match_sink = match_sink or store
        self.lexical = LexicalRetriever(store, self.settings)
        self.semantic = SemanticRetriever(self.embedder, self.settings)

    async def find_matches(
        self,
        query_entity_id: str,
        direction: Union[MatchDirection, str],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        weights: Optional[ScoringWeights] = None,
    ) -> List[MatchResult]:
        """Return the ranked, persisted matches for one query entity."""
        run = await self.run_matching(query_entity_id, direction, limit, min_score, weights)
        return run.results

    def find_matches_sync(
        self,
        query_entity_id: str,
        direction: Union[MatchDirection, str],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        weights: Optional[ScoringWeights] = None,
    ) -> List[MatchResult]:
        return asyncio.run(self.find_matches(query_entity_id, direction, limit, min_score, weights))

    async def run_matching(
        self,
        query_entity_id: str,
        direction: Union[MatchDirection, str],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        weights: Optional[ScoringWeights] = None,
    ) -> MatchRun:
        """
        Run the full pipeline for one query entity.

        Args:
            query_entity_id: Id of the candidate (``candidate_to_job``) or job
                (``job_to_candidate``) issuing the query
            direction: Which side issues the query
            limit: Maximum number of results (defaults to ``settings.default_limit``)
            min_score: Minimum final score kept (defaults to ``settings.default_min_score``)
            weights: Scoring weights for this run only

        Returns:
            A :class:`MatchRun` with the results and every degradation and
            pair failure met along the way

        Raises:
            InvalidInput: bad arguments or an inactive job as query
            EntityNotFound: the query entity does not exist
            UpstreamUnavailable: the store could not be read or written
        """
        direction, limit, min_score = self._validate(query_entity_id, direction, limit, min_score)
        blender = ScoreBlender(weights) if weights is not None else self.blender
        run = MatchRun(query_entity_id=query_entity_id, direction=direction)

        with PerformanceMonitor(f"find_matches[{direction.value}:{query_entity_id}]", logger):
            query = await self._fetch_query_entity(query_entity_id, direction)
            query_text = query.query_text()
            logger.debug(f"{Stage.QUERY_BUILT.value}: {len(query_text)} characters")

            lexical = await self.lexical.retrieve(
                query_text, direction.target_scope, self.settings.shortlist_size
            )
            if lexical.degraded is not None:
                run.degradations.append(lexical.degraded)
            run.shortlist_size = len(lexical.hits)
            logger.debug(f"{Stage.LEXICAL_RETRIEVED.value}: {run.shortlist_size} documents")

            records = await self._fetch_records(lexical, direction, run)
            semantic = await self.semantic.score(
                query_text,
                list(records),
                {doc_id: record.embedding for doc_id, record in records.items()},
            )
            if semantic.degraded is not None:
                run.degradations.append(semantic.degraded)
            logger.debug(
                f"{Stage.SEMANTIC_SCORED.value}: {len(semantic.scores)} documents, "
                f"{len(semantic.missing_ids)} without embedding"
            )

            pairs = [
                self._pair(query, records[hit.doc_id], hit, direction)
                for hit in lexical.hits
                if hit.doc_id in records
            ]
            scored = await self._score_pairs(pairs, direction, lexical, semantic, blender, run)
            logger.debug(f"{Stage.PER_PAIR_SCORED.value}: {len(scored)} pairs scored")
            if run.failures:
                logger.warning(f"Skipped {len(run.failures)} pair(s) that failed to score")

            run.results = rank_results(scored, min_score, limit)
            logger.debug(f"{Stage.FILTERED_SORTED.value}: returning {len(run.results)} above {min_score}")

            await self._persist(run.results)
            logger.debug(f"{Stage.PERSISTED.value}: {len(run.results)} match records")

        logger.info(
            f"Matched {direction.value} {query_entity_id}: {len(run.results)} results, "
            f"{len(run.degradations)} degraded stage(s), {len(run.failures)} failed pair(s)"
        )
        return run

    async def run_batch(
        self,
        direction: Union[MatchDirection, str],
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
        chunk_size: Optional[int] = None,
        chunk_delay: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> BatchReport:
        """
        Match every query entity of the direction's source corpus.

        Entities are processed ``chunk_size`` at a time with ``chunk_delay``
        seconds between chunks. Once ``cancel_event`` is set no new chunk
        starts; the chunk in flight still finishes and persists.
        """
        try:
            direction = MatchDirection(direction)
        except ValueError as e:
            raise InvalidInput(f"Unknown match direction: {direction}", field="direction", value=direction) from e
        if chunk_size is None:
            chunk_size = self.settings.batch_chunk_size
        if chunk_delay is None:
            chunk_delay = self.settings.batch_chunk_delay
        if chunk_size < 1:
            raise InvalidInput("chunk_size must be at least 1", field="chunk_size", value=chunk_size)

        entity_ids = await self._source_ids(direction)
        report = BatchReport(direction=direction)
        logger.info(f"Starting batch {direction.value} over {len(entity_ids)} entities")

        for start in range(0, len(entity_ids), chunk_size):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                logger.info(f"Batch cancelled after {len(report.processed_ids)} entities")
                break
            chunk = entity_ids[start:start + chunk_size]
            outcomes = await asyncio.gather(
                *(self.run_matching(entity_id, direction, limit, min_score) for entity_id in chunk),
                return_exceptions=True,
            )
            for entity_id, outcome in zip(chunk, outcomes):
                if isinstance(outcome, MatchRun):
                    report.processed_ids.append(entity_id)
                    report.total_persisted += len(outcome.results)
                elif isinstance(outcome, MatchingError):
                    report.failed_ids.append(entity_id)
                    logger.error(f"Batch entity {entity_id} failed: {outcome.message}")
                elif isinstance(outcome, Exception):
                    report.failed_ids.append(entity_id)
                    logger.error(f"Batch entity {entity_id} failed unexpectedly: {outcome!r}")
                else:
                    raise outcome
            if start + chunk_size < len(entity_ids) and chunk_delay > 0:
                await asyncio.sleep(chunk_delay)

        logger.info(
            f"Batch {direction.value} finished: {len(report.processed_ids)} processed, "
            f"{len(report.failed_ids)} failed, {report.total_persisted} results persisted"
        )
        return report

    # -- pipeline steps -------------------------------------------------

    def _validate(
        self,
        query_entity_id: str,
        direction: Union[MatchDirection, str],
        limit: Optional[int],
        min_score: Optional[float],
    ) -> Tuple[MatchDirection, int, float]:
        if not isinstance(query_entity_id, str) or not query_entity_id.strip():
            raise InvalidInput("Query entity id must be a non-empty string", field="query_entity_id",
                               value=query_entity_id)
        try:
            direction = MatchDirection(direction)
        except ValueError as e:
            raise InvalidInput(f"Unknown match direction: {direction}", field="direction", value=direction) from e
        limit = self.settings.default_limit if limit is None else limit
        if limit < 1:
            raise InvalidInput("limit must be at least 1", field="limit", value=limit)
        min_score = self.settings.default_min_score if min_score is None else min_score
        if not 0.0 <= min_score <= 1.0:
            raise InvalidInput("min_score must be between 0 and 1", field="min_score", value=min_score)
        return direction, limit, min_score

    async def _fetch_query_entity(self, entity_id: str, direction: MatchDirection) -> Record:
        if direction.source_scope == CorpusScope.CANDIDATES:
            getter = self.store.get_candidate
        else:
            getter = self.store.get_job
        entity = await self._call(lambda: getter(entity_id), f"get_{direction.source_scope.value}[{entity_id}]")
        if entity is None:
            raise EntityNotFound(f"No {direction.source_scope.value[:-1]} with id {entity_id}", entity_id=entity_id)
        if isinstance(entity, JobPosting) and not entity.is_active:
            raise InvalidInput(f"Job {entity_id} is {entity.status.value}", field="query_entity_id", value=entity_id)
        return entity

    async def _fetch_records(
        self, lexical: LexicalOutcome, direction: MatchDirection, run: MatchRun
    ) -> Dict[str, Record]:
        """Load the shortlisted records; unreadable ones become pair failures."""
        scope = direction.target_scope

        async def _load(doc_id: str) -> Optional[Record]:
            if scope == CorpusScope.JOBS:
                return await self.store.get_job(doc_id)
            return await self.store.get_candidate(doc_id)

        outcomes = await asyncio.gather(
            *(self._call(lambda doc_id=doc_id: _load(doc_id), f"get_{scope.value}[{doc_id}]")
              for doc_id in lexical.doc_ids),
            return_exceptions=True,
        )

        records: Dict[str, Record] = {}
        for doc_id, outcome in zip(lexical.doc_ids, outcomes):
            if isinstance(outcome, (CandidateProfile, JobPosting)):
                if isinstance(outcome, JobPosting) and not outcome.is_active:
                    logger.debug(f"Skipping inactive job {doc_id}")
                    continue
                records[doc_id] = outcome
                continue
            if outcome is None:
                reason = f"{scope.value[:-1]} {doc_id} no longer exists"
            elif isinstance(outcome, Exception):
                reason = f"could not load {scope.value[:-1]} {doc_id}: {outcome}"
            else:
                raise outcome
            run.failures.append(self._failure(reason, run.query_entity_id, doc_id, direction, outcome))
            logger.warning(f"PairScoringFailed: {reason}")
        return records

    async def _score_pairs(
        self,
        pairs: Sequence[_PairInput],
        direction: MatchDirection,
        lexical: LexicalOutcome,
        semantic: SemanticOutcome,
        blender: ScoreBlender,
        run: MatchRun,
    ) -> List[MatchResult]:
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def _bounded(pair: _PairInput) -> MatchResult:
            async with semaphore:
                return self._score_pair(pair, direction, lexical, semantic, blender)

        outcomes = await asyncio.gather(*(_bounded(pair) for pair in pairs), return_exceptions=True)
        results: List[MatchResult] = []
        for pair, outcome in zip(pairs, outcomes):
            if isinstance(outcome, MatchResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                failure = PairScoringFailed(
                    f"Scoring failed: {outcome}", candidate_id=pair.candidate.id, job_id=pair.job.id, cause=outcome
                )
                run.failures.append(failure)
                logger.warning(f"PairScoringFailed: {pair.candidate.id}/{pair.job.id}: {outcome!r}")
            else:
                raise outcome
        return results

    def _score_pair(
        self,
        pair: _PairInput,
        direction: MatchDirection,
        lexical: LexicalOutcome,
        semantic: SemanticOutcome,
        blender: ScoreBlender,
    ) -> MatchResult:
        candidate, job = pair.candidate, pair.job
        overlap = compute_skill_overlap(candidate.skills, job.required_skills, job.preferred_skills)
        attributes = score_attributes(candidate, job)
        semantic_similarity = semantic.scores.get(pair.doc_id, self.settings.neutral_semantic_score)
        blended = blender.blend(
            lexical_normalized=pair.lexical.normalized,
            semantic_similarity=semantic_similarity,
            skill_overlap=overlap.overlap_ratio,
            must_have_compliance=overlap.must_have_compliance,
            attributes=attributes,
        )

        degraded_stages = []
        if lexical.degraded is not None:
            degraded_stages.append(lexical.degraded.stage)
        if semantic.is_neutral(pair.doc_id):
            degraded_stages.append("semantic")

        return MatchResult(
            candidate_id=candidate.id,
            job_id=job.id,
            direction=direction,
            lexical_score=pair.lexical.score,
            lexical_normalized=pair.lexical.normalized,
            semantic_similarity=semantic_similarity,
            skill_overlap=overlap.overlap_ratio,
            must_have_compliance=overlap.must_have_compliance,
            hybrid_score=blended.hybrid,
            traditional_score=blended.traditional,
            final_score=blended.final,
            quality=blended.quality,
            skill_match_score=attributes.skills,
            experience_score=attributes.experience,
            education_score=attributes.education,
            certification_score=attributes.certifications,
            location_score=attributes.location,
            salary_score=attributes.salary,
            matched_skills=overlap.matched_skills,
            missing_skills=overlap.missing_skills,
            matched_certifications=attributes.matched_certifications,
            experience_gap=attributes.experience_gap,
            salary_gap=attributes.salary_gap,
            degraded_stages=degraded_stages,
        )

    async def _persist(self, results: Sequence[MatchResult]) -> None:
        for result in results:
            await self._call(
                lambda result=result: self.match_sink.upsert_match(result),
                f"upsert_match[{result.candidate_id}:{result.job_id}]",
            )

    async def _source_ids(self, direction: MatchDirection) -> List[str]:
        if direction.source_scope == CorpusScope.CANDIDATES:
            records = await self._call(lambda: self.store.fetch_candidates(), "fetch_candidates")
        else:
            records = await self._call(lambda: self.store.fetch_active_jobs(), "fetch_active_jobs")
        return [record.id for record in records]

    # -- helpers --------------------------------------------------------

    async def _call(self, func, operation: str):
        try:
            return await call_with_retries(
                func,
                operation=operation,
                attempts=self.settings.retry_attempts,
                timeout=self.settings.call_timeout,
                backoff=self.settings.retry_backoff,
            )
        except RetriesExhausted as e:
            raise UpstreamUnavailable(
                f"{operation} unavailable after {e.attempts} attempt(s)",
                operation=operation,
                attempts=e.attempts,
                cause=e.last_error,
            ) from e

    @staticmethod
    def _pair(query: Record, record: Record, hit: LexicalHit, direction: MatchDirection) -> _PairInput:
        if direction == MatchDirection.CANDIDATE_TO_JOB:
            return _PairInput(doc_id=hit.doc_id, candidate=query, job=record, lexical=hit)
        return _PairInput(doc_id=hit.doc_id, candidate=record, job=query, lexical=hit)

    @staticmethod
    def _failure(
        reason: str, query_id: str, doc_id: str, direction: MatchDirection, cause: object
    ) -> PairScoringFailed:
        if direction == MatchDirection.CANDIDATE_TO_JOB:
            candidate_id, job_id = query_id, doc_id
        else:
            candidate_id, job_id = doc_id, query_id
        return PairScoringFailed(
            reason,
            candidate_id=candidate_id,
            job_id=job_id,
            cause=cause if isinstance(cause, Exception) else None,
        )


__all__ = ["BatchReport", "MatchRun", "MatchingEngine", "Stage", "rank_results"]
