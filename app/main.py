"""FastAPI application exposing the talentrank matching engine."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from talentrank.config import ScoringWeights, Settings, get_settings
from talentrank.embeddings import embed_corpus
from talentrank.engine import MatchingEngine
from talentrank.exceptions import EntityNotFound, InvalidInput, MatchingError, UpstreamUnavailable
from talentrank.logging_config import configure_from_settings, get_logger
from talentrank.models import CandidateProfile, JobPosting, MatchDirection, MatchResult
from talentrank.store import InMemoryStore, SQLiteMatchRepository

logger = get_logger(__name__)


class MatchRequest(BaseModel):
    entity_id: str = Field(..., min_length=1, description="Candidate or job issuing the query")
    direction: MatchDirection = Field(..., description="Which side of the pair issues the query")
    limit: Optional[int] = Field(default=None, ge=1, le=200, description="Maximum number of results")
    min_score: Optional[float] = Field(default=None, ge=0, le=1, description="Minimum final score")
    weights: Optional[ScoringWeights] = Field(
        default=None, description="Override the default scoring weights for this request"
    )


class MatchResponse(BaseModel):
    results: List[MatchResult]
    degradations: List[Dict[str, Any]] = Field(default_factory=list)
    failures: List[Dict[str, Any]] = Field(default_factory=list)
    shortlist_size: int = 0


class BatchRequest(BaseModel):
    direction: MatchDirection
    limit: Optional[int] = Field(default=None, ge=1, le=200)
    min_score: Optional[float] = Field(default=None, ge=0, le=1)


class BatchResponse(BaseModel):
    processed_ids: List[str]
    failed_ids: List[str]
    total_persisted: int
    cancelled: bool


class LoadResponse(BaseModel):
    loaded: int
    embedded: int
    embedding_failures: int


def _status_for(error: MatchingError) -> int:
    if isinstance(error, EntityNotFound):
        return 404
    if isinstance(error, InvalidInput):
        return 400
    if isinstance(error, UpstreamUnavailable):
        return 503
    return 500


def create_app(settings: Optional[Settings] = None, store: Optional[InMemoryStore] = None) -> FastAPI:
    """Build the API around one in-memory corpus and one engine."""
    settings = settings or get_settings()
    store = store or InMemoryStore()
    match_sink = None
    if settings.sqlite_path:
        # Lock waits end before the per-call timeout does.
        match_sink = SQLiteMatchRepository(settings.sqlite_path, timeout=settings.call_timeout / 2)
    engine = MatchingEngine(store, settings=settings, match_sink=match_sink)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_from_settings(settings)
        yield
        if match_sink is not None:
            match_sink.close()

    app = FastAPI(
        title="talentrank Matching API",
        description=(
            "Rank candidates against job postings, and job postings against "
            "candidates, with hybrid lexical, semantic and rule-based scoring."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.engine = engine

    @app.exception_handler(MatchingError)
    async def _matching_error_handler(request: Request, exc: MatchingError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.get("/health", summary="Service health probe")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/matches", response_model=MatchResponse, summary="Rank matches for one candidate or job")
    async def matches(request: MatchRequest) -> MatchResponse:
        run = await engine.run_matching(
            request.entity_id,
            request.direction,
            limit=request.limit,
            min_score=request.min_score,
            weights=request.weights,
        )
        return MatchResponse(
            results=run.results,
            degradations=[degraded.to_dict() for degraded in run.degradations],
            failures=[failure.to_dict() for failure in run.failures],
            shortlist_size=run.shortlist_size,
        )

    @app.post("/batch", response_model=BatchResponse, summary="Match every entity of one side")
    async def batch(request: BatchRequest) -> BatchResponse:
        report = await engine.run_batch(request.direction, limit=request.limit, min_score=request.min_score)
        return BatchResponse(
            processed_ids=report.processed_ids,
            failed_ids=report.failed_ids,
            total_persisted=report.total_persisted,
            cancelled=report.cancelled,
        )

    @app.post("/candidates", response_model=LoadResponse, summary="Load candidate profiles")
    async def load_candidates(candidates: List[CandidateProfile]) -> LoadResponse:
        embedded, failed = await embed_corpus(
            candidates,
            engine.embedder,
            chunk_size=settings.batch_chunk_size,
            chunk_delay=settings.batch_chunk_delay,
        )
        for candidate in candidates:
            store.add_candidate(candidate)
        logger.info(f"Loaded {len(candidates)} candidates")
        return LoadResponse(loaded=len(candidates), embedded=embedded, embedding_failures=failed)

    @app.post("/jobs", response_model=LoadResponse, summary="Load job postings")
    async def load_jobs(jobs: List[JobPosting]) -> LoadResponse:
        embedded, failed = await embed_corpus(
            jobs,
            engine.embedder,
            chunk_size=settings.batch_chunk_size,
            chunk_delay=settings.batch_chunk_delay,
        )
        for job in jobs:
            store.add_job(job)
        logger.info(f"Loaded {len(jobs)} jobs")
        return LoadResponse(loaded=len(jobs), embedded=embedded, embedding_failures=failed)

    return app


app = create_app()
