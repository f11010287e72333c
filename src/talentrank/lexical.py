"""
Lexical retrieval stage.

``BM25Index`` is an in-process inverted index that can stand in for a
database full-text ranking function. ``LexicalRetriever`` asks a ranking
accessor for a bounded shortlist and, when that accessor fails or finds
nothing, falls back to every active document with a neutral score so that
the rest of the pipeline still runs.
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Set, Tuple

from .config import Settings
from .exceptions import RetrievalDegraded, UpstreamUnavailable
from .logging_config import get_logger
from .models import CorpusScope
from .retry import RetriesExhausted, call_with_retries

logger = get_logger(__name__)

# Keeps "c++", "c#" and "node.js" intact.
_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9+#]*(?:\.[a-z0-9+#]+)*")

STOPWORDS = frozenset(
    """
    a about above after again against all am an and any are as at be because been
    before being below between both but by can did do does doing down during each
    few for from further had has have having he her here hers herself him himself
    his how i if in into is it its itself just me more most my myself no nor not
    now of off on once only or other our ours ourselves out over own same she
    should so some such than that the their theirs them themselves then there
    these they this those through to too under until up very was we were what
    when where which while who whom why will with would you your yours yourself
    yourselves etc using use used work working experience years year strong
    """.split()
)


def tokenize(text: str) -> List[str]:
    """Lowercase ``text`` and split it into index terms, dropping stopwords."""
    if not text:
        return []
    return [token for token in _TOKEN_RE.findall(text.lower()) if token not in STOPWORDS]


class BM25Index:
    """Okapi BM25 over an in-memory document collection."""

    def __init__(self, k1: float = 1.5, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self._term_freqs: Dict[str, Counter] = {}
        self._lengths: Dict[str, int] = {}
        self._doc_freqs: Counter = Counter()
        self._total_length = 0

    def __len__(self) -> int:
        return len(self._lengths)

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self._lengths

    def add(self, doc_id: str, text: str) -> None:
        """Index ``text`` under ``doc_id``, replacing any previous version."""
        if doc_id in self._lengths:
            self.remove(doc_id)
        tokens = tokenize(text)
        freqs = Counter(tokens)
        self._term_freqs[doc_id] = freqs
        self._lengths[doc_id] = len(tokens)
        self._total_length += len(tokens)
        self._doc_freqs.update(freqs.keys())

    def remove(self, doc_id: str) -> None:
        freqs = self._term_freqs.pop(doc_id, None)
        if freqs is None:
            return
        self._total_length -= self._lengths.pop(doc_id)
        for term in freqs:
            self._doc_freqs[term] -= 1
            if self._doc_freqs[term] <= 0:
                del self._doc_freqs[term]

    def idf(self, term: str) -> float:
        n = len(self._lengths)
        df = self._doc_freqs.get(term, 0)
        return math.log(1 + (n - df + 0.5) / (df + 0.5))

    def score(self, query: str, doc_id: str) -> float:
        terms = list(dict.fromkeys(tokenize(query)))
        return self._score_terms(terms, doc_id)

    def rank(
        self,
        query: str,
        limit: int,
        allowed_ids: Optional[Set[str]] = None,
    ) -> List[Tuple[str, float]]:
        """Return up to ``limit`` ``(doc_id, score)`` pairs with a positive score.

        Results are ordered by descending score, then by document id.
        """
        terms = list(dict.fromkeys(tokenize(query)))
        if not terms or not self._lengths:
            return []

        candidates: Set[str] = set()
        for doc_id, freqs in self._term_freqs.items():
            if allowed_ids is not None and doc_id not in allowed_ids:
                continue
            if any(term in freqs for term in terms):
                candidates.add(doc_id)

        scored = [(doc_id, self._score_terms(terms, doc_id)) for doc_id in candidates]
        scored = [(doc_id, score) for doc_id, score in scored if score > 0]
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[: max(0, limit)]

    def _score_terms(self, terms: Iterable[str], doc_id: str) -> float:
        freqs = self._term_freqs.get(doc_id)
        if not freqs:
            return 0.0
        avgdl = self._total_length / len(self._lengths) if self._lengths else 0.0
        dl = self._lengths[doc_id]
        norm = self.k1 * (1 - self.b + self.b * dl / avgdl) if avgdl else self.k1
        total = 0.0
        for term in terms:
            f = freqs.get(term, 0)
            if f == 0:
                continue
            total += self.idf(term) * (f * (self.k1 + 1)) / (f + norm)
        return total


class LexicalRanker(Protocol):
    """Full-text ranking accessor of the store."""

    async def lexical_rank(self, query_text: str, scope: CorpusScope, limit: int) -> List[Tuple[str, float]]:
        ...

    async def active_ids(self, scope: CorpusScope) -> List[str]:
        ...


@dataclass(frozen=True)
class LexicalHit:
    doc_id: str
    score: float
    normalized: float


@dataclass
class LexicalOutcome:
    hits: List[LexicalHit] = field(default_factory=list)
    degraded: Optional[RetrievalDegraded] = None

    @property
    def doc_ids(self) -> List[str]:
        return [hit.doc_id for hit in self.hits]


class LexicalRetriever:
    """Produces the bounded shortlist every later stage works on."""

    def __init__(self, ranker: LexicalRanker, settings: Optional[Settings] = None) -> None:
        self.ranker = ranker
        self.settings = settings or Settings()

    async def retrieve(self, query_text: str, scope: CorpusScope, limit: Optional[int] = None) -> LexicalOutcome:
        """
        Rank the active documents of ``scope`` against ``query_text``.

        Args:
            query_text: Free text plus space-joined skills of the querying entity
            scope: Corpus to search
            limit: Maximum shortlist size (defaults to ``settings.shortlist_size``)

        Returns:
            A :class:`LexicalOutcome`. ``degraded`` is set when the fallback
            path produced the hits.

        Raises:
            UpstreamUnavailable: when the fallback corpus listing fails too
        """
        limit = limit or self.settings.shortlist_size
        if not tokenize(query_text):
            return await self._fallback(scope, limit, "query has no searchable terms", None)

        reason = None
        cause: Optional[BaseException] = None
        try:
            rows = await call_with_retries(
                lambda: self.ranker.lexical_rank(query_text, scope, limit),
                operation=f"lexical_rank[{scope.value}]",
                attempts=self.settings.retry_attempts,
                timeout=self.settings.call_timeout,
                backoff=self.settings.retry_backoff,
            )
        except RetriesExhausted as e:
            rows = []
            reason = f"lexical ranking unavailable: {e.last_error!r}"
            cause = e.last_error

        if rows:
            return LexicalOutcome(hits=_normalize(rows[:limit]))
        if reason is None:
            reason = "lexical ranking returned no rows"
        return await self._fallback(scope, limit, reason, cause)

    async def _fallback(
        self, scope: CorpusScope, limit: int, reason: str, cause: Optional[BaseException]
    ) -> LexicalOutcome:
        try:
            doc_ids = await call_with_retries(
                lambda: self.ranker.active_ids(scope),
                operation=f"active_ids[{scope.value}]",
                attempts=self.settings.retry_attempts,
                timeout=self.settings.call_timeout,
                backoff=self.settings.retry_backoff,
            )
        except RetriesExhausted as e:
            raise UpstreamUnavailable(
                f"Cannot list active {scope.value}", operation="active_ids", attempts=e.attempts, cause=e.last_error
            ) from e

        neutral = self.settings.neutral_lexical_score
        shortlisted = sorted(doc_ids)[:limit]
        degraded = RetrievalDegraded(
            reason, stage="lexical", affected_ids=shortlisted, neutral_score=neutral, cause=cause
        )
        logger.warning(
            f"RetrievalDegraded: {reason}; falling back to {len(shortlisted)} active {scope.value} "
            f"with neutral lexical score {neutral}"
        )
        hits = [LexicalHit(doc_id=doc_id, score=0.0, normalized=neutral) for doc_id in shortlisted]
        return LexicalOutcome(hits=hits, degraded=degraded)


def _normalize(rows: List[Tuple[str, float]]) -> List[LexicalHit]:
    top = max((score for _, score in rows), default=0.0)
    hits = []
    for doc_id, score in rows:
        normalized = score / top if top > 0 else 0.0
        hits.append(LexicalHit(doc_id=doc_id, score=max(0.0, float(score)), normalized=min(1.0, max(0.0, normalized))))
    return hits


__all__ = [
    "BM25Index",
    "LexicalHit",
    "LexicalOutcome",
    "LexicalRanker",
    "LexicalRetriever",
    "STOPWORDS",
    "tokenize",
]
