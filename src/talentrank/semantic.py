"""
Semantic retrieval stage.

Scores only the lexical shortlist: one embedding is computed for the query
and compared with each shortlisted document's stored embedding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from .config import Settings
from .embeddings import Embedder, clean_text
from .exceptions import RetrievalDegraded
from .logging_config import get_logger
from .retry import RetriesExhausted, call_with_retries

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    """Cosine similarity clamped to [0, 1].

    Returns ``None`` when the vectors cannot be compared (empty, different
    lengths or zero norm).
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or va.shape != vb.shape:
        return None
    den = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if den == 0.0:
        return None
    num = float(np.dot(va, vb))
    return max(0.0, min(1.0, num / den))


@dataclass
class SemanticOutcome:
    scores: Dict[str, float] = field(default_factory=dict)
    missing_ids: List[str] = field(default_factory=list)
    degraded: Optional[RetrievalDegraded] = None

    def is_neutral(self, doc_id: str) -> bool:
        return self.degraded is not None or doc_id in self.missing_ids


class SemanticRetriever:
    """Cosine similarity between a query embedding and shortlisted documents."""

    def __init__(self, embedder: Embedder, settings: Optional[Settings] = None) -> None:
        self.embedder = embedder
        self.settings = settings or Settings()

    async def score(
        self,
        query_text: str,
        shortlist: Sequence[str],
        document_embeddings: Mapping[str, Optional[Sequence[float]]],
    ) -> SemanticOutcome:
        """
        Score each shortlisted document against the query.

        Args:
            query_text: Text of the querying entity
            shortlist: Document ids from the lexical stage
            document_embeddings: Stored embedding per document id (``None``
                when the document has none)

        Returns:
            A :class:`SemanticOutcome` with a score in [0, 1] for every
            shortlisted id. Documents without a usable embedding get the
            neutral score and are listed in ``missing_ids``; if the query
            cannot be embedded every document gets the neutral score and
            ``degraded`` is set.
        """
        neutral = self.settings.neutral_semantic_score
        if not shortlist:
            return SemanticOutcome()

        if not clean_text(query_text):
            return self._degraded("query has no text to embed", shortlist, None)

        try:
            query_vector = await call_with_retries(
                lambda: self.embedder.embed(query_text),
                operation="embed[query]",
                attempts=self.settings.retry_attempts,
                timeout=self.settings.call_timeout,
                backoff=self.settings.retry_backoff,
            )
        except RetriesExhausted as e:
            return self._degraded(f"query embedding failed: {e.last_error!r}", shortlist, e.last_error)

        outcome = SemanticOutcome()
        for doc_id in shortlist:
            vector = document_embeddings.get(doc_id)
            similarity = cosine_similarity(query_vector, vector) if vector else None
            if similarity is None:
                outcome.missing_ids.append(doc_id)
                outcome.scores[doc_id] = neutral
            else:
                outcome.scores[doc_id] = similarity

        if outcome.missing_ids:
            logger.info(
                f"{len(outcome.missing_ids)} of {len(shortlist)} shortlisted documents have no usable embedding; "
                f"scored neutral ({neutral})"
            )
        return outcome

    def _degraded(
        self, reason: str, shortlist: Sequence[str], cause: Optional[BaseException]
    ) -> SemanticOutcome:
        neutral = self.settings.neutral_semantic_score
        logger.warning(
            f"RetrievalDegraded: {reason}; using neutral semantic score {neutral} for {len(shortlist)} documents"
        )
        return SemanticOutcome(
            scores={doc_id: neutral for doc_id in shortlist},
            degraded=RetrievalDegraded(
                reason, stage="semantic", affected_ids=list(shortlist), neutral_score=neutral, cause=cause
            ),
        )


__all__ = ["SemanticOutcome", "SemanticRetriever", "cosine_similarity"]
