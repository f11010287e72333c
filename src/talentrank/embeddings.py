"""
Embedding providers for the semantic retrieval stage.

Every provider exposes ``async embed(text) -> list[float]`` and raises
:class:`EmbeddingError` when it cannot produce a vector.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
import ollama

from .config import Settings
from .exceptions import EmbeddingError
from .logging_config import get_logger
from .models import CandidateProfile, JobPosting

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9+#.]*")

# nomic-embed-text handles roughly 32k characters
MAX_EMBED_CHARS = 30000


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


def clean_text(text: str) -> str:
    """Collapse whitespace and truncate overly long input."""
    if not text:
        return ""
    cleaned = " ".join(text.split())
    if len(cleaned) > MAX_EMBED_CHARS:
        logger.debug(f"Text truncated to {MAX_EMBED_CHARS} characters for embedding")
        cleaned = cleaned[:MAX_EMBED_CHARS]
    return cleaned


class HashingEmbedder:
    """Deterministic feature-hashing embedder.

    Each token is hashed to a dimension and a sign; the resulting vector is
    L2-normalized. Identical input always gives the identical vector, which
    makes it suitable for tests and offline runs.
    """

    def __init__(self, dim: int = 384) -> None:
        self.dim = dim

    async def embed(self, text: str) -> List[float]:
        return self.embed_sync(text)

    def embed_sync(self, text: str) -> List[float]:
        tokens = _TOKEN_RE.findall(clean_text(text).lower())
        if not tokens:
            raise EmbeddingError("Empty text provided for embedding", model_name="hashing")

        vector = np.zeros(self.dim, dtype=np.float64)
        for token in tokens:
            digest = hashlib.md5(token.encode("utf-8")).hexdigest()
            index = int(digest[:8], 16) % self.dim
            sign = 1.0 if int(digest[8], 16) % 2 == 0 else -1.0
            vector[index] += sign
        norm = float(np.linalg.norm(vector))
        if norm == 0.0:
            raise EmbeddingError("Embedding collapsed to the zero vector", model_name="hashing")
        return (vector / norm).tolist()


class OllamaEmbedder:
    """Embeds text through a local Ollama server."""

    def __init__(self, host: str = "http://localhost:11434", model: str = "nomic-embed-text",
                 timeout: Optional[float] = 30.0) -> None:
        self.host = host
        self.model = model
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str) -> List[float]:
        cleaned = clean_text(text)
        if not cleaned:
            raise EmbeddingError("Empty text provided for embedding", model_name=self.model)
        try:
            response = await self.client.embeddings(model=self.model, prompt=cleaned)
        except Exception as e:
            raise EmbeddingError(f"Ollama embedding request failed: {e}", model_name=self.model, cause=e) from e

        embedding = response["embedding"] if response else None
        if not embedding:
            raise EmbeddingError("No embedding returned from Ollama", model_name=self.model)
        return [float(value) for value in embedding]


class CachingEmbedder:
    """Memoizes another provider by exact input text."""

    def __init__(self, inner: Embedder, max_entries: int = 4096) -> None:
        self.inner = inner
        self.max_entries = max_entries
        self._cache: Dict[str, List[float]] = {}
        self.hits = 0
        self.misses = 0

    async def embed(self, text: str) -> List[float]:
        cached = self._cache.get(text)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        vector = await self.inner.embed(text)
        if len(self._cache) >= self.max_entries:
            # drop the oldest entry
            self._cache.pop(next(iter(self._cache)))
        self._cache[text] = vector
        return vector


def build_embedder(settings: Settings) -> Embedder:
    """Create the provider named by ``settings.embedding_provider``."""
    if settings.embedding_provider == "ollama":
        inner: Embedder = OllamaEmbedder(
            host=settings.ollama_host, model=settings.ollama_model, timeout=settings.call_timeout
        )
    else:
        inner = HashingEmbedder(dim=settings.embedding_dim)
    return CachingEmbedder(inner)


async def embed_corpus(
    records: Sequence[Union[CandidateProfile, JobPosting]],
    embedder: Embedder,
    *,
    force_regenerate: bool = False,
    chunk_size: int = 10,
    chunk_delay: float = 0.1,
) -> Tuple[int, int]:
    """
    Fill in missing embeddings for candidates or jobs.

    Records are embedded concurrently within a chunk, with ``chunk_delay``
    seconds between chunks to respect provider rate limits.

    Args:
        records: Profiles or postings to embed; updated in place
        embedder: Provider used to compute vectors
        force_regenerate: Re-embed records that already have a vector
        chunk_size: Records per chunk
        chunk_delay: Pause between chunks in seconds

    Returns:
        ``(succeeded, failed)`` counts
    """
    pending = [record for record in records if force_regenerate or not record.embedding]
    if not pending:
        logger.info("All records already have embeddings")
        return 0, 0

    logger.info(f"Generating embeddings for {len(pending)} records...")
    succeeded = 0
    failed = 0

    async def _embed_one(record: Union[CandidateProfile, JobPosting]) -> bool:
        try:
            record.embedding = await embedder.embed(record.query_text())
            return True
        except EmbeddingError as e:
            logger.warning(f"Error generating embedding for {record.id}: {e.message}")
            return False

    for start in range(0, len(pending), chunk_size):
        chunk = pending[start:start + chunk_size]
        outcomes = await asyncio.gather(*(_embed_one(record) for record in chunk))
        succeeded += sum(1 for ok in outcomes if ok)
        failed += sum(1 for ok in outcomes if not ok)
        if start + chunk_size < len(pending) and chunk_delay > 0:
            await asyncio.sleep(chunk_delay)

    logger.info(f"Embedding generation completed. Success: {succeeded}, Failed: {failed}")
    return succeeded, failed


__all__ = [
    "CachingEmbedder",
    "Embedder",
    "HashingEmbedder",
    "OllamaEmbedder",
    "build_embedder",
    "clean_text",
    "embed_corpus",
]
