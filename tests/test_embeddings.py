"""Tests for the embedding providers."""

from __future__ import annotations

import asyncio
from typing import List

import numpy as np
import pytest

from talentrank.config import Settings
from talentrank.embeddings import (
    MAX_EMBED_CHARS,
    CachingEmbedder,
    HashingEmbedder,
    OllamaEmbedder,
    build_embedder,
    clean_text,
    embed_corpus,
)
from talentrank.exceptions import EmbeddingError
from talentrank.models import CandidateProfile, JobPosting


class _CountingEmbedder:
    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        if "fail" in text:
            raise EmbeddingError("cannot embed", model_name="counting")
        return [float(len(text)), 1.0]


def test_clean_text_collapses_whitespace_and_truncates() -> None:
    assert clean_text("  python \n\t developer ") == "python developer"
    assert clean_text("") == ""
    assert len(clean_text("x" * (MAX_EMBED_CHARS + 50))) == MAX_EMBED_CHARS


def test_hashing_embedder_is_deterministic_and_normalized() -> None:
    embedder = HashingEmbedder(dim=32)

    first = embedder.embed_sync("Python developer with Django")
    second = asyncio.run(embedder.embed("Python developer with Django"))

    assert first == second
    assert len(first) == 32
    assert np.linalg.norm(first) == pytest.approx(1.0)


def test_hashing_embedder_rejects_empty_text() -> None:
    with pytest.raises(EmbeddingError):
        HashingEmbedder().embed_sync("   ")


def test_caching_embedder_reuses_vectors() -> None:
    inner = _CountingEmbedder()
    cache = CachingEmbedder(inner, max_entries=1)

    asyncio.run(cache.embed("python"))
    asyncio.run(cache.embed("python"))
    asyncio.run(cache.embed("go"))
    asyncio.run(cache.embed("python"))

    assert inner.calls == 3
    assert cache.hits == 1
    assert cache.misses == 3


def test_build_embedder_selects_provider() -> None:
    hashing = build_embedder(Settings(embedding_dim=16))
    ollama_backed = build_embedder(Settings(embedding_provider="ollama", ollama_model="all-minilm"))

    assert isinstance(hashing, CachingEmbedder)
    assert isinstance(hashing.inner, HashingEmbedder)
    assert hashing.inner.dim == 16
    assert isinstance(ollama_backed.inner, OllamaEmbedder)
    assert ollama_backed.inner.model == "all-minilm"


def test_embed_corpus_fills_missing_embeddings_only() -> None:
    embedder = _CountingEmbedder()
    records = [
        CandidateProfile(id="c-1", headline="Python developer"),
        CandidateProfile(id="c-2", headline="Go developer", embedding=[0.1, 0.2]),
        JobPosting(id="j-1", title="Please fail this one"),
    ]

    succeeded, failed = asyncio.run(embed_corpus(records, embedder, chunk_size=1, chunk_delay=0))

    assert (succeeded, failed) == (1, 1)
    assert records[0].embedding is not None
    assert records[1].embedding == [0.1, 0.2]
    assert records[2].embedding is None


def test_embed_corpus_force_regenerate() -> None:
    embedder = _CountingEmbedder()
    records = [CandidateProfile(id="c-1", headline="Go developer", embedding=[0.1, 0.2])]

    succeeded, failed = asyncio.run(embed_corpus(records, embedder, force_regenerate=True, chunk_delay=0))

    assert (succeeded, failed) == (1, 0)
    assert records[0].embedding != [0.1, 0.2]
