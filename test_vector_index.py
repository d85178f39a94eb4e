#!/usr/bin/env python3
"""
Tests for the dense vector index: batching, atomic swaps and failure handling
"""
import asyncio

import numpy as np
import pytest

from dragon_kb.rag.corpus import Chunk, SourceTag
from dragon_kb.rag.errors import EmbeddingUnavailable
from dragon_kb.rag.vector_index import VectorIndex, cosine_scores
from kb_fakes import FakeEmbedder


def _chunks(*texts):
    return [Chunk(id=f"kb_{i}", text=t, source_tag=SourceTag.USER) for i, t in enumerate(texts)]


CHUNKS = _chunks(
    "express server listen",
    "css container padding",
    "weather api fetch",
    "html starter template",
    "dragon knowledge base",
)


def test_build_batches_and_truncates():
    index = VectorIndex()
    embedder = FakeEmbedder()
    long_chunk = _chunks("x" * 50)
    snapshot = asyncio.run(index.build(CHUNKS + long_chunk, embedder, batch_size=2, max_chars=10))

    assert [len(batch) for batch in embedder.calls] == [2, 2, 2]
    assert len(snapshot) == 6
    assert snapshot.entries[-1].text == "x" * 10
    assert snapshot.dimension == 64
    assert index.snapshot is snapshot
    assert not snapshot.matrix.flags.writeable


def test_rebuild_is_deterministic():
    index = VectorIndex()
    first = asyncio.run(index.build(CHUNKS, FakeEmbedder(), batch_size=2))
    second = asyncio.run(index.build(CHUNKS, FakeEmbedder(), batch_size=2))
    assert len(first) == len(second)
    assert [e.vector for e in first.entries] == [e.vector for e in second.entries]
    assert index.snapshot is second


def test_failed_build_keeps_absent_snapshot():
    index = VectorIndex()
    with pytest.raises(EmbeddingUnavailable):
        asyncio.run(index.build(CHUNKS, FakeEmbedder(fail_on_call=2), batch_size=2))
    assert index.snapshot is None


def test_failed_build_keeps_previous_snapshot_visible_to_search():
    index = VectorIndex()
    previous = asyncio.run(index.build(CHUNKS[:2], FakeEmbedder(), batch_size=2))
    seen_during_build = []

    class WatchingEmbedder(FakeEmbedder):
        async def __call__(self, texts):
            seen_during_build.append(index.snapshot)
            return await super().__call__(texts)

    with pytest.raises(EmbeddingUnavailable):
        asyncio.run(index.build(CHUNKS, WatchingEmbedder(fail_on_call=2), batch_size=2))

    assert index.snapshot is previous
    assert seen_during_build and all(s is previous for s in seen_during_build)
    hits = asyncio.run(index.search("express server", FakeEmbedder(), top_k=5))
    assert {h.chunk.id for h in hits} <= {"kb_0", "kb_1"}


def test_malformed_embedding_response_aborts_build():
    async def too_few(texts):
        return [[1.0, 0.0]] * (len(texts) - 1)

    async def ragged(texts):
        return [[1.0] * (i + 1) for i in range(len(texts))]

    index = VectorIndex()
    for bad in (too_few, ragged):
        with pytest.raises(EmbeddingUnavailable):
            asyncio.run(index.build(CHUNKS, bad, batch_size=3))
    assert index.snapshot is None


def test_concurrent_builds_are_queued_and_last_wins():
    index = VectorIndex()

    class SlowEmbedder(FakeEmbedder):
        async def __call__(self, texts):
            await asyncio.sleep(0)
            return await super().__call__(texts)

    async def run_both():
        return await asyncio.gather(
            index.build(CHUNKS[:2], SlowEmbedder(), batch_size=1),
            index.build(CHUNKS, SlowEmbedder(), batch_size=1),
        )

    first, second = asyncio.run(run_both())
    assert len(first) == 2
    assert len(second) == len(CHUNKS)
    assert index.snapshot is second


def test_search_ranks_by_cosine():
    index = VectorIndex()
    asyncio.run(index.build(CHUNKS, FakeEmbedder(), batch_size=2))
    hits = asyncio.run(index.search("dragon knowledge base", FakeEmbedder(), top_k=3))
    assert len(hits) == 3
    assert hits[0].chunk.id == "kb_4"
    assert hits[0].score == pytest.approx(1.0)
    assert hits[0].score >= hits[1].score >= hits[2].score


def test_search_never_raises():
    index = VectorIndex()
    assert asyncio.run(index.search("anything", FakeEmbedder(), top_k=3)) == []

    asyncio.run(index.build(CHUNKS, FakeEmbedder(), batch_size=2))
    assert asyncio.run(index.search("anything", FakeEmbedder(fail_on_call=1), top_k=3)) == []
    assert asyncio.run(index.search("anything", FakeEmbedder(dim=4), top_k=3)) == []
    assert asyncio.run(index.search("anything", None, top_k=3)) == []


def test_search_truncates_long_queries(monkeypatch):
    from dragon_kb import config

    monkeypatch.setattr(config, "QUERY_MAX_CHARS", 5)
    index = VectorIndex()
    asyncio.run(index.build(CHUNKS, FakeEmbedder(), batch_size=5))
    embedder = FakeEmbedder()
    asyncio.run(index.search("dragon knowledge base", embedder, top_k=1))
    assert embedder.calls == [["drago"]]


def test_cosine_scores_handles_zero_vectors():
    matrix = np.array([[1.0, 0.0], [0.0, 0.0], [-1.0, 0.0]])
    scores = cosine_scores(np.array([2.0, 0.0]), matrix)
    assert scores.tolist() == [1.0, 0.0, -1.0]
    assert cosine_scores(np.zeros(2), matrix).tolist() == [0.0, 0.0, 0.0]


def test_contended_builds_across_event_loops():
    index = VectorIndex()

    class SlowEmbedder(FakeEmbedder):
        async def __call__(self, texts):
            await asyncio.sleep(0)
            return await super().__call__(texts)

    async def run_both(chunks):
        return await asyncio.gather(
            index.build(chunks[:1], SlowEmbedder(), batch_size=1),
            index.build(chunks, SlowEmbedder(), batch_size=1),
        )

    asyncio.run(run_both(CHUNKS[:3]))
    _, last = asyncio.run(run_both(CHUNKS))
    assert index.snapshot is last
    assert len(last) == len(CHUNKS)
