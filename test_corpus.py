#!/usr/bin/env python3
"""
Tests for the corpus manager: seeding, free-text splitting, QA pairs and persistence
"""
import json

import pytest

from dragon_kb.kv_store import MemoryKeyValueStore
from dragon_kb.rag.corpus import Corpus, Outcome, SourceTag, split_free_text
from dragon_kb.rag.errors import InvalidInput
from dragon_kb.rag.seed import SEED_CHUNKS


def test_add_free_text_splits_on_blank_lines():
    corpus = Corpus()
    added = corpus.add_free_text("A\n\nB\n\n\nC")
    assert added == 3
    chunks = corpus.snapshot()
    assert [c.text for c in chunks] == ["A", "B", "C"]
    assert all(c.source_tag is SourceTag.USER for c in chunks)
    assert len({c.id for c in chunks}) == 3


def test_split_trims_and_treats_whitespace_lines_as_blank():
    assert split_free_text("  first line\nsecond line  \n   \n\tthird  ") == [
        "first line\nsecond line",
        "third",
    ]


def test_whitespace_only_text_is_rejected():
    corpus = Corpus()
    with pytest.raises(InvalidInput):
        corpus.add_free_text("   ")
    with pytest.raises(InvalidInput):
        corpus.add_free_text("\n\n \n")
    assert len(corpus) == 0


def test_seed_if_empty_is_idempotent():
    corpus = Corpus()
    assert corpus.seed_if_empty() == len(SEED_CHUNKS)
    assert corpus.seed_if_empty() == 0
    chunks = corpus.snapshot()
    assert len(chunks) == len(SEED_CHUNKS)
    assert all(c.source_tag is SourceTag.BUILTIN for c in chunks)
    assert chunks[0].text.startswith("Topic: HTML starter page template\n")


def test_seed_never_overwrites_user_content():
    corpus = Corpus()
    corpus.add_free_text("my own note")
    assert corpus.seed_if_empty() == 0
    assert [c.text for c in corpus.snapshot()] == ["my own note"]


def test_snapshot_is_builtin_first_and_unaffected_by_later_appends():
    corpus = Corpus()
    corpus.add_free_text("user note")
    before = corpus.snapshot()
    corpus.add_free_text("another note")
    assert len(before) == 1
    assert len(corpus.snapshot()) == 2

    seeded = Corpus()
    seeded.seed_if_empty()
    seeded.add_free_text("user note")
    tags = [c.source_tag for c in seeded.snapshot()]
    assert tags == [SourceTag.BUILTIN] * len(SEED_CHUNKS) + [SourceTag.USER]


def test_save_qa_pair_renders_structured_text():
    corpus = Corpus()
    chunk = corpus.save_qa_pair("How do I center a div?", "Use flexbox.", Outcome.HELPFUL)
    assert chunk.text == "Type: helpful\nQuestion: How do I center a div?\nAnswer: Use flexbox."
    assert chunk.id.startswith("kb_pair_")
    assert chunk.source_tag is SourceTag.USER
    assert corpus.snapshot() == (chunk,)

    other = corpus.save_qa_pair("q", "a", "not_helpful")
    assert other.text.startswith("Type: not_helpful\n")


def test_save_qa_pair_requires_question_and_answer():
    corpus = Corpus()
    with pytest.raises(InvalidInput):
        corpus.save_qa_pair("  ", "answer", Outcome.HELPFUL)
    with pytest.raises(InvalidInput):
        corpus.save_qa_pair("question", "", Outcome.NOT_HELPFUL)
    assert len(corpus) == 0


def test_persistence_round_trip():
    store = MemoryKeyValueStore()
    corpus = Corpus(store=store, storage_key="kb")
    corpus.seed_if_empty()
    corpus.add_free_text("alpha\n\nbeta")

    records = json.loads(store.get("kb"))
    assert len(records) == len(SEED_CHUNKS) + 2
    assert {r["source_tag"] for r in records} == {"Builtin", "User"}

    reloaded = Corpus.load(store, "kb")
    assert reloaded.snapshot() == corpus.snapshot()


def test_corrupt_storage_loads_as_empty():
    for raw in ["{not json", json.dumps({"id": "x"}), "42"]:
        store = MemoryKeyValueStore({"kb": raw})
        corpus = Corpus.load(store, "kb")
        assert len(corpus) == 0
        assert corpus.seed_if_empty() == len(SEED_CHUNKS)


def test_malformed_records_are_skipped_and_legacy_tags_inferred():
    raw = json.dumps([
        {"id": "dragon_1", "text": "builtin by prefix"},
        {"id": "kb_1", "text": "user by prefix"},
        {"id": "seed_x", "text": "explicit", "source_tag": "Builtin"},
        {"id": "broken"},
        "not a record",
    ])
    corpus = Corpus.load(MemoryKeyValueStore({"kb": raw}), "kb")
    chunks = corpus.snapshot()
    assert [c.id for c in chunks] == ["dragon_1", "seed_x", "kb_1"]
    assert corpus.stats() == {"builtin": 2, "user": 1, "total": 3}


def test_duplicate_ids_are_kept():
    raw = json.dumps([
        {"id": "same", "text": "one", "source_tag": "User"},
        {"id": "same", "text": "two", "source_tag": "User"},
    ])
    corpus = Corpus.load(MemoryKeyValueStore({"kb": raw}), "kb")
    assert [c.text for c in corpus.snapshot()] == ["one", "two"]


def test_reset_clears_corpus_and_storage():
    store = MemoryKeyValueStore()
    corpus = Corpus(store=store, storage_key="kb")
    corpus.seed_if_empty()
    corpus.add_free_text("note")
    corpus.reset()
    assert len(corpus) == 0
    assert json.loads(store.get("kb")) == []


class _BrokenStore:
    def get(self, key):
        raise OSError("disk gone")

    def set(self, key, value):
        raise OSError("disk gone")


def test_storage_failures_do_not_escape():
    corpus = Corpus.load(_BrokenStore(), "kb")
    assert len(corpus) == 0
    assert corpus.add_free_text("still works") == 1
    assert len(corpus) == 1
