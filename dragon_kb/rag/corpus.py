"""
Corpus manager for the knowledge base.

Owns the ordered collection of knowledge chunks (builtin seeds first, then
user contributions), splits free text into chunks, renders question/answer
feedback as retrievable text, and persists everything through a key-value
store as one JSON array.

Chunks are frozen dataclasses held in tuples that are replaced wholesale on
every append, so a snapshot taken by an index builder is never affected by
later writes.
"""

import json
import logging
import re
import threading
import uuid
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import InvalidInput
from .seed import SEED_CHUNKS, render_seed

logger = logging.getLogger(__name__)

# One or more blank lines (lines holding only whitespace count as blank)
_BLANK_LINES_RE = re.compile(r"\n\s*\n")

# Id prefixes used when a stored record carries no explicit source_tag
_BUILTIN_ID_PREFIXES = ("builtin_", "dragon_")


class SourceTag(Enum):
    """Provenance of a chunk."""
    BUILTIN = "Builtin"
    USER = "User"


class Outcome(Enum):
    """Feedback label attached to a saved question/answer pair."""
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"


@dataclass(frozen=True)
class Chunk:
    """One retrievable unit of knowledge text.

    Attributes:
        id: Unique, stable identifier.
        text: The chunk content.
        source_tag: Whether the chunk is a builtin seed or user content.
    """
    id: str
    text: str
    source_tag: SourceTag

    def to_record(self) -> Dict[str, str]:
        return {"id": self.id, "text": self.text, "source_tag": self.source_tag.value}


@dataclass(frozen=True)
class ScoredChunk:
    """A chunk paired with its similarity to a query."""
    chunk: Chunk
    score: float


def split_free_text(text: str) -> List[str]:
    """Split text on blank-line boundaries into trimmed, non-empty segments."""
    return [s.strip() for s in _BLANK_LINES_RE.split(text or "") if s.strip()]


def render_qa_pair(question: str, answer: str, outcome_tag: str) -> str:
    return f"Type: {outcome_tag}\nQuestion: {question}\nAnswer: {answer}"


def _new_id(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def _tag_from_record(record: Dict[str, Any]) -> SourceTag:
    raw = record.get("source_tag")
    if raw:
        try:
            return SourceTag(raw)
        except ValueError:
            logger.warning(f"[CORPUS] Unknown source_tag '{raw}', treating as User")
            return SourceTag.USER
    if str(record.get("id", "")).startswith(_BUILTIN_ID_PREFIXES):
        return SourceTag.BUILTIN
    return SourceTag.USER


def parse_records(raw: Optional[str]) -> List[Chunk]:
    """Decode the persisted JSON array into chunks.

    Missing or corrupt data yields an empty list; malformed records are
    skipped individually.
    """
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"[CORPUS] Stored corpus is not valid JSON, starting empty: {e}")
        return []
    if not isinstance(data, list):
        logger.warning(f"[CORPUS] Stored corpus is a {type(data).__name__}, not a list, starting empty")
        return []

    chunks = []
    for record in data:
        if not isinstance(record, dict) or not isinstance(record.get("text"), str):
            logger.warning(f"[CORPUS] Skipping malformed record: {str(record)[:80]}")
            continue
        chunk_id = record.get("id")
        if not isinstance(chunk_id, str) or not chunk_id:
            chunk_id = _new_id("kb_")
        chunks.append(Chunk(id=chunk_id, text=record["text"], source_tag=_tag_from_record(record)))
    return chunks


class Corpus:
    """Ordered collection of knowledge chunks with optional persistence."""

    def __init__(self, store=None, storage_key: str = "chatKB"):
        self.store = store
        self.storage_key = storage_key
        self._builtin: Tuple[Chunk, ...] = ()
        self._user: Tuple[Chunk, ...] = ()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, store, storage_key: str = "chatKB") -> "Corpus":
        """Load a corpus from the store; unreadable data gives an empty corpus."""
        corpus = cls(store=store, storage_key=storage_key)
        try:
            raw = store.get(storage_key)
        except Exception as e:
            logger.warning(f"[CORPUS] Could not read '{storage_key}' from storage, starting empty: {e}")
            raw = None
        chunks = parse_records(raw)
        corpus._builtin = tuple(c for c in chunks if c.source_tag is SourceTag.BUILTIN)
        corpus._user = tuple(c for c in chunks if c.source_tag is SourceTag.USER)
        logger.info(
            f"[CORPUS] Loaded {len(corpus._builtin)} builtin and "
            f"{len(corpus._user)} user chunks from '{storage_key}'"
        )
        return corpus

    def __len__(self) -> int:
        return len(self._builtin) + len(self._user)

    def seed_if_empty(self) -> int:
        """Populate an empty corpus with the builtin starter chunks.

        Returns:
            Number of chunks seeded (0 when the corpus already had content).
        """
        with self._lock:
            if self._builtin or self._user:
                return 0
            self._builtin = tuple(
                Chunk(id=chunk_id, text=render_seed(topic, content), source_tag=SourceTag.BUILTIN)
                for chunk_id, topic, content in SEED_CHUNKS
            )
            self._save()
        logger.info(f"[CORPUS] Seeded {len(self._builtin)} builtin chunks")
        return len(self._builtin)

    def add_free_text(self, text: str) -> int:
        """Split text on blank lines and append each segment as a User chunk.

        Raises:
            InvalidInput: If the text is empty or whitespace-only.

        Returns:
            Number of chunks added.
        """
        segments = split_free_text(text)
        if not segments:
            raise InvalidInput("Knowledge base text is empty")
        new_chunks = tuple(
            Chunk(id=_new_id("kb_"), text=s, source_tag=SourceTag.USER) for s in segments
        )
        self._append(new_chunks)
        logger.info(f"[CORPUS] Added {len(new_chunks)} user chunks")
        return len(new_chunks)

    def save_qa_pair(self, question: str, answer: str, outcome_tag: Union[Outcome, str]) -> Chunk:
        """Store a question/answer pair with its feedback label as one chunk."""
        if not (question or "").strip() or not (answer or "").strip():
            raise InvalidInput("Both question and answer are required")
        tag = outcome_tag.value if isinstance(outcome_tag, Outcome) else str(outcome_tag)
        chunk = Chunk(
            id=_new_id("kb_pair_"),
            text=render_qa_pair(question.strip(), answer.strip(), tag),
            source_tag=SourceTag.USER,
        )
        self._append((chunk,))
        logger.info(f"[CORPUS] Saved {tag} QA pair as {chunk.id}")
        return chunk

    def snapshot(self) -> Tuple[Chunk, ...]:
        """Immutable view of all chunks, builtin first."""
        chunks = self._builtin + self._user
        counts = Counter(c.id for c in chunks)
        dupes = [chunk_id for chunk_id, n in counts.items() if n > 1]
        if dupes:
            logger.warning(f"[CORPUS] Snapshot contains duplicate ids, keeping all: {dupes[:5]}")
        return chunks

    def reset(self) -> None:
        """Remove every chunk, builtin and user."""
        with self._lock:
            self._builtin = ()
            self._user = ()
            self._save()
        logger.info("[CORPUS] Corpus reset")

    def stats(self) -> Dict[str, int]:
        builtin, user = self._builtin, self._user
        return {
            "builtin": len(builtin),
            "user": len(user),
            "total": len(builtin) + len(user),
        }

    def _append(self, chunks: Tuple[Chunk, ...]) -> None:
        with self._lock:
            self._user = self._user + chunks
            self._save()

    def _save(self) -> None:
        # Caller holds self._lock
        if self.store is None:
            return
        payload = json.dumps(
            [c.to_record() for c in self._builtin + self._user], ensure_ascii=False
        )
        try:
            self.store.set(self.storage_key, payload)
        except Exception as e:
            logger.error(f"[CORPUS] Failed to persist corpus under '{self.storage_key}': {e}")
