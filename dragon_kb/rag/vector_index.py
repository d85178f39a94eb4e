"""
Dense vector index over the knowledge corpus.

Builds embeddings batch by batch through the embedding collaborator and
publishes the result as an immutable VectorSnapshot. The snapshot is only
swapped in once every batch has succeeded, so searches always see either
the previous complete snapshot or the new one.

Builds are serialized with an asyncio.Lock: a build requested while another
is running waits for it and then embeds the corpus snapshot it was given,
so the last build to be requested is also the last to be installed.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import numpy as np

from .. import config
from .corpus import Chunk, ScoredChunk
from .errors import EmbeddingUnavailable

logger = logging.getLogger(__name__)

EmbedFn = Callable[[Sequence[str]], Awaitable[Sequence[Sequence[float]]]]


@dataclass(frozen=True)
class VectorEntry:
    """One embedded chunk. Text is the truncated text that was embedded."""
    id: str
    text: str
    chunk: Chunk
    vector: Tuple[float, ...]


@dataclass(frozen=True)
class VectorSnapshot:
    """Immutable set of embedded chunks plus a read-only matrix of their vectors."""
    entries: Tuple[VectorEntry, ...]
    matrix: np.ndarray

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def dimension(self) -> int:
        return int(self.matrix.shape[1]) if self.matrix.ndim == 2 else 0


def cosine_scores(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of query against each matrix row; zero-norm pairs score 0."""
    if matrix.size == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
    return np.clip(scores, -1.0, 1.0)


def _validate_batch(vectors, expected: int, dimension: Optional[int]) -> List[List[float]]:
    if vectors is None or len(vectors) != expected:
        got = "None" if vectors is None else len(vectors)
        raise EmbeddingUnavailable(f"Embedding returned {got} vectors for {expected} texts")
    try:
        rows = [list(map(float, v)) for v in vectors]
    except (TypeError, ValueError) as e:
        raise EmbeddingUnavailable(f"Embedding returned non-numeric vectors: {e}") from e
    dim = dimension if dimension is not None else len(rows[0])
    if dim == 0 or any(len(r) != dim for r in rows):
        raise EmbeddingUnavailable(f"Embedding returned vectors of inconsistent dimension (expected {dim})")
    return rows


def _build_matrix(rows: List[List[float]]) -> np.ndarray:
    matrix = np.asarray(rows, dtype=np.float64) if rows else np.zeros((0, 0), dtype=np.float64)
    matrix.setflags(write=False)
    return matrix


class VectorIndex:
    """Holds the current VectorSnapshot and builds replacements for it."""

    def __init__(self):
        self._snapshot: Optional[VectorSnapshot] = None
        self._build_lock: Optional[asyncio.Lock] = None
        self._lock_loop = None

    @property
    def snapshot(self) -> Optional[VectorSnapshot]:
        return self._snapshot

    def _get_build_lock(self) -> asyncio.Lock:
        # asyncio locks bind to one event loop; each loop gets its own
        loop = asyncio.get_running_loop()
        if self._build_lock is None or self._lock_loop is not loop:
            self._build_lock = asyncio.Lock()
            self._lock_loop = loop
        return self._build_lock

    def clear(self) -> None:
        self._snapshot = None
        logger.info("[VECTOR_INDEX] Snapshot cleared")

    async def build(
        self,
        chunks: Sequence[Chunk],
        embed_fn: EmbedFn,
        batch_size: int = None,
        max_chars: int = None,
    ) -> VectorSnapshot:
        """Embed every chunk and atomically install the new snapshot.

        Args:
            chunks: Corpus snapshot to index.
            embed_fn: Embedding collaborator, called once per batch.
            batch_size: Texts per embedding call (defaults to EMBED_BATCH_SIZE).
            max_chars: Per-chunk truncation before embedding (defaults to EMBED_MAX_CHARS).

        Returns:
            The installed snapshot.

        Raises:
            EmbeddingUnavailable: If any batch fails. The previous snapshot stays installed.
        """
        batch_size = batch_size or config.EMBED_BATCH_SIZE
        max_chars = max_chars or config.EMBED_MAX_CHARS
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        chunks = tuple(chunks)

        async with self._get_build_lock():
            texts = [c.text[:max_chars] for c in chunks]
            rows: List[List[float]] = []
            dimension: Optional[int] = None
            n_batches = (len(texts) + batch_size - 1) // batch_size

            for b, start in enumerate(range(0, len(texts), batch_size), start=1):
                batch = texts[start:start + batch_size]
                try:
                    vectors = await embed_fn(batch)
                except EmbeddingUnavailable:
                    raise
                except Exception as e:
                    logger.warning(f"[VECTOR_INDEX] Batch {b}/{n_batches} failed, keeping previous snapshot: {e}")
                    raise EmbeddingUnavailable(f"Embedding batch {b}/{n_batches} failed: {e}") from e
                batch_rows = _validate_batch(vectors, len(batch), dimension)
                dimension = len(batch_rows[0])
                rows.extend(batch_rows)

            entries = tuple(
                VectorEntry(id=c.id, text=t, chunk=c, vector=tuple(r))
                for c, t, r in zip(chunks, texts, rows)
            )
            snapshot = VectorSnapshot(entries=entries, matrix=_build_matrix(rows))
            self._snapshot = snapshot

        logger.info(
            f"[VECTOR_INDEX] Built snapshot: {len(snapshot)} chunks in {n_batches} batches, "
            f"dimension {snapshot.dimension}"
        )
        return snapshot

    async def search(self, query: str, embed_fn: EmbedFn, top_k: int) -> List[ScoredChunk]:
        """Rank the current snapshot against the query by cosine similarity.

        Never raises: a missing snapshot, a failed embedding call or a
        malformed query vector all yield an empty list.
        """
        snapshot = self._snapshot
        if snapshot is None or not len(snapshot) or embed_fn is None or top_k <= 0:
            return []

        query = (query or "")[:config.QUERY_MAX_CHARS]
        if not query.strip():
            return []
        try:
            vectors = await embed_fn([query])
            q_vec = np.asarray(vectors[0], dtype=np.float64)
        except Exception as e:
            logger.warning(f"[VECTOR_INDEX] Query embedding failed: {e}")
            return []
        if q_vec.ndim != 1 or q_vec.shape[0] != snapshot.dimension:
            logger.warning(
                f"[VECTOR_INDEX] Query vector shape {q_vec.shape} does not match "
                f"index dimension {snapshot.dimension}"
            )
            return []

        scores = cosine_scores(q_vec, snapshot.matrix)
        # stable sort keeps corpus order among equal scores
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            ScoredChunk(chunk=snapshot.entries[i].chunk, score=float(scores[i]))
            for i in order
        ]
