"""
TF-IDF lexical search over a corpus snapshot.

The index is rebuilt from scratch on every query. That is cheap for the
tens to low hundreds of chunks this knowledge base holds; caching idf and
chunk vectors keyed on the snapshot would be the upgrade for larger corpora.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .corpus import Chunk, ScoredChunk
from .tokenizer import tokenize

logger = logging.getLogger(__name__)


@dataclass
class LexicalSnapshot:
    """Document frequencies and per-chunk weight vectors for one corpus snapshot."""
    n_docs: int
    df: Dict[str, int] = field(default_factory=dict)
    vectors: List[Dict[str, float]] = field(default_factory=list)

    def idf(self, term: str) -> float:
        return idf(self.n_docs, self.df.get(term, 0))

    def weigh(self, tokens: Sequence[str]) -> Dict[str, float]:
        """Term count times corpus idf for each distinct token."""
        return {t: count * self.idf(t) for t, count in Counter(tokens).items()}


def idf(n_docs: int, df: int) -> float:
    """Smoothed inverse document frequency, positive even for unseen terms."""
    return math.log(1 + n_docs / (df + 1))


def cosine_similarity(a: Mapping[str, float], b: Mapping[str, float]) -> float:
    """Cosine of two sparse vectors; 0.0 when either has zero norm."""
    if len(a) > len(b):
        a, b = b, a
    dot = sum(v * b.get(t, 0.0) for t, v in a.items())
    norm_a = math.sqrt(sum(v * v for v in a.values()))
    norm_b = math.sqrt(sum(v * v for v in b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def build_snapshot(chunks: Sequence[Chunk]) -> LexicalSnapshot:
    """Compute document frequencies and TF-IDF vectors for the given chunks."""
    token_lists = [tokenize(c.text) for c in chunks]
    df: Counter = Counter()
    for tokens in token_lists:
        df.update(set(tokens))
    snapshot = LexicalSnapshot(n_docs=len(chunks), df=dict(df))
    snapshot.vectors = [snapshot.weigh(tokens) for tokens in token_lists]
    return snapshot


def search(query: str, chunks: Sequence[Chunk], top_k: int) -> List[ScoredChunk]:
    """Rank chunks against the query by TF-IDF cosine similarity.

    Args:
        query: Free-text query.
        chunks: Corpus snapshot to search.
        top_k: Maximum number of results.

    Returns:
        Up to top_k scored chunks, highest score first. Empty when the
        query has no tokens or the corpus is empty.
    """
    q_tokens = tokenize(query)
    if not q_tokens or not chunks or top_k <= 0:
        return []

    snapshot = build_snapshot(chunks)
    q_vec = snapshot.weigh(q_tokens)
    scored = [
        ScoredChunk(chunk=chunk, score=cosine_similarity(q_vec, vec))
        for chunk, vec in zip(chunks, snapshot.vectors)
    ]
    # sorted() is stable, so ties keep corpus order
    scored = sorted(scored, key=lambda s: s.score, reverse=True)[:top_k]
    logger.debug(
        f"[LEXICAL] Scored {len(chunks)} chunks for {len(q_tokens)} query tokens, "
        f"best={scored[0].score:.4f}"
    )
    return scored
