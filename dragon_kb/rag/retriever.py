"""
Retriever module that turns a user query into a knowledge context block.

Uses semantic search when a vector snapshot and an embedding function are
both available, otherwise (or when semantic search finds nothing) falls
back to TF-IDF lexical search. Hits are formatted for prepending to the
user prompt. Every failure degrades to an empty string; nothing here raises.
"""

import logging
from typing import Any, Dict, List, Optional

from .. import config
from . import lexical
from .corpus import Chunk, ScoredChunk
from .vector_index import EmbedFn, VectorIndex

logger = logging.getLogger(__name__)

CONTEXT_HEADER = (
    "Below are fragments from the built-in knowledge base and user materials. "
    "Use them preferentially when answering:"
)


async def retrieve_context(
    query: str,
    chunks: List[Chunk],
    top_k: int = None,
    vector_index: Optional[VectorIndex] = None,
    embed_fn: Optional[EmbedFn] = None,
) -> str:
    """Retrieve relevant knowledge chunks for a query as one context string.

    Args:
        query: The user's question.
        chunks: Corpus snapshot to search.
        top_k: Maximum number of chunks to include.
        vector_index: Optional vector index; used only if it holds a snapshot.
        embed_fn: Embedding collaborator for the semantic path.

    Returns:
        Formatted context block, or "" when nothing relevant was found.
    """
    details = await retrieve_with_details(query, chunks, top_k, vector_index, embed_fn)
    return details["formatted_content"]


async def retrieve_with_details(
    query: str,
    chunks: List[Chunk],
    top_k: int = None,
    vector_index: Optional[VectorIndex] = None,
    embed_fn: Optional[EmbedFn] = None,
) -> Dict[str, Any]:
    """Same as retrieve_context() but returns structured data as well.

    Returns:
        Dict with keys: formatted_content, hits (list of ScoredChunk),
        mode ("vector", "lexical" or "none").
    """
    query = query or ""
    top_k = top_k or config.RAG_TOP_K
    hits: List[ScoredChunk] = []
    mode = "none"

    try:
        if vector_index is not None and vector_index.snapshot is not None and embed_fn is not None:
            hits = _positive(await vector_index.search(query, embed_fn, top_k))
            if hits:
                mode = "vector"
            else:
                logger.warning("[RETRIEVER] Semantic search returned nothing, falling back to lexical")

        if not hits and chunks:
            hits = _positive(lexical.search(query, chunks, top_k))
            if hits:
                mode = "lexical"
    except Exception as e:
        logger.error(f"[RETRIEVER] Retrieval failed, continuing without context: {e}")
        hits, mode = [], "none"

    if not hits:
        logger.info(f"[RETRIEVER] No relevant chunks for query: {query[:80]}")
        return {"formatted_content": "", "hits": [], "mode": "none"}

    formatted = format_context(hits)
    logger.info(
        f"[RETRIEVER] Retrieved {len(hits)} chunks via {mode} search "
        f"for query: {query[:80]}..."
    )
    return {"formatted_content": formatted, "hits": hits, "mode": mode}


def _positive(hits: List[ScoredChunk]) -> List[ScoredChunk]:
    return sorted((h for h in hits if h.score > 0), key=lambda h: h.score, reverse=True)


def format_context(hits: List[ScoredChunk], max_chars: int = None) -> str:
    """Format hits as labeled blocks under a single instruction line.

    Respects max_chars (MAX_CONTEXT_CHARS by default) over the total chunk
    text; the first hit is always kept.

    Args:
        hits: Scored chunks, highest score first.
        max_chars: Budget for the combined chunk text.

    Returns:
        The context block, or "" when hits is empty.
    """
    max_chars = max_chars or config.MAX_CONTEXT_CHARS
    parts = []
    total_chars = 0

    for i, hit in enumerate(hits, start=1):
        text = hit.chunk.text
        if parts and total_chars + len(text) > max_chars:
            logger.info(
                f"[RETRIEVER] Reached char limit ({max_chars}), "
                f"stopping at {len(parts)} chunks"
            )
            break
        parts.append(f"Context {i} ({hit.chunk.source_tag.value}):\n{text}")
        total_chars += len(text)

    if not parts:
        return ""
    return CONTEXT_HEADER + "\n\n" + "\n\n".join(parts)
