"""
Embedder module for generating OpenAI embeddings.

Implements the embedding collaborator contract used by the vector index:
an async callable taking a batch of texts and returning one fixed-length
vector per text, in input order. Any client or API failure is surfaced as
ModelUnavailable so callers deal with a single error type.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from .. import config
from .errors import ModelUnavailable

logger = logging.getLogger(__name__)


def embedding_available() -> bool:
    """Whether an API key is configured for the embedding model."""
    return bool(config.OPENAI_API_KEY)


def _get_openai_client() -> AsyncOpenAI:
    """Get an AsyncOpenAI client using the configured API key.

    Raises:
        ModelUnavailable: If OPENAI_API_KEY is not set.
    """
    if not config.OPENAI_API_KEY:
        raise ModelUnavailable("OPENAI_API_KEY not found in environment")
    return AsyncOpenAI(api_key=config.OPENAI_API_KEY, base_url=config.OPENAI_BASE_URL)


async def embed_texts(
    texts: Sequence[str],
    client: Optional[AsyncOpenAI] = None,
) -> List[List[float]]:
    """Generate embeddings for a batch of texts.

    Args:
        texts: Texts to embed.
        client: Optional pre-existing AsyncOpenAI client.

    Returns:
        One embedding vector per text, in input order.

    Raises:
        ModelUnavailable: If the client cannot be created or the API call fails.
    """
    if not texts:
        return []
    if client is None:
        client = _get_openai_client()

    kwargs = {"model": config.EMBEDDING_MODEL, "input": list(texts)}
    if config.EMBEDDING_DIMENSIONS:
        kwargs["dimensions"] = config.EMBEDDING_DIMENSIONS

    try:
        response = await client.embeddings.create(**kwargs)
    except OpenAIError as e:
        raise ModelUnavailable(f"Embedding request failed: {e}") from e

    data = sorted(response.data, key=lambda item: item.index)
    embeddings = [item.embedding for item in data]
    usage = getattr(response, "usage", None)
    logger.info(
        f"[EMBEDDER] Generated {len(embeddings)} embeddings ({config.EMBEDDING_MODEL})"
        + (f", usage: {usage.total_tokens} tokens" if usage else "")
    )
    return embeddings


async def _rebuild_persisted_index() -> None:
    from ..knowledge_base import KnowledgeBase
    from ..kv_store import SqliteKeyValueStore

    kb = KnowledgeBase(store=SqliteKeyValueStore(), embed_fn=embed_texts)
    kb.open()
    snapshot = await kb.rebuild_index()
    print(f"Indexed {len(snapshot)} chunks (dimension {snapshot.dimension}).")


if __name__ == "__main__":
    # Standalone script: embed the persisted corpus once as a smoke check
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    print("=== Knowledge Base Indexer ===")
    print(f"Model: {config.EMBEDDING_MODEL}")
    print(f"Database: {config.KB_DB_PATH}")
    print()

    asyncio.run(_rebuild_persisted_index())
