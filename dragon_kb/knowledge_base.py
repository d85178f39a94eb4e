"""
Knowledge base facade used by the chat front end and the CLI.

Owns one Corpus and one VectorIndex, wires them to the storage and
embedding collaborators, and keeps the vector snapshot fresh when new
knowledge is added after an index was built.
"""

import logging
from typing import Any, Dict, Optional, Union

from . import config
from .rag import retriever
from .rag.corpus import Chunk, Corpus, Outcome
from .rag.errors import EmbeddingUnavailable, KnowledgeBaseError
from .rag.vector_index import EmbedFn, VectorIndex, VectorSnapshot

logger = logging.getLogger(__name__)


class KnowledgeBase:
    """Session-level owner of the corpus, its vector index and collaborators.

    When a store is given the persisted corpus is loaded immediately, so
    every later mutation appends to what was stored instead of replacing it.

    Args:
        store: Optional key-value store used for load-at-start / save-on-append.
        embed_fn: Optional embedding function; without it retrieval is lexical only.
        storage_key: Key the corpus is stored under (defaults to KB_STORAGE_KEY).
    """

    def __init__(self, store=None, embed_fn: Optional[EmbedFn] = None, storage_key: str = None):
        self.store = store
        self.embed_fn = embed_fn
        self.storage_key = storage_key or config.KB_STORAGE_KEY
        if store is not None:
            self.corpus = Corpus.load(store, self.storage_key)
        else:
            self.corpus = Corpus(storage_key=self.storage_key)
        self.vector_index = VectorIndex()

    def open(self, seed: bool = True) -> "KnowledgeBase":
        """Seed the loaded corpus when it is empty."""
        if seed:
            self.corpus.seed_if_empty()
        return self

    async def add_free_text(self, text: str) -> int:
        """Add user knowledge; refreshes the vector index if one exists."""
        added = self.corpus.add_free_text(text)
        await self._refresh_index()
        return added

    async def save_qa_pair(self, question: str, answer: str, outcome_tag: Union[Outcome, str]) -> Chunk:
        chunk = self.corpus.save_qa_pair(question, answer, outcome_tag)
        await self._refresh_index()
        return chunk

    def reset(self) -> None:
        self.corpus.reset()
        self.vector_index.clear()

    def stats(self) -> Dict[str, Any]:
        stats = dict(self.corpus.stats())
        snapshot = self.vector_index.snapshot
        stats["indexed"] = len(snapshot) if snapshot is not None else 0
        return stats

    async def rebuild_index(self) -> VectorSnapshot:
        """Embed the full corpus and install a fresh vector snapshot.

        Raises:
            EmbeddingUnavailable: If there is no embedding function or a batch fails.
        """
        if self.embed_fn is None:
            raise EmbeddingUnavailable("No embedding function configured")
        return await self.vector_index.build(self.corpus.snapshot(), self.embed_fn)

    async def retrieve_context(self, query: str, top_k: int = None) -> str:
        details = await self.retrieve_with_details(query, top_k)
        return details["formatted_content"]

    async def retrieve_with_details(self, query: str, top_k: int = None) -> Dict[str, Any]:
        return await retriever.retrieve_with_details(
            query,
            self.corpus.snapshot(),
            top_k=top_k,
            vector_index=self.vector_index,
            embed_fn=self.embed_fn,
        )

    async def _refresh_index(self) -> None:
        if self.vector_index.snapshot is None or self.embed_fn is None:
            return
        try:
            await self.rebuild_index()
        except KnowledgeBaseError as e:
            logger.warning(f"[KB] Index refresh failed, keeping previous snapshot: {e}")
