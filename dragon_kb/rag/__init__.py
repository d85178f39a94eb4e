"""
RAG (Retrieval Augmented Generation) core for the knowledge base.

Selects the knowledge chunks most relevant to a user question so they can
be prepended to the prompt sent to the language model.

Components:
    - tokenizer: Unicode-aware lowercase tokenization
    - corpus: Chunk model, builtin seeding, free-text splitting, persistence
    - lexical: TF-IDF cosine search, rebuilt per query
    - embedder: OpenAI embeddings behind the embedding collaborator contract
    - vector_index: Batched embedding builds and atomically swapped snapshots
    - retriever: Vector/lexical selection and context formatting
"""

from .corpus import Chunk, Corpus, Outcome, ScoredChunk, SourceTag
from .errors import (
    EmbeddingUnavailable,
    InvalidInput,
    KnowledgeBaseError,
    ModelUnavailable,
)
from .retriever import retrieve_context, retrieve_with_details
from .tokenizer import tokenize
from .vector_index import VectorIndex, VectorSnapshot

__all__ = [
    "Chunk",
    "Corpus",
    "Outcome",
    "ScoredChunk",
    "SourceTag",
    "EmbeddingUnavailable",
    "InvalidInput",
    "KnowledgeBaseError",
    "ModelUnavailable",
    "retrieve_context",
    "retrieve_with_details",
    "tokenize",
    "VectorIndex",
    "VectorSnapshot",
]
