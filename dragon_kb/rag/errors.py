"""
Exception types raised by the knowledge base core.

Retrieval never raises these to its callers; they surface only from
corpus mutations, explicit index builds and the collaborator wrappers.
"""


class KnowledgeBaseError(Exception):
    """Base class for all knowledge base errors."""
    pass


class InvalidInput(KnowledgeBaseError):
    """Raised when empty or whitespace-only text is submitted to the corpus."""
    pass


class ModelUnavailable(KnowledgeBaseError):
    """Raised when the embedding or completion model is missing or failing."""
    pass


class EmbeddingUnavailable(KnowledgeBaseError):
    """Raised when a vector index build could not be completed."""
    pass
