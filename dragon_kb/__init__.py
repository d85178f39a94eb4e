"""Dragon knowledge base: retrieval-augmented context for chat prompts."""

from .knowledge_base import KnowledgeBase

__all__ = ["KnowledgeBase"]
