"""Similarity retrieval over the knowledge store and context assembly."""

from src.retrieval.context import ContextAssembler
from src.retrieval.engine import RetrievalEngine, RetrievalFilter, cosine_similarity

__all__ = ["ContextAssembler", "RetrievalEngine", "RetrievalFilter", "cosine_similarity"]
