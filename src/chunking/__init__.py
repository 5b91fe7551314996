"""Document chunking strategies for knowledge ingestion."""

from src.chunking.strategies import (
    ChunkingStrategy,
    SentenceChunker,
    estimate_tokens,
    split_sentences,
)

__all__ = ["ChunkingStrategy", "SentenceChunker", "estimate_tokens", "split_sentences"]
