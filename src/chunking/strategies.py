"""Chunking strategies for splitting document text into embedding-sized pieces.

- SentenceChunker: packs whole sentences up to a character budget and
  carries a trailing overlap window (sentences or words) into the next chunk
"""

from __future__ import annotations

import math
import re
from abc import ABC, abstractmethod

from src.core.config import CoreConfig, OverlapUnit
from src.core.models import TextChunk

SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
WHITESPACE = re.compile(r"\s+")


def estimate_tokens(text: str) -> int:
    """Rough token estimate: about four characters per token."""
    return math.ceil(len(text) / 4)


def split_sentences(text: str) -> list[str]:
    """Split on sentence-ending punctuation and blank lines, collapsing whitespace."""
    sentences: list[str] = []
    for paragraph in PARAGRAPH_BREAK.split(text):
        collapsed = WHITESPACE.sub(" ", paragraph).strip()
        if not collapsed:
            continue
        sentences.extend(s for s in SENTENCE_BOUNDARY.split(collapsed) if s)
    return sentences


class ChunkingStrategy(ABC):
    """Base class for all chunking strategies."""

    @abstractmethod
    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into chunks with 0-based sequential indices."""
        ...

    def _make_chunk(self, content: str, index: int) -> TextChunk:
        return TextChunk(text=content, index=index, token_count=estimate_tokens(content))


class SentenceChunker(ChunkingStrategy):
    """Pack sentences into chunks of at most ``max_chunk_size`` characters.

    When the next sentence would overflow the budget the running chunk is
    closed and the next one starts with the last ``overlap`` sentences (or
    words) of the closed chunk, trimmed from the front until the overlap
    plus the next sentence fits. A chunk exceeds the budget only when it
    holds a single sentence longer than the budget. A final chunk shorter
    than ``min_chunk_length`` is dropped.
    """

    def __init__(
        self,
        max_chunk_size: int = 1000,
        overlap: int = 1,
        overlap_unit: OverlapUnit = OverlapUnit.SENTENCES,
        min_chunk_length: int = 10,
    ) -> None:
        if max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if min_chunk_length < 0:
            raise ValueError(f"min_chunk_length must be non-negative, got {min_chunk_length}")
        self.max_chunk_size = max_chunk_size
        self.overlap = overlap
        self.overlap_unit = OverlapUnit(overlap_unit)
        self.min_chunk_length = min_chunk_length

    @classmethod
    def from_config(cls, config: CoreConfig) -> SentenceChunker:
        return cls(
            max_chunk_size=config.chunk_size,
            overlap=config.chunk_overlap,
            overlap_unit=config.overlap_unit,
            min_chunk_length=config.min_chunk_length,
        )

    def chunk(self, text: str) -> list[TextChunk]:
        chunks: list[TextChunk] = []
        current: list[str] = []

        for sentence in split_sentences(text):
            if current and len(" ".join(current + [sentence])) > self.max_chunk_size:
                closed = " ".join(current)
                chunks.append(self._make_chunk(closed, len(chunks)))
                current = self._overlap_window(current, sentence)
            current.append(sentence)

        if current:
            final = " ".join(current)
            if len(final) >= self.min_chunk_length:
                chunks.append(self._make_chunk(final, len(chunks)))

        return chunks

    def _overlap_window(self, closed: list[str], next_sentence: str) -> list[str]:
        if self.overlap == 0:
            return []
        if self.overlap_unit == OverlapUnit.WORDS:
            window = " ".join(closed).split()[-self.overlap:]
        else:
            window = closed[-self.overlap:]

        while window and len(" ".join(window + [next_sentence])) > self.max_chunk_size:
            window = window[1:]
        return list(window)
