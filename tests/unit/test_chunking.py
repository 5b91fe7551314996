"""Tests for the sentence chunker."""

import math

import pytest
from hypothesis import given, settings, strategies as st

from src.chunking.strategies import SentenceChunker, estimate_tokens, split_sentences
from src.core.config import MockConfig, OverlapUnit


def make_prose() -> str:
    """Create text with natural prose structure."""
    paragraphs = [
        "Onboarding emails convert best when each message has one goal. "
        "The first email welcomes the customer. "
        "The second email arrives two days later with a case study.",
        "Social posts with a document carousel earn more engagement. "
        "Short videos lead on Instagram! "
        "Should small accounts post daily? Usually not.",
    ]
    return "\n\n".join(paragraphs)


sentence = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Lu")), min_size=1, max_size=40
).map(lambda s: s + ".")


class TestSplitSentences:
    def test_splits_on_terminal_punctuation(self) -> None:
        assert split_sentences("One. Two! Three? Four") == ["One.", "Two!", "Three?", "Four"]

    def test_splits_on_blank_lines(self) -> None:
        assert split_sentences("Heading\n\nBody text here") == ["Heading", "Body text here"]

    def test_collapses_whitespace(self) -> None:
        assert split_sentences("A   long\n   line.  Next\tone.") == ["A long line.", "Next one."]

    def test_empty(self) -> None:
        assert split_sentences("   \n\n  ") == []


class TestSentenceChunker:
    def test_concrete_overlap(self) -> None:
        chunker = SentenceChunker(max_chunk_size=5, overlap=1, min_chunk_length=0)
        chunks = chunker.chunk("A. B. C. D.")
        assert [c.text for c in chunks] == ["A. B.", "B. C.", "C. D."]
        first_last_sentence = chunks[0].text.split(" ")[-1]
        assert chunks[1].text.startswith(first_last_sentence)

    def test_small_text_single_chunk(self) -> None:
        chunks = SentenceChunker(max_chunk_size=1000).chunk(make_prose())
        assert len(chunks) == 1
        assert chunks[0].index == 0

    def test_prose_chunks_within_budget(self) -> None:
        chunker = SentenceChunker(max_chunk_size=120, overlap=1)
        chunks = chunker.chunk(make_prose())
        assert len(chunks) > 1
        assert all(len(c.text) <= 120 for c in chunks)

    def test_word_overlap(self) -> None:
        chunker = SentenceChunker(
            max_chunk_size=40, overlap=2, overlap_unit=OverlapUnit.WORDS, min_chunk_length=0
        )
        chunks = chunker.chunk("Alpha beta gamma delta. Epsilon zeta eta theta.")
        assert chunks[0].text == "Alpha beta gamma delta."
        assert chunks[1].text == "gamma delta. Epsilon zeta eta theta."

    def test_overlap_trimmed_to_fit(self) -> None:
        tail = "C" + "c" * 11 + "."
        chunker = SentenceChunker(max_chunk_size=20, overlap=2, min_chunk_length=0)
        chunks = chunker.chunk(f"Aaaa. Bbbb. {tail}")
        assert chunks[0].text == "Aaaa. Bbbb."
        # Two overlap sentences plus the next one would not fit
        assert chunks[1].text == f"Bbbb. {tail}"

    def test_no_overlap(self) -> None:
        chunker = SentenceChunker(max_chunk_size=5, overlap=0, min_chunk_length=0)
        chunks = chunker.chunk("A. B. C. D.")
        assert [c.text for c in chunks] == ["A. B.", "C. D."]

    def test_oversize_sentence_is_its_own_chunk(self) -> None:
        long_sentence = "x" * 50 + "."
        chunker = SentenceChunker(max_chunk_size=20, overlap=1, min_chunk_length=0)
        chunks = chunker.chunk(f"Short one. {long_sentence} Tail here.")
        assert long_sentence in [c.text for c in chunks]
        assert all(len(c.text) <= 20 or c.text == long_sentence for c in chunks)

    def test_short_final_chunk_dropped(self) -> None:
        chunker = SentenceChunker(max_chunk_size=5, overlap=0, min_chunk_length=10)
        chunks = chunker.chunk("A. B. C.")
        assert [c.text for c in chunks] == ["A. B."]

    def test_short_document_dropped(self) -> None:
        assert SentenceChunker(min_chunk_length=10).chunk("Tiny.") == []

    def test_empty_text(self) -> None:
        assert SentenceChunker().chunk("") == []

    def test_token_estimate(self) -> None:
        chunks = SentenceChunker(min_chunk_length=0).chunk("Exactly nine.")
        assert chunks[0].token_count == math.ceil(len("Exactly nine.") / 4)
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_from_config(self) -> None:
        config = MockConfig.with_overrides(chunk_size=300, chunk_overlap=2, min_chunk_length=5)
        chunker = SentenceChunker.from_config(config)
        assert chunker.max_chunk_size == 300
        assert chunker.overlap == 2
        assert chunker.min_chunk_length == 5

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError, match="max_chunk_size must be positive"):
            SentenceChunker(max_chunk_size=0)

    def test_invalid_overlap(self) -> None:
        with pytest.raises(ValueError, match="overlap must be non-negative"):
            SentenceChunker(overlap=-1)

    @given(
        sentences=st.lists(sentence, min_size=1, max_size=40),
        max_size=st.integers(min_value=10, max_value=200),
        overlap=st.integers(min_value=0, max_value=3),
    )
    @settings(max_examples=50)
    def test_indices_contiguous_and_bounded(
        self, sentences: list[str], max_size: int, overlap: int
    ) -> None:
        chunker = SentenceChunker(max_chunk_size=max_size, overlap=overlap, min_chunk_length=0)
        chunks = chunker.chunk(" ".join(sentences))
        assert [c.index for c in chunks] == list(range(len(chunks)))

        longest = max(len(s) for s in sentences)
        for chunk in chunks:
            # Over budget only for a lone oversize sentence
            assert len(chunk.text) <= max_size or len(chunk.text) <= longest

    @given(sentences=st.lists(sentence, min_size=1, max_size=30))
    @settings(max_examples=50)
    def test_every_sentence_is_covered(self, sentences: list[str]) -> None:
        chunker = SentenceChunker(max_chunk_size=60, overlap=1, min_chunk_length=0)
        chunks = chunker.chunk(" ".join(sentences))
        covered = {s for c in chunks for s in split_sentences(c.text)}
        assert set(sentences) <= covered
