"""Tests for the retrieval engine."""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Sequence

import pytest
from hypothesis import given, settings, strategies as st

from src.core.config import MockConfig
from src.core.models import Chunk, Document, DocumentStatus
from src.providers.base import EmbeddingBackend
from src.providers.client import BackendSpec, ProviderClient
from src.providers.credentials import MappingCredentialSource
from src.retrieval.engine import RetrievalEngine, RetrievalFilter, cosine_similarity
from src.storage.memory import InMemoryStore

MODEL_TAG = "mock:mock-embedding"
BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FixedEmbedder(EmbeddingBackend):
    """Embeds every query as the same vector."""

    def __init__(self, vector: Sequence[float] = (1.0, 0.0)) -> None:
        self.vector = list(vector)

    def embed(self, text: str, model: str) -> list[float]:
        return self.vector


def unit_at(similarity: float) -> tuple[float, float]:
    """2-D unit vector whose cosine with (1, 0) is ``similarity``."""
    return (similarity, math.sqrt(max(0.0, 1.0 - similarity**2)))


def make_engine(store: InMemoryStore, **overrides: object) -> RetrievalEngine:
    config = MockConfig.with_overrides(**overrides)
    table = {"mock": BackendSpec(embedding=lambda key, cfg: FixedEmbedder())}
    client = ProviderClient(config, MappingCredentialSource({"mock": "mock"}), table)
    return RetrievalEngine(client, store, config)


def add_document(
    store: InMemoryStore,
    title: str,
    vectors: Sequence[Sequence[float]],
    status: DocumentStatus = DocumentStatus.READY,
    offset: int = 0,
    model: str = MODEL_TAG,
    **metadata: object,
) -> Document:
    document = Document(
        title=title, source_ref=f"/docs/{title}", status=status, metadata=dict(metadata)
    )
    store.persist_document(document)
    for i, vector in enumerate(vectors):
        store.persist_chunk(
            Chunk(
                doc_id=document.doc_id,
                chunk_index=i,
                content=f"{title} chunk {i}",
                embedding=tuple(vector),
                embedding_model=model,
                created_at=BASE_TIME + timedelta(seconds=offset + i),
            )
        )
    return document


class TestCosineSimilarity:
    def test_identical(self) -> None:
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self) -> None:
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0

    @given(
        st.lists(st.floats(-100, 100), min_size=3, max_size=3),
        st.lists(st.floats(-100, 100), min_size=3, max_size=3),
    )
    @settings(max_examples=50)
    def test_bounded(self, a: list[float], b: list[float]) -> None:
        assert -1.0 <= cosine_similarity(a, b) <= 1.0


class TestRetrievalEngine:
    def test_threshold_and_limit(self) -> None:
        store = InMemoryStore()
        add_document(store, "Guide", [unit_at(s) for s in (0.9, 0.8, 0.75, 0.5, 0.3)])
        engine = make_engine(store)

        results = engine.query("onboarding", limit=5, similarity_threshold=0.7).unwrap()
        assert [round(r.score, 6) for r in results] == [0.9, 0.8, 0.75]

        top_two = engine.query("onboarding", limit=2, similarity_threshold=0.7).unwrap()
        assert [r.chunk.chunk_index for r in top_two] == [0, 1]

    def test_defaults_from_config(self) -> None:
        store = InMemoryStore()
        add_document(store, "Guide", [unit_at(s) for s in (0.95, 0.9, 0.85, 0.8)])
        engine = make_engine(store, top_k=2, similarity_threshold=0.7)
        assert len(engine.query("anything").unwrap()) == 2

    def test_results_carry_document_title(self) -> None:
        store = InMemoryStore()
        document = add_document(store, "Email Playbook", [unit_at(0.9)])
        result = make_engine(store).query("email").unwrap()[0]
        assert result.document_title == "Email Playbook"
        assert result.document_id == document.doc_id

    def test_ties_broken_by_creation_time(self) -> None:
        store = InMemoryStore()
        late = add_document(store, "Late", [unit_at(0.8)], offset=100)
        early = add_document(store, "Early", [unit_at(0.8)], offset=0)
        results = make_engine(store).query("x", similarity_threshold=0.5).unwrap()
        assert [r.document_id for r in results] == [early.doc_id, late.doc_id]

    def test_only_ready_documents_searched(self) -> None:
        store = InMemoryStore()
        add_document(store, "Busy", [unit_at(0.99)], status=DocumentStatus.CHUNKING)
        add_document(store, "Broken", [unit_at(0.99)], status=DocumentStatus.ERROR)
        ready = add_document(store, "Ready", [unit_at(0.8)])
        results = make_engine(store).query("x", similarity_threshold=0.5).unwrap()
        assert [r.document_id for r in results] == [ready.doc_id]

    def test_document_id_filter(self) -> None:
        store = InMemoryStore()
        first = add_document(store, "First", [unit_at(0.9)])
        add_document(store, "Second", [unit_at(0.95)])
        query_filter = RetrievalFilter(document_ids=frozenset({first.doc_id}))
        results = make_engine(store).query("x", filter=query_filter).unwrap()
        assert [r.document_id for r in results] == [first.doc_id]

    def test_category_filter_intersects(self) -> None:
        store = InMemoryStore()
        email = add_document(store, "Email", [unit_at(0.9)], category_ids=["email", "lifecycle"])
        add_document(store, "Social", [unit_at(0.9)], category_ids=["social"])
        add_document(store, "Untagged", [unit_at(0.9)])
        query_filter = RetrievalFilter(metadata={"category_ids": ["lifecycle", "ads"]})
        results = make_engine(store).query("x", filter=query_filter).unwrap()
        assert [r.document_id for r in results] == [email.doc_id]

    def test_scalar_metadata_filter(self) -> None:
        store = InMemoryStore()
        add_document(store, "En", [unit_at(0.9)], language="en")
        add_document(store, "De", [unit_at(0.9)], language="de")
        results = make_engine(store).query("x", filter=RetrievalFilter(metadata={"language": "de"})).unwrap()
        assert [r.document_title for r in results] == ["De"]

    def test_mismatched_embeddings_excluded(self, caplog: pytest.LogCaptureFixture) -> None:
        store = InMemoryStore()
        add_document(store, "Old", [unit_at(0.99)], model="openai:text-embedding-3-small")
        add_document(store, "Wide", [(1.0, 0.0, 0.0)])
        current = add_document(store, "Current", [unit_at(0.8)])
        with caplog.at_level(logging.WARNING):
            results = make_engine(store).query("x").unwrap()
        assert [r.document_id for r in results] == [current.doc_id]
        assert "Embedding model mismatch" in caplog.text

    def test_zero_limit(self) -> None:
        store = InMemoryStore()
        add_document(store, "Guide", [unit_at(0.9)])
        assert make_engine(store).query("x", limit=0).unwrap() == []

    def test_empty_query(self) -> None:
        store = InMemoryStore()
        add_document(store, "Guide", [unit_at(0.9)])
        assert make_engine(store).query("   ").unwrap() == []

    def test_empty_store(self) -> None:
        assert make_engine(InMemoryStore()).query("x").unwrap() == []

    def test_embedding_failure_propagates(self) -> None:
        config = MockConfig.default()
        client = ProviderClient(config, MappingCredentialSource({}), {"mock": BackendSpec()})
        result = RetrievalEngine(client, InMemoryStore(), config).query("x")
        assert result.is_err()

    @given(st.lists(st.floats(min_value=-1.0, max_value=1.0), min_size=1, max_size=20))
    @settings(max_examples=30)
    def test_scores_non_increasing(self, similarities: list[float]) -> None:
        store = InMemoryStore()
        add_document(store, "Guide", [unit_at(s) for s in similarities])
        results = make_engine(store).query("x", limit=20, similarity_threshold=-1.0).unwrap()
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
        assert len(results) == len(similarities)
