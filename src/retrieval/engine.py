"""Similarity retrieval over chunks of ready documents.

The query is embedded with the pinned embedding provider/model, scored
against every eligible chunk vector by cosine similarity, thresholded and
ordered deterministically:

    score desc, chunk created_at asc, document id asc, chunk index asc
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

from src.core.config import CoreConfig
from src.core.errors import CoreError, EmbeddingModelMismatch
from src.core.models import Chunk, Document, DocumentStatus, RetrievalResult
from src.core.result import Ok, Result
from src.providers.client import ProviderClient
from src.storage.base import DocumentStore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 when either vector has zero norm."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


@dataclass(frozen=True, slots=True)
class RetrievalFilter:
    """Restrict candidates by document id and/or document metadata.

    A metadata key matches on equality. When the document's value or the
    filter value is a list (e.g. ``category_ids``), sharing one element is
    enough.
    """

    document_ids: Optional[frozenset[str]] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def matches(self, document: Document) -> bool:
        if self.document_ids is not None and document.doc_id not in self.document_ids:
            return False
        return all(
            _metadata_matches(document.metadata.get(key), wanted)
            for key, wanted in self.metadata.items()
        )


def _metadata_matches(actual: Any, wanted: Any) -> bool:
    if actual is None:
        return False
    actual_set = set(actual) if isinstance(actual, (list, tuple, set)) else {actual}
    wanted_set = set(wanted) if isinstance(wanted, (list, tuple, set)) else {wanted}
    return bool(actual_set & wanted_set)


class RetrievalEngine:
    """Rank stored chunk vectors against a query.

    Usage:
        engine = RetrievalEngine(client, store, config)
        results = engine.query("email onboarding", limit=3).unwrap()
    """

    def __init__(self, client: ProviderClient, store: DocumentStore, config: CoreConfig) -> None:
        self._client = client
        self._store = store
        self._default_limit = config.top_k
        self._default_threshold = config.similarity_threshold

    def query(
        self,
        text: str,
        limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> Result[list[RetrievalResult], CoreError]:
        k = self._default_limit if limit is None else limit
        threshold = self._default_threshold if similarity_threshold is None else similarity_threshold
        if k <= 0 or not text.strip():
            return Ok([])

        embedded = self._client.embed(text)
        if embedded.is_err():
            return embedded  # type: ignore[return-value]
        query = embedded.unwrap()

        documents = {
            d.doc_id: d
            for d in self._store.list_documents(DocumentStatus.READY)
            if filter is None or filter.matches(d)
        }
        if not documents:
            return Ok([])

        candidates = self._compatible(
            self._store.fetch_chunks_for_similarity(list(documents)), query.model, query.dimensions
        )
        if not candidates:
            return Ok([])

        scores = self._score(candidates, query.vector)
        ranked = sorted(
            (
                (float(score), chunk)
                for score, chunk in zip(scores, candidates)
                if score >= threshold
            ),
            key=lambda pair: (-pair[0], pair[1].created_at, pair[1].doc_id, pair[1].chunk_index),
        )

        results = [
            RetrievalResult(
                chunk=chunk,
                score=score,
                document_id=chunk.doc_id,
                document_title=documents[chunk.doc_id].title,
            )
            for score, chunk in ranked[:k]
        ]
        logger.info(
            "Retrieval complete",
            extra={"candidates": len(candidates), "returned": len(results), "threshold": threshold},
        )
        return Ok(results)

    @staticmethod
    def _compatible(chunks: list[Chunk], model: str, dimensions: int) -> list[Chunk]:
        kept: list[Chunk] = []
        mismatched: list[Chunk] = []
        for chunk in chunks:
            if chunk.embedding_model == model and len(chunk.embedding) == dimensions:
                kept.append(chunk)
            else:
                mismatched.append(chunk)
        if mismatched:
            found = sorted({c.embedding_model for c in mismatched})
            logger.warning(
                str(EmbeddingModelMismatch(model, ", ".join(found))),
                extra={"skipped": len(mismatched), "query_dimensions": dimensions},
            )
        return kept

    @staticmethod
    def _score(chunks: list[Chunk], query_vector: Sequence[float]) -> np.ndarray:
        matrix = np.asarray([c.embedding for c in chunks], dtype=np.float64)
        query = np.asarray(query_vector, dtype=np.float64)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        return np.clip(scores, -1.0, 1.0)
