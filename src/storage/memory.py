"""In-process document store for mock mode and tests."""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from src.core.errors import CategoryExists, CoreError, DocumentNotFound, StorageError
from src.core.models import Category, Chunk, Document, DocumentStatus
from src.core.result import Err, Ok, Result
from src.storage.base import DocumentStore


class InMemoryStore(DocumentStore):
    """Dict-backed store guarded by one re-entrant lock."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, dict[int, Chunk]] = {}
        self._categories: dict[str, Category] = {}

    def persist_document(self, document: Document) -> Result[Document, StorageError]:
        with self._lock:
            self._documents[document.doc_id] = document
        return Ok(document)

    def get_document(self, doc_id: str) -> Optional[Document]:
        with self._lock:
            return self._documents.get(doc_id)

    def list_documents(self, status: Optional[DocumentStatus] = None) -> list[Document]:
        with self._lock:
            documents = list(self._documents.values())
        if status is not None:
            documents = [d for d in documents if d.status == status]
        return sorted(documents, key=lambda d: (d.created_at, d.doc_id))

    def delete_document(self, doc_id: str) -> Result[None, CoreError]:
        with self._lock:
            if self._documents.pop(doc_id, None) is None:
                return Err(DocumentNotFound(doc_id))
            self._chunks.pop(doc_id, None)
        return Ok(None)

    def persist_chunk(self, chunk: Chunk) -> Result[Chunk, StorageError]:
        with self._lock:
            by_index = self._chunks.setdefault(chunk.doc_id, {})
            if chunk.chunk_index in by_index:
                return Err(
                    StorageError(f"Chunk {chunk.chunk_index} of {chunk.doc_id} already exists")
                )
            by_index[chunk.chunk_index] = chunk
        return Ok(chunk)

    def delete_chunks(self, doc_id: str) -> Result[int, StorageError]:
        with self._lock:
            removed = self._chunks.pop(doc_id, {})
        return Ok(len(removed))

    def count_chunks(self, doc_id: Optional[str] = None) -> int:
        with self._lock:
            if doc_id is not None:
                return len(self._chunks.get(doc_id, {}))
            return sum(len(c) for c in self._chunks.values())

    def fetch_chunks_for_similarity(
        self, document_ids: Optional[Iterable[str]] = None
    ) -> list[Chunk]:
        with self._lock:
            wanted = list(self._chunks) if document_ids is None else list(document_ids)
            return [
                chunk
                for doc_id in wanted
                for _, chunk in sorted(self._chunks.get(doc_id, {}).items())
            ]

    def persist_category(self, category: Category) -> Result[Category, CoreError]:
        with self._lock:
            if category.name in self._categories:
                return Err(CategoryExists(category.name))
            self._categories[category.name] = category
        return Ok(category)

    def list_categories(self) -> list[Category]:
        with self._lock:
            return sorted(self._categories.values(), key=lambda c: c.name)
