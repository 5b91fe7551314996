"""Durable store interface for documents and embedded chunks.

Writes return ``Result`` so storage failures travel through the same
channel as provider failures. A completed write is visible to every read
issued after it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

from src.core.errors import CoreError, StorageError
from src.core.models import Category, Chunk, Document, DocumentStatus
from src.core.result import Result


class DocumentStore(ABC):
    """Documents plus their chunk vectors."""

    @abstractmethod
    def persist_document(self, document: Document) -> Result[Document, StorageError]:
        """Insert or replace a document by ``doc_id``."""
        ...

    @abstractmethod
    def get_document(self, doc_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    def list_documents(self, status: Optional[DocumentStatus] = None) -> list[Document]:
        """Documents ordered by creation time, optionally filtered by status."""
        ...

    @abstractmethod
    def delete_document(self, doc_id: str) -> Result[None, CoreError]:
        """Delete a document and all of its chunks."""
        ...

    @abstractmethod
    def persist_chunk(self, chunk: Chunk) -> Result[Chunk, StorageError]:
        """Store one chunk. A second chunk with the same (doc_id, index) is rejected."""
        ...

    @abstractmethod
    def delete_chunks(self, doc_id: str) -> Result[int, StorageError]:
        """Delete every chunk of a document; returns how many were removed."""
        ...

    @abstractmethod
    def count_chunks(self, doc_id: Optional[str] = None) -> int:
        ...

    @abstractmethod
    def fetch_chunks_for_similarity(
        self, document_ids: Optional[Iterable[str]] = None
    ) -> list[Chunk]:
        """Chunks (with vectors) of the given documents, or of all documents."""
        ...

    @abstractmethod
    def persist_category(self, category: Category) -> Result[Category, CoreError]:
        """Register a category. A second category with the same name is rejected."""
        ...

    @abstractmethod
    def list_categories(self) -> list[Category]:
        """Registered categories ordered by name."""
        ...


def document_to_dict(document: Document) -> dict[str, Any]:
    return {
        "doc_id": document.doc_id,
        "title": document.title,
        "source_ref": document.source_ref,
        "mime_type": document.mime_type,
        "status": document.status.value,
        "extracted_text": document.extracted_text,
        "metadata": document.metadata,
        "created_at": document.created_at.isoformat(),
        "updated_at": document.updated_at.isoformat(),
        "error": document.error,
        "chunk_count": document.chunk_count,
        "failed_chunks": list(document.failed_chunks),
    }


def document_from_dict(data: dict[str, Any]) -> Document:
    return Document(
        doc_id=data["doc_id"],
        title=data["title"],
        source_ref=data["source_ref"],
        mime_type=data.get("mime_type"),
        status=DocumentStatus(data["status"]),
        extracted_text=data.get("extracted_text"),
        metadata=data.get("metadata") or {},
        created_at=datetime.fromisoformat(data["created_at"]),
        updated_at=datetime.fromisoformat(data["updated_at"]),
        error=data.get("error"),
        chunk_count=data.get("chunk_count", 0),
        failed_chunks=tuple(data.get("failed_chunks") or ()),
    )


def category_to_dict(category: Category) -> dict[str, Any]:
    return {
        "name": category.name,
        "description": category.description,
        "color": category.color,
        "created_at": category.created_at.isoformat(),
    }


def category_from_dict(data: dict[str, Any]) -> Category:
    return Category(
        name=data["name"],
        description=data.get("description"),
        color=data["color"],
        created_at=datetime.fromisoformat(data["created_at"]),
    )
