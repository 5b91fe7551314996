"""ChromaDB-backed document store.

Chunk vectors live in a Chroma collection (cosine space) with the owning
document id, index and embedding model tag as metadata. Documents are
kept in memory and, when a persistence directory is configured, mirrored
to one JSON file each so they survive restarts together with the
collection. Registered categories are mirrored to a single JSON file.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import chromadb
from chromadb.config import Settings

from src.core.config import CoreConfig
from src.core.errors import CategoryExists, CoreError, DocumentNotFound, StorageError
from src.core.models import Category, Chunk, Document, DocumentStatus
from src.core.result import Err, Ok, Result
from src.storage.base import (
    DocumentStore,
    category_from_dict,
    category_to_dict,
    document_from_dict,
    document_to_dict,
)

logger = logging.getLogger(__name__)

CATEGORIES_FILE = "categories.json"


def chroma_settings() -> Settings:
    """Client settings shared by every Chroma client in the process.

    Chroma keeps one system per process and refuses a second client with
    different settings, so callers that inject their own client build it
    from these too. A fresh object is returned because Chroma mutates it.
    """
    return Settings(anonymized_telemetry=False)


def ephemeral_client() -> chromadb.ClientAPI:
    return chromadb.EphemeralClient(settings=chroma_settings())


class ChromaStore(DocumentStore):
    """ChromaDB store for chunk vectors plus a JSON-mirrored document table."""

    def __init__(
        self,
        config: CoreConfig,
        client: Optional[chromadb.ClientAPI] = None,
    ) -> None:
        self._config = config
        self._lock = threading.RLock()

        if client is not None:
            self._client = client
        elif config.chroma_persist_dir:
            self._client = chromadb.PersistentClient(
                path=config.chroma_persist_dir,
                settings=chroma_settings(),
            )
        else:
            self._client = ephemeral_client()

        self._collection = self._client.get_or_create_collection(
            name=config.chroma_collection,
            metadata={"hnsw:space": "cosine"},
        )

        self._documents_dir: Optional[Path] = None
        if config.chroma_persist_dir:
            self._documents_dir = Path(config.chroma_persist_dir) / "documents"
            self._documents_dir.mkdir(parents=True, exist_ok=True)
        self._documents = self._load_documents()
        self._categories = self._load_categories()

    # --- Documents --------------------------------------------------------

    def persist_document(self, document: Document) -> Result[Document, StorageError]:
        with self._lock:
            try:
                self._write_document(document)
            except OSError as e:
                return Err(StorageError(f"Document write failed: {e}"))
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
            if doc_id not in self._documents:
                return Err(DocumentNotFound(doc_id))
            deleted = self.delete_chunks(doc_id)
            if deleted.is_err():
                return deleted  # type: ignore[return-value]
            del self._documents[doc_id]
            if self._documents_dir is not None:
                (self._documents_dir / f"{doc_id}.json").unlink(missing_ok=True)
        return Ok(None)

    # --- Chunks -----------------------------------------------------------

    def persist_chunk(self, chunk: Chunk) -> Result[Chunk, StorageError]:
        with self._lock:
            try:
                existing = self._collection.get(
                    where={"$and": [{"doc_id": chunk.doc_id}, {"chunk_index": chunk.chunk_index}]},
                    include=["metadatas"],
                )
                if existing["ids"]:
                    return Err(
                        StorageError(f"Chunk {chunk.chunk_index} of {chunk.doc_id} already exists")
                    )
                self._collection.add(
                    ids=[chunk.chunk_id],
                    embeddings=[list(chunk.embedding)],
                    documents=[chunk.content],
                    metadatas=[
                        {
                            "doc_id": chunk.doc_id,
                            "chunk_index": chunk.chunk_index,
                            "token_count": chunk.token_count,
                            "embedding_model": chunk.embedding_model,
                            "created_at": chunk.created_at.isoformat(),
                        }
                    ],
                )
                return Ok(chunk)
            except Exception as e:
                return Err(StorageError(f"ChromaDB add failed: {e}"))

    def delete_chunks(self, doc_id: str) -> Result[int, StorageError]:
        with self._lock:
            try:
                ids = self._collection.get(where={"doc_id": doc_id}, include=["metadatas"])["ids"]
                if ids:
                    self._collection.delete(ids=ids)
                return Ok(len(ids))
            except Exception as e:
                return Err(StorageError(f"ChromaDB delete failed: {e}"))

    def count_chunks(self, doc_id: Optional[str] = None) -> int:
        if doc_id is None:
            return self._collection.count()
        return len(self._collection.get(where={"doc_id": doc_id}, include=["metadatas"])["ids"])

    def fetch_chunks_for_similarity(
        self, document_ids: Optional[Iterable[str]] = None
    ) -> list[Chunk]:
        if document_ids is None:
            results = self._collection.get(include=["embeddings", "documents", "metadatas"])
        else:
            wanted = list(document_ids)
            if not wanted:
                return []
            where: dict[str, Any] = (
                {"doc_id": wanted[0]} if len(wanted) == 1 else {"doc_id": {"$in": wanted}}
            )
            results = self._collection.get(
                where=where, include=["embeddings", "documents", "metadatas"]
            )

        chunks: list[Chunk] = []
        embeddings = results["embeddings"]
        for i, chunk_id in enumerate(results["ids"]):
            metadata = results["metadatas"][i]  # type: ignore[index]
            # Chroma returns numpy arrays here, so no truthiness checks
            vector = embeddings[i] if embeddings is not None else []  # type: ignore[index]
            chunks.append(
                Chunk(
                    chunk_id=chunk_id,
                    doc_id=str(metadata["doc_id"]),
                    chunk_index=int(metadata["chunk_index"]),
                    content=results["documents"][i],  # type: ignore[index]
                    embedding=tuple(float(v) for v in vector),
                    embedding_model=str(metadata.get("embedding_model", "")),
                    token_count=int(metadata.get("token_count", 0)),
                    created_at=datetime.fromisoformat(str(metadata["created_at"])),
                )
            )
        return sorted(chunks, key=lambda c: (c.doc_id, c.chunk_index))

    # --- Categories -------------------------------------------------------

    def persist_category(self, category: Category) -> Result[Category, CoreError]:
        with self._lock:
            if category.name in self._categories:
                return Err(CategoryExists(category.name))
            updated = {**self._categories, category.name: category}
            try:
                self._write_categories(updated)
            except OSError as e:
                return Err(StorageError(f"Category write failed: {e}"))
            self._categories = updated
        return Ok(category)

    def list_categories(self) -> list[Category]:
        with self._lock:
            return sorted(self._categories.values(), key=lambda c: c.name)

    # --- JSON mirror ------------------------------------------------------

    def _write_document(self, document: Document) -> None:
        if self._documents_dir is None:
            return
        path = self._documents_dir / f"{document.doc_id}.json"
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(document_to_dict(document), indent=2), encoding="utf-8")
        tmp.replace(path)

    def _load_documents(self) -> dict[str, Document]:
        if self._documents_dir is None:
            return {}
        documents: dict[str, Document] = {}
        for path in sorted(self._documents_dir.glob("*.json")):
            try:
                document = document_from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Skipping unreadable document file", extra={"path": str(path), "error": str(e)})
                continue
            documents[document.doc_id] = document
        return documents

    def _write_categories(self, categories: dict[str, Category]) -> None:
        if self._documents_dir is None:
            return
        path = self._documents_dir.parent / CATEGORIES_FILE
        tmp = path.with_suffix(".json.tmp")
        payload = [category_to_dict(c) for c in sorted(categories.values(), key=lambda c: c.name)]
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp.replace(path)

    def _load_categories(self) -> dict[str, Category]:
        if self._documents_dir is None:
            return {}
        path = self._documents_dir.parent / CATEGORIES_FILE
        if not path.exists():
            return {}
        try:
            categories = [category_from_dict(d) for d in json.loads(path.read_text(encoding="utf-8"))]
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Skipping unreadable categories file", extra={"path": str(path), "error": str(e)})
            return {}
        return {c.name: c for c in categories}
