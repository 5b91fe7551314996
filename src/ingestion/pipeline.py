"""Document ingestion: extraction, chunking, embedding and persistence.

State machine per document:

    processing --extraction ok--> chunking --all chunks attempted--> ready
    processing --extraction failed--> error

``ingest`` and ``reprocess`` return as soon as the document row is
written; the rest runs on the ``TaskSupervisor``. A chunk whose embedding
or persistence fails is skipped and recorded in ``failed_chunks``, so
``ready`` means best-effort indexed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterator, Optional

from src.chunking.strategies import ChunkingStrategy
from src.core.config import CoreConfig
from src.core.errors import (
    CoreError,
    DocumentBusy,
    DocumentNotFound,
    ExtractionError,
    PartialIngestionWarning,
    StorageError,
)
from src.core.models import Chunk, Document, DocumentStatus, Embedding, TextChunk
from src.core.result import Err, Ok, Result
from src.ingestion.extractors import TextExtractor, guess_mime_type
from src.ingestion.supervisor import TaskSupervisor
from src.providers.client import ProviderClient
from src.storage.base import DocumentStore

logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Runs documents through the ingestion state machine in the background."""

    def __init__(
        self,
        client: ProviderClient,
        store: DocumentStore,
        extractor: TextExtractor,
        chunker: ChunkingStrategy,
        config: CoreConfig,
        supervisor: Optional[TaskSupervisor] = None,
    ) -> None:
        self._client = client
        self._store = store
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_concurrency = config.embedding_concurrency
        self._supervisor = supervisor or TaskSupervisor(max_workers=config.ingestion_workers)
        self._lock = threading.Lock()

    # --- Public operations -------------------------------------------------

    def ingest(
        self,
        source_ref: str,
        metadata: Optional[dict[str, Any]] = None,
        title: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Result[Document, CoreError]:
        """Register a document in ``processing`` and start its run."""
        document = Document(
            title=title or Path(source_ref).name or source_ref,
            source_ref=source_ref,
            mime_type=mime_type or guess_mime_type(source_ref),
            metadata=dict(metadata or {}),
        )

        with self._lock:
            persisted = self._store.persist_document(document)
            if persisted.is_err():
                return persisted  # type: ignore[return-value]
            self._start(document.doc_id)

        logger.info(
            "Document accepted",
            extra={"doc_id": document.doc_id, "source_ref": source_ref, "mime_type": document.mime_type},
        )
        return Ok(document)

    def reprocess(self, doc_id: str) -> Result[Document, CoreError]:
        """Delete all chunks of a terminal document and run it again from extraction."""
        with self._lock:
            document = self._store.get_document(doc_id)
            if document is None:
                return Err(DocumentNotFound(doc_id))
            if not document.status.is_terminal or self._supervisor.active(doc_id):
                return Err(DocumentBusy(doc_id, document.status.value))

            deleted = self._store.delete_chunks(doc_id)
            if deleted.is_err():
                return deleted  # type: ignore[return-value]

            reset = document.transition(
                DocumentStatus.PROCESSING,
                extracted_text=None,
                error=None,
                chunk_count=0,
                failed_chunks=(),
            )
            persisted = self._store.persist_document(reset)
            if persisted.is_err():
                return persisted  # type: ignore[return-value]
            self._start(doc_id)

        logger.info("Document reprocessing", extra={"doc_id": doc_id, "chunks_deleted": deleted.unwrap()})
        return Ok(reset)

    def delete(self, doc_id: str) -> Result[Document, CoreError]:
        """Delete a document with no active run, together with its chunks.

        Holds the lock that ``ingest`` and ``reprocess`` start runs under, so
        no run can begin between the busy check and the delete.
        """
        with self._lock:
            document = self._store.get_document(doc_id)
            if document is None:
                return Err(DocumentNotFound(doc_id))
            if self._supervisor.active(doc_id):
                return Err(DocumentBusy(doc_id, document.status.value))
            deleted = self._store.delete_document(doc_id)
            if deleted.is_err():
                return deleted  # type: ignore[return-value]

        logger.info("Document deleted", extra={"doc_id": doc_id})
        return Ok(document)

    def wait(self, doc_id: str, timeout: Optional[float] = None) -> Optional[Document]:
        """Block until the document's run finishes; returns its latest state."""
        self._supervisor.wait(doc_id, timeout=timeout)
        return self._store.get_document(doc_id)

    def wait_all(self, timeout: Optional[float] = None) -> bool:
        return self._supervisor.wait_all(timeout=timeout)

    def is_running(self, doc_id: str) -> bool:
        return self._supervisor.active(doc_id)

    def recover_interrupted(self) -> int:
        """Mark documents left mid-run by a previous process as ``error``."""
        recovered = 0
        for document in self._store.list_documents():
            if document.status.is_terminal or self._supervisor.active(document.doc_id):
                continue
            self._store.persist_document(
                document.transition(DocumentStatus.ERROR, error="Ingestion interrupted before completion")
            )
            recovered += 1
        if recovered:
            logger.warning("Recovered interrupted documents", extra={"count": recovered})
        return recovered

    def close(self) -> None:
        self._supervisor.shutdown(wait=True)

    # --- Background run ---------------------------------------------------

    def _start(self, doc_id: str) -> None:
        future = self._supervisor.submit(doc_id, lambda: self._run(doc_id))
        if future is None:
            # Callers check for an active run under the same lock
            raise RuntimeError(f"Document {doc_id} already has an active ingestion run")

    def _run(self, doc_id: str) -> None:
        try:
            self._process(doc_id)
        except Exception as e:
            logger.exception("Ingestion failed unexpectedly", extra={"doc_id": doc_id})
            document = self._store.get_document(doc_id)
            if document is not None:
                self._store.persist_document(
                    document.transition(DocumentStatus.ERROR, error=f"Unexpected ingestion failure: {e}")
                )

    def _process(self, doc_id: str) -> None:
        document = self._store.get_document(doc_id)
        if document is None:
            logger.warning("Document deleted before processing", extra={"doc_id": doc_id})
            return

        try:
            text = self._extractor.extract(document.source_ref, document.mime_type)
        except ExtractionError as e:
            self._save(document.transition(DocumentStatus.ERROR, error=str(e)))
            logger.error("Extraction failed", extra={"doc_id": doc_id, "error": str(e)})
            return

        document = self._save(document.transition(DocumentStatus.CHUNKING, extracted_text=text))
        pieces = self._chunker.chunk(text)

        persisted = 0
        failed: list[int] = []
        last_error: Optional[CoreError] = None
        for piece, embedded in zip(pieces, self._embed_in_order(pieces)):
            outcome = embedded.and_then(lambda emb, p=piece: self._persist_chunk(doc_id, p, emb))
            if outcome.is_ok():
                persisted += 1
                continue
            last_error = outcome.unwrap_err()
            failed.append(piece.index)
            warning = PartialIngestionWarning(f"Chunk {piece.index} of {doc_id} skipped: {last_error}")
            logger.warning(
                str(warning),
                extra={"doc_id": doc_id, "chunk_index": piece.index, "category": type(warning).__name__},
            )

        current = self._store.get_document(doc_id)
        if current is None:
            logger.warning("Document deleted during processing", extra={"doc_id": doc_id})
            self._store.delete_chunks(doc_id)
            return

        summary = None
        if failed:
            summary = f"{len(failed)} of {len(pieces)} chunks skipped; last error: {last_error}"
        self._save(
            current.transition(
                DocumentStatus.READY,
                chunk_count=persisted,
                failed_chunks=tuple(failed),
                error=summary,
            )
        )
        logger.info(
            "Document ready",
            extra={"doc_id": doc_id, "chunks": persisted, "skipped": len(failed)},
        )

    def _embed_in_order(self, pieces: list[TextChunk]) -> Iterator[Result[Embedding, CoreError]]:
        """Yield embedding results in chunk-index order."""
        if self._embedding_concurrency <= 1 or len(pieces) <= 1:
            for piece in pieces:
                yield self._client.embed(piece.text)
            return

        with ThreadPoolExecutor(max_workers=self._embedding_concurrency) as executor:
            yield from executor.map(lambda p: self._client.embed(p.text), pieces)

    def _persist_chunk(
        self, doc_id: str, piece: TextChunk, embedding: Embedding
    ) -> Result[Chunk, StorageError]:
        chunk = Chunk(
            doc_id=doc_id,
            chunk_index=piece.index,
            content=piece.text,
            embedding=embedding.vector,
            embedding_model=embedding.model,
            token_count=piece.token_count,
        )
        return self._store.persist_chunk(chunk)

    def _save(self, document: Document) -> Document:
        saved = self._store.persist_document(document)
        if saved.is_err():
            raise saved.unwrap_err()
        return document
