"""Data model for the generation and retrieval core.

Documents move through the ingestion state machine, chunks carry their
embedding vectors, and generation/retrieval values are transient.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, Optional, TypeVar
from uuid import uuid4

from src.core.errors import CoreError

T = TypeVar("T")

MetadataValue = Any

CATEGORY_KEY = "category_ids"
DEFAULT_CATEGORY_COLOR = "#3B82F6"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    """Ingestion state of a document."""

    PROCESSING = "processing"
    CHUNKING = "chunking"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.READY, DocumentStatus.ERROR)


@dataclass(frozen=True, slots=True)
class Document:
    """A knowledge document and its ingestion outcome."""

    title: str
    source_ref: str
    mime_type: Optional[str] = None
    status: DocumentStatus = DocumentStatus.PROCESSING
    extracted_text: Optional[str] = None
    metadata: dict[str, MetadataValue] = field(default_factory=dict)
    doc_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    error: Optional[str] = None
    chunk_count: int = 0
    failed_chunks: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if not self.title.strip():
            raise ValueError("Document title cannot be empty")
        if not self.source_ref.strip():
            raise ValueError("Document source_ref cannot be empty")

    def transition(self, status: DocumentStatus, **changes: Any) -> Document:
        """Return a copy in ``status`` with ``updated_at`` refreshed."""
        return replace(self, status=status, updated_at=utcnow(), **changes)

    @property
    def categories(self) -> tuple[str, ...]:
        """Category names from ``metadata["category_ids"]``, a list or a single value."""
        value = self.metadata.get(CATEGORY_KEY)
        if value is None:
            return ()
        if isinstance(value, (list, tuple, set)):
            return tuple(str(v) for v in value)
        return (str(value),)


@dataclass(frozen=True, slots=True)
class Category:
    """A named document category. Documents join one through their metadata."""

    name: str
    description: Optional[str] = None
    color: str = DEFAULT_CATEGORY_COLOR
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Category name cannot be empty")


@dataclass(frozen=True, slots=True)
class TextChunk:
    """A chunk produced by the chunking engine, before embedding."""

    text: str
    index: int
    token_count: int


@dataclass(frozen=True, slots=True)
class Chunk:
    """An embedded, persisted chunk of a document. Immutable."""

    doc_id: str
    chunk_index: int
    content: str
    embedding: tuple[float, ...]
    embedding_model: str
    token_count: int = 0
    chunk_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.content.strip():
            raise ValueError("Chunk content cannot be empty")
        if self.chunk_index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {self.chunk_index}")
        if not self.embedding:
            raise ValueError("Chunk embedding cannot be empty")


@dataclass(frozen=True, slots=True)
class Embedding:
    """An embedding vector tagged with the ``provider:model`` that produced it."""

    vector: tuple[float, ...]
    model: str

    @property
    def dimensions(self) -> int:
        return len(self.vector)


@dataclass(frozen=True, slots=True)
class RetrievalResult:
    """A chunk returned from retrieval with its cosine similarity."""

    chunk: Chunk
    score: float
    document_id: str
    document_title: str

    def __post_init__(self) -> None:
        if not -1.0 <= self.score <= 1.0:
            raise ValueError(f"Score must be between -1 and 1, got {self.score}")


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    prompt: str
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.7
    max_output_tokens: int = 2000

    def __post_init__(self) -> None:
        if not self.prompt.strip():
            raise ValueError("Prompt cannot be empty")
        if self.max_output_tokens <= 0:
            raise ValueError(f"max_output_tokens must be positive, got {self.max_output_tokens}")


class AttemptOutcome(str, Enum):
    TRANSPORT_FAILURE = "transport_failure"
    VALIDATION_FAILURE = "validation_failure"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class GenerationAttempt:
    number: int
    outcome: AttemptOutcome
    error: Optional[CoreError] = None


@dataclass(frozen=True, slots=True)
class GenerationOutcome(Generic[T]):
    """Terminal outcome of a retry-validated generation."""

    success: bool
    attempts_made: int
    result: Optional[T] = None
    error: Optional[CoreError] = None
    provider: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Completion:
    """Free-text completion plus the backend that produced it."""

    text: str
    provider: str
    model: str
