"""FastAPI REST API for the content core.

A thin adapter: request models in, ``ContentCore`` calls, response models
out. Core errors are mapped to HTTP status codes in one place.
"""

from __future__ import annotations

import shutil
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncGenerator, Iterator, Optional
from uuid import uuid4

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from src.core.config import CoreConfig
from src.core.errors import (
    CategoryExists,
    ConfigurationError,
    CoreError,
    DocumentBusy,
    DocumentNotFound,
    TransportError,
    UnsupportedFormat,
)
from src.core.log import configure_logging
from src.core.models import Document, DocumentStatus
from src.core.service import ContentCore
from src.generation.schemas import IdeaItem
from src.providers.base import TextStream
from src.retrieval.engine import RetrievalFilter

VERSION = "0.1.0"


# --- Request/Response Models ---


class TextDocumentRequest(BaseModel):
    """Inline text to add to the knowledge base."""

    title: str = Field(..., min_length=1, description="Document title")
    content: str = Field(..., min_length=1, description="Document text")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Optional metadata")


class DocumentResponse(BaseModel):
    doc_id: str
    title: str
    source_ref: str
    mime_type: Optional[str]
    status: str
    metadata: dict[str, Any]
    chunk_count: int
    failed_chunks: list[int]
    error: Optional[str]
    created_at: datetime
    updated_at: datetime


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int
    limit: int
    offset: int


class CategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Category name")
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Category name cannot be blank")
        return value.strip()


class CategoryResponse(BaseModel):
    name: str
    description: Optional[str]
    color: str
    document_count: int
    registered: bool


class QueryRequest(BaseModel):
    """Request body for a knowledge query."""

    query: str = Field(..., min_length=1, description="Query text")
    limit: Optional[int] = Field(default=None, ge=1, le=50, description="Number of chunks")
    similarity_threshold: Optional[float] = Field(
        default=None, ge=-1.0, le=1.0, description="Minimum cosine similarity"
    )
    document_ids: Optional[list[str]] = Field(default=None, description="Restrict to documents")
    category_ids: Optional[list[str]] = Field(default=None, description="Restrict to categories")


class ResultInfo(BaseModel):
    document_id: str
    document_title: str
    chunk_index: int
    content: str
    score: float
    token_count: int


class QueryResponse(BaseModel):
    query: str
    results: list[ResultInfo]
    context: str


class StatsResponse(BaseModel):
    total_documents: int
    total_chunks: int
    documents_by_status: dict[str, int]


class IdeasRequest(BaseModel):
    persona: str = Field(..., min_length=1)
    industry: str = Field(..., min_length=1)
    provider: Optional[str] = None
    count: int = Field(default=10, ge=1, le=20)
    use_knowledge_base: bool = False
    knowledge_query: Optional[str] = None


class IdeasResponse(BaseModel):
    ideas: list[IdeaItem]
    attempts: int
    provider: Optional[str]


class DraftRequest(BaseModel):
    title: str = Field(..., min_length=1)
    persona: Optional[str] = None
    industry: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    use_knowledge_base: bool = False


class DraftResponse(BaseModel):
    description: str
    provider: str
    model: str
    rag_used: bool
    sources: list[ResultInfo]


class StreamRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)


class ProvidersResponse(BaseModel):
    providers: list[str]
    default: Optional[str]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    mode: str
    document_count: int
    chunk_count: int
    version: str = VERSION


# --- Helpers ---


def _document_response(document: Document) -> DocumentResponse:
    return DocumentResponse(
        doc_id=document.doc_id,
        title=document.title,
        source_ref=document.source_ref,
        mime_type=document.mime_type,
        status=document.status.value,
        metadata=document.metadata,
        chunk_count=document.chunk_count,
        failed_chunks=list(document.failed_chunks),
        error=document.error,
        created_at=document.created_at,
        updated_at=document.updated_at,
    )


def _result_info(hit: Any) -> ResultInfo:
    return ResultInfo(
        document_id=hit.document_id,
        document_title=hit.document_title,
        chunk_index=hit.chunk.chunk_index,
        content=hit.chunk.content,
        score=hit.score,
        token_count=hit.chunk.token_count,
    )


def _http_error(error: CoreError) -> HTTPException:
    if isinstance(error, DocumentNotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, CategoryExists):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, DocumentBusy):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, UnsupportedFormat):
        return HTTPException(status_code=415, detail=str(error))
    if isinstance(error, ConfigurationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, TransportError):
        return HTTPException(status_code=502, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


def _stream_body(stream: TextStream) -> Iterator[str]:
    with stream:
        yield from stream


# --- Application ---

_core: Optional[ContentCore] = None


def get_core() -> ContentCore:
    """Get or create the global core instance."""
    global _core
    if _core is None:
        config = CoreConfig()
        configure_logging(config.log_level)
        _core = ContentCore(config)
    return _core


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    get_core()
    yield
    # Shutdown: let running ingestions finish
    if _core is not None:
        _core.close()


def create_app(config: Optional[CoreConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Optional CoreConfig. Defaults to environment-based config.
    """
    app = FastAPI(
        title="Content Core",
        description="Knowledge-grounded content generation and retrieval",
        version=VERSION,
        lifespan=lifespan,
    )

    if config is not None:
        global _core
        _core = ContentCore(config)

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Health check endpoint."""
        core = get_core()
        stats = core.knowledge_stats()
        return HealthResponse(
            status="healthy",
            mode=core.config.mode.value,
            document_count=stats.total_documents,
            chunk_count=stats.total_chunks,
        )

    # --- Providers ---

    @app.get("/providers", response_model=ProvidersResponse)
    def providers() -> ProvidersResponse:
        core = get_core()
        selected = core.client.select_provider(core.config.default_provider)
        return ProvidersResponse(
            providers=core.available_providers(),
            default=selected.unwrap() if selected.is_ok() else None,
        )

    @app.get("/providers/{provider}/models")
    def provider_models(provider: str) -> dict[str, Any]:
        models = get_core().models_for(provider)
        if not models:
            raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
        return {"provider": provider, "models": models}

    # --- Documents ---

    @app.post("/documents", response_model=DocumentResponse, status_code=202)
    def upload_document(
        file: UploadFile = File(...),  # noqa: B008
        title: Optional[str] = Form(None),
        categories: Optional[str] = Form(None, description="Comma-separated category ids"),
    ) -> DocumentResponse:
        """Store an uploaded file and start its ingestion."""
        core = get_core()
        filename = Path(file.filename or "upload").name
        upload_dir = Path(core.config.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        destination = upload_dir / f"{uuid4().hex}_{filename}"
        with open(destination, "wb") as buffer:
            shutil.copyfileobj(file.file, buffer)

        metadata: dict[str, Any] = {"original_filename": filename}
        if categories:
            metadata["category_ids"] = [c.strip() for c in categories.split(",") if c.strip()]
        mime_type = file.content_type if file.content_type != "application/octet-stream" else None

        result = core.ingest_document(
            str(destination), metadata, title=title or filename, mime_type=mime_type
        )
        if result.is_err():
            raise _http_error(result.unwrap_err())
        return _document_response(result.unwrap())

    @app.post("/documents/text", response_model=DocumentResponse, status_code=202)
    def create_text_document(request: TextDocumentRequest) -> DocumentResponse:
        result = get_core().ingest_text(request.title, request.content, request.metadata)
        if result.is_err():
            raise _http_error(result.unwrap_err())
        return _document_response(result.unwrap())

    @app.get("/documents", response_model=DocumentListResponse)
    def list_documents(
        status: Optional[DocumentStatus] = None,
        category: Optional[str] = None,
        limit: int = Query(default=20, ge=1, le=100),
        offset: int = Query(default=0, ge=0),
    ) -> DocumentListResponse:
        documents, total = get_core().list_documents(status, category, limit=limit, offset=offset)
        return DocumentListResponse(
            documents=[_document_response(d) for d in documents],
            total=total,
            limit=limit,
            offset=offset,
        )

    @app.get("/documents/{doc_id}", response_model=DocumentResponse)
    def get_document(doc_id: str) -> DocumentResponse:
        document = get_core().get_document(doc_id)
        if document is None:
            raise _http_error(DocumentNotFound(doc_id))
        return _document_response(document)

    @app.delete("/documents/{doc_id}", status_code=204)
    def delete_document(doc_id: str) -> None:
        result = get_core().delete_document(doc_id)
        if result.is_err():
            raise _http_error(result.unwrap_err())

    @app.post("/documents/{doc_id}/reprocess", response_model=DocumentResponse, status_code=202)
    def reprocess_document(doc_id: str) -> DocumentResponse:
        result = get_core().reprocess_document(doc_id)
        if result.is_err():
            raise _http_error(result.unwrap_err())
        return _document_response(result.unwrap())

    # --- Categories ---

    @app.get("/categories", response_model=list[CategoryResponse])
    def list_categories() -> list[CategoryResponse]:
        return [
            CategoryResponse(
                name=c.name,
                description=c.description,
                color=c.color,
                document_count=c.document_count,
                registered=c.registered,
            )
            for c in get_core().list_categories()
        ]

    @app.post("/categories", response_model=CategoryResponse, status_code=201)
    def create_category(request: CategoryRequest) -> CategoryResponse:
        core = get_core()
        result = core.create_category(request.name, request.description, request.color)
        if result.is_err():
            raise _http_error(result.unwrap_err())
        category = result.unwrap()
        documents, _ = core.list_documents(category=category.name)
        return CategoryResponse(
            name=category.name,
            description=category.description,
            color=category.color,
            document_count=len(documents),
            registered=True,
        )

    # --- Knowledge ---

    @app.get("/knowledge/stats", response_model=StatsResponse)
    def knowledge_stats() -> StatsResponse:
        stats = get_core().knowledge_stats()
        return StatsResponse(
            total_documents=stats.total_documents,
            total_chunks=stats.total_chunks,
            documents_by_status=stats.documents_by_status,
        )

    @app.post("/knowledge/query", response_model=QueryResponse)
    def query_knowledge(request: QueryRequest) -> QueryResponse:
        """Similarity search over ready documents."""
        core = get_core()
        metadata = {"category_ids": request.category_ids} if request.category_ids else {}
        search_filter = None
        if request.document_ids is not None or metadata:
            search_filter = RetrievalFilter(
                document_ids=frozenset(request.document_ids) if request.document_ids is not None else None,
                metadata=metadata,
            )

        result = core.query_knowledge(
            request.query,
            limit=request.limit,
            similarity_threshold=request.similarity_threshold,
            filter=search_filter,
        )
        if result.is_err():
            raise _http_error(result.unwrap_err())

        hits = result.unwrap()
        return QueryResponse(
            query=request.query,
            results=[_result_info(hit) for hit in hits],
            context=core.assemble_context(hits),
        )

    # --- Generation ---

    @app.post("/generate/ideas", response_model=IdeasResponse)
    def generate_ideas(request: IdeasRequest) -> IdeasResponse:
        outcome = get_core().generate_ideas(
            request.persona,
            request.industry,
            provider=request.provider,
            count=request.count,
            use_knowledge_base=request.use_knowledge_base,
            knowledge_query=request.knowledge_query,
        )
        if not outcome.success:
            error = _http_error(outcome.error or CoreError("Generation failed"))
            error.detail = f"Failed after {outcome.attempts_made} attempts. Last error: {outcome.error}"
            raise error
        return IdeasResponse(
            ideas=outcome.result or [], attempts=outcome.attempts_made, provider=outcome.provider
        )

    @app.post("/generate/draft", response_model=DraftResponse)
    def draft_idea(request: DraftRequest) -> DraftResponse:
        result = get_core().draft_idea(
            request.title,
            persona=request.persona,
            industry=request.industry,
            provider=request.provider,
            model=request.model,
            use_knowledge_base=request.use_knowledge_base,
        )
        if result.is_err():
            raise _http_error(result.unwrap_err())
        draft = result.unwrap()
        return DraftResponse(
            description=draft.text,
            provider=draft.provider,
            model=draft.model,
            rag_used=bool(draft.sources),
            sources=[_result_info(hit) for hit in draft.sources],
        )

    @app.post("/generate/stream")
    def generate_stream(request: StreamRequest) -> StreamingResponse:
        """Stream a completion as plain text fragments."""
        result = get_core().stream_completion(
            request.prompt,
            provider=request.provider,
            model=request.model,
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
        )
        if result.is_err():
            raise _http_error(result.unwrap_err())
        stream = result.unwrap()
        return StreamingResponse(
            _stream_body(stream),
            media_type="text/plain",
            headers={"X-Provider": stream.provider, "X-Model": stream.model},
        )

    return app


# Default app instance for uvicorn
app = create_app()
