"""Facade over the generation and retrieval core.

``ContentCore`` wires the components from one ``CoreConfig`` and exposes
the operations callers use:
1. Knowledge ingestion (files and inline text) and document management
2. Similarity queries and prompt context assembly
3. Structured generation with retry-validate, and free-text drafting
   with provider fallback

All external dependencies are injectable, so mock mode runs offline
without API keys.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

from src.chunking.strategies import SentenceChunker
from src.core.config import CoreConfig
from src.core.errors import CoreError
from src.core.models import (
    DEFAULT_CATEGORY_COLOR,
    Category,
    Document,
    DocumentStatus,
    GenerationOutcome,
    GenerationRequest,
    RetrievalResult,
)
from src.core.result import Ok, Result
from src.generation.generator import StructuredGenerator
from src.generation.prompts import build_draft_prompt, build_ideas_prompt
from src.generation.schemas import IdeaItem, IdeaListSchema, OutputSchema
from src.ingestion.extractors import MemoryTextExtractor, TextExtractor
from src.ingestion.pipeline import IngestionPipeline
from src.providers.base import TextStream
from src.providers.client import ProviderClient
from src.retrieval.context import ContextAssembler
from src.retrieval.engine import RetrievalEngine, RetrievalFilter
from src.storage import DocumentStore, create_store

logger = logging.getLogger(__name__)

T = TypeVar("T")

INLINE_SCHEME = "inline://"
DRAFT_MAX_TOKENS = 500
DRAFT_MAX_TOKENS_WITH_CONTEXT = 750


@dataclass(frozen=True, slots=True)
class KnowledgeStats:
    total_documents: int
    total_chunks: int
    documents_by_status: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class CategorySummary:
    name: str
    description: Optional[str]
    color: str
    document_count: int
    registered: bool


@dataclass(frozen=True, slots=True)
class Draft:
    """A drafted idea description and the knowledge chunks that informed it."""

    text: str
    provider: str
    model: str
    sources: list[RetrievalResult] = field(default_factory=list)


class ContentCore:
    """Content generation and knowledge retrieval core.

    Usage:
        core = ContentCore(MockConfig.default())

        doc = core.ingest_text("Brand voice", "We write plainly. ...").unwrap()
        core.wait_for_document(doc.doc_id)

        outcome = core.generate_ideas("marketing manager", "SaaS", use_knowledge_base=True)
    """

    def __init__(
        self,
        config: Optional[CoreConfig] = None,
        client: Optional[ProviderClient] = None,
        store: Optional[DocumentStore] = None,
        extractor: Optional[TextExtractor] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config or CoreConfig()

        # Dependency injection with config-driven defaults
        self._client = client or ProviderClient(self._config)
        self._store = store or create_store(self._config)
        self._extractor = MemoryTextExtractor(fallback=extractor)

        self._pipeline = IngestionPipeline(
            self._client,
            self._store,
            self._extractor,
            SentenceChunker.from_config(self._config),
            self._config,
        )
        self._retrieval = RetrievalEngine(self._client, self._store, self._config)
        self._assembler = ContextAssembler(self._config.max_context_chars)
        self._generator = StructuredGenerator(self._client, self._config, sleep=sleep)

        self._pipeline.recover_interrupted()

    @property
    def config(self) -> CoreConfig:
        return self._config

    @property
    def client(self) -> ProviderClient:
        return self._client

    # --- Knowledge base ---------------------------------------------------

    def ingest_document(
        self,
        source_ref: str,
        metadata: Optional[dict[str, Any]] = None,
        title: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> Result[Document, CoreError]:
        """Accept a file for background ingestion; returns the ``processing`` document."""
        return self._pipeline.ingest(source_ref, metadata, title=title, mime_type=mime_type)

    def ingest_text(
        self, title: str, text: str, metadata: Optional[dict[str, Any]] = None
    ) -> Result[Document, CoreError]:
        """Accept inline text for background ingestion."""
        source_ref = f"{INLINE_SCHEME}{uuid4()}"
        self._extractor.add(source_ref, text)
        return self._pipeline.ingest(source_ref, metadata, title=title, mime_type="text/plain")

    def reprocess_document(self, doc_id: str) -> Result[Document, CoreError]:
        return self._pipeline.reprocess(doc_id)

    def wait_for_document(self, doc_id: str, timeout: Optional[float] = None) -> Optional[Document]:
        return self._pipeline.wait(doc_id, timeout=timeout)

    def get_document(self, doc_id: str) -> Optional[Document]:
        return self._store.get_document(doc_id)

    def list_documents(
        self,
        status: Optional[DocumentStatus] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> tuple[list[Document], int]:
        """One page of documents in creation order, plus the total matching count."""
        if offset < 0 or (limit is not None and limit < 0):
            raise ValueError("limit and offset must be non-negative")
        documents = self._store.list_documents(status)
        if category is not None:
            documents = [d for d in documents if category in d.categories]
        end = None if limit is None else offset + limit
        return documents[offset:end], len(documents)

    def delete_document(self, doc_id: str) -> Result[None, CoreError]:
        """Delete a terminal document and its chunks."""
        deleted = self._pipeline.delete(doc_id)
        if deleted.is_err():
            return deleted  # type: ignore[return-value]
        document = deleted.unwrap()
        if document.source_ref.startswith(INLINE_SCHEME):
            self._extractor.discard(document.source_ref)
        return Ok(None)

    def create_category(
        self, name: str, description: Optional[str] = None, color: Optional[str] = None
    ) -> Result[Category, CoreError]:
        category = Category(
            name=name.strip(), description=description, color=color or DEFAULT_CATEGORY_COLOR
        )
        return self._store.persist_category(category)

    def list_categories(self) -> list[CategorySummary]:
        """Registered categories plus any named only in document metadata, by name."""
        counts: Counter[str] = Counter()
        for document in self._store.list_documents():
            counts.update(set(document.categories))

        registered = {c.name: c for c in self._store.list_categories()}
        names = sorted(set(registered) | set(counts))
        return [
            CategorySummary(
                name=name,
                description=registered[name].description if name in registered else None,
                color=registered[name].color if name in registered else DEFAULT_CATEGORY_COLOR,
                document_count=counts[name],
                registered=name in registered,
            )
            for name in names
        ]

    def knowledge_stats(self) -> KnowledgeStats:
        documents = self._store.list_documents()
        by_status = {status.value: 0 for status in DocumentStatus}
        for document in documents:
            by_status[document.status.value] += 1
        return KnowledgeStats(
            total_documents=len(documents),
            total_chunks=self._store.count_chunks(),
            documents_by_status=by_status,
        )

    # --- Retrieval --------------------------------------------------------

    def query_knowledge(
        self,
        text: str,
        limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> Result[list[RetrievalResult], CoreError]:
        return self._retrieval.query(text, limit, similarity_threshold, filter)

    def build_context(
        self,
        text: str,
        limit: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        filter: Optional[RetrievalFilter] = None,
        max_context_length: Optional[int] = None,
    ) -> Result[str, CoreError]:
        """Query the knowledge base and format the hits as a prompt context block."""
        return self.query_knowledge(text, limit, similarity_threshold, filter).map(
            lambda results: self.assemble_context(results, max_context_length)
        )

    def assemble_context(
        self, results: list[RetrievalResult], max_context_length: Optional[int] = None
    ) -> str:
        return self._assembler.assemble(results, max_context_length)

    # --- Generation -------------------------------------------------------

    def generate_structured(
        self, request: GenerationRequest, schema: OutputSchema[T]
    ) -> GenerationOutcome[T]:
        return self._generator.generate(request, schema)

    def generate_ideas(
        self,
        persona: str,
        industry: str,
        provider: Optional[str] = None,
        count: int = 10,
        use_knowledge_base: bool = False,
        knowledge_query: Optional[str] = None,
        filter: Optional[RetrievalFilter] = None,
    ) -> GenerationOutcome[list[IdeaItem]]:
        """Generate exactly ``count`` ideas, optionally grounded in the knowledge base."""
        context = None
        if use_knowledge_base:
            context, _ = self._knowledge_context(knowledge_query or f"{persona} {industry}", filter)

        request = GenerationRequest(
            prompt=build_ideas_prompt(persona, industry, count=count, context=context),
            provider=provider,
            temperature=self._config.temperature,
            max_output_tokens=self._config.max_output_tokens,
        )
        return self._generator.generate(request, IdeaListSchema(count=count))

    def draft_idea(
        self,
        title: str,
        persona: Optional[str] = None,
        industry: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        use_knowledge_base: bool = False,
    ) -> Result[Draft, CoreError]:
        """Describe one idea in free text, falling back across providers on failure."""
        context, sources = None, []
        if use_knowledge_base:
            query = " ".join(part for part in (title, persona, industry) if part)
            context, sources = self._knowledge_context(query)

        request = GenerationRequest(
            prompt=build_draft_prompt(title, persona, industry, context=context),
            provider=provider,
            model=model,
            temperature=self._config.temperature,
            max_output_tokens=DRAFT_MAX_TOKENS_WITH_CONTEXT if context else DRAFT_MAX_TOKENS,
        )
        return self._client.complete_with_fallback(request).map(
            lambda c: Draft(text=c.text, provider=c.provider, model=c.model, sources=sources)
        )

    def stream_completion(
        self,
        prompt: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Result[TextStream, CoreError]:
        selected = self._client.select_provider(provider or self._config.default_provider)
        if selected.is_err():
            return selected  # type: ignore[return-value]
        return self._client.stream_complete(
            prompt,
            selected.unwrap(),
            model=model,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )

    def available_providers(self) -> list[str]:
        return self._client.available_providers()

    def models_for(self, provider: str) -> list[str]:
        return self._client.models_for(provider)

    def close(self) -> None:
        self._pipeline.close()

    def _knowledge_context(
        self, query: str, filter: Optional[RetrievalFilter] = None
    ) -> tuple[Optional[str], list[RetrievalResult]]:
        # Retrieval problems degrade to generation without context
        results = self.query_knowledge(query, filter=filter)
        if results.is_err():
            logger.warning(
                "Knowledge context unavailable",
                extra={"error": str(results.unwrap_err())},
            )
            return None, []
        hits = results.unwrap()
        if not hits:
            return None, []
        return self._assembler.assemble(hits), hits
