"""Configuration for the generation and retrieval core.

Built once at startup and passed explicitly into every component.

Two modes:
- Production: real provider backends, credentials from settings/env
- Mock: deterministic offline backend for demos, tests and CI
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class RunMode(str, Enum):
    """Core execution mode."""

    PRODUCTION = "production"
    MOCK = "mock"


class StoreBackend(str, Enum):
    """Where documents and chunk vectors are kept."""

    MEMORY = "memory"
    CHROMA = "chroma"


class OverlapUnit(str, Enum):
    """Unit of the overlap window carried between consecutive chunks."""

    SENTENCES = "sentences"
    WORDS = "words"


class CoreConfig(BaseSettings):
    """Main configuration.

    All settings can be overridden via environment variables with the CONTENT_ prefix.
    Example: CONTENT_MODE=production, CONTENT_OPENAI_API_KEY=sk-...
    """

    model_config = {"env_prefix": "CONTENT_"}

    # Core mode
    mode: RunMode = Field(default=RunMode.MOCK, description="Execution mode")

    # Provider credentials
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API key")
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API key")
    deepseek_api_key: Optional[str] = Field(default=None, description="DeepSeek API key")
    deepseek_base_url: str = Field(
        default="https://api.deepseek.com", description="DeepSeek OpenAI-compatible endpoint"
    )

    # Generation settings
    default_provider: str = Field(default="openai", description="Preferred chat provider")
    model_overrides: dict[str, str] = Field(
        default_factory=dict, description="Per-provider default model overrides"
    )
    temperature: float = Field(default=0.7, description="Default sampling temperature")
    max_output_tokens: int = Field(default=2000, description="Default max output tokens")
    request_timeout: float = Field(default=60.0, description="Per-call backend timeout (s)")
    max_generation_attempts: int = Field(default=3, ge=1, description="Retry-validate cap")
    backoff_base_seconds: float = Field(default=1.0, ge=0.0, description="Backoff base delay")

    # Embedding settings (pinned for ingestion and query alike)
    embedding_provider: Optional[str] = Field(
        default=None, description="Embedding provider; mock in mock mode, gemini otherwise"
    )
    embedding_model: Optional[str] = Field(default=None, description="Embedding model name")
    embedding_dimensions: int = Field(default=384, description="Mock embedding dimensions")

    # Store settings
    store_backend: StoreBackend = Field(default=StoreBackend.MEMORY, description="Store backend")
    chroma_persist_dir: Optional[str] = Field(default=None, description="ChromaDB persistence dir")
    chroma_collection: str = Field(default="knowledge_chunks", description="ChromaDB collection")

    # Chunking settings
    chunk_size: int = Field(default=1000, description="Max chunk size in characters")
    chunk_overlap: int = Field(default=1, description="Overlap carried into the next chunk")
    overlap_unit: OverlapUnit = Field(default=OverlapUnit.SENTENCES, description="Overlap unit")
    min_chunk_length: int = Field(default=10, description="Final chunks shorter than this are dropped")

    # Ingestion settings
    ingestion_workers: int = Field(default=4, ge=1, description="Concurrent document pipelines")
    embedding_concurrency: int = Field(default=1, ge=1, description="Parallel embeds per document")

    # Retrieval settings
    top_k: int = Field(default=5, description="Number of chunks to retrieve")
    similarity_threshold: float = Field(default=0.7, description="Minimum cosine similarity")
    max_context_chars: int = Field(default=4000, description="Context block budget")

    # API settings
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    upload_dir: str = Field(default="./uploads", description="Where uploaded files are kept")

    log_level: str = Field(default="INFO", description="Root log level")

    def resolved_embedding_provider(self) -> str:
        """Embedding provider used for both ingestion and queries."""
        if self.embedding_provider:
            return self.embedding_provider
        return "mock" if self.mode == RunMode.MOCK else "gemini"


class MockConfig:
    """Configuration presets for mock/demo mode.

    No API keys required; every provider call is answered by the
    deterministic mock backend.
    """

    @staticmethod
    def default() -> CoreConfig:
        """Create a default mock configuration."""
        return CoreConfig(mode=RunMode.MOCK, default_provider="mock")

    @staticmethod
    def with_overrides(**kwargs: object) -> CoreConfig:
        """Create mock config with specific overrides."""
        defaults: dict[str, object] = {"mode": RunMode.MOCK, "default_provider": "mock"}
        defaults.update(kwargs)
        return CoreConfig(**defaults)  # type: ignore[arg-type]
