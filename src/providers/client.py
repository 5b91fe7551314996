"""Uniform client over the provider backends.

The client owns three concerns:
1. Credential checks (``NotConfigured`` before any backend is built)
2. Backend lookup through a capability table keyed by provider name
3. Translating SDK failures into the core error taxonomy

All operations return ``Result``; nothing here retries.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from src.core.config import CoreConfig
from src.core.errors import (
    AuthenticationFailed,
    CapabilityNotSupported,
    ConfigurationError,
    CoreError,
    EmptyResponse,
    NotConfigured,
    RequestFailed,
    UnknownProvider,
)
from src.core.models import Completion, Embedding, GenerationRequest
from src.core.result import Err, Ok, Result
from src.providers.backends import (
    AnthropicChatBackend,
    DeepSeekChatBackend,
    GeminiChatBackend,
    GeminiEmbeddingBackend,
    OpenAIChatBackend,
    OpenAIEmbeddingBackend,
)
from src.providers.base import ChatBackend, EmbeddingBackend, TextStream
from src.providers.credentials import ConfigCredentialSource, CredentialSource
from src.providers.mock import MockChatBackend, MockEmbeddingBackend

logger = logging.getLogger(__name__)

PROVIDER_PRIORITY = ("openai", "deepseek", "gemini", "anthropic")

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-1.5-flash",
    "anthropic": "claude-3-5-sonnet-20241022",
    "deepseek": "deepseek-chat",
    "mock": "mock-chat",
}

DEFAULT_EMBEDDING_MODELS: dict[str, str] = {
    "openai": "text-embedding-3-small",
    "gemini": "models/text-embedding-004",
    "mock": "mock-embedding",
}

AVAILABLE_MODELS: dict[str, list[str]] = {
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    "gemini": ["gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro"],
    "anthropic": [
        "claude-3-5-sonnet-20241022",
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    ],
    "deepseek": ["deepseek-chat", "deepseek-coder"],
    "mock": ["mock-chat"],
}

AUTH_ERROR_NAMES = {"AuthenticationError", "PermissionDeniedError", "Unauthenticated", "PermissionDenied"}

ChatFactory = Callable[[str, CoreConfig], ChatBackend]
EmbeddingFactory = Callable[[str, CoreConfig], EmbeddingBackend]


@dataclass(frozen=True, slots=True)
class BackendSpec:
    """Capabilities offered by one provider: a factory per capability."""

    chat: Optional[ChatFactory] = None
    embedding: Optional[EmbeddingFactory] = None


BACKENDS: dict[str, BackendSpec] = {
    "openai": BackendSpec(
        chat=lambda key, cfg: OpenAIChatBackend(key, cfg.request_timeout),
        embedding=lambda key, cfg: OpenAIEmbeddingBackend(key, cfg.request_timeout),
    ),
    "gemini": BackendSpec(
        chat=lambda key, cfg: GeminiChatBackend(key, cfg.request_timeout),
        embedding=lambda key, cfg: GeminiEmbeddingBackend(key, cfg.request_timeout),
    ),
    "anthropic": BackendSpec(
        chat=lambda key, cfg: AnthropicChatBackend(key, cfg.request_timeout),
    ),
    "deepseek": BackendSpec(
        chat=lambda key, cfg: DeepSeekChatBackend(key, cfg.request_timeout, cfg.deepseek_base_url),
    ),
    "mock": BackendSpec(
        chat=lambda key, cfg: MockChatBackend(),
        embedding=lambda key, cfg: MockEmbeddingBackend(cfg.embedding_dimensions),
    ),
}


def _status_code(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "response", None), "status_code", None)
    if status is None:
        status = getattr(exc, "code", None)
    return status if isinstance(status, int) else None


def translate_failure(provider: str, exc: BaseException) -> CoreError:
    """Map an SDK/transport exception onto the core taxonomy."""
    if isinstance(exc, CoreError):
        return exc
    if isinstance(exc, ImportError):
        return ConfigurationError(f"{provider} backend library not installed: {exc}")
    status = _status_code(exc)
    message = str(exc) or type(exc).__name__
    if status in (401, 403) or type(exc).__name__ in AUTH_ERROR_NAMES or "401" in message:
        return AuthenticationFailed(provider, message, status_code=status)
    return RequestFailed(provider, message, status_code=status)


class ProviderClient:
    """Provider-agnostic completion, streaming and embedding.

    Usage:
        client = ProviderClient(CoreConfig(mode=RunMode.MOCK))
        text = client.complete("Write a tagline", provider="mock").unwrap()
    """

    def __init__(
        self,
        config: CoreConfig,
        credentials: Optional[CredentialSource] = None,
        backends: Optional[Mapping[str, BackendSpec]] = None,
    ) -> None:
        self._config = config
        self._credentials = credentials or ConfigCredentialSource(config)
        self._backends = dict(backends if backends is not None else BACKENDS)
        self._chat: dict[str, ChatBackend] = {}
        self._embedders: dict[str, EmbeddingBackend] = {}
        self._lock = threading.Lock()

    # --- Availability -----------------------------------------------------

    def available_providers(self) -> list[str]:
        """Providers with a configured credential, in registration order."""
        return [name for name in self._backends if self._credentials.has(name)]

    def select_provider(self, preferred: Optional[str] = None) -> Result[str, CoreError]:
        """Pick ``preferred`` if usable, else by fixed priority, else first available."""
        available = self.available_providers()
        if not available:
            return Err(NotConfigured(preferred or "any provider"))
        if preferred in available:
            return Ok(preferred)
        chosen = next((p for p in PROVIDER_PRIORITY if p in available), available[0])
        if preferred:
            logger.warning(
                "Provider not available, auto-selecting",
                extra={"requested": preferred, "selected": chosen},
            )
        return Ok(chosen)

    def default_model(self, provider: str) -> str:
        return self._config.model_overrides.get(provider) or DEFAULT_MODELS.get(provider, "")

    def default_embedding_model(self, provider: str) -> str:
        if self._config.embedding_model and provider == self._config.resolved_embedding_provider():
            return self._config.embedding_model
        return DEFAULT_EMBEDDING_MODELS.get(provider, "")

    def models_for(self, provider: str) -> list[str]:
        return list(AVAILABLE_MODELS.get(provider, []))

    # --- Operations -------------------------------------------------------

    def complete(
        self,
        prompt: str,
        provider: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Result[str, CoreError]:
        backend_result = self._chat_backend(provider)
        if backend_result.is_err():
            return backend_result  # type: ignore[return-value]
        backend = backend_result.unwrap()
        selected_model = model or self.default_model(provider)

        logger.debug("Completion request", extra={"provider": provider, "model": selected_model})
        try:
            text = backend.complete(
                prompt,
                selected_model,
                self._temperature(temperature),
                max_output_tokens or self._config.max_output_tokens,
            )
        except Exception as exc:
            return Err(translate_failure(provider, exc))

        if not text or not text.strip():
            return Err(EmptyResponse(provider))
        return Ok(text)

    def stream_complete(
        self,
        prompt: str,
        provider: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
    ) -> Result[TextStream, CoreError]:
        """Open a lazy fragment stream; nothing is sent until the first pull."""
        backend_result = self._chat_backend(provider)
        if backend_result.is_err():
            return backend_result  # type: ignore[return-value]
        backend = backend_result.unwrap()
        selected_model = model or self.default_model(provider)

        fragments = backend.stream(
            prompt,
            selected_model,
            self._temperature(temperature),
            max_output_tokens or self._config.max_output_tokens,
        )
        return Ok(
            TextStream(
                fragments,
                provider=provider,
                model=selected_model,
                translate=lambda exc: translate_failure(provider, exc),
            )
        )

    def embed(
        self, text: str, provider: Optional[str] = None, model: Optional[str] = None
    ) -> Result[Embedding, CoreError]:
        """Embed ``text``; defaults to the pinned embedding provider/model."""
        name = provider or self._config.resolved_embedding_provider()
        backend_result = self._embedding_backend(name)
        if backend_result.is_err():
            return backend_result  # type: ignore[return-value]
        selected_model = model or self.default_embedding_model(name)

        try:
            vector = backend_result.unwrap().embed(text, selected_model)
        except Exception as exc:
            return Err(translate_failure(name, exc))

        if vector is None or len(vector) == 0:
            return Err(EmptyResponse(name))
        return Ok(Embedding(vector=tuple(float(v) for v in vector), model=f"{name}:{selected_model}"))

    def complete_with_fallback(self, request: GenerationRequest) -> Result[Completion, CoreError]:
        """Try the selected provider, then every other available one in turn."""
        selected = self.select_provider(request.provider or self._config.default_provider)
        if selected.is_err():
            return selected  # type: ignore[return-value]
        first = selected.unwrap()
        candidates = [first] + [p for p in self.available_providers() if p != first]

        errors: list[CoreError] = []
        for provider in candidates:
            # A model override only makes sense for the provider it was chosen for
            model = request.model if provider == first else None
            result = self.complete(
                request.prompt,
                provider,
                model=model,
                temperature=request.temperature,
                max_output_tokens=request.max_output_tokens,
            )
            if result.is_ok():
                if provider != first:
                    logger.info("Fallback provider succeeded", extra={"provider": provider})
                return Ok(
                    Completion(
                        text=result.unwrap(),
                        provider=provider,
                        model=model or self.default_model(provider),
                    )
                )
            errors.append(result.unwrap_err())
            logger.warning(
                "Provider failed, trying next",
                extra={"provider": provider, "error": str(errors[-1])},
            )

        # candidates always holds the selected provider
        return Err(errors[-1])

    # --- Backend lookup ---------------------------------------------------

    def _temperature(self, temperature: Optional[float]) -> float:
        return self._config.temperature if temperature is None else temperature

    def _credential(self, provider: str) -> Result[str, CoreError]:
        if provider not in self._backends:
            return Err(UnknownProvider(provider))
        credential = self._credentials.get(provider)
        if not credential:
            return Err(NotConfigured(provider))
        return Ok(credential)

    def _chat_backend(self, provider: str) -> Result[ChatBackend, CoreError]:
        credential = self._credential(provider)
        if credential.is_err():
            return credential  # type: ignore[return-value]
        factory = self._backends[provider].chat
        if factory is None:
            return Err(CapabilityNotSupported(provider, "chat completion"))
        with self._lock:
            if provider not in self._chat:
                self._chat[provider] = factory(credential.unwrap(), self._config)
            return Ok(self._chat[provider])

    def _embedding_backend(self, provider: str) -> Result[EmbeddingBackend, CoreError]:
        credential = self._credential(provider)
        if credential.is_err():
            return credential  # type: ignore[return-value]
        factory = self._backends[provider].embedding
        if factory is None:
            return Err(CapabilityNotSupported(provider, "embeddings"))
        with self._lock:
            if provider not in self._embedders:
                self._embedders[provider] = factory(credential.unwrap(), self._config)
            return Ok(self._embedders[provider])
