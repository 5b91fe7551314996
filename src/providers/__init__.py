"""Provider-agnostic language-model client: completion, streaming, embeddings."""

from src.providers.base import ChatBackend, EmbeddingBackend, TextStream
from src.providers.client import BackendSpec, ProviderClient
from src.providers.credentials import (
    ChainedCredentialSource,
    ConfigCredentialSource,
    CredentialSource,
    MappingCredentialSource,
)

__all__ = [
    "BackendSpec",
    "ChainedCredentialSource",
    "ChatBackend",
    "ConfigCredentialSource",
    "CredentialSource",
    "EmbeddingBackend",
    "MappingCredentialSource",
    "ProviderClient",
    "TextStream",
]
