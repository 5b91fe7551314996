"""Credential sources consulted by the provider client.

A provider is usable exactly when its source returns a non-empty
credential. Lookups happen before any backend is built.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from src.core.config import CoreConfig, RunMode

MOCK_CREDENTIAL = "mock"


class CredentialSource(ABC):
    @abstractmethod
    def get(self, provider: str) -> Optional[str]:
        """Return the credential for ``provider`` or None."""
        ...

    def has(self, provider: str) -> bool:
        return bool(self.get(provider))


class ConfigCredentialSource(CredentialSource):
    """Credentials from ``CoreConfig`` (settings and CONTENT_* env vars)."""

    def __init__(self, config: CoreConfig) -> None:
        self._config = config

    def get(self, provider: str) -> Optional[str]:
        if provider == "mock":
            return MOCK_CREDENTIAL if self._config.mode == RunMode.MOCK else None
        return getattr(self._config, f"{provider}_api_key", None) or None


class MappingCredentialSource(CredentialSource):
    """Credentials from a plain mapping, e.g. keys loaded from a secrets store."""

    def __init__(self, credentials: Mapping[str, Optional[str]]) -> None:
        self._credentials = dict(credentials)

    def get(self, provider: str) -> Optional[str]:
        return self._credentials.get(provider) or None


class ChainedCredentialSource(CredentialSource):
    """First non-empty credential wins, in source order."""

    def __init__(self, sources: Sequence[CredentialSource]) -> None:
        self._sources = list(sources)

    def get(self, provider: str) -> Optional[str]:
        for source in self._sources:
            credential = source.get(provider)
            if credential:
                return credential
        return None
