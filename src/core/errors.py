"""Error taxonomy for the generation and retrieval core.

These are exception classes so they carry a message and a type, but
component boundaries return them inside ``Err(...)`` rather than raising.
The only places they are raised are streaming iteration (a pull iterator
has no other error channel) and programmer errors.
"""

from __future__ import annotations

from typing import Optional


class CoreError(Exception):
    """Base class for every failure the core reports."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


# --- Configuration ---------------------------------------------------------


class ConfigurationError(CoreError):
    """A setup problem: never retried."""


class NotConfigured(ConfigurationError):
    """No credential exists for the requested provider."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} API key not configured")
        self.provider = provider


class UnknownProvider(ConfigurationError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"Unknown provider: {provider}")
        self.provider = provider


class CapabilityNotSupported(ConfigurationError):
    """The provider exists but does not offer the requested capability."""

    def __init__(self, provider: str, capability: str) -> None:
        super().__init__(f"Provider '{provider}' does not support {capability}")
        self.provider = provider
        self.capability = capability


# --- Transport -------------------------------------------------------------


class TransportError(CoreError):
    """Network or backend failure."""

    retryable = True


class RequestFailed(TransportError):
    def __init__(
        self, provider: str, message: str, status_code: Optional[int] = None
    ) -> None:
        super().__init__(f"{provider} request failed: {message}")
        self.provider = provider
        self.status_code = status_code


class AuthenticationFailed(RequestFailed):
    """The backend rejected the credential (401/403)."""

    retryable = False


class EmptyResponse(TransportError):
    def __init__(self, provider: str) -> None:
        super().__init__(f"No content in {provider} response")
        self.provider = provider


# --- Generation ------------------------------------------------------------


class OutputValidationError(CoreError):
    """Model output did not parse into the required structure."""

    retryable = True


# --- Ingestion / storage ---------------------------------------------------


class ExtractionError(CoreError):
    """Text could not be extracted; terminal for the document."""


class UnsupportedFormat(ExtractionError):
    def __init__(self, mime_type: Optional[str], source_ref: str) -> None:
        super().__init__(f"Unsupported file type: {mime_type or 'unknown'} ({source_ref})")
        self.mime_type = mime_type
        self.source_ref = source_ref


class StorageError(CoreError):
    pass


class DocumentNotFound(CoreError):
    def __init__(self, doc_id: str) -> None:
        super().__init__(f"Document not found: {doc_id}")
        self.doc_id = doc_id


class DocumentBusy(CoreError):
    def __init__(self, doc_id: str, status: str) -> None:
        super().__init__(f"Document {doc_id} is still {status}")
        self.doc_id = doc_id
        self.status = status


class CategoryExists(CoreError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Category already exists: {name}")
        self.name = name


class EmbeddingModelMismatch(CoreError):
    def __init__(self, expected: str, found: str) -> None:
        super().__init__(f"Embedding model mismatch: expected {expected}, found {found}")
        self.expected = expected
        self.found = found


class PartialIngestionWarning(UserWarning):
    """Some chunks of a document could not be embedded and were skipped."""


def is_fatal(error: CoreError) -> bool:
    """True for credential failures that must not be retried."""
    return isinstance(error, (ConfigurationError, AuthenticationFailed))
