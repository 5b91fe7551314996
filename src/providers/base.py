"""Capability interfaces for provider backends.

A backend family implements one or both capabilities:
- ChatBackend: blocking and streaming text completion
- EmbeddingBackend: fixed-length vector embeddings

Backends raise whatever their SDK raises; ``ProviderClient`` translates
failures into the core error taxonomy in one place.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)


class ChatBackend(ABC):
    """Text completion capability."""

    @abstractmethod
    def complete(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> str:
        """Return the full completion text."""
        ...

    @abstractmethod
    def stream(
        self, prompt: str, model: str, temperature: float, max_output_tokens: int
    ) -> Iterator[str]:
        """Yield completion fragments as the backend produces them.

        Implementations are generators and must release their connection
        in a ``finally`` block so that ``close()`` cleans up.
        """
        ...


class EmbeddingBackend(ABC):
    """Embedding capability."""

    @abstractmethod
    def embed(self, text: str, model: str) -> list[float]:
        ...


class TextStream:
    """Single-consumer pull iterator over completion fragments.

    Finite and not restartable. Stopping early is the only cancellation
    mechanism: ``close()``, leaving a ``with`` block, or dropping the last
    reference all close the underlying generator, which releases the
    backend connection. Errors raised while iterating are passed through
    ``translate`` and the stream is closed before re-raising.
    """

    def __init__(
        self,
        fragments: Iterator[str],
        provider: str,
        model: str,
        translate: Optional[Callable[[BaseException], BaseException]] = None,
    ) -> None:
        self._fragments = fragments
        self._translate = translate
        self.provider = provider
        self.model = model
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> TextStream:
        return self

    def __next__(self) -> str:
        if self._closed:
            raise StopIteration
        try:
            return next(self._fragments)
        except StopIteration:
            self.close()
            raise
        except Exception as exc:
            self.close()
            if self._translate is None:
                raise
            raise self._translate(exc) from exc

    def read(self) -> str:
        """Drain the remaining fragments into one string."""
        return "".join(self)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._fragments, "close", None)
        if close is not None:
            close()
        logger.debug("Stream closed", extra={"provider": self.provider, "model": self.model})

    def __enter__(self) -> TextStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __del__(self) -> None:
        if not getattr(self, "_closed", True):
            self.close()
