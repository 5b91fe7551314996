"""Text extraction from source documents.

Extractors raise ``UnsupportedFormat`` for types they cannot read and
``ExtractionError`` for corrupt or missing input; the ingestion pipeline
turns either into a terminal ``error`` status.
"""

from __future__ import annotations

import json
import mimetypes
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from src.core.errors import ExtractionError, UnsupportedFormat

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
JSON = "application/json"
TEXT_TYPES = {"text/plain", "text/markdown", "text/x-markdown"}
TEXT_EXTENSIONS = {".txt", ".md", ".markdown"}


def guess_mime_type(source_ref: str) -> Optional[str]:
    suffix = Path(source_ref).suffix.lower()
    if suffix in (".md", ".markdown"):
        return "text/markdown"
    mime_type, _ = mimetypes.guess_type(source_ref)
    return mime_type


class TextExtractor(ABC):
    """Turns a source reference into plain text."""

    @abstractmethod
    def extract(self, source_ref: str, mime_type: Optional[str] = None) -> str:
        ...


class FileTextExtractor(TextExtractor):
    """Extract text from files on disk with LangChain document loaders.

    Supports PDF, DOCX, plain text, Markdown and JSON (pretty-printed).
    """

    def extract(self, source_ref: str, mime_type: Optional[str] = None) -> str:
        path = Path(source_ref)
        mime_type = mime_type or guess_mime_type(source_ref)

        if not self._supported(mime_type, path):
            raise UnsupportedFormat(mime_type, source_ref)
        if not path.is_file():
            raise ExtractionError(f"Source not found: {source_ref}")

        try:
            if mime_type == PDF:
                return self._load_pages(self._pdf_loader(path))
            if mime_type == DOCX:
                return self._load_pages(self._docx_loader(path))
            if mime_type == JSON:
                data = json.loads(path.read_text(encoding="utf-8"))
                return json.dumps(data, indent=2)
            return self._load_pages(self._text_loader(path))
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from {source_ref}: {e}") from e

    @staticmethod
    def _supported(mime_type: Optional[str], path: Path) -> bool:
        if mime_type in (PDF, DOCX, JSON) or mime_type in TEXT_TYPES:
            return True
        return mime_type is None and path.suffix.lower() in TEXT_EXTENSIONS

    @staticmethod
    def _load_pages(loader: object) -> str:
        docs = loader.load()  # type: ignore[attr-defined]
        return "\n\n".join(doc.page_content for doc in docs if doc.page_content)

    @staticmethod
    def _pdf_loader(path: Path) -> object:
        from langchain_community.document_loaders import PyPDFLoader

        return PyPDFLoader(str(path))

    @staticmethod
    def _docx_loader(path: Path) -> object:
        from langchain_community.document_loaders import Docx2txtLoader

        return Docx2txtLoader(str(path))

    @staticmethod
    def _text_loader(path: Path) -> object:
        from langchain_community.document_loaders import TextLoader

        return TextLoader(str(path), autodetect_encoding=True)


class MemoryTextExtractor(TextExtractor):
    """Serve inline texts registered under a source reference.

    Unregistered references go to ``fallback`` (files by default).
    """

    def __init__(self, fallback: Optional[TextExtractor] = None) -> None:
        self._texts: dict[str, str] = {}
        self._lock = threading.Lock()
        self._fallback = fallback if fallback is not None else FileTextExtractor()

    def add(self, source_ref: str, text: str) -> None:
        with self._lock:
            self._texts[source_ref] = text

    def discard(self, source_ref: str) -> None:
        with self._lock:
            self._texts.pop(source_ref, None)

    def extract(self, source_ref: str, mime_type: Optional[str] = None) -> str:
        with self._lock:
            text = self._texts.get(source_ref)
        if text is not None:
            return text
        return self._fallback.extract(source_ref, mime_type)
