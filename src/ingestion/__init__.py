"""Background document ingestion into the knowledge store."""

from src.ingestion.extractors import FileTextExtractor, MemoryTextExtractor, TextExtractor
from src.ingestion.pipeline import IngestionPipeline
from src.ingestion.supervisor import TaskSupervisor

__all__ = [
    "FileTextExtractor",
    "IngestionPipeline",
    "MemoryTextExtractor",
    "TaskSupervisor",
    "TextExtractor",
]
