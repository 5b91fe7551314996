"""Document and chunk persistence."""

from src.core.config import CoreConfig, StoreBackend
from src.storage.base import DocumentStore
from src.storage.chroma import ChromaStore
from src.storage.memory import InMemoryStore


def create_store(config: CoreConfig) -> DocumentStore:
    """Build the store selected by ``config.store_backend``."""
    if config.store_backend == StoreBackend.CHROMA:
        return ChromaStore(config)
    return InMemoryStore()


__all__ = ["ChromaStore", "DocumentStore", "InMemoryStore", "create_store"]
