"""Content store clients for externalized payload content."""

from __future__ import annotations

from khipu.store.base import COLLECTION, ID_FIELD, ContentStore
from khipu.store.memory import InMemoryContentStore
from khipu.store.sql import SQLContentStore

__all__ = [
    "COLLECTION",
    "ID_FIELD",
    "ContentStore",
    "InMemoryContentStore",
    "SQLContentStore",
    "store_from_config",
]

MEMORY_URL = "memory://"


def store_from_config(config) -> ContentStore:
    """memory:// selects the in-memory store; anything else is a SQLAlchemy URL."""
    if config.store_url == MEMORY_URL:
        return InMemoryContentStore()
    return SQLContentStore(config.store_url)
