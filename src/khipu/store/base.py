"""ContentStore protocol.

The codec only creates and reads records. It never updates or deletes
them, so a record must outlive every ciphertext that references it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

COLLECTION = "codex-data"
ID_FIELD = "_id"


@runtime_checkable
class ContentStore(Protocol):
    """Insert/retrieve contract against an addressable document store.

    Implementations must be safe for concurrent use.
    """

    def insert(self, collection: str, record: dict[str, Any]) -> None:
        """Persist record under collection, keyed by record["_id"].

        Raises:
            StoreError: If the store is unreachable or rejects the write
        """
        ...

    def retrieve(self, collection: str, record_id: str) -> dict[str, Any]:
        """Fetch the record stored under record_id.

        Raises:
            NotFoundError: If no record has that id
            StoreError: If the store is unreachable
        """
        ...

    def close(self) -> None: ...
