"""In-process content store. Used for tests and development."""

from __future__ import annotations

import copy
import threading
from typing import Any

from khipu.errors import NotFoundError, StoreError
from khipu.store.base import ID_FIELD


class InMemoryContentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def insert(self, collection: str, record: dict[str, Any]) -> None:
        record_id = record.get(ID_FIELD)
        if not isinstance(record_id, str):
            raise StoreError(f"Record has no string {ID_FIELD} field")
        with self._lock:
            records = self._collections.setdefault(collection, {})
            if record_id in records:
                raise StoreError(f"Duplicate record {record_id} in {collection}")
            records[record_id] = copy.deepcopy(record)

    def retrieve(self, collection: str, record_id: str) -> dict[str, Any]:
        with self._lock:
            record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise NotFoundError(f"Record {record_id} not found in {collection}")
        return copy.deepcopy(record)

    def count(self, collection: str) -> int:
        with self._lock:
            return len(self._collections.get(collection, {}))

    def close(self) -> None:
        pass
