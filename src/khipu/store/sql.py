"""SQL-backed content store.

Uses SQLAlchemy Core (not ORM). Records are stored as JSON text under a
(collection, record_id) primary key.
"""

from __future__ import annotations

import contextlib
import json
import logging
import threading
from typing import Any

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from khipu.errors import NotFoundError, StoreError
from khipu.store.base import ID_FIELD

logger = logging.getLogger("khipu.store")

metadata = MetaData()

records_table = Table(
    "records",
    metadata,
    Column("collection", String(128), primary_key=True),
    Column("record_id", String(64), primary_key=True),
    Column("body", Text, nullable=False),
)


class SQLContentStore:
    def __init__(self, url: str) -> None:
        kwargs: dict[str, Any] = {"echo": False}
        # Pooled engines need no extra locking
        self._lock: threading.Lock | contextlib.nullcontext = contextlib.nullcontext()
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every thread sees the same in-memory DB;
            # access to it is serialized
            self._lock = threading.Lock()
            kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        try:
            self.engine = create_engine(url, **kwargs)
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Cannot open content store: {exc}") from exc
        logger.info("Content store ready (%s)", self.engine.url.render_as_string(hide_password=True))

    def insert(self, collection: str, record: dict[str, Any]) -> None:
        record_id = record.get(ID_FIELD)
        if not isinstance(record_id, str):
            raise StoreError(f"Record has no string {ID_FIELD} field")
        body = json.dumps(record, separators=(",", ":"))
        try:
            with self._lock, self.engine.begin() as conn:
                conn.execute(
                    records_table.insert().values(
                        collection=collection, record_id=record_id, body=body
                    )
                )
        except IntegrityError as exc:
            raise StoreError(f"Duplicate record {record_id} in {collection}") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"Insert into {collection} failed: {exc}") from exc

    def retrieve(self, collection: str, record_id: str) -> dict[str, Any]:
        query = select(records_table.c.body).where(
            records_table.c.collection == collection,
            records_table.c.record_id == record_id,
        )
        try:
            with self._lock, self.engine.connect() as conn:
                body = conn.execute(query).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreError(f"Retrieve from {collection} failed: {exc}") from exc
        if body is None:
            raise NotFoundError(f"Record {record_id} not found in {collection}")
        return json.loads(body)

    def close(self) -> None:
        self.engine.dispose()
