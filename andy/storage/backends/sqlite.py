"""
SQLite document store.
Single portable file. Each document is a JSON blob keyed by
(collection, id); filtering happens in Python after a collection scan,
which is fine at chat-history scale.

Calls are blocking, so the async methods hop to a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from .base import DocumentStore, Filter, apply_query, set_path

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection
    ON documents(collection);
"""


class SQLiteStore(DocumentStore):
    """Thread-safe SQLite document store (one connection per operation)."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite document store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # -- sync primitives ---------------------------------------------------

    def _put(self, collection: str, doc_id: str, document: dict) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO documents (collection, id, body, updated_at) VALUES (?, ?, ?, ?)",
                (collection, doc_id, json.dumps(document), self._now()),
            )

    def _get(self, collection: str, doc_id: str) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
        return json.loads(row["body"]) if row else None

    def _update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise LookupError(f"No document {collection}/{doc_id}")
            doc = json.loads(row["body"])
            for path, value in fields.items():
                set_path(doc, path, value)
            conn.execute(
                "UPDATE documents SET body = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (json.dumps(doc), self._now(), collection, doc_id),
            )

    def _scan(self, collection: str) -> list[tuple[str, dict]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, body FROM documents WHERE collection = ?",
                (collection,),
            ).fetchall()
        return [(r["id"], json.loads(r["body"])) for r in rows]

    # -- DocumentStore -----------------------------------------------------

    async def put(self, collection: str, doc_id: str, document: dict) -> None:
        await asyncio.to_thread(self._put, collection, doc_id, document)

    async def get(self, collection: str, doc_id: str) -> dict | None:
        return await asyncio.to_thread(self._get, collection, doc_id)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        await asyncio.to_thread(self._update, collection, doc_id, fields)

    async def query(
        self,
        collection: str,
        where: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, dict]]:
        rows = await asyncio.to_thread(self._scan, collection)
        return apply_query(rows, where, order_by, descending, limit)

    def get_stats(self) -> dict:
        """Document counts per collection root."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT collection, COUNT(*) AS n FROM documents GROUP BY collection"
            ).fetchall()
        stats: dict[str, int] = {}
        for row in rows:
            root = row["collection"].split("/")[0]
            stats[root] = stats.get(root, 0) + row["n"]
        return stats
