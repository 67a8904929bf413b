"""
In-process document store. Default backend and the one tests use.
Documents are deep-copied on the way in and out so callers can't mutate
stored state by accident.
"""

from __future__ import annotations

import copy

from .base import DocumentStore, Filter, apply_query, set_path


class MemoryStore(DocumentStore):

    def __init__(self):
        self._collections: dict[str, dict[str, dict]] = {}

    async def put(self, collection: str, doc_id: str, document: dict) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    async def get(self, collection: str, doc_id: str) -> dict | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            raise LookupError(f"No document {collection}/{doc_id}")
        for path, value in fields.items():
            set_path(doc, path, copy.deepcopy(value))

    async def query(
        self,
        collection: str,
        where: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, dict]]:
        rows = [(k, copy.deepcopy(v)) for k, v in self._collections.get(collection, {}).items()]
        return apply_query(rows, where, order_by, descending, limit)

    def get_stats(self) -> dict:
        stats: dict[str, int] = {}
        for collection, docs in self._collections.items():
            root = collection.split("/")[0]
            stats[root] = stats.get(root, 0) + len(docs)
        return stats
