"""
DocumentStore — abstract base for durable storage backends.

The orchestrator only needs a narrow document/key-value contract:
  put     — write a whole document under collection/doc_id
  get     — read one document, None if absent
  update  — merge fields (dotted paths allowed) into an existing document
  query   — filter/sort/limit over one collection

Backends raise on failure. Deciding whether a failure is swallowed or
surfaced is the caller's job (ContextStore swallows, SessionService surfaces).
"""

from __future__ import annotations

import operator
from abc import ABC, abstractmethod
from typing import Any

_OPS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

Filter = tuple[str, str, Any]


def get_path(doc: dict, path: str, default=None):
    """Read a dotted path ("metadata.last_accessed") from a nested dict."""
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def set_path(doc: dict, path: str, value) -> None:
    """Write a dotted path into a nested dict, creating levels as needed."""
    parts = path.split(".")
    cur = doc
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def matches(doc: dict, filters: list[Filter]) -> bool:
    for path, op, value in filters:
        fn = _OPS.get(op)
        if fn is None:
            raise ValueError(f"Unsupported filter operator: {op!r}")
        field_value = get_path(doc, path)
        if field_value is None:
            return False
        try:
            if not fn(field_value, value):
                return False
        except TypeError:
            return False
    return True


def apply_query(
    rows: list[tuple[str, dict]],
    where: list[Filter] | None = None,
    order_by: str | None = None,
    descending: bool = False,
    limit: int | None = None,
) -> list[tuple[str, dict]]:
    """Shared in-Python filter/sort/limit used by the simple backends."""
    out = [(doc_id, doc) for doc_id, doc in rows if matches(doc, where or [])]
    if order_by:
        out.sort(key=lambda r: get_path(r[1], order_by, 0), reverse=descending)
    if limit is not None:
        out = out[:limit]
    return out


class DocumentStore(ABC):
    """Abstract durable document store."""

    @abstractmethod
    async def put(self, collection: str, doc_id: str, document: dict) -> None:
        """Insert or replace a document."""
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict | None:
        """Return the document, or None if it does not exist."""
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """
        Merge fields into an existing document. Keys may be dotted paths.
        Raises LookupError if the document does not exist.
        """
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        where: list[Filter] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[tuple[str, dict]]:
        """Return (doc_id, document) pairs matching every filter."""
        ...

    def get_stats(self) -> dict:
        """Document counts per collection root ("users", "sessions"). Optional."""
        return {}
