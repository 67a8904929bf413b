"""
TTL cache for chat responses.

Bounded key -> value store. Entries expire lazily: an entry older than the
TTL is dropped the next time someone asks for it, there is no background
sweep. When full, the oldest-inserted entry is evicted (insertion order,
not LRU: a cache hit does not refresh position).
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


def now_ms() -> float:
    return time.time() * 1000


@dataclass
class CacheEntry(Generic[V]):
    value: V
    timestamp: float


class TTLCache(Generic[K, V]):
    """Insertion-ordered cache with per-entry expiry."""

    def __init__(
        self,
        max_size: int = 1000,
        ttl_ms: float = 3_600_000,
        clock: Callable[[], float] = now_ms,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: K) -> V | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp > self.ttl_ms:
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            # Re-setting a live key replaces it in place; it must not push out a neighbour
            if key in self._entries:
                del self._entries[key]
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache full (%d), evicted oldest key %r", self.max_size, evicted)
            self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: K) -> bool:
        return self.get(key) is not None
