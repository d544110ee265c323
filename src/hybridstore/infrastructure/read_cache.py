"""
hybridstore.infrastructure.read_cache - Payload Read Cache
===========================================================

The Blob Store keeps recently decoded payloads in memory so repeated
loads of the same Pointer skip the filesystem. The cache is an injectable
abstraction; the default implementation bounds entries both by age (TTL)
and by count (least recently used first out).

    ┌────────────┐  get(key) hit   ┌──────────────┐
    │ BlobStore  │ ←────────────── │  ReadCache    │
    │   .load()  │ ─────────────→  │  (TTL + LRU)  │
    └────────────┘   put(key, v)   └──────────────┘

The cache is process-local. Another process writing the same file is not
seen until the entry expires; checksum verification on the next miss is
what detects external changes.

Usage:
    >>> cache = TTLLRUCache(ttl_seconds=300, max_entries=1024)
    >>> cache.put(("a.json", None, 12), {"name": "a"})
    >>> cache.get(("a.json", None, 12))
    {'name': 'a'}
"""

from __future__ import annotations

import copy
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Hashable
from typing import Any, Callable, Optional


# =============================================================================
# Abstract Base Class
# =============================================================================
class ReadCache(ABC):
    """Interface of the Blob Store's read cache."""

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None on a miss or expiry."""

    @abstractmethod
    def put(self, key: Hashable, value: Any) -> None:
        """Store a value under ``key``, replacing any previous entry."""

    @abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Remove one entry. Returns True if it was present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    @abstractmethod
    def keys(self) -> list[Hashable]:
        """Snapshot of the keys currently held (expired ones included)."""

    @abstractmethod
    def __len__(self) -> int:
        ...


# =============================================================================
# TTL + LRU Implementation
# =============================================================================
class TTLLRUCache(ReadCache):
    """Read cache bounded by time-to-live and entry count.

    Values are deep-copied on the way in and on the way out, so a caller
    mutating a loaded payload never changes what the next caller sees.

    Attributes:
        ttl_seconds: Maximum age of an entry.
        max_entries: Maximum number of entries; the least recently used
            entry is evicted when a put would exceed it.
        hits / misses: Counters for ``BlobStore.cache_stats``.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        stored_at, value = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return copy.deepcopy(value)

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock(), copy.deepcopy(value))
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def delete(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[Hashable]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)
