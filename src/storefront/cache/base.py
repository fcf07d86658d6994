"""
Base classes for caching.

This module defines:
- CacheProtocol: Abstract interface for entry stores keyed by CacheKey
- LRUEntryStore: In-memory store with least-recently-used eviction

Stores hold CacheEntry values only; freshness is decided by the caller
(see ResultCache), so a store never drops an entry because it is old.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Iterator

from storefront.types import CacheEntry, CacheKey


class CacheProtocol(ABC):
    """Abstract interface for cache entry stores."""

    @abstractmethod
    def get(self, key: CacheKey) -> CacheEntry[Any] | None:
        """Get an entry, marking it as recently used."""
        ...

    @abstractmethod
    def peek(self, key: CacheKey) -> CacheEntry[Any] | None:
        """Get an entry without touching recency."""
        ...

    @abstractmethod
    def set(self, key: CacheKey, entry: CacheEntry[Any]) -> int:
        """Store an entry, replacing any previous one.

        Returns:
            Number of entries evicted to make room.
        """
        ...

    @abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Delete an entry. Returns True if it existed."""
        ...

    @abstractmethod
    def delete_where(self, predicate: Callable[[CacheKey], bool]) -> int:
        """Delete every entry whose key matches. Returns the count."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Delete all entries."""
        ...

    @abstractmethod
    def keys(self) -> Iterator[CacheKey]:
        """Iterate over stored keys."""
        ...

    @abstractmethod
    def __len__(self) -> int: ...


class LRUEntryStore(CacheProtocol):
    """OrderedDict-backed store bounded by entry count."""

    def __init__(self, max_entries: int | None = 1024) -> None:
        """Initialize the store.

        Args:
            max_entries: Capacity; None means unbounded.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[CacheKey, CacheEntry[Any]] = OrderedDict()

    def get(self, key: CacheKey) -> CacheEntry[Any] | None:
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def peek(self, key: CacheKey) -> CacheEntry[Any] | None:
        return self._entries.get(key)

    def set(self, key: CacheKey, entry: CacheEntry[Any]) -> int:
        self._entries[key] = entry
        self._entries.move_to_end(key)

        evicted = 0
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                evicted += 1
        return evicted

    def delete(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[CacheKey], bool]) -> int:
        doomed = [key for key in self._entries if predicate(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> Iterator[CacheKey]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
