"""
TTL result cache with per-call-site cancellation.

A fresh entry (younger than its TTL) is returned without running the
fetcher. Otherwise the fetcher runs as a task bound to a new
CancellationToken. Calls sharing a call site supersede each other: the newer
call cancels the older fetch, whose caller gets FetchCancelledError and whose
result is never written to the cache.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from storefront.cache.base import CacheProtocol, LRUEntryStore
from storefront.exceptions import FetchCancelledError
from storefront.logging import get_logger
from storefront.resilience.cancellation import CancellationToken
from storefront.types import CacheEntry, CacheKey

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time cache counters."""

    hits: int
    misses: int
    evictions: int
    superseded: int
    stale_served: int
    size: int


def _caller_is_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class ResultCache:
    """Process-lifetime cache of fetched results.

    Usage:
        cache = ResultCache(ttl=300.0)
        products = await cache.get(
            CacheKey.build("products", {"page": 1}),
            lambda: fetch_products(page=1),
            call_site="catalog-grid",
        )
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = 1024,
        store: CacheProtocol | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Default freshness window in seconds.
            max_entries: Capacity of the default LRU store.
            store: Entry store (overrides max_entries).
            clock: Monotonic clock in seconds.
        """
        if ttl < 0:
            raise ValueError("ttl must be >= 0")
        self.default_ttl = ttl
        self._store = store if store is not None else LRUEntryStore(max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._inflight: dict[str, CancellationToken] = {}

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._superseded = 0
        self._stale_served = 0

    async def get(
        self,
        key: CacheKey | str,
        fetcher: Callable[[], Awaitable[T]],
        *,
        ttl: float | None = None,
        force_refresh: bool = False,
        call_site: str | None = None,
        serve_stale_on_error: bool = False,
    ) -> T:
        """Return a cached value or fetch and store a new one.

        Args:
            key: CacheKey, or a plain string key.
            fetcher: Zero-argument coroutine function producing the value.
            ttl: Freshness window in seconds (default: cache default).
            force_refresh: Skip the freshness check and always fetch.
            call_site: Identity of the caller; a newer call from the same
                site cancels this one's unsettled fetch.
            serve_stale_on_error: Return an expired entry if the fetch fails.

        Returns:
            The cached or freshly fetched value.

        Raises:
            FetchCancelledError: A newer call from the same site superseded this one.
            Exception: Whatever the fetcher raised.
        """
        cache_key = CacheKey.coerce(key)
        window = self.default_ttl if ttl is None else ttl

        if call_site is not None:
            self._supersede(call_site)

        if not force_refresh:
            with self._lock:
                entry = self._store.get(cache_key)
                if entry is not None and entry.is_fresh(self._clock(), window):
                    self._hits += 1
                    logger.debug("Cache hit", key=str(cache_key))
                    return entry.value

        with self._lock:
            self._misses += 1

        token = CancellationToken(label=str(cache_key))
        if call_site is not None:
            with self._lock:
                self._inflight[call_site] = token

        task = asyncio.ensure_future(fetcher())
        token.bind(task)
        try:
            value = await task
        except asyncio.CancelledError:
            if token.cancelled and not _caller_is_cancelling():
                self._count_superseded(cache_key)
                raise FetchCancelledError(
                    "Fetch superseded by a newer call",
                    context={"key": str(cache_key)},
                ) from None
            raise
        except Exception as e:
            if token.cancelled:
                self._count_superseded(cache_key)
                raise FetchCancelledError(
                    "Fetch superseded by a newer call",
                    context={"key": str(cache_key)},
                ) from e
            if serve_stale_on_error:
                stale = self._stale_entry(cache_key)
                if stale is not None:
                    logger.warning(
                        "Fetch failed, serving stale entry",
                        key=str(cache_key),
                        age=round(stale.age(self._clock()), 3),
                        error=str(e),
                    )
                    return stale.value
            raise
        finally:
            if call_site is not None:
                self._release(call_site, token)

        # Completed after a newer call took over: discard
        if token.cancelled:
            self._count_superseded(cache_key)
            raise FetchCancelledError(
                "Fetch superseded by a newer call",
                context={"key": str(cache_key)},
            )

        with self._lock:
            evicted = self._store.set(cache_key, CacheEntry(value=value, stored_at=self._clock()))
            self._evictions += evicted
        if evicted:
            logger.debug("Evicted least recently used entries", count=evicted)
        return value

    def _supersede(self, call_site: str) -> None:
        with self._lock:
            previous = self._inflight.pop(call_site, None)
        if previous is not None and previous.cancel():
            logger.debug("Cancelled superseded fetch", call_site=call_site, key=previous.label)

    def _release(self, call_site: str, token: CancellationToken) -> None:
        with self._lock:
            if self._inflight.get(call_site) is token:
                del self._inflight[call_site]

    def _count_superseded(self, cache_key: CacheKey) -> None:
        with self._lock:
            self._superseded += 1
        logger.debug("Discarded superseded fetch result", key=str(cache_key))

    def _stale_entry(self, cache_key: CacheKey) -> CacheEntry[Any] | None:
        with self._lock:
            entry = self._store.peek(cache_key)
            if entry is not None:
                self._stale_served += 1
            return entry

    def peek(self, key: CacheKey | str) -> CacheEntry[Any] | None:
        """Return the stored entry (fresh or not) without fetching."""
        with self._lock:
            return self._store.peek(CacheKey.coerce(key))

    def invalidate(self, key: CacheKey | str | None = None) -> int:
        """Remove one entry, or every entry when key is None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if key is None:
                removed = len(self._store)
                self._store.clear()
            else:
                removed = int(self._store.delete(CacheKey.coerce(key)))
        logger.debug("Cache invalidated", key=str(key) if key is not None else "*", removed=removed)
        return removed

    def invalidate_operation(self, operation: str) -> int:
        """Remove every entry for an operation, whatever its parameters.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            removed = self._store.delete_where(lambda k: k.operation == operation)
        logger.debug("Cache invalidated", operation=operation, removed=removed)
        return removed

    def cancel_all(self) -> int:
        """Cancel every unsettled fetch registered to a call site."""
        with self._lock:
            tokens = list(self._inflight.values())
            self._inflight.clear()
        return sum(1 for token in tokens if token.cancel())

    def reset(self) -> None:
        """Cancel in-flight fetches, drop all entries and zero the counters."""
        self.cancel_all()
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._superseded = 0
            self._stale_served = 0

    def stats(self) -> CacheStats:
        """Snapshot of hit/miss/eviction counters."""
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                superseded=self._superseded,
                stale_served=self._stale_served,
                size=len(self._store),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, (CacheKey, str)):
            return False
        return self.peek(key) is not None
