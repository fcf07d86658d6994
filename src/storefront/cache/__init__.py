"""
Cache package for fetched results.

This package provides:
- Entry stores (base.py): CacheProtocol and the in-memory LRU store
- TTL result cache (ttl_cache.py): freshness checks, forced refresh and
  per-call-site cancellation of superseded fetches
"""

from storefront.cache.base import CacheProtocol, LRUEntryStore
from storefront.cache.ttl_cache import CacheStats, ResultCache

__all__ = ["CacheProtocol", "CacheStats", "LRUEntryStore", "ResultCache"]
