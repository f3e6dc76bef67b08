"""Dual-backend cache: durable Redis primary with a local in-process fallback."""

from .backends import CacheBackend, LocalCacheBackend, RedisCacheBackend
from .models import ABSENT, BackendKind, CacheEntry, CacheLookup, CacheStats
from .store import CacheStore

__all__ = [
    "ABSENT",
    "BackendKind",
    "CacheBackend",
    "CacheEntry",
    "CacheLookup",
    "CacheStats",
    "CacheStore",
    "LocalCacheBackend",
    "RedisCacheBackend",
]
