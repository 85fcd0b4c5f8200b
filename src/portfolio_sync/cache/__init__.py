# Cache module - in-memory TTL cache for API payloads
from .keys import CacheKeys, CacheTTL
from .store import CacheEntry, CacheEntryStats, CacheStats, CacheStore

__all__ = [
    "CacheStore",
    "CacheEntry",
    "CacheEntryStats",
    "CacheStats",
    "CacheKeys",
    "CacheTTL",
]
