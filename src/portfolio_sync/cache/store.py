"""
TTL Cache Store.

In-memory key/value store for API payloads. The freshness requirement is
supplied by the caller at read time, so one entry can serve readers with
different TTLs. Expiry is checked lazily on read.
"""

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from portfolio_sync.core import get_logger

from .keys import USER_INVALIDATION_PATTERNS

logger = get_logger(__name__)


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class CacheEntry:
    """
    Cached payload with its storage time.

    Attributes:
        value: Opaque payload
        stored_at: Clock reading when the entry was written
    """
    value: Any
    stored_at: float

    def age(self, now: float) -> float:
        return now - self.stored_at


@dataclass
class CacheEntryStats:
    """Introspection record for one entry."""
    key: str
    age_seconds: int
    approx_bytes: int


@dataclass
class CacheStats:
    """Snapshot of the store's contents."""
    enabled: bool
    size: int
    entries: List[CacheEntryStats] = field(default_factory=list)
    total_approx_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "size": self.size,
            "entries": [
                {"key": e.key, "age_seconds": e.age_seconds, "approx_bytes": e.approx_bytes}
                for e in self.entries
            ],
            "total_approx_bytes": self.total_approx_bytes,
        }


def approx_size(value: Any) -> int:
    """Approximate footprint: length of the JSON encoding."""
    try:
        return len(json.dumps(value, default=str))
    except (TypeError, ValueError):
        return len(repr(value))


# =============================================================================
# Cache Implementation
# =============================================================================


class CacheStore:
    """
    Keyed TTL cache with pattern invalidation.

    Provides:
    - Caller-supplied TTL on read, expired entries evicted on read
    - Substring invalidation (everything about a user or an exchange)
    - Global kill switch
    - Size/age/footprint statistics

    Example:
        >>> cache = CacheStore()
        >>> cache.set("balances_u1", {"exchanges": []})
        >>> cache.get("balances_u1", ttl=300)
        {'exchanges': []}
        >>> cache.invalidate("u1")
        1
    """

    def __init__(
        self,
        enabled: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize CacheStore.

        Args:
            enabled: Start enabled
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self._enabled = enabled
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def size(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    # =========================================================================
    # Read / Write
    # =========================================================================

    def get(self, key: str, ttl: float) -> Optional[Any]:
        """
        Get a value if it is not older than ``ttl`` seconds.

        Args:
            key: Cache key
            ttl: Maximum acceptable age in seconds

        Returns:
            Cached value, or None if missing, expired or the cache is disabled
        """
        if not self._enabled:
            return None

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug(f"Cache MISS: {key}")
                return None

            age = entry.age(self._clock())
            if age > ttl:
                del self._entries[key]
                logger.debug(f"Cache EXPIRED: {key} (age: {age:.0f}s)")
                return None

        logger.debug(f"Cache HIT: {key} (age: {age:.0f}s / {ttl:.0f}s)")
        return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, resetting its age. No-op while disabled."""
        if not self._enabled:
            return

        with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        logger.debug(f"Cache SET: {key}")

    def delete(self, key: str) -> bool:
        """
        Delete one entry.

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            logger.debug(f"Cache DELETE: {key}")
        return removed

    # =========================================================================
    # Invalidation
    # =========================================================================

    def invalidate(self, pattern: str) -> int:
        """
        Delete every entry whose key contains ``pattern``.

        Returns:
            Number of entries deleted
        """
        removed = self._drop(lambda key: pattern in key)
        logger.debug(f"Cache INVALIDATE: {pattern} ({removed} entries)")
        return removed

    def _drop(self, matches: Callable[[str], bool]) -> int:
        with self._lock:
            keys = [key for key in self._entries if matches(key)]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def invalidate_user(self, user_id: str, kinds: Iterable[str] = ("all",)) -> int:
        """
        Invalidate cached resources of a user.

        Args:
            user_id: User identifier
            kinds: Any of "balances", "exchanges", "portfolio" or "all"

        Returns:
            Number of entries deleted
        """
        kinds = set(kinds)
        unknown = kinds - set(USER_INVALIDATION_PATTERNS) - {"all"}
        if unknown:
            raise ValueError(f"Unknown cache kinds: {sorted(unknown)}")

        prefixes = tuple(
            prefix.format(user=user_id)
            for kind, kind_prefixes in USER_INVALIDATION_PATTERNS.items()
            if "all" in kinds or kind in kinds
            for prefix in kind_prefixes
        )

        # "balances_1" must not take "balances_12" with it
        removed = self._drop(
            lambda key: any(key == p or key.startswith(f"{p}_") for p in prefixes)
        )
        logger.debug(f"Cache INVALIDATE user {user_id} {sorted(kinds)} ({removed} entries)")
        return removed

    def clear(self) -> int:
        """
        Clear all entries.

        Returns:
            Number of entries cleared
        """
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.debug(f"Cache CLEAR ALL ({count} entries)")
        return count

    def set_enabled(self, enabled: bool) -> None:
        """Turn caching on or off. Disabling drops every entry."""
        self._enabled = enabled
        if not enabled:
            self.clear()
        logger.info(f"Cache {'ENABLED' if enabled else 'DISABLED'}")

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_stats(self) -> CacheStats:
        """Get size, age and approximate footprint of every entry."""
        now = self._clock()
        with self._lock:
            items = list(self._entries.items())

        entries = [
            CacheEntryStats(
                key=key,
                age_seconds=round(entry.age(now)),
                approx_bytes=approx_size(entry.value),
            )
            for key, entry in items
        ]
        return CacheStats(
            enabled=self._enabled,
            size=len(entries),
            entries=entries,
            total_approx_bytes=sum(e.approx_bytes for e in entries),
        )
