"""
ObjectCache - Bounded in-memory cache of immutable repository objects.
"""

from collections import OrderedDict
from threading import Lock
from typing import Any, Dict, Optional


class ObjectCache:
    """
    Least-recently-used cache keyed by object id.

    Git objects are immutable, so entries never expire; the cache lives as
    long as the session that owns it and is cleared when the session closes.
    Thread-safe.
    """

    def __init__(self, enabled: bool = True, max_size: int = 1024):
        """
        Initialize cache.

        Args:
            enabled: Whether caching is enabled.
            max_size: Maximum number of entries.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self.enabled = enabled
        self.max_size = max_size
        self._cache: "OrderedDict[bytes, Any]" = OrderedDict()
        self._lock = Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: bytes) -> Optional[Any]:
        """
        Get object from cache.

        Args:
            key: Object id, or a key derived from one.

        Returns:
            Cached object or None if not present.
        """
        if not self.enabled:
            return None

        with self._lock:
            value = self._cache.get(key)
            if value is None:
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: bytes, value: Any) -> None:
        """
        Store object in cache, evicting the least recently used entry when full.

        Args:
            key: Object id, or a key derived from one.
            value: Decoded object.
        """
        if not self.enabled:
            return

        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
            self._cache[key] = value

    def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared.
        """
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._cache)

    @property
    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        hit_rate = self._hits / total if total > 0 else 0

        return {
            "enabled": self.enabled,
            "size": self.size,
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": hit_rate,
        }

    def __contains__(self, key: bytes) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return self.size
