"""
Bounded in-memory cache for query results.

Keys are case-insensitive. Entries expire after a fixed TTL, and once the
entry limit is reached the oldest entry is evicted. The cache is an explicit
object owned by its caller (the app keeps one on `app.state`).
"""
import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50
DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class CacheEntry:
    """Cache entry with its insertion time."""
    data: Any
    timestamp: float


def normalize_key(key: str) -> str:
    return key.strip().lower()


class QueryCache:
    """Thread-safe cache with a TTL and an entry limit (oldest evicted first)."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = Lock()
        self._clock = clock
        self.max_entries = max_entries
        self.ttl = ttl
        self.hits = 0
        self.misses = 0

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        key = normalize_key(key)
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if self._expired(entry, self._clock()):
                del self._cache[key]
                self.misses += 1
                logger.debug(f"Cache entry expired: {key[:32]}")
                return None

            self.hits += 1
            return entry.data

    def put(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest entries beyond the limit."""
        key = normalize_key(key)
        with self._lock:
            # Re-inserting refreshes both the timestamp and the position
            self._cache.pop(key, None)
            self._cache[key] = CacheEntry(data=value, timestamp=self._clock())
            while len(self._cache) > self.max_entries:
                evicted, _ = self._cache.popitem(last=False)
                logger.debug(f"Cache evicted oldest entry: {evicted[:32]}")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            logger.info("Query cache cleared")

    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired_keys = [k for k, e in self._cache.items() if self._expired(e, now)]
            for key in expired_keys:
                del self._cache[key]
        if expired_keys:
            logger.debug(f"Cleaned up {len(expired_keys)} expired cache entries")
        return len(expired_keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        self.cleanup_expired()
        with self._lock:
            return {
                'size': len(self._cache),
                'max_entries': self.max_entries,
                'ttl': self.ttl,
                'hits': self.hits,
                'misses': self.misses,
            }


def make_query_key(payload: Any) -> str:
    """
    Normalised cache key for a JSON-serialisable request payload.

    Mapping key order does not affect the result.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def fingerprint_records(records: Any) -> str:
    """Content hash of a record sequence, used to scope cached results to a dataset."""
    canonical = json.dumps(records, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
