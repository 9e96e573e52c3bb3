"""In-process result cache for read-only commands.

Entries expire after a time-to-live and are purged lazily; there is no
background cleanup task. The lock protects only the bookkeeping, so callers
must never hold it across a command execution.
"""

import hashlib
import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

from k8s_mcp_tools.logging_utils import get_logger

logger = get_logger("cache")

KEY_SEPARATOR = ":"


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float
    accessed_at: float
    access_count: int = 1

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    expired: int
    hits: int
    misses: int
    evictions: int


def fingerprint(binary: str, args, kubeconfig: str = "", env: Optional[dict] = None) -> str:
    """Derive a cache key from everything that affects a command's output.

    The binary name is kept readable as a key prefix so entries for one tool
    can be invalidated together.
    """
    payload = json.dumps(
        {"binary": binary, "args": list(args), "kubeconfig": kubeconfig or "", "env": env or {}},
        sort_keys=True,
        separators=(",", ":"),
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{binary}{KEY_SEPARATOR}{digest}"


class ResultCache:
    """A thread-safe TTL cache with least-recently-used eviction."""

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> tuple[Any, bool]:
        """Return ``(value, True)`` on a hit and ``(None, False)`` otherwise."""
        with self._lock:
            now = self._clock()
            entry = self._data.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Cache miss: {key}")
                return None, False
            if entry.is_expired(now):
                del self._data[key]
                self._misses += 1
                self._evictions += 1
                logger.debug(f"Cache entry expired: {key}")
                return None, False
            entry.accessed_at = now
            entry.access_count += 1
            self._hits += 1
            logger.debug(f"Cache hit: {key}")
            return entry.value, True

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            now = self._clock()
            if key not in self._data and len(self._data) >= self.max_size:
                self._purge_expired_locked(now)
                if len(self._data) >= self.max_size:
                    self._evict_lru_locked()
            self._data[key] = CacheEntry(value=value, created_at=now, expires_at=now + ttl, accessed_at=now)
        logger.debug(f"Cache set: {key} (ttl={ttl}s)")

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def invalidate(self, prefix: str = "") -> int:
        """Drop every entry whose key starts with ``prefix``; all when empty."""
        with self._lock:
            keys = [key for key in self._data if key.startswith(prefix)]
            for key in keys:
                del self._data[key]
        if keys:
            logger.info(f"Cache invalidated {len(keys)} entries (prefix={prefix or '*'})")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            count = len(self._data)
            self._data.clear()
        logger.info(f"Cache cleared, {count} items removed")

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_expired_locked(self._clock())

    def size(self) -> int:
        with self._lock:
            return len(self._data)

    def stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            return CacheStats(
                size=len(self._data),
                max_size=self.max_size,
                expired=sum(1 for entry in self._data.values() if entry.is_expired(now)),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _purge_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._data.items() if entry.is_expired(now)]
        for key in expired:
            del self._data[key]
        self._evictions += len(expired)
        return len(expired)

    def _evict_lru_locked(self) -> None:
        oldest_key = min(self._data, key=lambda k: self._data[k].accessed_at)
        del self._data[oldest_key]
        self._evictions += 1
        logger.debug(f"Cache LRU eviction: {oldest_key}")
