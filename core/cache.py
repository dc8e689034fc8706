# core/cache.py

"""
Process-local TTL cache for the building directory.

Every portal join looks a building up by name and the super admin
dashboard lists all buildings; both change only when a building is
provisioned or removed, which drops the whole ``buildings:`` namespace.
"""

import time
from threading import Lock
from typing import Any, Optional

from core.logging_config import logger


class SimpleCache:
    """Thread-safe key → value store with per-entry expiry (monotonic clock)."""

    def __init__(self):
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: int = 300):
        with self._lock:
            self._entries[key] = (time.monotonic() + ttl_seconds, value)

    def delete(self, key: str):
        with self._lock:
            self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Drop a whole namespace. Returns how many keys went."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug(f"Cache invalidated {len(doomed)} keys under '{prefix}'")
        return len(doomed)

    def clear(self):
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)


# Global cache instance
_cache = SimpleCache()


def cache_get(key: str) -> Optional[Any]:
    return _cache.get(key)


def cache_set(key: str, value: Any, ttl_seconds: int = 300):
    _cache.set(key, value, ttl_seconds)


def cache_delete(key: str):
    _cache.delete(key)


def cache_delete_prefix(prefix: str) -> int:
    return _cache.delete_prefix(prefix)


def cache_clear():
    _cache.clear()
