# tests/test_cache.py

"""
Tests for caching functionality.
"""

from core.cache import (
    cache_get,
    cache_set,
    cache_clear,
    cache_delete,
    cache_delete_prefix,
    SimpleCache,
)


def test_cache_set_and_get():
    cache_set("test_key", "test_value", ttl_seconds=60)
    assert cache_get("test_key") == "test_value"


def test_cache_expiration():
    """Zero TTL entries are already expired."""
    cache_set("expiring_key", "expired_value", ttl_seconds=0)
    assert cache_get("expiring_key") is None


def test_cache_delete():
    cache_set("delete_key", "delete_value")
    cache_delete("delete_key")
    assert cache_get("delete_key") is None


def test_cache_delete_prefix():
    cache_set("buildings:list:100", [1])
    cache_set("buildings:by_name:skyline", {"id": "b1"})
    cache_set("other:key", "kept")

    assert cache_delete_prefix("buildings:") == 2
    assert cache_get("buildings:list:100") is None
    assert cache_get("other:key") == "kept"


def test_cache_clear():
    cache_set("key1", "value1")
    cache_set("key2", "value2")

    cache_clear()

    assert cache_get("key1") is None
    assert cache_get("key2") is None


def test_simple_cache_size():
    cache = SimpleCache()
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.size() == 2
