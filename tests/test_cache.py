"""Tests for the cache implementations."""

import fnmatch
import json

import pytest

from recoengine.recommender.cache import InMemoryCache, RedisCache, ResilientCache

from conftest import BrokenCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeRedis:
    """Minimal async stand-in for the redis client calls the cache makes."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex

    async def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)

    async def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key


# ===== In-memory Tests =====


async def test_in_memory_get_set_delete():
    cache = InMemoryCache()

    await cache.set("a", {"x": 1}, 60)
    assert await cache.get("a") == {"x": 1}

    await cache.delete("a")
    assert await cache.get("a") is None
    # Deleting a missing key is a no-op
    await cache.delete("a")


async def test_in_memory_entries_expire():
    """Test that an entry is gone once its TTL has elapsed."""
    clock = FakeClock()
    cache = InMemoryCache(clock=clock)

    await cache.set("a", [1, 2], 30)
    clock.now += 29
    assert await cache.get("a") == [1, 2]

    clock.now += 1
    assert await cache.get("a") is None
    assert cache.keys() == []


async def test_in_memory_values_are_copied():
    """Test that callers cannot mutate cached values through shared references."""
    cache = InMemoryCache()
    value = {"items": [1]}

    await cache.set("a", value, 60)
    value["items"].append(2)
    fetched = await cache.get("a")
    fetched["items"].append(3)

    assert await cache.get("a") == {"items": [1]}


async def test_in_memory_delete_pattern():
    cache = InMemoryCache()
    for key in (
        "recommendations:user:u1:hybrid:x",
        "recommendations:user:u1:popularity:y",
        "recommendations:user:u10:hybrid:x",
        "recommendations:popular:30:10",
    ):
        await cache.set(key, 1, 60)

    await cache.delete_pattern("recommendations:user:u1:*")

    assert sorted(cache.keys()) == [
        "recommendations:popular:30:10",
        "recommendations:user:u10:hybrid:x",
    ]


# ===== Redis Tests =====


async def test_redis_cache_stores_json_with_ttl():
    client = FakeRedis()
    cache = RedisCache(client)

    await cache.set("a", {"score": 1.5, "ids": ["p1"]}, 120)

    assert json.loads(client.data["a"]) == {"score": 1.5, "ids": ["p1"]}
    assert client.expiry["a"] == 120
    assert await cache.get("a") == {"score": 1.5, "ids": ["p1"]}
    assert await cache.get("missing") is None


async def test_redis_cache_delete_pattern():
    client = FakeRedis()
    cache = RedisCache(client)
    await cache.set("recommendations:popular:30:10", [], 60)
    await cache.set("recommendations:popular:30:20", [], 60)
    await cache.set("recommendations:trending:7", [], 60)

    await cache.delete_pattern("recommendations:popular:*")
    await cache.delete_pattern("nothing:*")

    assert list(client.data) == ["recommendations:trending:7"]


# ===== Resilient Tests =====


async def test_resilient_cache_treats_failures_as_misses():
    """Test that backend errors never reach the caller."""
    cache = ResilientCache(BrokenCache())

    assert await cache.get("a") is None
    await cache.set("a", 1, 60)
    await cache.delete("a")
    await cache.delete_pattern("a*")


async def test_resilient_cache_passes_through():
    backend = InMemoryCache()
    cache = ResilientCache(backend)

    await cache.set("a", 1, 60)

    assert await cache.get("a") == 1
    assert backend.keys() == ["a"]
