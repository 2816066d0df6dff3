from __future__ import annotations

import pytest

from services.media.domain.media import Category
from services.media.infrastructure.cache import InMemoryTTLCache, RedisTTLCache
from services.media.infrastructure.catalog import CachedCategoryRepository
from services.media.tests.fakes import InMemoryCategoryRepository


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}

    def setex(self, key, ttl, value):
        self.values[key] = value.encode() if isinstance(value, str) else value
        self.ttls[key] = ttl

    def get(self, key):
        return self.values.get(key)

    def delete(self, key):
        self.values.pop(key, None)


def test_in_memory_entries_expire_after_ttl():
    clock = FakeClock()
    cache = InMemoryTTLCache(ttl_seconds=10, clock=clock)
    cache.set("k", {"v": 1})

    clock.now += 9
    assert cache.get("k") == {"v": 1}
    clock.now += 1
    assert cache.get("k") is None


def test_in_memory_set_drops_entries_that_are_never_read_again():
    clock = FakeClock()
    cache = InMemoryTTLCache(ttl_seconds=10, clock=clock)
    cache.set("old-a", 1)
    cache.set("old-b", 2)

    clock.now += 10
    cache.set("fresh", 3)

    assert len(cache) == 1
    assert cache.get("fresh") == 3


def test_in_memory_delete_and_invalid_ttl():
    cache = InMemoryTTLCache(ttl_seconds=5)
    cache.set("k", 1)
    cache.delete("k")
    cache.delete("missing")

    assert cache.get("k") is None
    with pytest.raises(ValueError):
        InMemoryTTLCache(ttl_seconds=0)


def test_redis_cache_uses_setex_with_json():
    client = FakeRedis()
    cache = RedisTTLCache(client, ttl_seconds=30)

    cache.set("media:category:1", {"id": 1, "name": "Music"})

    assert client.ttls["media:category:1"] == 30
    assert cache.get("media:category:1") == {"id": 1, "name": "Music"}
    cache.delete("media:category:1")
    assert cache.get("media:category:1") is None


def test_cached_category_repository_reads_through_and_invalidates():
    inner = InMemoryCategoryRepository(["Music"])
    repo = CachedCategoryRepository(inner, InMemoryTTLCache(ttl_seconds=60))

    assert repo.get(1) == Category(category_id=1, name="Music")
    inner._items[1] = Category(category_id=1, name="Renamed")
    assert repo.get(1).name == "Music"

    assert repo.delete(1) is True
    assert repo.get(1) is None
