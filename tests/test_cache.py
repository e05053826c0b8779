"""
Tests for the Caching Service

- Key generation
- Store behavior (memory expiry, Redis error mapping)
- Cache-aside: hits skip the catalog, failures degrade to direct computation
"""

from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from library_api.exceptions import CacheUnavailable
from library_api.schemas.book import CatalogItem
from library_api.services.cache import (
    CacheAside,
    MemoryCacheStore,
    RedisCacheStore,
    make_cache_key,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestCacheKeys:

    def test_params_sorted_and_none_skipped(self):
        key = make_cache_key("search", q="python", page=2, language=None)
        assert key == "library:search:page=2:q=python"

    def test_same_params_same_key(self):
        assert make_cache_key("hot", limit=10, subject="历史") == make_cache_key("hot", subject="历史", limit=10)

    def test_values_are_encoded(self):
        key = make_cache_key("book_title", title="a:b=c")
        assert key == "library:book_title:title=a%3Ab%3Dc"

    def test_unicode_values(self):
        assert make_cache_key("search", q="小说") == "library:search:q=%E5%B0%8F%E8%AF%B4"


class TestMemoryCacheStore:

    def test_entry_expires(self):
        clock = FakeClock()
        store = MemoryCacheStore(clock=clock)

        store.set("k", "v", ttl=60)
        assert store.get("k") == "v"

        clock.now += 59
        assert store.get("k") == "v"

        clock.now += 1
        assert store.get("k") is None
        assert store.stats()["keys"] == 0

    def test_missing_key(self):
        assert MemoryCacheStore().get("nope") is None


class TestRedisCacheStore:

    def test_get_and_set(self):
        client = MagicMock()
        client.get.return_value = '{"id": "b1"}'
        store = RedisCacheStore(client)

        store.set("k", "v", 300)

        client.setex.assert_called_once_with("k", 300, "v")
        assert store.get("k") == '{"id": "b1"}'

    def test_errors_become_cache_unavailable(self):
        client = MagicMock()
        client.get.side_effect = RedisConnectionError("down")
        client.setex.side_effect = RedisConnectionError("down")
        store = RedisCacheStore(client)

        with pytest.raises(CacheUnavailable):
            store.get("k")
        with pytest.raises(CacheUnavailable):
            store.set("k", "v", 10)

    def test_ping_failure(self):
        client = MagicMock()
        client.ping.side_effect = RedisConnectionError("down")

        assert RedisCacheStore(client).ping() is False

    def test_stats_when_disconnected(self):
        client = MagicMock()
        client.info.side_effect = RedisConnectionError("down")

        assert RedisCacheStore(client).stats() == {"status": "disconnected", "backend": "redis"}


class TestCacheAside:

    @pytest.mark.asyncio
    async def test_hit_skips_compute(self, memory_store):
        cache = CacheAside(memory_store)
        calls = []

        async def compute():
            calls.append(1)
            return CatalogItem(id="b1", title="三体")

        first = await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem)
        second = await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem)

        assert first == second
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_not_cacheable_result_is_not_stored(self, memory_store):
        cache = CacheAside(memory_store)

        async def compute():
            return CatalogItem(id="b1", title="三体")

        await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem, cacheable=lambda r: False)

        assert memory_store.get(make_cache_key("book", id="b1")) is None

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self, memory_store):
        cache = CacheAside(memory_store)
        memory_store.set(make_cache_key("book", id="b1"), "{not json", 60)

        async def compute():
            return CatalogItem(id="b1", title="三体")

        item = await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem)

        assert item.title == "三体"
        assert CatalogItem.model_validate_json(memory_store.get(make_cache_key("book", id="b1"))) == item

    @pytest.mark.asyncio
    async def test_failing_store_computes_directly(self, failing_store):
        cache = CacheAside(failing_store)

        async def compute():
            return CatalogItem(id="b1", title="三体")

        item = await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem)

        assert item.id == "b1"
        assert failing_store.attempts == 2

    @pytest.mark.asyncio
    async def test_disabled_cache(self):
        cache = CacheAside(None)

        async def compute():
            return CatalogItem(id="b1", title="三体")

        assert (await cache.get_or_compute("book", {"id": "b1"}, 60, compute, CatalogItem)).id == "b1"
        assert cache.enabled is False
        assert cache.stats() == {"status": "disabled"}


class TestLibraryCaching:
    """Caching as seen through LibraryService operations."""

    @pytest.mark.asyncio
    async def test_repeated_search_hits_catalog_once(self, library_factory, counting_catalog, memory_store):
        library = library_factory(counting_catalog, store=memory_store)

        first = await library.search("小说", page=1, page_size=2)
        second = await library.search("  小说 ", page=1, page_size=2)

        assert first == second
        assert counting_catalog.calls == {"search": 1, "count": 1}

    @pytest.mark.asyncio
    async def test_different_pages_are_cached_separately(self, library_factory, counting_catalog, memory_store):
        library = library_factory(counting_catalog, store=memory_store)

        await library.search("小说", page=1, page_size=2)
        await library.search("小说", page=2, page_size=2)

        assert counting_catalog.calls["search"] == 2

    @pytest.mark.asyncio
    async def test_cache_outage_matches_uncached_results(self, library_factory, memory_catalog, failing_store):
        uncached = library_factory(memory_catalog)
        broken_cache = library_factory(memory_catalog, store=failing_store)

        expected = await uncached.search("小说")
        actual = await broken_cache.search("小说")

        assert actual == expected
        assert failing_store.attempts > 0

    @pytest.mark.asyncio
    async def test_degraded_search_not_cached(self, library_factory, failing_catalog, memory_store):
        library = library_factory(failing_catalog, store=memory_store)

        response = await library.search("小说")

        assert response.degraded is True
        assert response.data.books == []
        assert memory_store.stats()["keys"] == 0

    @pytest.mark.asyncio
    async def test_fallback_recommendations_are_cached(self, library_factory, counting_catalog, memory_store):
        library = library_factory(counting_catalog, store=memory_store)

        first = await library.recommend("小说", limit=2)
        second = await library.recommend("小说", limit=2)

        assert first.source == "fallback"
        assert first == second
        assert counting_catalog.calls["search"] == 1
