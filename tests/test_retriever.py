"""
Tests for the Candidate Retriever

- Ranked candidate sets and pagination metadata
- Degraded (empty) results when the catalog is unavailable
- Hot and related listings
"""

import asyncio

import pytest

from library_api.catalog.memory import InMemoryCatalog
from library_api.exceptions import UpstreamUnavailable
from library_api.schemas.book import CatalogItem
from library_api.services.normalizer import build_search_query
from library_api.services.retriever import CandidateRetriever, _unique, query_filters
from tests.conftest import FailingCatalog


def ids(candidates) -> list[str]:
    return [item.id for item in candidates.items]


class SearchFailsCountLags(FailingCatalog):
    """search fails at once while count is still in flight."""

    def __init__(self, search_error: Exception) -> None:
        self.search_error = search_error
        self.count_finished = False

    async def search(self, predicate, filters=(), sort=(), limit=20, offset=0):
        raise self.search_error

    async def count(self, predicate, filters=()):
        await asyncio.sleep(0.01)
        self.count_finished = True
        return 0


class TestRetrieve:

    @pytest.mark.asyncio
    async def test_first_page(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.retrieve(build_search_query("小说", page=1, page_size=2))

        assert ids(candidates) == ["b004", "b001"]
        assert candidates.total == 5
        assert candidates.total_pages == 3
        assert candidates.has_next is True
        assert candidates.has_prev is False
        assert candidates.degraded is False

    @pytest.mark.asyncio
    async def test_last_page(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.retrieve(build_search_query("小说", page=3, page_size=2))

        assert ids(candidates) == ["b008"]
        assert candidates.has_next is False
        assert candidates.has_prev is True

    @pytest.mark.asyncio
    async def test_limit_override_widens_pool(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)
        query = build_search_query("小说", page_size=2)

        candidates = await retriever.retrieve(query, limit=6)

        assert len(candidates.items) == 5
        assert candidates.page_size == 6

    @pytest.mark.asyncio
    async def test_filters_applied(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.retrieve(build_search_query("小说", language="English"))

        assert ids(candidates) == ["b008"]
        assert candidates.total == 1

    @pytest.mark.asyncio
    async def test_no_match_is_empty_not_degraded(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.retrieve(build_search_query("量子力学"))

        assert candidates.is_empty
        assert candidates.total == 0
        assert candidates.degraded is False

    @pytest.mark.asyncio
    async def test_unavailable_catalog_degrades(self, failing_catalog):
        retriever = CandidateRetriever(failing_catalog)

        candidates = await retriever.retrieve(build_search_query("小说", page=2, page_size=5))

        assert candidates.is_empty
        assert candidates.degraded is True
        assert candidates.page == 2
        assert candidates.page_size == 5

    @pytest.mark.asyncio
    async def test_search_and_count_each_called_once(self, counting_catalog):
        retriever = CandidateRetriever(counting_catalog)

        await retriever.retrieve(build_search_query("小说"))

        assert counting_catalog.calls == {"search": 1, "count": 1}

    @pytest.mark.asyncio
    async def test_failed_search_waits_for_count(self):
        catalog = SearchFailsCountLags(UpstreamUnavailable("search down"))

        candidates = await CandidateRetriever(catalog).retrieve(build_search_query("小说"))

        assert candidates.degraded is True
        assert catalog.count_finished is True

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self):
        catalog = SearchFailsCountLags(RuntimeError("bug"))

        with pytest.raises(RuntimeError):
            await CandidateRetriever(catalog).retrieve(build_search_query("小说"))

        assert catalog.count_finished is True


class TestHelpers:

    def test_unique_keeps_first_occurrence(self):
        first = CatalogItem(id="a", title="First")
        items = [first, CatalogItem(id="b", title="B"), CatalogItem(id="a", title="Again")]

        result = _unique(items)

        assert [item.id for item in result] == ["a", "b"]
        assert result[0] is first

    def test_query_filters(self):
        assert query_filters(build_search_query("x")) == []
        filters = query_filters(build_search_query("x", language="中文", subject="历史"))
        assert [(f.field.value, f.value) for f in filters] == [("language", "中文"), ("subject", "历史")]


class TestListings:

    @pytest.mark.asyncio
    async def test_hot(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.hot(limit=3)

        assert ids(candidates) == ["b001", "b002", "b003"]

    @pytest.mark.asyncio
    async def test_hot_within_subject(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)

        candidates = await retriever.hot(limit=10, subject="小说")

        assert ids(candidates) == ["b002", "b003", "b008"]

    @pytest.mark.asyncio
    async def test_hot_degraded(self, failing_catalog):
        candidates = await CandidateRetriever(failing_catalog).hot(limit=5)
        assert candidates.degraded is True
        assert candidates.is_empty

    @pytest.mark.asyncio
    async def test_related_same_subject_available_only(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)
        source = await memory_catalog.get_by_id("b002")

        candidates = await retriever.related(source, limit=1)

        # b003 shares the subject but is borrowed
        assert ids(candidates) == ["b008"]

    @pytest.mark.asyncio
    async def test_related_tops_up_with_popular_books(self, memory_catalog):
        retriever = CandidateRetriever(memory_catalog)
        source = await memory_catalog.get_by_id("b002")

        candidates = await retriever.related(source, limit=3)

        assert ids(candidates) == ["b008", "b001", "b006"]
        assert "b002" not in ids(candidates)
        assert "b003" not in ids(candidates)

    @pytest.mark.asyncio
    async def test_related_without_subject(self):
        catalog = InMemoryCatalog.from_records([
            {"id": "x", "title": "No subject", "popularity": 99},
            {"id": "y", "title": "Y", "subject": "A", "popularity": 50},
            {"id": "z", "title": "Z", "subject": "B", "popularity": 70, "status": "borrowed"},
        ])
        source = await catalog.get_by_id("x")

        candidates = await CandidateRetriever(catalog).related(source, limit=5)

        assert ids(candidates) == ["y"]

    @pytest.mark.asyncio
    async def test_related_degraded(self, failing_catalog):
        source = CatalogItem(id="b1", title="三体", subject="科幻小说")

        candidates = await CandidateRetriever(failing_catalog).related(source, limit=5)

        assert candidates.degraded is True
