"""
pytest Fixtures for Smart Library API Tests

This file contains shared fixtures used across all test files.

FIXTURES PROVIDED:
==================
- book_records: a small raw catalog (the JSON data-file shape)
- memory_catalog: InMemoryCatalog built from book_records
- sql_catalog: SqlCatalog over a SQLite file seeded with book_records
- catalog_builder: builds memory and SQL catalogs from records (parametrized)
- counting_catalog / failing_catalog: stubs that count calls or always fail
- completion_factory: builds a CompletionClient answered by httpx.MockTransport
- library_factory / library: LibraryService wired with test collaborators
- client: FastAPI TestClient around create_app(settings, library)

No fixture talks to a real database server, Redis, Elasticsearch or the
completion service.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
# library_api.main reads settings at import time
import os

os.environ["CATALOG_BACKEND"] = "memory"
os.environ["CACHE_ENABLED"] = "false"
os.environ["COMPLETION_API_KEY"] = ""

import json
from collections.abc import Callable, Generator, Sequence
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from library_api.catalog.base import (
    RELEVANCE_SORT,
    CatalogQueryInterface,
    EqualityFilter,
    MatchPredicate,
    SortKey,
)
from library_api.catalog.memory import InMemoryCatalog, parse_record
from library_api.catalog.sql import SqlCatalog
from library_api.config import Settings
from library_api.database import Base, create_catalog_engine, create_session_factory
from library_api.exceptions import CacheUnavailable, UpstreamUnavailable
from library_api.main import create_app
from library_api.models import Book
from library_api.schemas.book import CatalogItem
from library_api.services.cache import CacheAside, CacheStore, MemoryCacheStore
from library_api.services.completion import CompletionClient
from library_api.services.library import LibraryService
from library_api.services.recommendations import RecommendationOrchestrator


# =============================================================================
# SAMPLE DATA
# =============================================================================

BOOK_RECORDS = [
    {
        "id": "b001", "title": "三体", "author": "刘慈欣", "publisher": "重庆出版社",
        "subject": "科幻小说", "language": "中文", "popularity": 98, "view_count": 1520,
        "status": "available", "keywords": ["宇宙", "文明"],
    },
    {
        "id": "b002", "title": "活着", "author": "余华", "publisher": "作家出版社",
        "subject": "小说", "language": "中文", "popularity": 95, "view_count": 1310,
        "status": "available",
    },
    {
        "id": "b003", "title": "围城", "author": "钱钟书", "publisher": "人民文学出版社",
        "subject": "小说", "language": "中文", "popularity": 90, "view_count": 980,
        "status": "borrowed",
    },
    {
        "id": "b004", "title": "小说面面观", "author": "E.M. Forster", "publisher": "上海译文出版社",
        "subject": "文学理论", "language": "中文", "popularity": 60, "view_count": 120,
        "status": "available",
    },
    {
        "id": "b005", "title": "万历十五年", "author": "黄仁宇", "publisher": "中华书局",
        "subject": "历史", "language": "中文", "popularity": 88, "view_count": 760,
        "status": "available", "keywords": ["明朝"],
    },
    {
        "id": "b006", "title": "Python编程", "author": "Eric Matthes", "publisher": "人民邮电出版社",
        "subject": "编程", "language": "中文", "popularity": 89, "view_count": 870,
        "status": "available",
    },
    {
        "id": "b007", "title": "The Hobbit", "author": "J.R.R. Tolkien", "publisher": "HarperCollins",
        "subject": "Fantasy", "language": "English", "popularity": 87, "view_count": 700,
        "status": "available", "keywords": ["dragon"],
    },
    {
        "id": "b008", "title": "Nineteen Eighty-Four", "author": "George Orwell", "publisher": "Penguin",
        "subject": "小说", "language": "English", "popularity": 90, "view_count": 400,
        "status": "available",
    },
]


@pytest.fixture
def book_records() -> list[dict]:
    return [dict(record) for record in BOOK_RECORDS]


@pytest.fixture
def memory_catalog(book_records) -> InMemoryCatalog:
    return InMemoryCatalog.from_records(book_records)


@pytest.fixture
def catalog_file(tmp_path: Path, book_records) -> Path:
    path = tmp_path / "books.json"
    path.write_text(json.dumps({"books": book_records}, ensure_ascii=False), encoding="utf-8")
    return path


# =============================================================================
# SQL CATALOG
# =============================================================================
# A SQLite file (not :memory:) so the worker threads the adapter runs
# queries in all see the same database.

def make_sql_catalog(path: Path, records: list[dict]) -> SqlCatalog:
    """Create a SQLite catalog file at `path` holding `records`."""
    settings = Settings(_env_file=None, database_url=f"sqlite:///{path}")
    engine = create_catalog_engine(settings)
    Base.metadata.create_all(bind=engine)
    session_factory = create_session_factory(engine)

    with session_factory() as db:
        for record in records:
            item, search_text = parse_record(record)
            db.add(Book(**item.model_dump(), search_text=search_text))
        db.commit()

    return SqlCatalog(session_factory)


@pytest.fixture
def sql_catalog(tmp_path: Path, book_records) -> Generator[SqlCatalog, None, None]:
    catalog = make_sql_catalog(tmp_path / "catalog.db", book_records)
    yield catalog
    catalog._session_factory.kw["bind"].dispose()


@pytest.fixture(params=["memory", "sql"])
def catalog_builder(request, tmp_path: Path) -> Generator[Callable[[list[dict]], CatalogQueryInterface], None, None]:
    """
    Build a catalog from raw records, once per adapter.

    Tests using this fixture run against the in-memory and the SQL adapter,
    which must rank identically.
    """
    built: list[SqlCatalog] = []

    def build(records: list[dict]) -> CatalogQueryInterface:
        if request.param == "memory":
            return InMemoryCatalog.from_records(records)
        catalog = make_sql_catalog(tmp_path / f"catalog_{len(built)}.db", records)
        built.append(catalog)
        return catalog

    yield build

    for catalog in built:
        catalog._session_factory.kw["bind"].dispose()


# =============================================================================
# CATALOG STUBS
# =============================================================================

class CountingCatalog(CatalogQueryInterface):
    """Delegates to another catalog and counts every call by method name."""

    name = "counting"

    def __init__(self, inner: CatalogQueryInterface) -> None:
        self.inner = inner
        self.calls: dict[str, int] = {}

    def _count(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1

    async def search(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
        sort: Sequence[SortKey] = RELEVANCE_SORT,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CatalogItem]:
        self._count("search")
        return await self.inner.search(predicate, filters, sort, limit, offset)

    async def count(self, predicate: MatchPredicate, filters: Sequence[EqualityFilter] = ()) -> int:
        self._count("count")
        return await self.inner.count(predicate, filters)

    async def get_by_id(self, identifier: str) -> CatalogItem | None:
        self._count("get_by_id")
        return await self.inner.get_by_id(identifier)

    async def get_by_title(self, text: str) -> CatalogItem | None:
        self._count("get_by_title")
        return await self.inner.get_by_title(text)

    async def increment_view_count(self, identifier: str) -> None:
        self._count("increment_view_count")
        await self.inner.increment_view_count(identifier)


class FailingCatalog(CatalogQueryInterface):
    """Every operation fails the way an unreachable backend does."""

    name = "failing"

    async def search(self, predicate, filters=(), sort=RELEVANCE_SORT, limit=20, offset=0):
        raise UpstreamUnavailable("catalog down")

    async def count(self, predicate, filters=()):
        raise UpstreamUnavailable("catalog down")

    async def get_by_id(self, identifier):
        raise UpstreamUnavailable("catalog down")

    async def get_by_title(self, text):
        raise UpstreamUnavailable("catalog down")

    async def increment_view_count(self, identifier):
        raise UpstreamUnavailable("catalog down")


@pytest.fixture
def counting_catalog(memory_catalog) -> CountingCatalog:
    return CountingCatalog(memory_catalog)


@pytest.fixture
def failing_catalog() -> FailingCatalog:
    return FailingCatalog()


# =============================================================================
# CACHE STUBS
# =============================================================================

class FailingCacheStore(CacheStore):
    """A cache store that is always down."""

    name = "failing"

    def __init__(self) -> None:
        self.attempts = 0

    def get(self, key: str) -> str | None:
        self.attempts += 1
        raise CacheUnavailable("cache down")

    def set(self, key: str, value: str, ttl: int) -> None:
        self.attempts += 1
        raise CacheUnavailable("cache down")


@pytest.fixture
def failing_store() -> FailingCacheStore:
    return FailingCacheStore()


@pytest.fixture
def memory_store() -> MemoryCacheStore:
    return MemoryCacheStore()


# =============================================================================
# COMPLETION SERVICE STUBS
# =============================================================================

def chat_reply(content: str) -> httpx.Response:
    """A chat-completions response carrying `content`."""
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


class CompletionRecorder:
    """MockTransport handler that records requests and replies via `respond`."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]) -> None:
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def payloads(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def completion_factory() -> Callable[..., tuple[CompletionClient, CompletionRecorder]]:
    """
    Build a CompletionClient whose HTTP traffic goes to a recorder.

    Usage:
        completion, recorder = completion_factory(lambda request: chat_reply("..."))
    """

    def factory(
        respond: Callable[[httpx.Request], httpx.Response] | None = None,
        api_key: str = "test-key",
    ) -> tuple[CompletionClient, CompletionRecorder]:
        recorder = CompletionRecorder(respond or (lambda request: httpx.Response(500)))
        client = CompletionClient(
            api_url="https://completion.test/v1/chat/completions",
            api_key=api_key,
            model="test-model",
            transport=httpx.MockTransport(recorder),
        )
        return client, recorder

    return factory


# =============================================================================
# SERVICE AND APP FIXTURES
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        catalog_backend="memory",
        cache_enabled=False,
        completion_api_key="test-key",
    )


@pytest.fixture
def library_factory(settings, completion_factory) -> Callable[..., LibraryService]:
    """
    Build a LibraryService around the given collaborators.

    Usage:
        library = library_factory(catalog, store=MemoryCacheStore(), respond=handler)
    """

    def factory(
        catalog: CatalogQueryInterface,
        store: CacheStore | None = None,
        respond: Callable[[httpx.Request], httpx.Response] | None = None,
    ) -> LibraryService:
        completion, _ = completion_factory(respond)
        orchestrator = RecommendationOrchestrator(completion)
        return LibraryService(catalog, CacheAside(store), orchestrator, settings)

    return factory


@pytest.fixture
def library(library_factory, memory_catalog, memory_store) -> LibraryService:
    return library_factory(memory_catalog, store=memory_store)


@pytest.fixture
def client(settings, library) -> Generator[TestClient, None, None]:
    """
    Test client around a fresh app.

    The service is passed in, so the lifespan does not build one from
    settings; leaving the `with` block runs shutdown.
    """
    app = create_app(settings, library)
    with TestClient(app) as test_client:
        yield test_client
