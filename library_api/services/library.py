"""
Library Service

The one object the HTTP layer talks to. Each public method is a complete
read operation: normalize input, check the cache, compute on a miss
(retrieval, then recommendations where requested), and write back.

LibraryService is constructed explicitly (build_library_service) and owns
its catalog adapter, cache store and completion client; it is stored on
app.state for the lifetime of the application.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from library_api.catalog.base import CatalogQueryInterface
from library_api.catalog.elasticsearch import ElasticsearchCatalog
from library_api.catalog.memory import InMemoryCatalog
from library_api.catalog.sql import SqlCatalog
from library_api.config import Settings
from library_api.database import create_catalog_engine, create_session_factory
from library_api.exceptions import BookNotFound, InvalidQuery, UpstreamUnavailable
from library_api.schemas.book import BookDetail, BookListResponse, CatalogItem
from library_api.schemas.recommendation import QueryResponse, RecommendResponse
from library_api.schemas.search import SearchQuery, SearchResponse
from library_api.services.cache import CacheAside, MemoryCacheStore, RedisCacheStore
from library_api.services.completion import CompletionClient
from library_api.services.normalizer import build_search_query, clamp_page_size, normalize
from library_api.services.recommendations import (
    RecommendationOrchestrator,
    CATALOG_UNAVAILABLE_ANSWER,
    book_summary,
    generic_description,
)
from library_api.services.retriever import CandidateRetriever

logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDATIONS = 10
DEFAULT_HOT_BOOKS = 10
DEFAULT_RELATED_BOOKS = 8
MAX_RELATED_BOOKS = 20


class Degradable(Protocol):
    degraded: bool


def _not_degraded(result: Degradable) -> bool:
    return not result.degraded


class LibraryService:
    """Search, recommendation and book lookup operations."""

    def __init__(
        self,
        catalog: CatalogQueryInterface,
        cache: CacheAside,
        orchestrator: RecommendationOrchestrator,
        settings: Settings,
    ) -> None:
        self.catalog = catalog
        self.cache = cache
        self.orchestrator = orchestrator
        self.settings = settings
        self.retriever = CandidateRetriever(catalog)
        self._background: set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------
    async def search(
        self,
        q: str | None,
        page: int | None = None,
        page_size: int | None = None,
        language: str | None = None,
        subject: str | None = None,
    ) -> SearchResponse:
        """
        Ranked, paginated search.

        Raises:
            InvalidQuery: blank query
        """
        query = build_search_query(
            q,
            page,
            page_size,
            language,
            subject,
            max_page_size=self.settings.max_page_size,
            default_page_size=self.settings.default_page_size,
        )

        async def compute() -> SearchResponse:
            candidates = await self.retriever.retrieve(query)
            return SearchResponse.from_candidates(query, candidates)

        return await self.cache.get_or_compute(
            "search",
            {
                "q": query.canonical,
                "page": query.page,
                "page_size": query.page_size,
                "language": query.language,
                "subject": query.subject,
            },
            self.settings.search_cache_ttl,
            compute,
            SearchResponse,
            cacheable=_not_degraded,
        )

    # -------------------------------------------------------------------------
    # Recommendations
    # -------------------------------------------------------------------------
    async def recommend(self, q: str | None, limit: int | None = None) -> RecommendResponse:
        """
        Model-curated recommendations drawn from the search candidates.

        Raises:
            InvalidQuery: blank query
        """
        normalized = normalize(q)
        limit = clamp_page_size(limit, self.settings.max_recommendations, DEFAULT_RECOMMENDATIONS)

        async def compute() -> RecommendResponse:
            query = SearchQuery(
                canonical=normalized.canonical,
                variant=normalized.variant,
                page=1,
                page_size=limit,
            )
            candidates = await self.retriever.retrieve(
                query, limit=limit * self.settings.candidate_multiplier
            )
            result = await self.orchestrator.recommend(normalized.canonical, candidates, limit)
            return RecommendResponse(
                summary=result.summary,
                recommendations=result.recommendations,
                source=result.source,
                degraded=candidates.degraded,
            )

        return await self.cache.get_or_compute(
            "recommend",
            {"q": normalized.canonical, "limit": limit},
            self.settings.recommendation_cache_ttl,
            compute,
            RecommendResponse,
            cacheable=_not_degraded,
        )

    # -------------------------------------------------------------------------
    # Book lookup and questions
    # -------------------------------------------------------------------------
    async def lookup(
        self,
        book_id: str | None = None,
        title: str | None = None,
    ) -> CatalogItem:
        """
        Fetch one book by id, or by title when no id is given.

        Raises:
            InvalidQuery: neither id nor title given
            BookNotFound: no matching book
            UpstreamUnavailable: the catalog cannot be reached (ask and
                related turn this into a degraded response)
        """
        book_id = (book_id or "").strip()
        title = (title or "").strip()

        if book_id:
            async def by_id() -> CatalogItem:
                item = await self.catalog.get_by_id(book_id)
                if item is None:
                    raise BookNotFound(f"Book {book_id} not found")
                return item

            return await self.cache.get_or_compute(
                "book", {"id": book_id}, self.settings.book_cache_ttl, by_id, CatalogItem
            )

        if title:
            async def by_title() -> CatalogItem:
                item = await self.catalog.get_by_title(title)
                if item is None:
                    raise BookNotFound(f"No book titled '{title}'")
                return item

            return await self.cache.get_or_compute(
                "book_title", {"title": title}, self.settings.book_cache_ttl, by_title, CatalogItem
            )

        raise InvalidQuery("bookId or bookTitle is required")

    async def ask(
        self,
        book_id: str | None = None,
        book_title: str | None = None,
        question: str | None = None,
    ) -> QueryResponse:
        """
        Book detail plus an answer to an optional question about it.

        Counts one view per call. Without a question, or when the completion
        service fails, the answer is a generic description. When the catalog
        is unavailable the response is degraded: no book and a fixed answer.
        """
        try:
            item = await self.lookup(book_id, book_title)
        except UpstreamUnavailable as e:
            logger.warning(f"Catalog unavailable for book query: {e.message}")
            return QueryResponse(answer=CATALOG_UNAVAILABLE_ANSWER, book=None, degraded=True)

        self._schedule_view_increment(item.id)

        answer = None
        question = (question or "").strip()
        if question:
            answer = await self.orchestrator.answer(item, question)

        return QueryResponse(
            answer=answer or generic_description(item),
            book=BookDetail(
                **item.model_dump(),
                summary=book_summary(item),
                last_viewed=datetime.now(timezone.utc),
            ),
        )

    # -------------------------------------------------------------------------
    # Listings
    # -------------------------------------------------------------------------
    async def hot(self, limit: int | None = None, subject: str | None = None) -> BookListResponse:
        """Most popular books, optionally within one subject."""
        limit = clamp_page_size(limit, self.settings.max_page_size, DEFAULT_HOT_BOOKS)
        subject = (subject or "").strip() or None

        async def compute() -> BookListResponse:
            candidates = await self.retriever.hot(limit, subject)
            return BookListResponse(items=candidates.items, degraded=candidates.degraded)

        return await self.cache.get_or_compute(
            "hot",
            {"limit": limit, "subject": subject},
            self.settings.listing_cache_ttl,
            compute,
            BookListResponse,
            cacheable=_not_degraded,
        )

    async def related(self, book_id: str, limit: int | None = None) -> BookListResponse:
        """
        Books related to one book by subject.

        Raises:
            BookNotFound: unknown book id
        """
        limit = clamp_page_size(limit, MAX_RELATED_BOOKS, DEFAULT_RELATED_BOOKS)
        try:
            item = await self.lookup(book_id=book_id)
        except UpstreamUnavailable as e:
            logger.warning(f"Catalog unavailable for books related to {book_id}: {e.message}")
            return BookListResponse(degraded=True)

        async def compute() -> BookListResponse:
            candidates = await self.retriever.related(item, limit)
            return BookListResponse(items=candidates.items, degraded=candidates.degraded)

        return await self.cache.get_or_compute(
            "related",
            {"id": item.id, "limit": limit},
            self.settings.listing_cache_ttl,
            compute,
            BookListResponse,
            cacheable=_not_degraded,
        )

    # -------------------------------------------------------------------------
    # View counting
    # -------------------------------------------------------------------------
    def _schedule_view_increment(self, identifier: str) -> None:
        task = asyncio.create_task(self._increment_views(identifier))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _increment_views(self, identifier: str) -> None:
        try:
            await self.catalog.increment_view_count(identifier)
        except UpstreamUnavailable as e:
            logger.warning(f"View count for {identifier} not recorded: {e.message}")

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending view increments (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def health(self) -> dict[str, Any]:
        return {
            "catalog": self.catalog.name,
            "cache": self.cache.stats(),
            "completion": "configured" if self.orchestrator.completion.enabled else "disabled",
        }

    async def aclose(self) -> None:
        await self.wait_for_background_tasks()
        await self.catalog.aclose()
        await self.orchestrator.completion.aclose()
        self.cache.close()


# =============================================================================
# Wiring
# =============================================================================

def build_catalog(settings: Settings) -> CatalogQueryInterface:
    """Create the catalog adapter selected by settings.catalog_backend."""
    if settings.catalog_backend == "elasticsearch":
        return ElasticsearchCatalog.from_url(
            settings.elasticsearch_url,
            f"{settings.elasticsearch_index_prefix}books",
            timeout=settings.elasticsearch_timeout,
        )
    if settings.catalog_backend == "memory":
        return InMemoryCatalog.from_json(settings.catalog_json_path)

    engine = create_catalog_engine(settings)
    return SqlCatalog(create_session_factory(engine))


def build_cache(settings: Settings) -> CacheAside:
    if not settings.cache_enabled:
        logger.info("Caching disabled")
        return CacheAside(None)

    if settings.cache_backend == "memory":
        logger.info("Using in-process cache store")
        return CacheAside(MemoryCacheStore())

    store = RedisCacheStore.from_url(settings.redis_url)
    if store.ping():
        logger.info("Successfully connected to Redis")
    return CacheAside(store)


def build_library_service(settings: Settings) -> LibraryService:
    """Construct a LibraryService and everything it owns from settings."""
    completion = CompletionClient(
        api_url=settings.completion_api_url,
        api_key=settings.completion_api_key.strip(),
        model=settings.completion_model,
        temperature=settings.completion_temperature,
    )
    if not completion.enabled:
        logger.warning("No completion API key configured; recommendations use the fallback")

    orchestrator = RecommendationOrchestrator(
        completion,
        prompt_candidate_limit=settings.prompt_candidate_limit,
        recommendation_timeout=settings.recommendation_timeout,
        answer_timeout=settings.answer_timeout,
        recommendation_max_tokens=settings.recommendation_max_tokens,
        answer_max_tokens=settings.answer_max_tokens,
    )

    catalog = build_catalog(settings)
    logger.info(f"Catalog backend: {catalog.name}")
    return LibraryService(catalog, build_cache(settings), orchestrator, settings)
