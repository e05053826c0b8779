"""
Candidate Retriever

Runs ranked, paginated searches against a CatalogQueryInterface and turns
them into CandidateSets. The row query and the count query share one
predicate and run concurrently.

An unavailable catalog yields an empty, degraded CandidateSet instead of an
error; callers decide whether to cache it.
"""

import asyncio
import logging
from collections.abc import Iterable

from library_api.catalog.base import (
    POPULARITY_SORT,
    RELEVANCE_SORT,
    CatalogQueryInterface,
    EqualityFilter,
    FilterField,
    MatchPredicate,
    text_match_predicate,
)
from library_api.exceptions import UpstreamUnavailable
from library_api.schemas.book import CatalogItem
from library_api.schemas.search import CandidateSet, SearchQuery

logger = logging.getLogger(__name__)


def _unique(items: Iterable[CatalogItem]) -> list[CatalogItem]:
    """Drop repeated ids, keeping the first (best ranked) occurrence."""
    seen: dict[str, CatalogItem] = {}
    for item in items:
        seen.setdefault(item.id, item)
    return list(seen.values())


def query_filters(query: SearchQuery) -> list[EqualityFilter]:
    filters = []
    if query.language:
        filters.append(EqualityFilter(FilterField.LANGUAGE, query.language))
    if query.subject:
        filters.append(EqualityFilter(FilterField.SUBJECT, query.subject))
    return filters


class CandidateRetriever:
    """Retrieves ranked candidates for search, recommendations and listings."""

    def __init__(self, catalog: CatalogQueryInterface) -> None:
        self.catalog = catalog

    async def retrieve(self, query: SearchQuery, limit: int | None = None) -> CandidateSet:
        """
        Ranked candidates for one page of a query.

        Args:
            query: Normalized query
            limit: Row count override (used when gathering recommendation
                candidates); defaults to the query's page size

        Returns:
            CandidateSet in ranking order. Empty and degraded when the
            catalog is unavailable.
        """
        page_size = limit or query.page_size
        predicate = text_match_predicate(query.canonical, query.variant)
        filters = query_filters(query)

        # Both calls run to completion before any failure is acted on
        results = await asyncio.gather(
            self.catalog.search(
                predicate,
                filters,
                RELEVANCE_SORT,
                limit=page_size,
                offset=query.offset,
            ),
            self.catalog.count(predicate, filters),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, UpstreamUnavailable):
                logger.warning(f"Catalog unavailable for query '{query.canonical}': {result.message}")
                return CandidateSet(page=query.page, page_size=page_size, degraded=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        rows, total = results

        items = _unique(rows)
        logger.info(
            f"Retrieved {len(items)} of {total} candidates for '{query.canonical}' "
            f"(page {query.page}, backend {self.catalog.name})"
        )
        return CandidateSet(items=items, total=total, page=query.page, page_size=page_size)

    async def hot(self, limit: int, subject: str | None = None) -> CandidateSet:
        """Most popular books, optionally within one subject."""
        filters = [EqualityFilter(FilterField.SUBJECT, subject)] if subject else []
        try:
            rows = await self.catalog.search(MatchPredicate(), filters, POPULARITY_SORT, limit=limit)
        except UpstreamUnavailable as e:
            logger.warning(f"Catalog unavailable for hot books: {e.message}")
            return CandidateSet(page_size=limit, degraded=True)

        items = _unique(rows)
        return CandidateSet(items=items, total=len(items), page_size=limit)

    async def related(self, item: CatalogItem, limit: int) -> CandidateSet:
        """
        Available books sharing the item's subject, most popular first.

        When the subject does not provide enough books the list is topped up
        with other popular available books. The source item is never
        included.
        """
        available = EqualityFilter(FilterField.STATUS, "available")
        related: list[CatalogItem] = []

        try:
            if item.subject:
                rows = await self.catalog.search(
                    MatchPredicate(),
                    [EqualityFilter(FilterField.SUBJECT, item.subject), available],
                    POPULARITY_SORT,
                    limit=limit + 1,
                )
                related = [row for row in rows if row.id != item.id][:limit]

            if len(related) < limit:
                exclude = {item.id, *(row.id for row in related)}
                rows = await self.catalog.search(
                    MatchPredicate(),
                    [available],
                    POPULARITY_SORT,
                    limit=limit + len(exclude),
                )
                extra = [row for row in rows if row.id not in exclude]
                related.extend(extra[: limit - len(related)])
        except UpstreamUnavailable as e:
            logger.warning(f"Catalog unavailable for books related to {item.id}: {e.message}")
            return CandidateSet(page_size=limit, degraded=True)

        items = _unique(related)
        return CandidateSet(items=items, total=len(items), page_size=limit)
