"""
Elasticsearch Catalog

Catalog adapter for deployments that serve search from an Elasticsearch
index instead of the SQL database.

Features:
- Async client, shared for the application lifetime
- Keyword fields matched with case-insensitive wildcards
- search_text analyzed for full-text matching
- Match tiers expressed as constant_score boosts inside a dis_max, so a
  document scores exactly the boost of its best tier and `_score desc`
  reproduces the tier order
"""

import logging
from collections.abc import Iterable, Sequence
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, NotFoundError, TransportError
from elasticsearch.helpers import async_bulk

from library_api.catalog.base import (
    OTHER_TIER,
    RELEVANCE_SORT,
    CatalogQueryInterface,
    EqualityFilter,
    FieldMatch,
    FullTextMatch,
    MatchClause,
    MatchField,
    MatchPredicate,
    SortKey,
)
from library_api.exceptions import UpstreamUnavailable
from library_api.schemas.book import CatalogItem

logger = logging.getLogger(__name__)

# =============================================================================
# Index Definition
# =============================================================================

BOOK_INDEX_SETTINGS = {
    "number_of_shards": 1,
    "number_of_replicas": 0,  # Single node for development
}

BOOK_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "keyword"},
        "title": {"type": "keyword"},
        "author": {"type": "keyword"},
        "publisher": {"type": "keyword"},
        "subject": {"type": "keyword"},
        "language": {"type": "keyword"},
        "callno": {"type": "keyword"},
        "status": {"type": "keyword"},
        "popularity": {"type": "float"},
        "view_count": {"type": "integer"},
        "search_text": {"type": "text", "analyzer": "standard"},
    }
}


def item_to_document(item: CatalogItem, search_text: str) -> dict[str, Any]:
    """Convert a catalog record into an index document."""
    return {**item.model_dump(), "search_text": search_text}


# =============================================================================
# Query Translation
# =============================================================================

def escape_wildcard(term: str) -> str:
    """Escape characters with special meaning in wildcard patterns."""
    return term.replace("\\", "\\\\").replace("*", "\\*").replace("?", "\\?")


def tier_boost(tier: int) -> float:
    """Tier 1 gets the highest boost, the last tier gets 1."""
    return float(OTHER_TIER + 1 - tier)


def clause_to_query(clause: MatchClause) -> dict[str, Any]:
    if isinstance(clause, FieldMatch):
        return {
            "bool": {
                "should": [
                    {
                        "wildcard": {
                            clause.field.value: {
                                "value": f"*{escape_wildcard(term)}*",
                                "case_insensitive": True,
                            }
                        }
                    }
                    for term in clause.terms
                ],
                "minimum_should_match": 1,
            }
        }
    if isinstance(clause, FullTextMatch):
        return {"match": {"search_text": {"query": clause.text, "operator": "and"}}}
    raise TypeError(f"Unsupported clause: {clause!r}")


def build_query(
    predicate: MatchPredicate,
    filters: Sequence[EqualityFilter] = (),
    ranked: bool = True,
) -> dict[str, Any]:
    """
    Translate a predicate into a bool query.

    With ranked=True the match part is a dis_max of constant_score queries
    (tie_breaker 0), giving each hit the boost of its best tier.
    """
    if predicate.matches_all:
        match: dict[str, Any] = {"match_all": {}}
    elif ranked:
        match = {
            "dis_max": {
                "queries": [
                    {
                        "constant_score": {
                            "filter": clause_to_query(clause),
                            "boost": tier_boost(clause.tier),
                        }
                    }
                    for clause in predicate.clauses
                ],
                "tie_breaker": 0.0,
            }
        }
    else:
        match = {
            "bool": {
                "should": [clause_to_query(clause) for clause in predicate.clauses],
                "minimum_should_match": 1,
            }
        }

    return {
        "bool": {
            "must": [match],
            "filter": [{"term": {f.field.value: f.value}} for f in filters],
        }
    }


def build_sort(predicate: MatchPredicate, sort: Sequence[SortKey]) -> list[dict[str, Any]]:
    clauses: list[dict[str, Any]] = []
    for sort_key in sort:
        if sort_key is SortKey.MATCH_TIER:
            if not predicate.matches_all:
                clauses.append({"_score": {"order": "desc"}})
        elif sort_key is SortKey.POPULARITY:
            clauses.append({"popularity": {"order": "desc"}})
        elif sort_key is SortKey.VIEW_COUNT:
            clauses.append({"view_count": {"order": "desc"}})
    clauses.append({"id": {"order": "asc"}})
    return clauses


# =============================================================================
# Adapter
# =============================================================================

class ElasticsearchCatalog(CatalogQueryInterface):
    """Catalog backed by an Elasticsearch index."""

    name = "elasticsearch"

    def __init__(self, client: AsyncElasticsearch, index_name: str) -> None:
        self._client = client
        self._index = index_name

    @classmethod
    def from_url(cls, url: str, index_name: str, timeout: int = 10) -> "ElasticsearchCatalog":
        client = AsyncElasticsearch(hosts=[url], request_timeout=timeout)
        return cls(client, index_name)

    @property
    def index_name(self) -> str:
        return self._index

    def _unavailable(self, operation: str, error: Exception) -> UpstreamUnavailable:
        logger.warning(f"Elasticsearch {operation} on {self._index} failed: {error}")
        return UpstreamUnavailable(f"Search index unavailable during {operation}")

    async def search(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
        sort: Sequence[SortKey] = RELEVANCE_SORT,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CatalogItem]:
        try:
            response = await self._client.search(
                index=self._index,
                query=build_query(predicate, filters, ranked=SortKey.MATCH_TIER in sort),
                sort=build_sort(predicate, sort),
                from_=offset,
                size=limit,
            )
        except (ApiError, TransportError) as e:
            raise self._unavailable("search", e) from e

        return [CatalogItem.model_validate(hit["_source"]) for hit in response["hits"]["hits"]]

    async def count(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
    ) -> int:
        try:
            response = await self._client.count(
                index=self._index,
                query=build_query(predicate, filters, ranked=False),
            )
        except (ApiError, TransportError) as e:
            raise self._unavailable("count", e) from e

        return int(response["count"])

    async def get_by_id(self, identifier: str) -> CatalogItem | None:
        try:
            response = await self._client.get(index=self._index, id=identifier)
        except NotFoundError:
            return None
        except (ApiError, TransportError) as e:
            raise self._unavailable("get", e) from e

        return CatalogItem.model_validate(response["_source"])

    async def get_by_title(self, text: str) -> CatalogItem | None:
        try:
            response = await self._client.search(
                index=self._index,
                query=clause_to_query(FieldMatch(MatchField.TITLE, (text,))),
                sort=build_sort(MatchPredicate(), (SortKey.POPULARITY, SortKey.VIEW_COUNT)),
                size=1,
            )
        except (ApiError, TransportError) as e:
            raise self._unavailable("get_by_title", e) from e

        hits = response["hits"]["hits"]
        return CatalogItem.model_validate(hits[0]["_source"]) if hits else None

    async def increment_view_count(self, identifier: str) -> None:
        try:
            await self._client.update(
                index=self._index,
                id=identifier,
                script={"source": "ctx._source.view_count += 1", "lang": "painless"},
            )
        except NotFoundError:
            return
        except (ApiError, TransportError) as e:
            raise self._unavailable("increment_view_count", e) from e

    # -------------------------------------------------------------------------
    # Index management (used by scripts/reindex_elasticsearch.py)
    # -------------------------------------------------------------------------
    async def create_index(self) -> bool:
        """
        Create the books index if it does not exist.

        Returns:
            True if created or already exists
        """
        exists = await self._client.indices.exists(index=self._index)
        if exists:
            logger.debug(f"Elasticsearch index already exists: {self._index}")
            return True

        await self._client.indices.create(
            index=self._index,
            settings=BOOK_INDEX_SETTINGS,
            mappings=BOOK_INDEX_MAPPINGS,
        )
        logger.info(f"Created Elasticsearch index: {self._index}")
        return True

    async def delete_index(self) -> None:
        """Delete the books index. This removes all indexed data!"""
        if await self._client.indices.exists(index=self._index):
            await self._client.indices.delete(index=self._index)
            logger.info(f"Deleted Elasticsearch index: {self._index}")

    async def bulk_index(self, documents: Iterable[tuple[CatalogItem, str]]) -> tuple[int, int]:
        """
        Bulk index (item, search_text) pairs.

        Returns:
            Tuple of (success_count, error_count)
        """
        def generate_actions():
            for item, search_text in documents:
                yield {
                    "_index": self._index,
                    "_id": item.id,
                    "_source": item_to_document(item, search_text),
                }

        success, errors = await async_bulk(
            self._client,
            generate_actions(),
            raise_on_error=False,
            refresh=True,
        )
        error_count = len(errors) if isinstance(errors, list) else 0
        logger.info(f"Bulk indexed {success} books, {error_count} errors")
        return success, error_count

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (ApiError, TransportError):
            return False

    async def aclose(self) -> None:
        await self._client.close()
        logger.info("Elasticsearch connection closed")
