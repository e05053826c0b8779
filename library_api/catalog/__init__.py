"""
Catalog Package

Adapters that give the core one view of the book catalog:
- base.py: CatalogQueryInterface and the structured predicate builder
- sql.py: SQLAlchemy adapter (PostgreSQL in production, SQLite in tests)
- elasticsearch.py: Elasticsearch adapter
- memory.py: in-process adapter, loadable from the JSON data file
"""

from library_api.catalog.base import (
    OTHER_TIER,
    POPULARITY_SORT,
    RELEVANCE_SORT,
    CatalogQueryInterface,
    EqualityFilter,
    FieldMatch,
    FilterField,
    FullTextMatch,
    MatchField,
    MatchPredicate,
    SortKey,
    text_match_predicate,
)
from library_api.catalog.elasticsearch import ElasticsearchCatalog
from library_api.catalog.memory import InMemoryCatalog
from library_api.catalog.sql import SqlCatalog

__all__ = [
    "OTHER_TIER",
    "POPULARITY_SORT",
    "RELEVANCE_SORT",
    "CatalogQueryInterface",
    "ElasticsearchCatalog",
    "EqualityFilter",
    "FieldMatch",
    "FilterField",
    "FullTextMatch",
    "InMemoryCatalog",
    "MatchField",
    "MatchPredicate",
    "SortKey",
    "SqlCatalog",
    "text_match_predicate",
]
