"""
Catalog Query Interface

The core talks to storage through CatalogQueryInterface only. Predicates are
small frozen dataclasses rather than query strings, and every adapter
translates them into its native form (SQL expressions, Elasticsearch DSL,
Python checks):

    FieldMatch(TITLE, ("小說", "小说"))   title contains any of the terms
    FullTextMatch("小說")                  full-text match on search_text
    EqualityFilter(LANGUAGE, "中文")       language == "中文"

A MatchPredicate is an OR over its clauses; filters are ANDed on top. An
empty MatchPredicate matches every record, which is how popularity listings
are expressed.

Ranking is declared here once so adapters stay consistent: a record's match
tier is the best (lowest) tier among the clauses it satisfies.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from library_api.schemas.book import CatalogItem


class MatchField(str, Enum):
    """Descriptive fields that take part in text matching."""

    TITLE = "title"
    AUTHOR = "author"
    SUBJECT = "subject"
    PUBLISHER = "publisher"


class FilterField(str, Enum):
    """Fields that accept equality filters."""

    LANGUAGE = "language"
    SUBJECT = "subject"
    STATUS = "status"


class SortKey(str, Enum):
    """Ranking keys, applied in order. Popularity and views sort descending."""

    MATCH_TIER = "match_tier"
    POPULARITY = "popularity"
    VIEW_COUNT = "view_count"


# Title before author before subject; publisher and full-text share the last tier
MATCH_TIERS: dict[MatchField, int] = {
    MatchField.TITLE: 1,
    MatchField.AUTHOR: 2,
    MatchField.SUBJECT: 3,
}
OTHER_TIER = 4

RELEVANCE_SORT: tuple[SortKey, ...] = (
    SortKey.MATCH_TIER,
    SortKey.POPULARITY,
    SortKey.VIEW_COUNT,
)
POPULARITY_SORT: tuple[SortKey, ...] = (SortKey.POPULARITY, SortKey.VIEW_COUNT)


@dataclass(frozen=True)
class FieldMatch:
    """Case-insensitive substring match of any term against one field."""

    field: MatchField
    terms: tuple[str, ...]

    @property
    def tier(self) -> int:
        return MATCH_TIERS.get(self.field, OTHER_TIER)


@dataclass(frozen=True)
class FullTextMatch:
    """Full-text match of `text` against the record's search_text."""

    text: str

    @property
    def tier(self) -> int:
        return OTHER_TIER


MatchClause = FieldMatch | FullTextMatch


@dataclass(frozen=True)
class EqualityFilter:
    """Exact match on a filterable field."""

    field: FilterField
    value: str


@dataclass(frozen=True)
class MatchPredicate:
    """OR of match clauses. No clauses means match everything."""

    clauses: tuple[MatchClause, ...] = field(default_factory=tuple)

    @property
    def matches_all(self) -> bool:
        return not self.clauses


def text_match_predicate(canonical: str, variant: str) -> MatchPredicate:
    """
    Build the search predicate for a normalized query.

    Every match field is tried with both the canonical text and its
    script-normalized variant (deduplicated when they are equal), plus a
    full-text match of the canonical text.
    """
    terms = tuple(dict.fromkeys(term for term in (canonical, variant) if term))
    clauses: list[MatchClause] = [FieldMatch(match_field, terms) for match_field in MatchField]
    clauses.append(FullTextMatch(canonical))
    return MatchPredicate(tuple(clauses))


def contains_any(value: str, terms: Sequence[str]) -> bool:
    """Case-insensitive substring check used by in-process matching."""
    haystack = (value or "").casefold()
    return any(term.casefold() in haystack for term in terms)


def full_text_accepts(search_text: str, text: str) -> bool:
    """
    In-process approximation of a plain full-text query: every
    whitespace-separated token must occur in the search text.
    """
    tokens = text.split()
    if not tokens:
        return False
    haystack = (search_text or "").casefold()
    return all(token.casefold() in haystack for token in tokens)


class CatalogQueryInterface(ABC):
    """
    Read-mostly access to the book catalog.

    Adapters must raise UpstreamUnavailable when the backend cannot be
    reached or fails; they never return partial results silently.
    """

    name: str = "catalog"

    @abstractmethod
    async def search(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
        sort: Sequence[SortKey] = RELEVANCE_SORT,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CatalogItem]:
        """Return one page of matching records in ranking order."""
        ...

    @abstractmethod
    async def count(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
    ) -> int:
        """Count all records matching the predicate and filters."""
        ...

    @abstractmethod
    async def get_by_id(self, identifier: str) -> CatalogItem | None:
        """Fetch a record by id, or None."""
        ...

    @abstractmethod
    async def get_by_title(self, text: str) -> CatalogItem | None:
        """Most popular record whose title contains text (case-insensitive), or None."""
        ...

    @abstractmethod
    async def increment_view_count(self, identifier: str) -> None:
        """Add one to a record's view counter. Unknown ids are ignored."""
        ...

    async def aclose(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None
