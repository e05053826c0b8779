"""
In-Memory Catalog

Holds the whole catalog in a dict and evaluates predicates in Python. Used
for small deployments that ship the catalog as a JSON file, and as the
reference implementation the other adapters are tested against.

JSON format (the library's data file):

    {
      "books": [
        {"id": "b001", "title": "...", "author": "...", "subject": "...",
         "keywords": ["..."], "category": ["..."], "popularity": 87, ...}
      ]
    }

keywords and category entries are folded into the record's search text, so
they match through the full-text clause only (lowest tier).
"""

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from library_api.catalog.base import (
    OTHER_TIER,
    RELEVANCE_SORT,
    CatalogQueryInterface,
    EqualityFilter,
    FieldMatch,
    FullTextMatch,
    MatchClause,
    MatchPredicate,
    SortKey,
    contains_any,
    full_text_accepts,
)
from library_api.models.book import compose_search_text
from library_api.schemas.book import CatalogItem

logger = logging.getLogger(__name__)


def parse_record(record: dict[str, Any]) -> tuple[CatalogItem, str]:
    """
    Convert one raw data-file record into (CatalogItem, search_text).

    `category` may be a list (as in the data file) or a string; its first entry
    becomes the subject when no subject is given.
    """
    category = record.get("category") or []
    if isinstance(category, str):
        category = [category]
    subject = record.get("subject") or (category[0] if category else "")
    item = CatalogItem.model_validate({**record, "subject": subject})
    keywords = [*(record.get("keywords") or []), *category]
    search_text = compose_search_text(item.title, item.author, item.publisher, item.subject, keywords)
    return item, search_text


def read_records(path: str | Path) -> list[dict[str, Any]]:
    """Read the raw records of a JSON data file ({"books": [...]} or a bare list)."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return data["books"] if isinstance(data, dict) else data


class InMemoryCatalog(CatalogQueryInterface):
    """Catalog backed by a dict of CatalogItem keyed by id."""

    name = "memory"

    def __init__(
        self,
        items: Iterable[CatalogItem] = (),
        search_texts: dict[str, str] | None = None,
    ) -> None:
        self._items: dict[str, CatalogItem] = {}
        self._search_texts: dict[str, str] = {}
        search_texts = search_texts or {}
        for item in items:
            self._items[item.id] = item
            self._search_texts[item.id] = search_texts.get(item.id) or compose_search_text(
                item.title, item.author, item.publisher, item.subject
            )

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------
    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> "InMemoryCatalog":
        """Build a catalog from raw dict records."""
        items = []
        search_texts = {}
        for record in records:
            item, search_text = parse_record(record)
            items.append(item)
            search_texts[item.id] = search_text
        return cls(items, search_texts)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryCatalog":
        """Load the catalog from a JSON data file."""
        catalog = cls.from_records(read_records(path))
        logger.info(f"Loaded {len(catalog)} books from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._items)

    # -------------------------------------------------------------------------
    # Predicate evaluation
    # -------------------------------------------------------------------------
    def _satisfies(self, item: CatalogItem, clause: MatchClause) -> bool:
        if isinstance(clause, FieldMatch):
            return contains_any(getattr(item, clause.field.value), clause.terms)
        if isinstance(clause, FullTextMatch):
            return full_text_accepts(self._search_texts.get(item.id, ""), clause.text)
        raise TypeError(f"Unsupported clause: {clause!r}")

    def _tier(self, item: CatalogItem, predicate: MatchPredicate) -> int | None:
        """Best tier the item qualifies for, or None when it does not match."""
        if predicate.matches_all:
            return OTHER_TIER
        tiers = [clause.tier for clause in predicate.clauses if self._satisfies(item, clause)]
        return min(tiers) if tiers else None

    @staticmethod
    def _passes(item: CatalogItem, filters: Sequence[EqualityFilter]) -> bool:
        return all(getattr(item, f.field.value) == f.value for f in filters)

    def _matching(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter],
    ) -> list[tuple[int, CatalogItem]]:
        matches = []
        for item in self._items.values():
            if not self._passes(item, filters):
                continue
            tier = self._tier(item, predicate)
            if tier is not None:
                matches.append((tier, item))
        return matches

    @staticmethod
    def _sort_key(tier: int, item: CatalogItem, sort: Sequence[SortKey]) -> tuple:
        key: list[Any] = []
        for sort_key in sort:
            if sort_key is SortKey.MATCH_TIER:
                key.append(tier)
            elif sort_key is SortKey.POPULARITY:
                key.append(-item.popularity)
            elif sort_key is SortKey.VIEW_COUNT:
                key.append(-item.view_count)
        key.append(item.id)
        return tuple(key)

    # -------------------------------------------------------------------------
    # CatalogQueryInterface
    # -------------------------------------------------------------------------
    async def search(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
        sort: Sequence[SortKey] = RELEVANCE_SORT,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CatalogItem]:
        matches = self._matching(predicate, filters)
        matches.sort(key=lambda pair: self._sort_key(pair[0], pair[1], sort))
        return [item for _, item in matches[offset:offset + limit]]

    async def count(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
    ) -> int:
        return len(self._matching(predicate, filters))

    async def get_by_id(self, identifier: str) -> CatalogItem | None:
        return self._items.get(identifier)

    async def get_by_title(self, text: str) -> CatalogItem | None:
        matches = [item for item in self._items.values() if contains_any(item.title, [text])]
        if not matches:
            return None
        return min(matches, key=lambda item: (-item.popularity, -item.view_count, item.id))

    async def increment_view_count(self, identifier: str) -> None:
        item = self._items.get(identifier)
        if item is None:
            return
        self._items[identifier] = item.model_copy(update={"view_count": item.view_count + 1})
