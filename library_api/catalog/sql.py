"""
SQL Catalog

Translates catalog predicates into SQLAlchemy expressions over the books
table. PostgreSQL gets a real full-text match
(`to_tsvector('simple', search_text) @@ plainto_tsquery('simple', :q)`);
other dialects approximate it by requiring every query token to appear in
search_text.

SQLAlchemy sessions are synchronous and not thread-safe, so every call opens
its own short-lived session inside a worker thread. That lets the retriever
run the row and count queries concurrently.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from library_api.catalog.base import (
    MATCH_TIERS,
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
from library_api.models.book import Book
from library_api.schemas.book import CatalogItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

FIELD_COLUMNS = {
    MatchField.TITLE: Book.title,
    MatchField.AUTHOR: Book.author,
    MatchField.SUBJECT: Book.subject,
    MatchField.PUBLISHER: Book.publisher,
}


class SqlCatalog(CatalogQueryInterface):
    """Catalog backed by the books table."""

    name = "sql"

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Predicate translation
    # -------------------------------------------------------------------------
    def _dialect(self, db: Session) -> str:
        return db.get_bind().dialect.name

    def _clause(self, clause: MatchClause, dialect: str) -> Any:
        if isinstance(clause, FieldMatch):
            column = FIELD_COLUMNS[clause.field]
            return or_(*(column.icontains(term, autoescape=True) for term in clause.terms))

        if isinstance(clause, FullTextMatch):
            if dialect == "postgresql":
                return func.to_tsvector("simple", Book.search_text).op("@@")(
                    func.plainto_tsquery("simple", clause.text)
                )
            tokens = clause.text.split() or [clause.text]
            return and_(*(Book.search_text.icontains(token, autoescape=True) for token in tokens))

        raise TypeError(f"Unsupported clause: {clause!r}")

    def _conditions(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter],
        dialect: str,
    ) -> list[Any]:
        conditions = []
        if not predicate.matches_all:
            conditions.append(or_(*(self._clause(c, dialect) for c in predicate.clauses)))
        for equality in filters:
            conditions.append(getattr(Book, equality.field.value) == equality.value)
        return conditions

    def _tier_expression(self, predicate: MatchPredicate, dialect: str) -> Any:
        """
        CASE expression giving each row its best match tier.

        WHEN branches are ordered by tier so the first satisfied branch is
        the best one.
        """
        whens = []
        for tier in sorted(set(MATCH_TIERS.values())):
            tier_clauses = [c for c in predicate.clauses if c.tier == tier]
            if tier_clauses:
                whens.append((or_(*(self._clause(c, dialect) for c in tier_clauses)), tier))
        if not whens:
            return None
        return case(*whens, else_=OTHER_TIER)

    def _order_by(self, predicate: MatchPredicate, sort: Sequence[SortKey], dialect: str) -> list[Any]:
        order = []
        for sort_key in sort:
            if sort_key is SortKey.MATCH_TIER:
                tier = self._tier_expression(predicate, dialect)
                if tier is not None:
                    order.append(tier.asc())
            elif sort_key is SortKey.POPULARITY:
                order.append(Book.popularity.desc())
            elif sort_key is SortKey.VIEW_COUNT:
                order.append(Book.view_count.desc())
        order.append(Book.id.asc())
        return order

    # -------------------------------------------------------------------------
    # Execution helpers
    # -------------------------------------------------------------------------
    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def call() -> T:
            with self._session_factory() as db:
                return fn(db)

        try:
            return await asyncio.to_thread(call)
        except SQLAlchemyError as e:
            logger.warning(f"SQL catalog {operation} failed: {e}")
            raise UpstreamUnavailable(f"Catalog database unavailable during {operation}") from e

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
        def query(db: Session) -> list[CatalogItem]:
            dialect = self._dialect(db)
            stmt = (
                select(Book)
                .where(*self._conditions(predicate, filters, dialect))
                .order_by(*self._order_by(predicate, sort, dialect))
                .offset(offset)
                .limit(limit)
            )
            return [CatalogItem.model_validate(book) for book in db.execute(stmt).scalars()]

        return await self._run("search", query)

    async def count(
        self,
        predicate: MatchPredicate,
        filters: Sequence[EqualityFilter] = (),
    ) -> int:
        def query(db: Session) -> int:
            stmt = (
                select(func.count())
                .select_from(Book)
                .where(*self._conditions(predicate, filters, self._dialect(db)))
            )
            return db.execute(stmt).scalar() or 0

        return await self._run("count", query)

    async def get_by_id(self, identifier: str) -> CatalogItem | None:
        def query(db: Session) -> CatalogItem | None:
            book = db.get(Book, identifier)
            return CatalogItem.model_validate(book) if book else None

        return await self._run("get_by_id", query)

    async def get_by_title(self, text: str) -> CatalogItem | None:
        def query(db: Session) -> CatalogItem | None:
            stmt = (
                select(Book)
                .where(Book.title.icontains(text, autoescape=True))
                .order_by(Book.popularity.desc(), Book.view_count.desc(), Book.id.asc())
                .limit(1)
            )
            book = db.execute(stmt).scalar_one_or_none()
            return CatalogItem.model_validate(book) if book else None

        return await self._run("get_by_title", query)

    async def increment_view_count(self, identifier: str) -> None:
        def query(db: Session) -> None:
            db.execute(
                update(Book)
                .where(Book.id == identifier)
                .values(view_count=Book.view_count + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()

        await self._run("increment_view_count", query)

    async def aclose(self) -> None:
        engine = self._session_factory.kw.get("bind")
        if engine is not None:
            engine.dispose()
            logger.info("SQL catalog connections closed")
