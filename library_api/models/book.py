"""
Book Model

The catalog record. One row per holding, flat columns only: the search path
matches on title, author, subject and publisher, filters on language and
subject, and ranks on popularity and view_count.

search_text is a precomputed, space-joined concatenation of the descriptive
fields plus any keywords, used by the full-text match (a `to_tsvector`
expression on PostgreSQL, a substring match elsewhere).
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from library_api.database import Base


def compose_search_text(
    title: str,
    author: str,
    publisher: str | None = None,
    subject: str | None = None,
    keywords: Iterable[str] = (),
) -> str:
    """
    Build the full-text field for a record.

    Example:
        compose_search_text("三体", "刘慈欣", "重庆出版社", "科幻小说", ["宇宙"])
        -> "三体 刘慈欣 重庆出版社 科幻小说 宇宙"
    """
    parts = [title, author, publisher or "", subject or "", *keywords]
    return " ".join(part.strip() for part in parts if part and part.strip())


class Book(Base):
    """
    Book model representing a holding in the library catalog.

    Table: books

    Fields:
    - id: Opaque, stable identifier (catalog number)
    - title, author, publisher, subject, language: descriptive fields
    - callno: Shelf call number
    - popularity: Curated popularity score (higher ranks first)
    - view_count: Incremented each time the book's detail is queried
    - status: Availability (available, borrowed, ...)
    - search_text: Precomputed text for full-text matching

    Indexes:
    - title, author, subject, language: matching and equality filters
    - popularity: ranking
    """

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Catalog identifier",
    )

    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        index=True,
        comment="Book title",
    )

    author: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        index=True,
        comment="Author name(s) as catalogued",
    )

    publisher: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        comment="Publisher",
    )

    subject: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        index=True,
        comment="Subject / category",
    )

    language: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        index=True,
        comment="Language of the holding",
    )

    callno: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Shelf call number",
    )

    popularity: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        index=True,
        comment="Curated popularity score",
    )

    view_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of detail views",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="available",
        comment="Availability status",
    )

    search_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Precomputed full-text search field",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id!r}, title={self.title!r})>"
