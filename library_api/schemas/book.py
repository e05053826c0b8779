"""
Book Pydantic Schemas

CatalogItem is the shape every catalog adapter returns, whatever backend it
talks to. It is immutable: the search and recommendation path only reads
records; view counters are bumped through the catalog interface.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CatalogItem(BaseModel):
    """
    A catalog record as seen by the core.

    Identifiers are opaque strings. Numeric ids coming from JSON files or
    search indexes are converted, so comparisons against model output are
    always string comparisons.
    """

    id: str = Field(..., min_length=1, description="Stable catalog identifier")
    title: str = Field(..., description="Book title", examples=["三体"])
    author: str = Field(default="", description="Author", examples=["刘慈欣"])
    publisher: str = Field(default="", description="Publisher")
    subject: str = Field(default="", description="Subject / category", examples=["科幻小说"])
    language: str = Field(default="", description="Language", examples=["中文"])
    callno: str | None = Field(default=None, description="Shelf call number")
    popularity: float = Field(default=0.0, description="Popularity score")
    view_count: int = Field(default=0, ge=0, description="Number of detail views")
    status: str = Field(default="available", description="Availability status")

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Accept integer ids from JSON data and search indexes."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("author", "publisher", "subject", "language", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Missing descriptive fields are stored as empty strings."""
        return "" if v is None else v

    @field_validator("popularity", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v

    @field_validator("view_count", mode="before")
    @classmethod
    def none_to_zero_views(cls, v: Any) -> Any:
        return 0 if v is None else v


class BookDetail(CatalogItem):
    """Catalog record enriched for the single-book query response."""

    summary: str = Field(..., description="Short generic description of the book")
    last_viewed: datetime = Field(..., description="When this detail was served")


class BookListResponse(BaseModel):
    """Response for hot and related book lists."""

    success: bool = True
    items: list[CatalogItem] = Field(default_factory=list)
    degraded: bool = Field(
        default=False,
        description="True when the catalog was unavailable and the list is empty",
    )
