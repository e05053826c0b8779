"""
Search Schemas

- SearchQuery: a normalized, clamped search request (built by the normalizer)
- CandidateSet: the ranked result of one retrieval
- SearchRequest / SearchResponse: the HTTP-facing shapes
"""

import math

from pydantic import BaseModel, ConfigDict, Field

from library_api.schemas.book import CatalogItem


class SearchQuery(BaseModel):
    """
    Normalized search input.

    Invariants (enforced by build_search_query):
    - page >= 1
    - 1 <= page_size <= max page size
    - language / subject are None rather than blank
    """

    canonical: str
    variant: str
    page: int = 1
    page_size: int = 20
    language: str | None = None
    subject: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def offset(self) -> int:
        """Rows to skip for this page (page 1 -> 0)."""
        return (self.page - 1) * self.page_size


class CandidateSet(BaseModel):
    """
    Ranked candidates for one SearchQuery.

    items are in ranking order with no duplicate ids. total is the count of
    all matching records, used for pagination.
    """

    items: list[CatalogItem] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    degraded: bool = False

    @property
    def ids(self) -> set[str]:
        return {item.id for item in self.items}

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.total > 0 else 0

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class Pagination(BaseModel):
    """Pagination metadata for search responses."""

    page: int = Field(..., ge=1, description="Current page number")
    limit: int = Field(..., ge=1, description="Items per page")
    total: int = Field(..., ge=0, description="Total matching books")
    total_pages: int = Field(..., ge=0, description="Total number of pages")
    has_next: bool
    has_prev: bool


class SearchFilters(BaseModel):
    """Equality filters echoed back to the caller."""

    language: str | None = None
    subject: str | None = None


class SearchData(BaseModel):
    books: list[CatalogItem] = Field(default_factory=list)
    pagination: Pagination
    query: str
    filters: SearchFilters


class SearchResponse(BaseModel):
    """Search response envelope."""

    success: bool = True
    data: SearchData
    degraded: bool = Field(
        default=False,
        description="True when the catalog was unavailable and data is empty",
    )

    @classmethod
    def from_candidates(cls, query: SearchQuery, candidates: CandidateSet) -> "SearchResponse":
        return cls(
            data=SearchData(
                books=candidates.items,
                pagination=Pagination(
                    page=candidates.page,
                    limit=candidates.page_size,
                    total=candidates.total,
                    total_pages=candidates.total_pages,
                    has_next=candidates.has_next,
                    has_prev=candidates.has_prev,
                ),
                query=query.canonical,
                filters=SearchFilters(language=query.language, subject=query.subject),
            ),
            degraded=candidates.degraded,
        )


class SearchRequest(BaseModel):
    """POST body for search; mirrors the GET query parameters."""

    q: str | None = Field(default=None, description="Search keywords")
    page: int | None = Field(default=None, description="Page number (1-indexed)")
    limit: int | None = Field(default=None, description="Page size")
    language: str | None = Field(default=None, description="Language filter")
    subject: str | None = Field(default=None, description="Subject filter")
