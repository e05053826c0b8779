"""
Recommendation and Query Schemas

A Recommendation always points at a catalog record that was part of the
candidate pool offered to the completion service. Its title, author and
subject come from that record; only the reason is model-written.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from library_api.schemas.book import BookDetail

RecommendationSource = Literal["model", "fallback", "empty"]


class Recommendation(BaseModel):
    """One recommended book with a short rationale."""

    id: str = Field(..., description="Catalog id, always a member of the candidate set")
    title: str
    author: str = ""
    subject: str = ""
    reason: str = Field(..., description="Why this book fits the query")


class RecommendationResult(BaseModel):
    """Output of the recommendation orchestrator."""

    summary: str
    recommendations: list[Recommendation] = Field(default_factory=list)
    source: RecommendationSource = Field(
        default="model",
        description="model: validated model picks, fallback: candidate order, empty: no candidates",
    )


class RecommendRequest(BaseModel):
    """POST body for recommendations."""

    query: str | None = Field(default=None, description="What the reader is looking for")
    limit: int | None = Field(default=None, description="Maximum recommendations")


class RecommendResponse(BaseModel):
    """Recommendation response envelope."""

    success: bool = True
    summary: str
    recommendations: list[Recommendation] = Field(default_factory=list)
    source: RecommendationSource = "model"
    degraded: bool = Field(
        default=False,
        description="True when the catalog was unavailable while gathering candidates",
    )


class BookQueryRequest(BaseModel):
    """POST body for single-book questions. One of bookId / bookTitle is required."""

    book_id: str | None = Field(default=None, alias="bookId")
    book_title: str | None = Field(default=None, alias="bookTitle")
    query: str | None = Field(default=None, description="Question about the book")

    model_config = ConfigDict(populate_by_name=True)


class QueryResponse(BaseModel):
    """Single-book answer envelope. book is None only when degraded."""

    success: bool = True
    answer: str
    book: BookDetail | None = None
    degraded: bool = Field(
        default=False,
        description="True when the catalog was unavailable and no book could be looked up",
    )


class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-checkable reason code", examples=["invalid_query"])
    message: str = Field(..., description="Human-readable explanation")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    error: ErrorDetail
