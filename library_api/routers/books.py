"""
Books Router

Read-only book listings.

Endpoints:
- GET /books/hot - Most popular books, optionally within a subject
- GET /books/{book_id}/related - Available books sharing a book's subject
"""

from fastapi import APIRouter, Query

from library_api.dependencies import Library
from library_api.schemas.book import BookListResponse
from library_api.schemas.recommendation import ErrorResponse

router = APIRouter(
    prefix="/books",
    tags=["Books"],
)


@router.get(
    "/hot",
    response_model=BookListResponse,
    summary="Hot books",
    description="Most popular books, ranked by popularity then views.",
)
async def hot_books(
    library: Library,
    limit: int | None = Query(default=None, description="Number of books"),
    subject: str | None = Query(default=None, description="Restrict to one subject"),
) -> BookListResponse:
    return await library.hot(limit, subject)


@router.get(
    "/{book_id}/related",
    response_model=BookListResponse,
    responses={404: {"model": ErrorResponse, "description": "Book not found"}},
    summary="Related books",
    description="Available books in the same subject, topped up with other popular books.",
)
async def related_books(
    book_id: str,
    library: Library,
    limit: int | None = Query(default=None, description="Number of books"),
) -> BookListResponse:
    return await library.related(book_id, limit)
