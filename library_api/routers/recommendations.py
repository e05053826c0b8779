"""
Recommendations Router

Endpoints:
- POST /recommend - AI-curated recommendations for a free-text query
- POST /query - Book detail plus an answer to a question about the book

Recommendations degrade instead of failing: when the completion service is
unavailable the response lists the top search candidates
(source="fallback").
"""

from fastapi import APIRouter

from library_api.dependencies import Library
from library_api.schemas.recommendation import (
    BookQueryRequest,
    ErrorResponse,
    QueryResponse,
    RecommendRequest,
    RecommendResponse,
)

router = APIRouter(tags=["Recommendations"])


@router.post(
    "/recommend",
    response_model=RecommendResponse,
    responses={400: {"model": ErrorResponse, "description": "Empty query"}},
    summary="Recommend books",
    description="Recommend books for a query. Every recommended id exists in the catalog.",
)
async def recommend_books(body: RecommendRequest, library: Library) -> RecommendResponse:
    return await library.recommend(body.query, body.limit)


@router.post(
    "/query",
    response_model=QueryResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Neither bookId nor bookTitle given"},
        404: {"model": ErrorResponse, "description": "Book not found"},
    },
    summary="Ask about a book",
    description="Look up a book by id or title and answer an optional question about it.",
)
async def query_book(body: BookQueryRequest, library: Library) -> QueryResponse:
    return await library.ask(body.book_id, body.book_title, body.query)
