"""
Search Router

Ranked, paginated catalog search. GET takes query parameters, POST takes
the same fields as a JSON body.

Endpoints:
- GET /search?q=...&page=...&limit=...&language=...&subject=...
- POST /search
"""

from fastapi import APIRouter, Query

from library_api.dependencies import Library
from library_api.schemas.recommendation import ErrorResponse
from library_api.schemas.search import SearchRequest, SearchResponse

# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/search",
    tags=["Search"],
    responses={400: {"model": ErrorResponse, "description": "Empty query"}},
)


# =============================================================================
# Endpoints
# =============================================================================

@router.get(
    "",
    response_model=SearchResponse,
    summary="Search books",
    description="Search title, author, subject and publisher, ranked by match quality and popularity.",
)
async def search_books(
    library: Library,
    q: str | None = Query(default=None, description="Search keywords", examples=["小说"]),
    page: int | None = Query(default=None, description="Page number (1-indexed)"),
    limit: int | None = Query(default=None, description="Results per page"),
    language: str | None = Query(default=None, description="Filter by language"),
    subject: str | None = Query(default=None, description="Filter by subject"),
) -> SearchResponse:
    """
    Page and page size are clamped rather than rejected: page < 1 becomes 1,
    and the page size is bounded to [1, max_page_size].
    """
    return await library.search(q, page, limit, language, subject)


@router.post(
    "",
    response_model=SearchResponse,
    summary="Search books (JSON body)",
)
async def search_books_post(body: SearchRequest, library: Library) -> SearchResponse:
    return await library.search(body.q, body.page, body.limit, body.language, body.subject)
