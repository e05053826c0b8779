"""
Pydantic Schemas Package

Schemas define the data shapes flowing through the core and out of the API:
- book.py: CatalogItem and book detail/list responses
- search.py: SearchQuery, CandidateSet and search responses
- recommendation.py: Recommendation, Q&A and error responses
"""

from library_api.schemas.book import BookDetail, BookListResponse, CatalogItem
from library_api.schemas.recommendation import (
    BookQueryRequest,
    ErrorDetail,
    ErrorResponse,
    QueryResponse,
    Recommendation,
    RecommendationResult,
    RecommendRequest,
    RecommendResponse,
)
from library_api.schemas.search import (
    CandidateSet,
    Pagination,
    SearchData,
    SearchFilters,
    SearchQuery,
    SearchRequest,
    SearchResponse,
)

__all__ = [
    "BookDetail",
    "BookListResponse",
    "BookQueryRequest",
    "CandidateSet",
    "CatalogItem",
    "ErrorDetail",
    "ErrorResponse",
    "Pagination",
    "QueryResponse",
    "Recommendation",
    "RecommendationResult",
    "RecommendRequest",
    "RecommendResponse",
    "SearchData",
    "SearchFilters",
    "SearchQuery",
    "SearchRequest",
    "SearchResponse",
]
