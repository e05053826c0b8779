"""
API Routers Package

This package contains FastAPI routers that handle API endpoints. Routers
only translate HTTP input into LibraryService calls; all behavior lives in
the services.

Router Structure:
- search.py: /api/v1/search (GET and POST)
- recommendations.py: /api/v1/recommend and /api/v1/query
- books.py: /api/v1/books/hot and /api/v1/books/{book_id}/related

Each router is imported and registered in main.py.
"""

from library_api.routers.books import router as books_router
from library_api.routers.recommendations import router as recommendations_router
from library_api.routers.search import router as search_router

__all__ = [
    "books_router",
    "recommendations_router",
    "search_router",
]
