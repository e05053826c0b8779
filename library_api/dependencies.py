"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.

The LibraryService is built once by the application lifespan and kept on
app.state; routes receive it through the `Library` alias:

    @router.get("/books/hot")
    async def hot_books(library: Library): ...
"""

from typing import Annotated

from fastapi import Depends, Request

from library_api.services.library import LibraryService


def get_library_service(request: Request) -> LibraryService:
    """Return the application's LibraryService."""
    return request.app.state.library


Library = Annotated[LibraryService, Depends(get_library_service)]
