"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.

Key Concepts:
=============

1. Application Factory Pattern
   - create_app() returns a configured app
   - Tests pass their own Settings and a pre-built LibraryService

2. Lifespan Events
   - startup: build the LibraryService (catalog, cache, completion client)
   - shutdown: wait for pending view counts, close connections

3. Exception Handlers
   - LibraryError subclasses become {success: false, error: {code, message}}
   - Wrong-typed parameters or bodies become a 400 invalid_query
   - Anything else is logged and answered with a generic 500
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from library_api.config import Settings, get_settings
from library_api.exceptions import LibraryError
from library_api.routers import books_router, recommendations_router, search_router
from library_api.schemas.recommendation import ErrorDetail, ErrorResponse
from library_api.services.library import LibraryService, build_library_service

# =============================================================================
# Logging Configuration
# =============================================================================
# Configure logging before creating the app
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


# =============================================================================
# Application Factory
# =============================================================================
def create_app(
    settings: Settings | None = None,
    library: LibraryService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())
        library: Pre-built service; when None one is built on startup
            from settings and closed on shutdown

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # ----- STARTUP -----
        logger.info(f"Starting {settings.app_name}...")
        logger.info(f"Catalog backend: {settings.catalog_backend}")

        owned = library is None
        app.state.library = library or build_library_service(settings)

        yield  # Application runs here

        # ----- SHUTDOWN -----
        logger.info(f"Shutting down {settings.app_name}...")
        if owned:
            await app.state.library.aclose()
        else:
            await app.state.library.wait_for_background_tasks()

    app = FastAPI(
        title=settings.app_name,
        description="""
## Smart Library API

Search and AI-assisted recommendations over the library catalog.

### Features
- **Search**: Ranked, paginated catalog search with script normalization
- **Recommendations**: Model-curated picks, always drawn from real catalog books
- **Book questions**: Book detail plus an answer about that book
        """,
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(LibraryError)
    async def library_exception_handler(request: Request, exc: LibraryError) -> JSONResponse:
        """Known errors carry their own reason code and HTTP status."""
        if exc.status_code >= 500:
            logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Parameters or bodies of the wrong type are caller input errors, so
        they get the invalid_query envelope instead of FastAPI's 422 body.
        """
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        return error_response(400, "invalid_query", f"Invalid request: {problems}")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch-all exception handler.

        In production, hide internal errors from users.
        In debug mode, show more details.
        """
        logger.error(f"Unhandled error: {exc}", exc_info=True)
        message = str(exc) if settings.debug else "An internal error occurred."
        return error_response(500, "internal_error", message)

    # -------------------------------------------------------------------------
    # Register Routers
    # -------------------------------------------------------------------------
    # prefix="/api/v1" creates versioned URLs: /api/v1/search, /api/v1/recommend
    api_prefix = f"/api/{settings.api_version}"

    app.include_router(search_router, prefix=api_prefix)
    app.include_router(recommendations_router, prefix=api_prefix)
    app.include_router(books_router, prefix=api_prefix)

    # -------------------------------------------------------------------------
    # Health Check Endpoint
    # -------------------------------------------------------------------------
    @app.get(
        "/health",
        tags=["Health"],
        summary="Health check",
        description="Check if the API is running and which backends it uses.",
    )
    async def health_check(request: Request) -> dict:
        """
        Health check endpoint.

        Used by load balancers and monitoring. Reports the catalog backend,
        cache status and whether the completion service is configured.
        """
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.api_version,
            **request.app.state.library.health(),
        }

    return app


# =============================================================================
# Application Instance
# =============================================================================
# This is what uvicorn imports: uvicorn library_api.main:app

app = create_app()


# =============================================================================
# Development Server
# =============================================================================
# In production, use: uvicorn library_api.main:app --host 0.0.0.0 --port 8001

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "library_api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
