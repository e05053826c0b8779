"""
Library Error Taxonomy

Every failure the core knows about is one of these classes. The caller-input
errors (InvalidQuery, BookNotFound) always cross the service boundary.
UpstreamUnavailable never does: operations with a fallback use it, and the
others return a degraded response with empty data.

The HTTP layer turns any LibraryError that reaches it into an ErrorResponse
using `code` and `status_code`, so users see a short reason code and a
message, never a stack trace.
"""


class LibraryError(Exception):
    """Base class for errors raised by the library core."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidQuery(LibraryError):
    """Missing or unusable caller input (blank query, no book reference)."""

    code = "invalid_query"
    status_code = 400


class BookNotFound(LibraryError):
    """The requested book does not exist in the catalog."""

    code = "not_found"
    status_code = 404


class UpstreamUnavailable(LibraryError):
    """The catalog store or the completion service failed or misbehaved."""

    code = "upstream_unavailable"
    status_code = 503


class CacheUnavailable(LibraryError):
    """The cache store could not be reached. Never surfaced to callers."""

    code = "cache_unavailable"
    status_code = 503
