"""API error taxonomy.

Every error surfaced to clients is rendered as ``{"error": ..., "message": ...}``
by the handlers registered in ``backend.app.main``.
"""

from fastapi import status


class ApiError(Exception):
    """Base class for errors mapped to an HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal Server Error"

    def __init__(self, message: str, headers: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers

    def to_body(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class BadRequest(ApiError):
    """Malformed input or a rejected webhook delivery."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Bad Request"


class Unauthenticated(ApiError):
    """Missing, invalid or expired bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"

    def __init__(self, message: str) -> None:
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class NotFound(ApiError):
    """Record absent or owned by someone else."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "Not Found"


class Internal(ApiError):
    """Server-side failure surfaced to the client."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal Server Error"


class StorageError(Exception):
    """Raised by record/user stores when the backend fails."""


class EmailDeliveryError(Exception):
    """Raised by email senders when delivery fails or is unconfigured."""


class ObjectStorageError(Exception):
    """Raised by object storage when a signed upload URL cannot be issued."""
