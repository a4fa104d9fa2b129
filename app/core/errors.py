"""Error taxonomy shared by services and the API layer.

Services raise these; the exception handler registered in ``app.main`` turns
them into JSON responses. ``detail`` is always safe to show to an end user,
anything more specific goes to the ``darbar.*`` loggers.
"""
import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("darbar.errors")

GENERIC_RETRY_MESSAGE = "Something went wrong. Please try again."


class DarbarError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = GENERIC_RETRY_MESSAGE

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthenticationError(DarbarError):
    """Bad credentials or an invalid/expired token."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid or expired credentials"


class AccessDenied(DarbarError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class BadRequest(DarbarError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFoundError(DarbarError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InvalidTransition(DarbarError):
    """The document is not in a state that allows the requested change."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "This item has already been processed"


class ProtectedGrantError(DarbarError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Super admins must be demoted to admin before removal"


class BackendError(DarbarError):
    """A Firestore or Firebase Auth call failed."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = GENERIC_RETRY_MESSAGE


class NotificationError(DarbarError):
    """Outbound email failed. Never surfaced to callers."""


def backend_error(error: Exception, operation: str) -> BackendError:
    """Logs the SDK error and returns a BackendError for the caller to raise."""
    logger.error(f"{operation} failed: {error}")
    return BackendError()


async def darbar_error_handler(request: Request, exc: DarbarError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
