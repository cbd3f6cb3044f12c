"""
Attendance error kinds and central error handling
"""
import logging
import traceback

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class AttendanceError(Exception):
    """
    Base class for rejected attendance operations.

    Every subclass is a specific, client-actionable kind identified by `code`.
    """
    code = "ATTENDANCE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Attendance operation rejected"

    def __init__(self, detail=None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AlreadyCheckedIn(AttendanceError):
    code = "ALREADY_CHECKED_IN"
    default_detail = "Already checked in today"


class NotCheckedIn(AttendanceError):
    code = "NOT_CHECKED_IN"
    default_detail = "Not checked in today"


class AlreadyCheckedOut(AttendanceError):
    code = "ALREADY_CHECKED_OUT"
    default_detail = "Already checked out today"


class AlreadyOnBreak(AttendanceError):
    code = "ALREADY_ON_BREAK"
    default_detail = "Already on break"


class NotOnBreak(AttendanceError):
    code = "NOT_ON_BREAK"
    default_detail = "Not on break"


class NoAttendanceToday(AttendanceError):
    code = "NO_ATTENDANCE_TODAY"
    default_detail = "No attendance record for today"


class NotFound(AttendanceError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Attendance record not found"


class StorageFailure(AttendanceError):
    """Wraps any persistence error. The detail shown to clients is always generic."""
    code = "STORAGE_FAILURE"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to process request"

    def __init__(self, detail=None):
        super().__init__(None)
        self.internal_detail = detail


async def attendance_exception_handler(request: Request, exc: AttendanceError) -> JSONResponse:
    """
    Render AttendanceError kinds as JSON with a stable `code`

    Rejected preconditions are logged at INFO; StorageFailure is logged at
    ERROR and its cause never reaches the client.
    """
    if isinstance(exc, StorageFailure):
        logger.error(
            "Storage failure on %s: %s",
            request.url.path, exc.internal_detail, exc_info=exc.__cause__ or exc,
        )
    else:
        logger.info("%s rejected: %s", request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "status_code": exc.status_code,
            "code": exc.code,
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers=_CORS_HEADERS,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    headers = dict(_CORS_HEADERS)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "status_code": exc.status_code,
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from attendance_tracker.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from attendance_tracker.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=exc)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "status_code": 500,
                "detail": "Internal server error",
                "path": str(request.url.path)
            },
            headers=_CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": str(exc),
            "path": str(request.url.path),
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            if settings.APP_ENV == "local" else None
        },
        headers=_CORS_HEADERS,
    )
