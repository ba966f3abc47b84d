"""Error envelope for the billing API.

Services raise the `DairyLedgerException` family; the handlers registered
here turn those (and framework / database errors) into one envelope:

    {"error": {"code": "...", "message": "...", "details": {...}}}
"""

import logging
import traceback

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DairyLedgerException(Exception):
    """Base for every error a billing operation reports to its caller."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class BusinessLogicError(DairyLedgerException):
    """Invalid input or a rule violation; nothing was changed."""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR", details: dict | None = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, error_code, details)


class ResourceNotFoundError(DairyLedgerException):
    """A customer, record, adjustment, invoice or holiday that isn't there."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            f"{resource} not found: {identifier}",
            status.HTTP_404_NOT_FOUND,
            "RESOURCE_NOT_FOUND",
            {"resource": resource, "id": identifier},
        )


class ConflictError(DairyLedgerException):
    """The write collides with an existing entity.

    `details` identifies that entity so the caller can switch to an update.
    """

    def __init__(self, message: str, error_code: str = "CONFLICT", details: dict | None = None):
        super().__init__(message, status.HTTP_409_CONFLICT, error_code, details)


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: dict | list | None = None,
) -> JSONResponse:
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


def _where(request: Request) -> dict:
    return {"path": request.url.path, "method": request.method}


async def app_exception_handler(request: Request, exc: DairyLedgerException) -> JSONResponse:
    logger.warning(
        "%s on %s: %s",
        exc.error_code,
        request.url.path,
        exc.message,
        extra={"error_code": exc.error_code, **_where(request)},
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code, exc.details)


async def http_exception_handler(
    request: Request,
    exc: HTTPException | StarletteHTTPException,
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail, extra=_where(request))
    return create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError | ValidationError,
) -> JSONResponse:
    """Request bodies and query parameters that fail their schema."""
    logger.warning("Rejected input on %s", request.url.path, extra=_where(request))

    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        {"errors": errors},
    )


async def database_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """Integrity errors that escaped the services.

    Unique violations (a second record for the same customer-day, a reused
    invoice number) surface as 409 so a racing writer sees the same answer
    as one caught by an explicit check.
    """
    logger.error("Constraint violation on %s: %s", request.url.path, exc, extra=_where(request))

    reason = str(getattr(exc, "orig", exc)).lower()
    if "unique" in reason:
        return create_error_response(
            status.HTTP_409_CONFLICT,
            "A record with this value already exists",
            "DUPLICATE_RECORD",
        )
    if "foreign key" in reason:
        message, error_code = "Referenced record does not exist", "FOREIGN_KEY_VIOLATION"
    elif "not null" in reason:
        message, error_code = "Required field is missing", "NULL_VALUE_NOT_ALLOWED"
    else:
        message, error_code = "Database constraint violation", "INTEGRITY_ERROR"
    return create_error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, message, error_code)


async def operational_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("Database unavailable on %s: %s", request.url.path, exc, extra=_where(request))
    return create_error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Billing database temporarily unavailable. Please try again.",
        "DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s: %s",
        request.url.path,
        exc,
        extra={**_where(request), "traceback": traceback.format_exc()},
        exc_info=True,
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    app.add_exception_handler(DairyLedgerException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
