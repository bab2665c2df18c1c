"""Domain exceptions and the handlers that turn them into error responses.

Every error leaves the API in the same envelope:

    {"error": {"code": "ERROR_CODE", "message": "...", "details": {...}}}
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class MycoTrackException(Exception):
    """Base exception for MycoTrack application errors."""

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


class BusinessLogicError(MycoTrackException):
    """Exception for business rule violations."""

    def __init__(
        self,
        message: str,
        error_code: str = "BUSINESS_LOGIC_ERROR",
        details: dict | None = None,
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code=error_code,
            details=details,
        )


class InsufficientStock(BusinessLogicError):
    """A single ledger movement would take a material below zero."""

    def __init__(self, material_id: str, available: float, requested: float):
        self.material_id = material_id
        self.available = available
        self.requested = requested
        super().__init__(
            message=(
                f"Insufficient stock for material {material_id}: "
                f"available {available:g}, change {requested:g}"
            ),
            error_code="INSUFFICIENT_STOCK",
            details={
                "material_id": material_id,
                "available": available,
                "requested": requested,
            },
        )


class InsufficientInventory(BusinessLogicError):
    """A stage-log save would leave a material below zero."""

    def __init__(
        self,
        material_id: str,
        material_name: str | None = None,
        projected: float | None = None,
    ):
        self.material_id = material_id
        self.material_name = material_name or material_id
        self.projected = projected
        super().__init__(
            message=f"Insufficient inventory for {self.material_name}",
            error_code="INSUFFICIENT_INVENTORY",
            details={
                "material_id": material_id,
                "material_name": self.material_name,
                "projected_stock": projected,
            },
        )


class NegativeYield(BusinessLogicError):
    def __init__(self, message: str = "Harvest yields cannot be negative"):
        super().__init__(message=message, error_code="NEGATIVE_YIELD")


class InvalidStatusTransition(BusinessLogicError):
    def __init__(self, entity: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            message=f"{entity} cannot move from {current} to {target}",
            error_code="INVALID_STATUS_TRANSITION",
            details={"current": current, "target": target},
        )


class ItemSelectionMismatch(MycoTrackException):
    """Explicitly selected items no longer match what is stored."""

    def __init__(self, message: str = "Selected items do not match stored items"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="ITEM_SELECTION_MISMATCH",
        )


class ImmutableLogError(MycoTrackException):
    """Incubation, fruiting and harvest records cannot be edited."""

    def __init__(self, stage: str):
        super().__init__(
            message=f"{stage} records are immutable once written",
            status_code=status.HTTP_409_CONFLICT,
            error_code="IMMUTABLE_LOG",
        )


class ResourceNotFoundError(MycoTrackException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def mycotrack_exception_handler(
    request: Request,
    exc: MycoTrackException,
) -> JSONResponse:
    """Handle custom MycoTrack exceptions."""
    logger.warning(
        f"MycoTrack exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Handle database integrity errors."""
    logger.error(
        f"Database integrity error on {request.url.path}: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    error_msg = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "unique" in error_msg:
        message, error_code = "A record with this value already exists", "DUPLICATE_RECORD"
    elif "foreign key" in error_msg:
        message, error_code = "Referenced record does not exist", "FOREIGN_KEY_VIOLATION"
    else:
        message, error_code = "Database constraint violation", "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        f"Database operational error on {request.url.path}: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(MycoTrackException, mycotrack_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
