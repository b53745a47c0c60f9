from typing import Dict, Any, Optional, List
from datetime import datetime
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
import logging

logger = logging.getLogger(__name__)


class BaseCustomException(Exception):
    """Base class for custom exceptions"""
    title = "Internal Server Error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Exception for validation errors"""
    title = "Validation Error"

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            error_code=error_code or "VALIDATION_ERROR"
        )


class NotFoundError(BaseCustomException):
    """Exception for resource not found errors"""
    title = "Not Found"

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code=error_code or "NOT_FOUND_ERROR"
        )


class ConflictError(BaseCustomException):
    """Exception for conflict errors"""
    title = "Conflict"

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            error_code=error_code or "CONFLICT_ERROR"
        )


class DatabaseError(BaseCustomException):
    """Exception for database errors"""
    title = "Database Error"

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=error_code or "DATABASE_ERROR"
        )


class InsufficientStockError(ValidationError):
    """Raised when a product cannot cover the quantity being dispensed"""

    def __init__(self, product_id: str, product_name: str, available: int, required: int):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.required = required
        super().__init__(
            message=(
                f"Insufficient stock for {product_name}. "
                f"Available: {available}, Required: {required}"
            ),
            details={
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "required": required,
            },
            error_code="INSUFFICIENT_STOCK"
        )


# Response model for errors
class ErrorResponse(BaseModel):
    """Error envelope shared by every route"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = False
    error: str
    message: str
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    validation_errors: Optional[List[Dict[str, Any]]] = None
    timestamp: Optional[str] = None
    request_id: Optional[str] = None


def create_error_response(
    exception: BaseCustomException,
    request_id: Optional[str] = None,
    validation_errors: Optional[List[Dict[str, Any]]] = None
) -> Dict[str, Any]:
    """Create standardized error response"""
    response = ErrorResponse(
        error=exception.title,
        message=exception.message,
        error_code=exception.error_code,
        details=exception.details or None,
        validation_errors=validation_errors,
        timestamp=datetime.utcnow().isoformat(),
        request_id=request_id
    )
    return response.model_dump(by_alias=True, exclude_none=True)


def handle_database_error(error: Exception, operation: str = "database operation") -> DatabaseError:
    """Handle database errors and convert to DatabaseError"""
    logger.error(f"Database error during {operation}: {error}")

    error_message = "Database operation failed"
    if "connection" in str(error).lower():
        error_message = "Database connection failed"
    elif "timeout" in str(error).lower():
        error_message = "Database operation timed out"
    elif "constraint" in str(error).lower():
        error_message = "Database constraint violation"

    return DatabaseError(
        message=error_message,
        details={"operation": operation},
        error_code="DATABASE_OPERATION_ERROR"
    )


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def custom_exception_handler(request: Request, exc: BaseCustomException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(create_error_response(exc, _request_id(request)))
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    custom = ValidationError(message="Request validation failed")
    return JSONResponse(
        status_code=custom.status_code,
        content=jsonable_encoder(create_error_response(custom, _request_id(request), errors))
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    custom = handle_database_error(exc, operation=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=custom.status_code,
        content=jsonable_encoder(create_error_response(custom, _request_id(request)))
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error in {request.method} {request.url.path}")
    custom = BaseCustomException(
        message="An unexpected error occurred",
        error_code="UNEXPECTED_ERROR"
    )
    return JSONResponse(
        status_code=custom.status_code,
        content=jsonable_encoder(create_error_response(custom, _request_id(request)))
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseCustomException, custom_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
