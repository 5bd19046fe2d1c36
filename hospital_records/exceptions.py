"""
Global exception handlers and custom exception classes.

Two response envelopes are produced:

- generic failures: ``{"status": "error", "message": ...}``
- validation failures: ``{"error": "Validation failed", "details": [{"field", "message"}]}``
"""
import logging
import traceback
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Set up logging
logger = logging.getLogger(__name__)


class AppException(Exception):
    """
    Base exception class for application-specific exceptions.
    """
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail)


class ResourceNotFoundException(AppException):
    """Exception raised when a requested record does not exist."""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class ConflictException(AppException):
    """Exception raised when a uniqueness constraint would be violated."""
    def __init__(self, detail: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)


class FieldValidationException(AppException):
    """
    Exception carrying field-level validation messages.

    Args:
        details: List of {"field": ..., "message": ...} dicts
    """
    def __init__(self, details: List[Dict[str, str]], detail: str = "Validation failed"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail)
        self.details = details

    @classmethod
    def for_field(cls, field: str, message: str) -> "FieldValidationException":
        return cls([{"field": field, "message": message}])


def error_body(message: str, **extra: Any) -> Dict[str, Any]:
    body = {"status": "error", "message": message}
    body.update(extra)
    return body


def validation_body(details: List[Dict[str, str]]) -> Dict[str, Any]:
    return {"error": "Validation failed", "details": details}


def _field_name(loc) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI puts in front of the field path
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) if parts else "request"


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    if isinstance(exc, FieldValidationException):
        logger.info(f"Validation failed on {request.url.path}: {exc.details}")
        return JSONResponse(status_code=exc.status_code, content=validation_body(exc.details))

    logger.warning(f"Application error on {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.detail))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTP exceptions raised by routes, dependencies, and routing.
    Authentication and authorization errors keep their fixed message only.
    """
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.

    Args:
        request: The request that caused the exception
        exc: The validation exception instance

    Returns:
        JSONResponse: Field-level validation envelope
    """
    details = []
    for error in exc.errors():
        message = error.get("msg", "Invalid value")
        # pydantic prefixes messages raised from validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": _field_name(error.get("loc", ())), "message": message})

    logger.info(f"Request validation error on {request.url.path}: {details}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=validation_body(details))


def make_unhandled_exception_handler(debug: bool):
    """
    Build the catch-all handler; stack traces are only exposed when debug is on.
    """
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        extra: Dict[str, Any] = {}
        if debug:
            extra["stack"] = traceback.format_exc()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("Something went wrong!", **extra),
        )
    return unhandled_exception_handler


# Register exception handlers with FastAPI app
def register_exception_handlers(app, debug: Optional[bool] = False):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether unclassified errors include a stack trace
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, make_unhandled_exception_handler(bool(debug)))
