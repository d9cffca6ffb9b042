"""
Custom exception classes and JSON error envelope handling.

Every error leaves the gateway as ``{"error": <short code>, "message": <detail>}``.
"""
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict
from starlette.exceptions import HTTPException as StarletteHTTPException


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""
    error: str
    message: str

    model_config = ConfigDict(frozen=True)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, status_code: int, error: str, message: str):
        self.status_code = status_code
        self.error = error
        self.message = message
        super().__init__(message)


class ValidationError(AppException):
    """Missing or malformed query parameter."""

    def __init__(self, message: str, error: str = "invalid_parameter"):
        super().__init__(status_code=400, error=error, message=message)

    @classmethod
    def missing(cls, parameter: str) -> "ValidationError":
        return cls(f"{parameter} parameter is required", error="missing_parameter")


class AuthError(AppException):
    """Missing, invalid or expired bearer token."""

    def __init__(self, message: str = "A valid bearer access token is required."):
        super().__init__(status_code=401, error="unauthorized", message=message)


class ExtractionError(AppException):
    """The extractor failed or produced output that could not be used."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        self.returncode = returncode
        super().__init__(status_code=500, error="extraction_failed", message=message)


class StreamError(AppException):
    """
    The audio stream failed after response headers were committed.

    Never rendered as JSON: raising it terminates the connection.
    """

    def __init__(self, message: str):
        super().__init__(status_code=500, error="stream_failed", message=message)


class YouTubeApiError(AppException):
    """The YouTube Data API returned an unusable response."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(status_code=status_code, error="youtube_api_failed", message=message)


def create_error_response(status_code: int, error: str, message: str) -> JSONResponse:
    """Create a JSON error envelope response."""
    body = ErrorResponse(error=error, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle AppException and return the error envelope."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return create_error_response(exc.status_code, exc.error, exc.message)


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Map FastAPI request validation failures onto a 400 envelope."""
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ())[1:]) or 'request'}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.warning(f"{request.method} {request.url.path} rejected: {details}")
    return create_error_response(400, "invalid_parameter", details or "Invalid request")


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render routing errors (404, 405) with the same envelope."""
    error = "not_found" if exc.status_code == 404 else "http_error"
    return create_error_response(exc.status_code, error, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for anything that escaped the handlers above."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return create_error_response(500, "internal_error", "Something went wrong!")
