"""
Custom exception classes for unified error handling.

Every AppBaseError carries the HTTP status it maps to. The handlers
registered by `register_exception_handlers` turn anything raised inside a
route into a `{"error": ...}` JSON body.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class AppBaseError(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


# ── 4xx ──────────────────────────────────────────────────

class BadRequestError(AppBaseError):
    """Malformed or missing input."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppBaseError):
    """Missing, invalid or expired token, or the subject no longer exists."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication required", detail: str | None = None):
        super().__init__(message=message, detail=detail)


class TokenMalformedError(AuthError):
    """Raised when a token cannot be decoded or carries unusable claims."""
    def __init__(self, detail: str | None = None):
        super().__init__(message="Malformed token", detail=detail)


class TokenSignatureError(AuthError):
    """Raised when a token's signature does not match the shared secret."""
    def __init__(self, detail: str | None = None):
        super().__init__(message="Invalid token signature", detail=detail)


class TokenExpiredError(AuthError):
    """Raised when a correctly signed token is past its expiry."""
    def __init__(self, detail: str | None = None):
        super().__init__(message="Token has expired", detail=detail)


class ForbiddenError(AppBaseError):
    """Authenticated, but the role is insufficient."""
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(AppBaseError):
    status_code = status.HTTP_409_CONFLICT


class PayloadTooLargeError(AppBaseError):
    status_code = status.HTTP_413_CONTENT_TOO_LARGE


# ── Upstream (reported as a generic 500) ─────────────────

class UpstreamError(AppBaseError):
    """An embedding, vector index, model or parser call failed."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class EmbeddingError(UpstreamError):
    """Embedding call failed for a reason that is not worth retrying."""


class EmbeddingRateLimitedError(EmbeddingError):
    """Provider answered 429. Retried with backoff."""


class EmbeddingUnavailableError(EmbeddingError):
    """Provider unreachable, timed out or answered 5xx. Retried with backoff."""


class EmbeddingInputError(EmbeddingError):
    """Provider rejected the input text. Never retried."""


class EmbeddingAuthError(EmbeddingError):
    """Provider rejected our credentials. Never retried."""


class VectorIndexError(UpstreamError):
    """Vector index unavailable or rejected the request."""


class GenerationError(UpstreamError):
    """Generative model call failed."""


class DocumentParseError(UpstreamError):
    """Uploaded document could not be parsed."""


# ── Handlers ─────────────────────────────────────────────

def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _handle_app_error(request: Request, exc: AppBaseError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error(
            "%s on %s %s: %s (%s)",
            type(exc).__name__, request.method, request.url.path, exc.message, exc.detail,
            exc_info=exc.__cause__,
        )
        return error_response(exc.status_code, GENERIC_ERROR_MESSAGE)
    return error_response(exc.status_code, exc.message)


async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else GENERIC_ERROR_MESSAGE
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message},
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = sorted({str(err["loc"][-1]) for err in errors if err.get("loc")})
    if fields:
        message = f"Invalid or missing fields: {', '.join(fields)}"
    else:
        message = "Invalid request body"
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    """Convert every failure into a `{"error": ...}` JSON body."""
    app.add_exception_handler(AppBaseError, _handle_app_error)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected)
