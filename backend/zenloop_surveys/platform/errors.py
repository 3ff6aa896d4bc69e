"""
Consistent error handling for the Zenloop Surveys app.

All API errors MUST use these error classes and shapes.
Stack traces and raw provider messages are NEVER returned to clients.

Standard HTTP status codes:
- 400: Bad Request (settings validation errors)
- 401: Unauthorized (session token or billing check failed)
- 402: Payment Required (no active subscription)
- 404: Not Found (settings or session absent)
- 500: Internal Server Error (metafield commit or settings fetch failed)
- 502: Bad Gateway (Shopify Admin API or Zenloop API unreachable)
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REAUTHORIZE_URL_HEADER = "X-Shopify-API-Request-Failure-Reauthorize-Url"


class AppError(Exception):
    """
    Base application error with consistent error shape.

    All custom errors should inherit from this class.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to API error response format."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }

    def headers(self) -> dict[str, str]:
        return {}


class ValidationError(AppError):
    """Validation error (400)."""

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class MissingFieldError(ValidationError):
    """A required settings field is absent or empty."""

    def __init__(self, message: str = "All fields are required", fields: Optional[list[str]] = None):
        super().__init__(message, details={"fields": fields or []}, code="MISSING_FIELD")


class InvalidNumberError(ValidationError):
    """Organization or survey ID is not made of digits only."""

    def __init__(self, message: str = "Organization ID and Survey ID must be valid numbers"):
        super().__init__(message, code="INVALID_NUMBER")


class UnsupportedDisplayTypeError(ValidationError):
    """The selected display type cannot be used with the referenced survey."""

    def __init__(self, survey_id: str, message: Optional[str] = None):
        super().__init__(
            message or (
                "Unable to save display type as embedded form. "
                f"Survey {survey_id} must have a rating question."
            ),
            details={"survey_id": survey_id},
            code="UNSUPPORTED_DISPLAY_TYPE",
        )


class AuthenticationError(AppError):
    """Authentication failure (401)."""

    def __init__(
        self,
        message: str = "Authentication failed. Please refresh the page.",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code="AUTHENTICATION_ERROR",
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )


class BillingRequiredError(AppError):
    """
    Shop has no active subscription (402).

    Carries the plan selection URL. Embedded clients must open it in the
    top frame, outside the Shopify Admin iframe.
    """

    def __init__(self, redirect_url: str):
        super().__init__(
            code="PAYMENT_REQUIRED",
            message="An active subscription is required",
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            details={"redirect_url": redirect_url, "target": "_top"},
        )
        self.redirect_url = redirect_url

    def headers(self) -> dict[str, str]:
        return {REAUTHORIZE_URL_HEADER: self.redirect_url}


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Optional[str] = None, message: Optional[str] = None):
        if message is None:
            message = f"{resource} not found"
            if identifier:
                message = f"{resource} for '{identifier}' not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
        )


class CommitFailedError(AppError):
    """Metafield write was rejected or had no effect (500)."""

    def __init__(self, message: str = "Failed to save settings", details: Optional[dict[str, Any]] = None):
        super().__init__(
            code="COMMIT_FAILED",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class SettingsFetchError(AppError):
    """Stored settings could not be read for a storefront request (500)."""

    def __init__(self, message: str = "Failed to fetch settings"):
        super().__init__(
            code="SETTINGS_FETCH_FAILED",
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class UpstreamError(AppError):
    """
    Shopify Admin API or Zenloop API unreachable or returned an error (502).

    The client-facing message is generic; the provider's message is kept on
    ``provider_message`` for logs only.
    """

    def __init__(
        self,
        operation: str,
        provider_message: str = "",
        message: str = "Upstream service request failed. Please try again.",
        upstream_status: Optional[int] = None,
    ):
        super().__init__(
            code="UPSTREAM_ERROR",
            message=message,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"operation": operation},
        )
        self.operation = operation
        self.provider_message = provider_message
        self.upstream_status = upstream_status


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return str(uuid.uuid4())


def get_correlation_id(request: Request) -> str:
    """
    Get correlation ID from request or generate new one.

    Checks X-Correlation-ID header first, then request state.
    """
    correlation_id = request.headers.get("X-Correlation-ID")
    if correlation_id:
        return correlation_id

    if hasattr(request.state, "correlation_id"):
        return request.state.correlation_id

    return generate_correlation_id()


def error_response(error: AppError, correlation_id: Optional[str] = None, extra_headers: Optional[dict] = None) -> JSONResponse:
    """Render an AppError as a JSON response."""
    headers = dict(error.headers())
    if correlation_id:
        headers["X-Correlation-ID"] = correlation_id
    if extra_headers:
        headers.update(extra_headers)
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=headers,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches all exceptions and returns consistent error responses.

    IMPORTANT: Stack traces are NEVER returned to clients.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = get_correlation_id(request)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            return response

        except AppError as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                "Application error",
                extra={
                    "correlation_id": correlation_id,
                    "error_code": e.code,
                    "status_code": e.status_code,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return error_response(e, correlation_id)

        except HTTPException as e:
            logger.warning(
                "HTTP exception",
                extra={
                    "correlation_id": correlation_id,
                    "status_code": e.status_code,
                    "detail": e.detail,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=e.status_code,
                content={"error": str(e.detail), "code": "HTTP_ERROR", "details": {}},
                headers={"X-Correlation-ID": correlation_id},
            )

        except Exception as e:
            logger.exception(
                "Unhandled exception",
                extra={
                    "correlation_id": correlation_id,
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                }
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "An unexpected error occurred",
                    "code": "INTERNAL_ERROR",
                    "details": {"correlation_id": correlation_id},
                },
                headers={"X-Correlation-ID": correlation_id},
            )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Exception handler registered on the app for AppError."""
    correlation_id = get_correlation_id(request)
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Application error",
        extra={
            "correlation_id": correlation_id,
            "error_code": exc.code,
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return error_response(exc, correlation_id)
