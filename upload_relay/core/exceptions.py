import uuid
from typing import Any, Dict, Mapping, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from upload_relay.core.config import settings
from upload_relay.core.logging import get_logger

logger = get_logger(__name__)


class UploadRelayError(Exception):
    """Base exception for the upload relay."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(UploadRelayError):
    """Missing or malformed credentials."""

    def __init__(
        self,
        message: str = "No token provided or invalid format",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "AUTHENTICATION_ERROR", details)


class TokenInvalidError(AuthenticationError):
    """Identity token failed verification."""

    def __init__(self, reason: Optional[str] = None):
        details = {"error": reason} if reason else None
        super().__init__("Invalid token", details)
        self.error_code = "TOKEN_INVALID"


class AuthorizationError(UploadRelayError):
    """Authenticated caller is not allowed to act for the declared owner."""

    def __init__(
        self,
        message: str = "User ID mismatch",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, "AUTHORIZATION_ERROR", details)


class ValidationError(UploadRelayError):
    """Malformed or incomplete upload request."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


class FileTooLargeError(ValidationError):
    """Upload exceeds MAX_FILE_SIZE."""

    def __init__(self, max_size: int):
        super().__init__("File too large", {"max_size": max_size})
        self.error_code = "FILE_TOO_LARGE"


class UpstreamError(UploadRelayError):
    """The remote document API reported a failure."""

    def __init__(
        self,
        description: str,
        service: str = "telegram",
        message: str = "Telegram upload failed",
    ):
        super().__init__(
            message, "UPSTREAM_ERROR", {"error": description, "service": service}
        )
        self.description = description


class ConfigurationError(UploadRelayError):
    """A required collaborator is not configured."""

    def __init__(self, message: str):
        super().__init__(message, "INTERNAL_ERROR")


class UploadError(UploadRelayError):
    """Unexpected failure while staging or forwarding an upload."""

    def __init__(self, error: str):
        super().__init__("Upload error", "INTERNAL_ERROR", {"error": error})


STATUS_CODE_MAP = {
    "AUTHENTICATION_ERROR": status.HTTP_401_UNAUTHORIZED,
    "TOKEN_INVALID": status.HTTP_401_UNAUTHORIZED,
    "AUTHORIZATION_ERROR": status.HTTP_403_FORBIDDEN,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "FILE_TOO_LARGE": 413,
    "UPSTREAM_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "INTERNAL_ERROR",
    details: Optional[Dict[str, Any]] = None,
    error_id: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Create the relay's flat JSON error body."""

    error_response: Dict[str, Any] = {
        "message": message,
        "code": error_code,
        "error_id": error_id or str(uuid.uuid4())[:8],
    }

    if details:
        for key, value in details.items():
            error_response.setdefault(key, value)

    return JSONResponse(
        status_code=status_code, content=error_response, headers=headers
    )


async def upload_relay_exception_handler(
    request: Request, exc: UploadRelayError
) -> JSONResponse:
    """Handle application exceptions by error kind."""
    error_id = str(uuid.uuid4())[:8]

    status_code = STATUS_CODE_MAP.get(
        exc.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR
    )

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Application exception occurred",
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    return create_error_response(
        status_code=status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        error_id=error_id,
    )


async def starlette_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle routing errors such as 404 and 405."""
    error_id = str(uuid.uuid4())[:8]

    logger.warning(
        "HTTP exception occurred",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
    )

    message = exc.detail
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = "Method not allowed"

    return create_error_response(
        status_code=exc.status_code,
        message=str(message),
        error_code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        error_id=error_id,
        headers=exc.headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    error_id = str(uuid.uuid4())[:8]

    logger.error(
        "Unhandled exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        error_id=error_id,
        exc_info=True,
    )

    # Don't expose internal errors in production
    details = None if settings.is_production else {"error": str(exc)}

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred",
        error_code="INTERNAL_ERROR",
        details=details,
        error_id=error_id,
    )


def setup_exception_handlers(app):
    """Setup all exception handlers for the FastAPI app."""

    # Custom application exceptions
    app.add_exception_handler(UploadRelayError, upload_relay_exception_handler)

    # Routing errors (404, 405)
    app.add_exception_handler(StarletteHTTPException, starlette_exception_handler)

    # General exception handler (catch-all)
    app.add_exception_handler(Exception, general_exception_handler)
