"""
Error handling and sanitization

Every failure leaves the service as an `{error, details?}` JSON envelope:
- RelayError subclasses → their own status_code, upstream text in details
- Anything unhandled → 500, full traceback logged only
- Configured credentials are scrubbed from every client-facing message
"""
import logging
import traceback
from typing import Any, Iterable, Optional, Union

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shiprelay.core.exceptions import RelayError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500
REDACTED = "***"


def sanitize_error_message(
    error: Union[str, Exception],
    secrets: Iterable[str] = (),
    debug: bool = False,
) -> str:
    """
    Sanitize an error message for safe client exposure.

    Args:
        error: The error string or exception
        secrets: Credential values to redact wherever they appear
        debug: Skip truncation when True

    Returns:
        Message with credentials removed and length capped
    """
    message = error if isinstance(error, str) else str(error)

    for secret in secrets:
        if secret:
            message = message.replace(secret, REDACTED)

    if not debug and len(message) > MAX_MESSAGE_LENGTH:
        return message[:MAX_MESSAGE_LENGTH] + "..."

    return message


def _app_secrets(request: Request) -> list:
    settings = getattr(request.app.state, "settings", None)
    return settings.secret_values if settings else []


def _app_debug(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.DEBUG)


def error_response(
    status_code: int,
    error: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Build the standard error envelope."""
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _client_details(exc: RelayError) -> Optional[Any]:
    upstream = exc.details.get("upstream_body")
    if upstream:
        return upstream
    cleaned = {k: v for k, v in exc.details.items() if v is not None}
    return cleaned or None


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Translate a RelayError raised below the handler boundary."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.code} on {request.method} {request.url.path}: "
            f"{sanitize_error_message(exc.message, _app_secrets(request), debug=True)}"
        )
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    secrets = _app_secrets(request)
    debug = _app_debug(request)
    details = _client_details(exc)
    if isinstance(details, str):
        details = sanitize_error_message(details, secrets, debug)
    elif isinstance(details, dict):
        details = {
            k: sanitize_error_message(v, secrets, debug) if isinstance(v, str) else v
            for k, v in details.items()
        }

    return error_response(
        exc.status_code,
        sanitize_error_message(exc.message, secrets, debug),
        details,
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch unhandled exceptions and return a sanitized 500 envelope.

    - In production: generic error, full details logged
    - In development: exception text included for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n"
                f"{sanitize_error_message(traceback.format_exc(), _app_secrets(request), debug=True)}"
            )

            if _app_debug(request):
                details = {
                    "message": sanitize_error_message(e, _app_secrets(request), debug=True),
                    "type": type(e).__name__,
                    "error_id": error_id,
                }
            else:
                details = {"error_id": error_id}

            return error_response(
                500,
                "An unexpected error occurred. Please try again later.",
                details,
            )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or incomplete request bodies are client input errors (400, not 422)."""
    logger.info(f"Request validation failed on {request.method} {request.url.path}")
    return error_response(
        400,
        "missing required fields",
        [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
            for err in exc.errors()
        ],
    )
