import logging

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response

from kvauth.core.kv import KVLimitExceededError
from kvauth.errors import AccessDeniedError, AuthenticationError, NotFoundError, ValidationError
from kvauth.web.pages import render_error

logger = logging.getLogger(__name__)

QUOTA_RETRY_AFTER = 3600

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; script-src 'self' https://challenges.cloudflare.com; "
        "frame-src https://challenges.cloudflare.com; style-src 'self' 'unsafe-inline'"
    ),
}


def wants_json(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def create_json_error_response(
    status_code: int, message: str, error_type: str | None = None, headers: dict[str, str] | None = None
) -> JSONResponse:
    """Create JSON error response with optional type for machine parsing."""
    content = {"message": message}
    if error_type:
        content["type"] = error_type
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def create_error_response(
    request: Request,
    status_code: int,
    message: str | None,
    error_type: str,
    headers: dict[str, str] | None = None,
) -> Response:
    """JSON for API paths, a themed HTML page for everything else."""
    if wants_json(request):
        return create_json_error_response(status_code, message or error_type, error_type, headers)
    return HTMLResponse(render_error(status_code, message), status_code=status_code, headers=headers)


async def user_error_handler(request: Request, exc: Exception) -> Response:
    """Handle all UserError subclasses with appropriate status codes."""
    if isinstance(exc, AuthenticationError):
        status_code = 401
        error_type = "authentication_error"
    elif isinstance(exc, AccessDeniedError):
        status_code = 403
        error_type = "access_denied"
    elif isinstance(exc, NotFoundError):
        status_code = 404
        error_type = "not_found"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    else:
        status_code = 400
        error_type = "bad_request"

    return create_error_response(request, status_code, str(exc), error_type)


async def kv_limit_error_handler(request: Request, exc: Exception) -> Response:
    """Storage quota exhausted (503)."""
    logger.warning("KV quota exhausted on %s: %s", request.url.path, exc)
    return create_error_response(
        request,
        503,
        "Service temporarily unavailable due to high demand. Please try again later.",
        "service_unavailable",
        headers={"Retry-After": str(QUOTA_RETRY_AFTER)},
    )


async def general_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500)."""
    logger.exception("Unexpected error: %s", exc)
    # Sent by ServerErrorMiddleware, outside the header middleware
    return create_error_response(
        request, 500, "An unexpected error occurred.", "internal_server_error", headers=SECURITY_HEADERS
    )
