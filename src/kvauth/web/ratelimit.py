"""Rate limit enforcement at the HTTP boundary."""

import math
from datetime import datetime

from fastapi import Request
from fastapi.responses import JSONResponse

from kvauth.app import App
from kvauth.core.modules.ratelimit.models import RateLimitResult
from kvauth.utils import to_epoch_ms
from kvauth.web.deps import client_ip


def rate_limit_response(action: str, result: RateLimitResult, limit: int, now: datetime) -> JSONResponse:
    """429 response carrying Retry-After and X-RateLimit-* headers."""
    reset_at = result.reset_at or now
    reset_ms = to_epoch_ms(reset_at)
    retry_after = max(math.ceil((reset_at - now).total_seconds()), 1)
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": f"Too many {action} attempts. Try again after {reset_at.isoformat()}",
            "resetTime": reset_ms,
        },
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(reset_ms),
        },
    )


async def enforce_rate_limit(app: App, request: Request, action: str) -> JSONResponse | None:
    """Return a rejection response when the caller is over the limit, otherwise None."""
    result, limit = await app.check_rate_limit(action, client_ip(request))
    if result.allowed:
        return None
    return rate_limit_response(action, result, limit, app.now())
