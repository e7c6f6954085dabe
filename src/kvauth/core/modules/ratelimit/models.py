"""Sliding-window rate limit models."""

from datetime import datetime

from pydantic import BaseModel, Field


class RateLimitRecord(BaseModel):
    """Stored request timestamps for one (action, client) pair."""

    requests: list[datetime] = Field(default_factory=list)


class RateLimitResult(BaseModel):
    """Outcome of a rate limit check.

    ``degraded`` is set when the decision was not fully enforced or recorded
    (store error, quota exhaustion) and the request was let through anyway.
    """

    allowed: bool
    remaining: int
    reset_at: datetime | None = None
    degraded: bool = False
