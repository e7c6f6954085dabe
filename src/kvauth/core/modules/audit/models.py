"""Audit event models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class AuditEvent(BaseModel):
    """Write-once audit record; retention is left to the store TTL."""

    event: str
    details: dict[str, Any] = Field(default_factory=dict)
    time: datetime
    ip: str | None = None


def audit_key(prefix: str, kind: str, at: datetime, suffix: str) -> str:
    return f"{prefix}:{kind}:{at.isoformat()}:{suffix}"
