"""Session management models."""

from datetime import datetime, timedelta
from typing import NewType

from pydantic import BaseModel

SessionId = NewType("SessionId", str)


class Session(BaseModel):
    """Server-side session record, stored under its opaque identifier.

    Valid while ``now < expires_at`` and ``now - last_activity < idle_timeout``.
    """

    id: SessionId
    email: str
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    user_agent: str = ""
    ip: str = ""

    def is_expired(self, at: datetime) -> bool:
        return at >= self.expires_at

    def is_idle(self, at: datetime, idle_timeout: timedelta) -> bool:
        return at - self.last_activity >= idle_timeout
