from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """Account record stored under ``user:<email>``."""

    email: str
    password_hash: str  # bcrypt hash
    created_at: datetime
    verified: bool = True
    plan: str = "free"


class UserView(BaseModel):
    """Account information safe to show to its owner."""

    email: str = Field(..., description="Email address")
    created_at: datetime = Field(..., description="Signup time")
    plan: str = Field(..., description="Subscription plan")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(email=user.email, created_at=user.created_at, plan=user.plan)
