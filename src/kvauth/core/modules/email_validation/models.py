"""Email legitimacy validation models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class ReasonCode(StrEnum):
    """Why an address was rejected."""

    INVALID_FORMAT = "invalid_format"
    DISPOSABLE = "disposable"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    DOMAIN_TOO_SHORT = "domain_too_short"
    NUMERIC_DOMAIN = "numeric_domain"
    INVALID_DOMAIN_STRUCTURE = "invalid_domain_structure"


class EmailValidationResult(BaseModel):
    valid: bool
    reason: ReasonCode | None = None

    @classmethod
    def accepted(cls) -> "EmailValidationResult":
        return cls(valid=True)

    @classmethod
    def rejected(cls, reason: ReasonCode) -> "EmailValidationResult":
        return cls(valid=False, reason=reason)


class BlocklistSource(StrEnum):
    """Where the disposable-domain set currently in use came from."""

    REMOTE = "remote"
    STORE = "store"
    FALLBACK = "fallback"


class BlocklistSnapshot(BaseModel):
    domains: frozenset[str]
    source: BlocklistSource
    fetched_at: datetime | None = None
    stale: bool = False


class PersistedBlocklist(BaseModel):
    """Serialized blocklist copy kept in the store between processes."""

    domains: list[str]
    fetched_at: datetime
