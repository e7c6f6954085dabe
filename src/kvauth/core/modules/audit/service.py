from typing import TYPE_CHECKING, Any

import structlog

from kvauth.core.core import Service
from kvauth.core.kv import KVNamespaces, WriteOutcome, safe_kv_write
from kvauth.core.modules.audit.models import AuditEvent, audit_key
from kvauth.utils import random_suffix

if TYPE_CHECKING:
    from kvauth.core.modules.email_validation.models import EmailValidationResult

logger = structlog.get_logger(__name__)


class AuditService(Service):
    """Best-effort audit trail. No method here raises to the caller."""

    def __init__(self, stores: KVNamespaces) -> None:
        super().__init__(stores)
        self._store = stores.audit

    async def log_event(self, kind: str, details: dict[str, Any] | None = None) -> WriteOutcome:
        """Record an event under a unique, write-once key."""
        details = details or {}
        current = self.core.clock()
        ip = details.get("ip")
        entry = AuditEvent(event=kind, details=details, time=current, ip=str(ip) if ip else None)
        key = audit_key("audit", kind, current, random_suffix())
        try:
            return await safe_kv_write(
                lambda: self._store.put(key, entry.model_dump_json(), expiration_ttl=self.core.config.audit_log_ttl),
                f"audit event: {kind}",
            )
        except Exception:
            return WriteOutcome.FAILED

    async def log_user_action(self, action: str, user_id: str, **metadata: Any) -> WriteOutcome:
        """Record something a user did (signup, login, logout)."""
        return await self.log_event("user_action", {"action": action, "user_id": user_id, **metadata})

    async def log_system_event(self, event: str, **metadata: Any) -> WriteOutcome:
        return await self.log_event("system_event", {"event": event, **metadata})

    async def log_security_event(self, kind: str, **details: Any) -> WriteOutcome:
        """Record a security event through the hourly-capped logger.

        These are the events an attacker can trigger at will (honeypot hits,
        rejected emails, rate limit violations).
        """
        outcome = await self.core.throttled_logger.log(kind, details)
        if outcome is WriteOutcome.THROTTLED:
            logger.debug("security_event_dropped", kind=kind)
        return outcome

    async def log_email_validation(
        self, email: str, result: "EmailValidationResult", ip: str | None, action: str = "unknown"
    ) -> WriteOutcome | None:
        """Record a rejected address. Accepted addresses are not logged."""
        if result.valid:
            return None
        normalized = email.strip().lower()
        _, _, domain = normalized.rpartition("@")
        return await self.log_security_event(
            "email_rejected",
            action=action,
            email=normalized,
            domain=domain or None,
            reason=result.reason,
            ip=ip,
        )
