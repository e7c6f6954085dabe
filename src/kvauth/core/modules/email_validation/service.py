import structlog

from kvauth.core.core import Service
from kvauth.core.modules.email_validation.models import EmailValidationResult, ReasonCode
from kvauth.core.modules.email_validation.rules import (
    EMAIL_SHAPE_RE,
    FALLBACK_DISPOSABLE_DOMAINS,
    check_domain_shape,
    match_suspicious_pattern,
)

logger = structlog.get_logger(__name__)


class EmailValidationService(Service):
    """Rejects malformed, disposable, and bot-shaped addresses.

    Checks run in order and stop at the first failure: shape, disposable
    domain, suspicious patterns, domain structure.
    """

    async def validate(self, email: object) -> EmailValidationResult:
        if not isinstance(email, str) or not email.strip():
            return EmailValidationResult.rejected(ReasonCode.INVALID_FORMAT)

        normalized = email.strip().lower()
        if not EMAIL_SHAPE_RE.fullmatch(normalized):
            return EmailValidationResult.rejected(ReasonCode.INVALID_FORMAT)
        _, _, domain = normalized.rpartition("@")

        if domain in await self._disposable_domains():
            return EmailValidationResult.rejected(ReasonCode.DISPOSABLE)

        if match_suspicious_pattern(normalized) is not None:
            return EmailValidationResult.rejected(ReasonCode.SUSPICIOUS_PATTERN)

        reason = check_domain_shape(domain)
        if reason is not None:
            return EmailValidationResult.rejected(reason)

        return EmailValidationResult.accepted()

    async def _disposable_domains(self) -> frozenset[str]:
        try:
            snapshot = await self.core.blocklist.snapshot()
        except Exception:
            logger.exception("blocklist_unavailable")
            return FALLBACK_DISPOSABLE_DOMAINS
        if snapshot.stale:
            logger.debug("blocklist_stale", source=snapshot.source)
        return snapshot.domains
