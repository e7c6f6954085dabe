import httpx
import structlog
from pydantic import BaseModel, Field

from kvauth.core.core import Service

logger = structlog.get_logger(__name__)

TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class CaptchaVerification(BaseModel):
    """Relevant part of a Turnstile siteverify response."""

    success: bool = False
    error_codes: list[str] = Field(default_factory=list, alias="error-codes")


class CaptchaService(Service):
    """Cloudflare Turnstile token verification."""

    @property
    def enabled(self) -> bool:
        return bool(self.core.config.turnstile_secret_key)

    async def verify(self, token: str, ip: str | None = None) -> bool:
        """Return True only when Turnstile confirms the token.

        Transport errors and malformed responses count as a failed verification.
        """
        secret = self.core.config.turnstile_secret_key
        if not secret:
            raise RuntimeError("Turnstile secret key is not configured")

        data = {"secret": secret, "response": token}
        if ip:
            data["remoteip"] = ip

        try:
            response = await self.core.http.post(TURNSTILE_VERIFY_URL, data=data)
            response.raise_for_status()
            verification = CaptchaVerification.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("captcha_verify_error", error=str(e))
            return False

        if not verification.success:
            logger.info("captcha_rejected", error_codes=verification.error_codes)
        return verification.success
