import structlog

from kvauth.core.core import Service
from kvauth.core.modules.mail.models import OutgoingEmail

logger = structlog.get_logger(__name__)


class MailService(Service):
    """Provider-agnostic email sending."""

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body: str,
        sender_name: str | None = None,
        tags: str | list[str] | None = None,
    ) -> bool:
        """Send a plain-text email. Returns False instead of raising on any failure."""
        config = self.core.config
        provider = self.core.mail_provider
        try:
            message = OutgoingEmail.compose(
                to_email, subject, body, sender_name or config.sender_name, config.sender_email, tags
            )
            await provider.send(message)
        except Exception as e:
            logger.exception("email_send_failed", provider=provider.name, to=to_email, error=str(e))
            return False
        logger.info("email_sent", provider=provider.name, to=to_email)
        return True
