"""Email delivery providers.

Each provider raises ``EmailDeliveryError`` when the message is not accepted;
``MailService`` turns that into a boolean.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, ClassVar

import httpx
import structlog

from kvauth.config import Config
from kvauth.core.modules.mail.models import OutgoingEmail

logger = structlog.get_logger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
    """Raised when a provider does not accept a message."""


class EmailProvider(ABC):
    name: ClassVar[str]

    @abstractmethod
    async def send(self, message: OutgoingEmail) -> None:
        """Deliver a message or raise EmailDeliveryError."""


class BrevoProvider(EmailProvider):
    """Brevo (Sendinblue) transactional email API."""

    name = "brevo"

    def __init__(self, http: httpx.AsyncClient, api_key: str, sender_email: str) -> None:
        self._http = http
        self._api_key = api_key
        self._sender_email = sender_email

    async def send(self, message: OutgoingEmail) -> None:
        payload: dict[str, Any] = {
            "sender": {"name": message.sender_name, "email": message.sender_email or self._sender_email},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "textContent": message.body,
        }
        if message.tags:
            payload["tags"] = message.tags

        response = await self._http.post(
            BREVO_SEND_URL,
            json=payload,
            headers={"accept": "application/json", "api-key": self._api_key},
        )
        if response.is_error:
            raise EmailDeliveryError(f"Brevo API error: {response.status_code} - {response.text[:500]}")


class ConsoleProvider(EmailProvider):
    """Writes messages to the log instead of sending them. For development."""

    name = "console"

    async def send(self, message: OutgoingEmail) -> None:
        logger.info("email_logged", to=message.to, subject=message.subject, tags=message.tags)


def _brevo(config: Config, http: httpx.AsyncClient) -> EmailProvider:
    if not config.email_api_key or not config.sender_email:
        raise ValueError("Brevo provider requires email_api_key and sender_email")
    return BrevoProvider(http, config.email_api_key, config.sender_email)


def _console(config: Config, http: httpx.AsyncClient) -> EmailProvider:  # noqa: ARG001
    return ConsoleProvider()


PROVIDERS: dict[str, Callable[[Config, httpx.AsyncClient], EmailProvider]] = {
    "brevo": _brevo,
    "console": _console,
}


def resolve_provider(config: Config, http: httpx.AsyncClient) -> EmailProvider:
    """Build the configured provider. Unknown names fail at startup."""
    factory = PROVIDERS.get(config.email_provider)
    if factory is None:
        raise ValueError(f"Unknown email provider '{config.email_provider}', expected one of {sorted(PROVIDERS)}")
    return factory(config, http)
