import html
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from kvauth.config import Config
from kvauth.core.core import Core
from kvauth.core.modules.email_validation.rules import email_error_message
from kvauth.core.modules.ratelimit.models import RateLimitResult
from kvauth.core.modules.session.models import Session, SessionId
from kvauth.core.modules.user.models import UserView
from kvauth.errors import (
    AccountExistsError,
    AuthenticationError,
    CaptchaFailedError,
    EmailRejectedError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


class App:
    """Facade for all request-level operations, delegating to Core services."""

    def __init__(self, config: Config, core: Core | None = None) -> None:
        self._core = core or Core(config)

    @property
    def config(self) -> Config:
        return self._core.config

    def now(self) -> datetime:
        return self._core.clock()

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def get_session(self, cookie_header: str | None) -> Session | None:
        """Resolve the caller's session from the raw Cookie header."""
        return await self._core.services.session.get_session_from_cookie(cookie_header)

    async def check_rate_limit(self, action: str, client_ip: str) -> tuple[RateLimitResult, int]:
        """Apply the configured limit for an action. Returns the result and the limit used."""
        limit, window_ms = self.config.rate_limit(action)
        result = await self._core.services.rate_limit.check_and_record(action, client_ip, limit, window_ms)
        if not result.allowed:
            await self._core.services.audit.log_security_event("rate_limit_exceeded", action=action, ip=client_ip)
        return result, limit

    async def signup(self, email: str, password: str, honeypot: str, ip: str, user_agent: str = "") -> None:
        """Create an account.

        A filled honeypot field returns normally without creating anything so
        the bot sees the same outcome as a real signup.
        """
        if honeypot.strip():
            await self._core.services.audit.log_security_event("signup_honeypot_triggered", email=email, ip=ip)
            return

        await self._ensure_email_allowed(email, ip, "signup")
        try:
            user = await self._core.services.user.register_user(email, password)
        except AccountExistsError:
            await self._core.services.audit.log_security_event("signup_existing_email", email=email, ip=ip)
            raise
        await self._core.services.audit.log_user_action("signup_success", user.email, ip=ip, user_agent=user_agent)

    async def login(self, email: str, password: str, ip: str, user_agent: str = "") -> SessionId:
        """Authenticate and open a session."""
        user = await self._core.services.user.authenticate(email, password)
        if user is None:
            await self._core.services.audit.log_security_event("login_failed", email=email.strip().lower(), ip=ip)
            raise AuthenticationError
        session_id = await self._core.services.session.create_session(user.email, ip=ip, user_agent=user_agent)
        logger.info("user_logged_in", email=user.email)
        await self._core.services.audit.log_user_action("login", user.email, ip=ip, user_agent=user_agent)
        return session_id

    async def logout(self, session: Session | None) -> None:
        """End the session if there is one."""
        if session is None:
            return
        await self._core.services.session.destroy_session(session.id)
        await self._core.services.audit.log_user_action("logout", session.email)

    async def get_current_user(self, session: Session) -> UserView | None:
        user = await self._core.services.user.get_user(session.email)
        return UserView.from_domain(user) if user is not None else None

    async def submit_contact(self, name: str, email: str, message: str, turnstile_token: str, ip: str | None) -> bool:
        """Validate and forward a contact form submission to the site owner.

        Returns whether the email provider accepted the message.
        """
        if not name.strip() or not email.strip() or not message.strip() or not turnstile_token:
            raise ValidationError("Missing fields")

        await self._ensure_email_allowed(email, ip, "contact")

        captcha = self._core.services.captcha
        if not captcha.enabled:
            raise RuntimeError("Server misconfigured: missing Turnstile secret")
        if not await captcha.verify(turnstile_token, ip):
            await self._core.services.audit.log_security_event("captcha_failed", action="contact", ip=ip)
            raise CaptchaFailedError

        recipient = self.config.owner_email or self.config.sender_email
        if not recipient:
            raise RuntimeError("Server misconfigured: no contact recipient")

        safe_name = html.escape(name.strip())
        subject = f"Contact Form Submission from {safe_name}"
        body = f"Name: {safe_name}\nEmail: {html.escape(email.strip())}\nMessage:\n{html.escape(message)}"
        delivered = await self._core.services.mail.send_email(recipient, subject, body, tags="contact")
        if not delivered:
            logger.warning("contact_delivery_failed", recipient=recipient)
        await self._core.services.audit.log_system_event("contact_submitted", delivered=delivered, ip=ip)
        return delivered

    async def _ensure_email_allowed(self, email: str, ip: str | None, action: str) -> None:
        result = await self._core.services.email_validation.validate(email)
        if result.valid:
            return
        await self._core.services.audit.log_email_validation(email, result, ip, action)
        if result.reason is None:
            raise ValidationError(email_error_message(None))
        raise EmailRejectedError(result.reason, email_error_message(result.reason))
