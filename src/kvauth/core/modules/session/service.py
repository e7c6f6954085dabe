import re
import secrets
from datetime import timedelta

import pydantic
import structlog

from kvauth.core.core import Service
from kvauth.core.kv import KVNamespaces, WriteOutcome, safe_kv_write
from kvauth.core.modules.session.cookies import parse_session_cookie
from kvauth.core.modules.session.models import Session, SessionId

logger = structlog.get_logger(__name__)

# token_urlsafe alphabet; anything else cannot be one of our identifiers
SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_-]{16,128}$")


class SessionService(Service):
    """Opaque-token sessions with absolute expiry, idle timeout, and debounced refresh."""

    def __init__(self, stores: KVNamespaces) -> None:
        super().__init__(stores)
        self._store = stores.sessions

    async def create_session(
        self, email: str, max_age: int | None = None, ip: str = "", user_agent: str = ""
    ) -> SessionId:
        """Store a new session and return its identifier. ``max_age`` is in seconds."""
        config = self.core.config
        current = self.core.clock()
        session = Session(
            id=SessionId(secrets.token_urlsafe(32)),
            email=email,
            created_at=current,
            last_activity=current,
            expires_at=current + timedelta(seconds=config.session_max_age if max_age is None else max_age),
            ip=ip,
            user_agent=user_agent[:255],
        )
        await self._store.put(session.id, session.model_dump_json(), expiration_ttl=config.session_expiration_ttl)
        logger.debug("session_created", email=email)
        return session.id

    async def get_session(self, session_id: str | None) -> Session | None:
        """Return the live session for an identifier, or None.

        Expired or idle sessions are deleted on sight. Activity is written back
        at most once per refresh interval; a quota-rejected write leaves the
        session valid with its previous activity timestamp.
        """
        if not session_id or not SESSION_ID_RE.fullmatch(session_id):
            return None

        raw = await self._store.get(session_id)
        if raw is None:
            return None

        try:
            session = Session.model_validate_json(raw)
        except pydantic.ValidationError:
            logger.warning("session_record_unreadable", session_id=session_id[:8])
            await self.destroy_session(session_id)
            return None

        config = self.core.config
        current = self.core.clock()
        if session.is_expired(current) or session.is_idle(current, timedelta(seconds=config.session_idle_timeout)):
            await self.destroy_session(session_id)
            logger.debug("session_expired", email=session.email)
            return None

        if current - session.last_activity > timedelta(seconds=config.session_refresh_interval):
            refreshed = session.model_copy(update={"last_activity": current})
            outcome = await safe_kv_write(
                lambda: self._store.put(
                    session_id, refreshed.model_dump_json(), expiration_ttl=config.session_expiration_ttl
                ),
                "session activity refresh",
            )
            if outcome is WriteOutcome.WRITTEN:
                session = refreshed

        return session

    async def get_session_from_cookie(self, cookie_header: str | None) -> Session | None:
        """Resolve a session from a raw ``Cookie`` request header."""
        return await self.get_session(parse_session_cookie(cookie_header))

    async def destroy_session(self, session_id: str) -> None:
        """Delete a session. Deleting an unknown session is not an error."""
        await self._store.delete(session_id)

    async def destroy_all_user_sessions(self, email: str) -> int:
        """Delete every session belonging to a subject and return how many were removed."""
        removed = 0
        for key in await self._store.list():
            raw = await self._store.get(key)
            if raw is None:
                continue
            try:
                session = Session.model_validate_json(raw)
            except pydantic.ValidationError:
                continue
            if session.email == email:
                await self._store.delete(key)
                removed += 1
        return removed
