import bcrypt
import pydantic
import structlog

from kvauth.core.core import Service
from kvauth.core.kv import KVNamespaces
from kvauth.core.modules.user.models import User
from kvauth.core.modules.user.validators import MAX_PASSWORD_BYTES, validate_password
from kvauth.errors import AccountExistsError

logger = structlog.get_logger(__name__)


def user_key(email: str) -> str:
    return f"user:{email}"


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


class UserService(Service):
    """Accounts keyed by normalized email address."""

    def __init__(self, stores: KVNamespaces) -> None:
        super().__init__(stores)
        self._store = stores.users

    async def get_user(self, email: str) -> User | None:
        raw = await self._store.get(user_key(normalize_email(email)))
        if raw is None:
            return None
        try:
            return User.model_validate_json(raw)
        except pydantic.ValidationError:
            logger.warning("user_record_unreadable", email=normalize_email(email))
            return None

    async def has_user(self, email: str) -> bool:
        return await self._store.get(user_key(normalize_email(email))) is not None

    async def register_user(self, email: str, password: str) -> User:
        """Create an account with a bcrypt-hashed password."""
        email = normalize_email(email)
        if await self.has_user(email):
            raise AccountExistsError

        validate_password(password)
        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = User(email=email, password_hash=password_hash, created_at=self.core.clock())
        await self._store.put(user_key(email), user.model_dump_json())
        logger.info("user_registered", email=email)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        """Return the user if the password matches, otherwise None."""
        user = await self.get_user(email)
        if user is None:
            return None
        password_bytes = password.encode("utf-8")
        if len(password_bytes) > MAX_PASSWORD_BYTES:
            return None
        if not bcrypt.checkpw(password_bytes, user.password_hash.encode("utf-8")):
            return None
        return user
