"""Tests for the user service."""

import pytest

from kvauth.core.modules.user.models import User
from kvauth.core.modules.user.service import user_key
from kvauth.errors import AccountExistsError, ValidationError


@pytest.fixture
def users(core):
    return core.services.user


class TestRegisterUser:
    """Tests for account creation."""

    async def test_stores_hashed_password(self, users, stores, clock):
        """Test that the account is stored under the normalized email with a bcrypt hash."""
        user = await users.register_user("  Maria@Gmail.com ", "correct horse")
        assert user.email == "maria@gmail.com"
        assert user.created_at == clock()

        stored = User.model_validate_json(await stores.users.get(user_key("maria@gmail.com")))
        assert stored.password_hash.startswith("$2")
        assert "correct horse" not in stored.password_hash

    async def test_duplicate_email_rejected(self, users):
        """Test that a second signup for the same address fails."""
        await users.register_user("maria@gmail.com", "correct horse")
        with pytest.raises(AccountExistsError):
            await users.register_user("MARIA@gmail.com", "another password")

    async def test_short_password_rejected(self, users):
        """Test that passwords under eight characters are refused."""
        with pytest.raises(ValidationError, match="at least 8 characters"):
            await users.register_user("maria@gmail.com", "short")

    async def test_overlong_password_rejected(self, users):
        """Test that passwords over bcrypt's byte limit are refused."""
        with pytest.raises(ValidationError, match="too long"):
            await users.register_user("maria@gmail.com", "x" * 73)


class TestAuthenticate:
    """Tests for credential checks."""

    async def test_correct_password(self, users):
        """Test that the right password returns the user."""
        await users.register_user("maria@gmail.com", "correct horse")
        user = await users.authenticate("Maria@gmail.com", "correct horse")
        assert user is not None
        assert user.email == "maria@gmail.com"

    async def test_wrong_password(self, users):
        """Test that a wrong password returns None."""
        await users.register_user("maria@gmail.com", "correct horse")
        assert await users.authenticate("maria@gmail.com", "battery staple") is None

    async def test_unknown_user(self, users):
        """Test that unknown addresses return None."""
        assert await users.authenticate("nobody@gmail.com", "correct horse") is None

    async def test_get_user(self, users):
        """Test that get_user finds registered accounts only."""
        await users.register_user("maria@gmail.com", "correct horse")
        assert (await users.get_user("maria@gmail.com")).plan == "free"
        assert await users.get_user("nobody@gmail.com") is None
