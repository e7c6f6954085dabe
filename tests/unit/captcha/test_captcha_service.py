"""Tests for Turnstile verification."""

from urllib.parse import parse_qs

import httpx
import pytest

from kvauth.config import Config
from kvauth.core.core import Core
from kvauth.core.modules.captcha.service import TURNSTILE_VERIFY_URL


@pytest.fixture
def captcha(stores, http_client, clock):
    config = Config(_env_file=None, kv_backend="memory", turnstile_secret_key="secret")
    return Core(config, stores=stores, http_client=http_client, clock=clock).services.captcha


class TestCaptchaService:
    """Tests for CaptchaService.verify."""

    async def test_successful_verification(self, captcha, http_router):
        """Test that a success response verifies and the secret, token and IP are sent."""
        http_router.add(TURNSTILE_VERIFY_URL, lambda request: httpx.Response(200, json={"success": True}))
        assert await captcha.verify("token-123", "1.2.3.4")

        [request] = http_router.calls_to(TURNSTILE_VERIFY_URL)
        form = parse_qs(request.content.decode())
        assert form == {"secret": ["secret"], "response": ["token-123"], "remoteip": ["1.2.3.4"]}

    async def test_rejected_token(self, captcha, http_router):
        """Test that success false fails verification."""
        http_router.add(
            TURNSTILE_VERIFY_URL,
            lambda request: httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]}),
        )
        assert not await captcha.verify("bad-token")

    async def test_http_error(self, captcha, http_router):
        """Test that an error status fails verification."""
        http_router.add(TURNSTILE_VERIFY_URL, lambda request: httpx.Response(500))
        assert not await captcha.verify("token")

    async def test_malformed_response(self, captcha, http_router):
        """Test that a non-JSON body fails verification."""
        http_router.add(TURNSTILE_VERIFY_URL, lambda request: httpx.Response(200, text="<html>"))
        assert not await captcha.verify("token")

    async def test_missing_secret(self, core):
        """Test that verification without a secret is a configuration error."""
        assert not core.services.captcha.enabled
        with pytest.raises(RuntimeError, match="not configured"):
            await core.services.captcha.verify("token")
