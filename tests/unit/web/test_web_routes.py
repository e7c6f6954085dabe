"""Tests for the HTTP surface, run against the memory backend."""

from collections.abc import Callable, Iterator
from contextlib import ExitStack
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from kvauth.app import App
from kvauth.config import Config
from kvauth.core.core import Core
from kvauth.core.kv import KVNamespaces, MemoryKVStore
from kvauth.core.modules.captcha.service import TURNSTILE_VERIFY_URL
from kvauth.core.modules.user.service import user_key
from kvauth.utils import to_epoch_ms
from kvauth.web.server import create_fastapi_app

PASSWORD = "correct horse"

ClientFactory = Callable[..., TestClient]


@pytest.fixture
def make_client(http_router, clock) -> Iterator[ClientFactory]:
    """Build a TestClient around a fresh App. Extra keyword arguments override config fields."""
    with ExitStack() as stack:

        def factory(stores: KVNamespaces | None = None, **overrides) -> TestClient:
            config = Config(_env_file=None, kv_backend="memory", cookie_secure=False, **overrides)
            http_client = httpx.AsyncClient(transport=httpx.MockTransport(http_router))
            core = Core(config, stores=stores or KVNamespaces.in_memory(clock), http_client=http_client, clock=clock)
            fastapi_app = create_fastapi_app(App(config, core=core), config)
            client = stack.enter_context(TestClient(fastapi_app, raise_server_exceptions=False))
            stack.callback(client.portal.call, http_client.aclose)
            return client

        yield factory


@pytest.fixture
def client(make_client):
    return make_client()


def signup(client, email="maria@gmail.com", password=PASSWORD, headers=None, **extra):
    data = {"email": email, "password": password, **extra}
    return client.post("/signup", data=data, headers=headers, follow_redirects=False)


def login(client, email="maria@gmail.com", password=PASSWORD, **kwargs):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=False, **kwargs)


class TestPages:
    """Tests for static and session-aware pages."""

    def test_health(self, client):
        """Test that the health endpoint responds."""
        assert client.get("/health").json() == {"status": "healthy"}

    def test_home_for_anonymous_visitor(self, client):
        """Test that the home page offers signup and login."""
        response = client.get("/")
        assert response.status_code == 200
        assert 'href="/signup"' in response.text

    def test_security_headers(self, client):
        """Test that every response carries the security headers."""
        headers = client.get("/").headers
        assert headers["x-content-type-options"] == "nosniff"
        assert headers["x-frame-options"] == "DENY"
        assert headers["referrer-policy"] == "strict-origin-when-cross-origin"
        assert "default-src 'self'" in headers["content-security-policy"]
        assert "x-xss-protection" in headers

    def test_dashboard_requires_session(self, client):
        """Test that anonymous visitors are redirected to login."""
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"

    def test_signup_form_has_honeypot(self, client):
        """Test that the signup form carries the hidden honeypot field."""
        assert 'name="website"' in client.get("/signup").text

    def test_login_message_is_escaped(self, client):
        """Test that the message query parameter is HTML-escaped."""
        response = client.get("/login", params={"message": "<script>alert(1)</script>"})
        assert "<script>alert(1)</script>" not in response.text
        assert "&lt;script&gt;" in response.text


class TestSignup:
    """Tests for POST /signup."""

    def test_successful_signup(self, client):
        """Test that a valid signup redirects to login with a message."""
        response = signup(client)
        assert response.status_code == 302
        assert response.headers["location"].startswith("/login?message=Account%20created")

        page = client.get(response.headers["location"])
        assert "Account created! Please log in." in page.text

    def test_honeypot_fakes_success(self, make_client, clock):
        """Test that a filled honeypot looks like success but creates nothing."""
        stores = KVNamespaces.in_memory(clock)
        client = make_client(stores=stores)
        response = signup(client, website="http://spam.example")
        assert response.status_code == 302
        assert client.portal.call(stores.users.get, user_key("maria@gmail.com")) is None

    def test_disposable_email_rejected(self, client):
        """Test that disposable addresses re-render the form with the reason."""
        response = signup(client, email="someone@mailinator.com")
        assert response.status_code == 400
        assert "Temporary or disposable email addresses are not allowed" in response.text

    def test_existing_account_rejected(self, client):
        """Test that a second signup for the same address is refused."""
        signup(client)
        response = signup(client)
        assert response.status_code == 400
        assert "already exists" in response.text

    def test_weak_password_rejected(self, client):
        """Test that short passwords are refused."""
        response = signup(client, password="short")
        assert response.status_code == 400
        assert "at least 8 characters" in response.text

    def test_rate_limited(self, client, clock):
        """Test that the fourth signup within the hour is rejected with rate limit headers."""
        for _ in range(3):
            assert signup(client, website="bot").status_code == 302

        response = signup(client, website="bot")
        assert response.status_code == 429
        reset_ms = to_epoch_ms(clock() + timedelta(hours=1))
        assert response.headers["retry-after"] == "3600"
        assert response.headers["x-ratelimit-limit"] == "3"
        assert response.headers["x-ratelimit-remaining"] == "0"
        assert response.headers["x-ratelimit-reset"] == str(reset_ms)
        body = response.json()
        assert body["error"] == "Rate limit exceeded"
        assert body["resetTime"] == reset_ms
        assert "signup" in body["message"]

    def test_rate_limit_is_per_client_ip(self, client):
        """Test that the forwarded client address keys the limit."""
        for _ in range(3):
            signup(client, website="bot", headers={"CF-Connecting-IP": "203.0.113.1"})
        assert signup(client, website="bot", headers={"CF-Connecting-IP": "203.0.113.1"}).status_code == 429
        assert signup(client, website="bot", headers={"X-Forwarded-For": "203.0.113.2, 10.0.0.1"}).status_code == 302

    def test_storage_quota_returns_503(self, make_client, clock):
        """Test that an exhausted store surfaces as a temporary outage page."""
        stores = KVNamespaces(MemoryKVStore(clock), MemoryKVStore(clock, write_limit=0), MemoryKVStore(clock))
        response = signup(make_client(stores=stores))
        assert response.status_code == 503
        assert response.headers["retry-after"] == "3600"
        assert "Service Temporarily Unavailable" in response.text


class TestLoginLogout:
    """Tests for the login, dashboard and logout flow."""

    def test_login_sets_session_cookie(self, client):
        """Test that login sets a strict http-only cookie and opens the dashboard."""
        signup(client)
        response = login(client)
        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"
        cookie = response.headers["set-cookie"]
        assert cookie.startswith("session=")
        assert "HttpOnly" in cookie
        assert "SameSite=Strict" in cookie
        assert "Max-Age=604800" in cookie

        dashboard = client.get("/dashboard", follow_redirects=False)
        assert dashboard.status_code == 200
        assert "maria@gmail.com" in dashboard.text
        assert "free" in dashboard.text

    def test_wrong_password(self, client):
        """Test that bad credentials re-render the form with 401."""
        signup(client)
        response = login(client, password="battery staple")
        assert response.status_code == 401
        assert "Invalid credentials" in response.text
        assert "set-cookie" not in response.headers

    def test_logout_clears_session(self, client):
        """Test that logout destroys the session and clears the cookie."""
        signup(client)
        login(client)
        response = client.get("/logout", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert "Max-Age=0" in response.headers["set-cookie"]

        assert client.get("/dashboard", follow_redirects=False).status_code == 302

    def test_idle_session_expires(self, client, clock):
        """Test that the dashboard is closed again after the idle timeout."""
        signup(client)
        login(client)
        clock.advance(minutes=31)
        assert client.get("/dashboard", follow_redirects=False).status_code == 302


class TestContact:
    """Tests for POST /api/contact."""

    @pytest.fixture
    def contact_client(self, make_client, http_router):
        http_router.add(TURNSTILE_VERIFY_URL, lambda request: httpx.Response(200, json={"success": True}))
        return make_client(turnstile_secret_key="secret", owner_email="owner@myapp.io")

    @staticmethod
    def payload(**overrides):
        return {
            "name": "Maria",
            "email": "maria@gmail.com",
            "message": "Hello there",
            "turnstileToken": "token",
            **overrides,
        }

    def test_message_sent(self, contact_client, http_router):
        """Test that a valid submission is verified and delivered."""
        response = contact_client.post("/api/contact", json=self.payload())
        assert response.status_code == 200
        assert response.json() == {"message": "Message sent!"}
        assert len(http_router.calls_to(TURNSTILE_VERIFY_URL)) == 1

    def test_missing_fields(self, contact_client):
        """Test that empty fields are a JSON validation error."""
        response = contact_client.post("/api/contact", json=self.payload(message=""))
        assert response.status_code == 400
        assert response.json() == {"message": "Missing fields", "type": "validation_error"}

    def test_disposable_email(self, contact_client):
        """Test that disposable senders are rejected before the CAPTCHA check."""
        response = contact_client.post("/api/contact", json=self.payload(email="someone@yopmail.com"))
        assert response.status_code == 400
        assert "disposable" in response.json()["message"]

    def test_captcha_failure(self, contact_client, http_router):
        """Test that a rejected CAPTCHA is a 403."""
        http_router.add(TURNSTILE_VERIFY_URL, lambda request: httpx.Response(200, json={"success": False}))
        response = contact_client.post("/api/contact", json=self.payload())
        assert response.status_code == 403
        assert response.json()["type"] == "access_denied"

    def test_missing_turnstile_secret(self, client):
        """Test that a server without a CAPTCHA secret answers with a generic 500 carrying the security headers."""
        response = client.post("/api/contact", json=self.payload())
        assert response.status_code == 500
        assert response.json() == {"message": "An unexpected error occurred.", "type": "internal_server_error"}
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
        assert "content-security-policy" in response.headers

    def test_rate_limited(self, contact_client):
        """Test that the sixth message within the window is rejected."""
        for _ in range(5):
            assert contact_client.post("/api/contact", json=self.payload()).status_code == 200
        response = contact_client.post("/api/contact", json=self.payload())
        assert response.status_code == 429
        assert response.headers["x-ratelimit-limit"] == "5"


class TestHttpsRedirect:
    """Tests for the optional HTTPS redirect."""

    def test_plain_http_is_redirected(self, make_client):
        """Test that direct http requests are sent to https, with the security headers."""
        response = make_client(force_https=True).get("/", follow_redirects=False)
        assert response.status_code == 301
        assert response.headers["location"] == "https://testserver/"
        assert response.headers["x-content-type-options"] == "nosniff"

    def test_proxied_request_is_served(self, make_client):
        """Test that requests that came through a TLS proxy are served."""
        response = make_client(force_https=True).get("/", headers={"X-Forwarded-Proto": "https"})
        assert response.status_code == 200
