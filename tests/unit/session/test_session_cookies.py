"""Tests for session cookie encoding."""

from kvauth.core.modules.session.cookies import build_session_cookie, parse_session_cookie


class TestBuildSessionCookie:
    """Tests for build_session_cookie."""

    def test_default_attributes(self):
        """Test that the cookie is http-only, secure and strict same-site."""
        cookie = build_session_cookie("abc", max_age=3600)
        assert cookie == "session=abc; HttpOnly; Secure; SameSite=Strict; Max-Age=3600; Path=/"

    def test_logout_cookie(self):
        """Test that a zero max age produces the clearing cookie."""
        cookie = build_session_cookie("", max_age=0)
        assert cookie.startswith("session=; ")
        assert "Max-Age=0" in cookie

    def test_optional_attributes(self):
        """Test that insecure cookies and explicit domains are supported."""
        cookie = build_session_cookie("abc", max_age=60, secure=False, domain="example.org")
        assert "Secure" not in cookie
        assert "Domain=example.org" in cookie


class TestParseSessionCookie:
    """Tests for parse_session_cookie."""

    def test_extracts_session_value(self):
        """Test that the session cookie is picked out of the header."""
        assert parse_session_cookie("a=1; session=tok; b=2") == "tok"

    def test_ignores_similar_names(self):
        """Test that cookies with other names are not matched."""
        assert parse_session_cookie("old_session=tok") is None

    def test_empty_inputs(self):
        """Test that empty headers and values give None."""
        assert parse_session_cookie(None) is None
        assert parse_session_cookie("") is None
        assert parse_session_cookie("session=") is None
