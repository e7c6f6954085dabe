"""Session cookie encoding.

The cookie carries nothing but the opaque session identifier.
"""

SESSION_COOKIE_NAME = "session"
DEFAULT_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


def parse_session_cookie(cookie_header: str | None) -> str | None:
    """Extract the session identifier from a raw ``Cookie`` header."""
    if not cookie_header:
        return None
    for part in cookie_header.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name == SESSION_COOKIE_NAME:
            return value.strip() or None
    return None


def build_session_cookie(
    session_id: str,
    max_age: int = DEFAULT_COOKIE_MAX_AGE,
    *,
    http_only: bool = True,
    secure: bool = True,
    same_site: str | None = "Strict",
    domain: str | None = None,
    path: str | None = "/",
) -> str:
    """Build a ``Set-Cookie`` value. ``max_age=0`` clears the cookie on the client."""
    parts = [f"{SESSION_COOKIE_NAME}={session_id}"]
    if http_only:
        parts.append("HttpOnly")
    if secure:
        parts.append("Secure")
    if same_site:
        parts.append(f"SameSite={same_site}")
    parts.append(f"Max-Age={max_age}")
    if domain:
        parts.append(f"Domain={domain}")
    if path:
        parts.append(f"Path={path}")
    return "; ".join(parts)
