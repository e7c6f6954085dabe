"""Static rules for email legitimacy checks.

These are heuristics: they block low-effort abuse and accept that some real
addresses will be rejected.
"""

import re

from kvauth.core.modules.email_validation.models import ReasonCode

EMAIL_SHAPE_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# A blocklist line must look like a hostname before it is trusted
DOMAIN_LINE_RE = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9-]{2,63}$")

# Used when neither the remote list nor a stored copy is available
FALLBACK_DISPOSABLE_DOMAINS = frozenset(
    {
        # 10MinuteMail and similar
        "10minutemail.com",
        "10minutemail.net",
        "10minutemail.org",
        "guerrillamail.com",
        "guerrillamail.net",
        "guerrillamail.org",
        "mailinator.com",
        "mailinator.net",
        "mailinator2.com",
        "tempmail.org",
        "temp-mail.org",
        "temporary-mail.net",
        "throwaway.email",
        "trashmail.com",
        "yopmail.com",
        "maildrop.cc",
        "sharklasers.com",
        "grr.la",
        "dispostable.com",
        "tempail.com",
        "getnada.com",
        # Reserved and placeholder domains
        "example.com",
        "example.org",
        "test.com",
        "test.org",
        "fake.com",
        "invalid.com",
        "localhost.com",
        # Spam relays
        "spam4.me",
        "spamgourmet.com",
        "spamhole.com",
        "emailondeck.com",
        "fakeinbox.com",
        "mytrashmail.com",
        "no-spam.ws",
        "nospam.ze.tc",
        "deadaddress.com",
        "mohmal.com",
        "rootfest.net",
        "anonymbox.com",
        "bugmenot.com",
        "deadfake.cf",
        "mailcatch.com",
        "mailscrap.com",
        "us.to",
        "mvrht.com",
    }
)

# Any match rejects the address
SUSPICIOUS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^[a-z]{1,3}\d{4,}@", re.IGNORECASE),  # abc12345@
    re.compile(r"^\d{6,}@"),
    re.compile(r"^[a-z]+\d{10,}@", re.IGNORECASE),
    re.compile(r"^test\d*@", re.IGNORECASE),
    re.compile(r"^spam\d*@", re.IGNORECASE),
    re.compile(r"^fake\d*@", re.IGNORECASE),
    re.compile(r"^temp\d*@", re.IGNORECASE),
    re.compile(r"^noreply\d*@", re.IGNORECASE),
    re.compile(r"^info\d*@", re.IGNORECASE),
    re.compile(r"^[a-z]{1,2}@", re.IGNORECASE),
    re.compile(r"^[a-z]+[._-][a-z]+[._-][a-z]+@", re.IGNORECASE),
    re.compile(r"\+.*\+.*@"),
    re.compile(r"\.{2,}"),
    re.compile(r"\.(ru|tk|ml|ga|cf)$", re.IGNORECASE),
)

MIN_DOMAIN_LENGTH = 4

ERROR_MESSAGES: dict[ReasonCode, str] = {
    ReasonCode.INVALID_FORMAT: "Please enter a valid email address.",
    ReasonCode.DISPOSABLE: (
        "Temporary or disposable email addresses are not allowed. Please use a permanent email address."
    ),
    ReasonCode.SUSPICIOUS_PATTERN: "This email format is not allowed. Please use a different email address.",
    ReasonCode.DOMAIN_TOO_SHORT: "Please use an email with a valid domain name.",
    ReasonCode.NUMERIC_DOMAIN: "Please use an email with a standard domain name.",
    ReasonCode.INVALID_DOMAIN_STRUCTURE: "Please enter a valid email address with a proper domain.",
}


def email_error_message(reason: ReasonCode | None) -> str:
    """User-facing message for a rejection reason."""
    if reason is None:
        return ERROR_MESSAGES[ReasonCode.INVALID_FORMAT]
    return ERROR_MESSAGES.get(reason, ERROR_MESSAGES[ReasonCode.INVALID_FORMAT])


def match_suspicious_pattern(email: str) -> re.Pattern[str] | None:
    return next((pattern for pattern in SUSPICIOUS_PATTERNS if pattern.search(email)), None)


def check_domain_shape(domain: str) -> ReasonCode | None:
    """Require a dotted domain with a real TLD and no all-digit labels."""
    if len(domain) < MIN_DOMAIN_LENGTH:
        return ReasonCode.DOMAIN_TOO_SHORT
    labels = domain.split(".")
    if len(labels) < 2 or len(labels[-1]) < 2 or not all(labels):  # noqa: PLR2004
        return ReasonCode.INVALID_DOMAIN_STRUCTURE
    if any(label.isdigit() for label in labels):
        return ReasonCode.NUMERIC_DOMAIN
    return None


def parse_blocklist(text: str) -> frozenset[str]:
    """Parse a newline-delimited domain list, skipping comments and junk lines."""
    domains = set()
    for line in text.splitlines():
        entry = line.strip().lower()
        if not entry or entry.startswith("#"):
            continue
        if DOMAIN_LINE_RE.fullmatch(entry):
            domains.add(entry)
    return frozenset(domains)
