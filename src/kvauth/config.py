from pydantic_settings import BaseSettings

DISPOSABLE_DOMAINS_URL = (
    "https://raw.githubusercontent.com/disposable-email-domains/disposable-email-domains/master/disposable_email_blocklist.conf"
)


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    host: str = "127.0.0.1"
    port: int = 8787
    debug: bool = False
    kv_backend: str = "mongo"  # "mongo" or "memory"
    database_url: str = "mongodb://localhost:27017/kvauth"
    base_url: str = "http://localhost:8787"
    force_https: bool = False  # Redirect plain http requests that did not pass through a TLS proxy
    cookie_secure: bool = True

    # Sessions (seconds)
    session_max_age: int = 7 * 24 * 60 * 60
    session_idle_timeout: int = 30 * 60
    session_refresh_interval: int = 5 * 60  # Minimum gap between last_activity writes
    session_expiration_ttl: int = 7 * 24 * 60 * 60

    # Rate limits per action (window in milliseconds)
    rate_limit_contact_limit: int = 5
    rate_limit_contact_window_ms: int = 15 * 60 * 1000
    rate_limit_signup_limit: int = 3
    rate_limit_signup_window_ms: int = 60 * 60 * 1000
    rate_limit_login_limit: int = 10
    rate_limit_login_window_ms: int = 15 * 60 * 1000

    # Audit logging
    max_logs_per_hour: int = 100
    audit_log_ttl: int = 30 * 24 * 60 * 60

    # Disposable-domain blocklist
    blocklist_url: str = DISPOSABLE_DOMAINS_URL
    blocklist_cache_duration: int = 24 * 60 * 60
    blocklist_retry_interval: int = 60 * 60  # Minimum gap between failed refresh attempts
    blocklist_store_ttl: int = 7 * 24 * 60 * 60  # Stored copy TTL, longer than freshness

    # Forms and third parties
    honeypot_field_name: str = "website"
    turnstile_secret_key: str | None = None
    email_provider: str = "console"  # "brevo" or "console"
    email_api_key: str | None = None
    sender_email: str | None = None
    sender_name: str = "Your App"
    owner_email: str | None = None  # Contact form recipient, defaults to sender_email

    model_config = {
        "env_file": [".env"],
        "env_prefix": "KVAUTH_",
        "extra": "ignore",
    }

    def rate_limit(self, action: str) -> tuple[int, int]:
        """Return (limit, window_ms) configured for an action."""
        return getattr(self, f"rate_limit_{action}_limit"), getattr(self, f"rate_limit_{action}_window_ms")
