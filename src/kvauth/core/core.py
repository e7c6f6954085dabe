from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, cast
from urllib.parse import urlparse

import httpx
from pymongo import AsyncMongoClient

from kvauth.config import Config
from kvauth.core.kv import Clock, KVNamespaces
from kvauth.utils import now


class Service:
    """Base class for services with direct key-value store access."""

    def __init__(self, stores: KVNamespaces) -> None:
        self.stores = stores
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from kvauth.core.modules.audit.service import AuditService  # noqa: PLC0415
    from kvauth.core.modules.captcha.service import CaptchaService  # noqa: PLC0415
    from kvauth.core.modules.email_validation.service import EmailValidationService  # noqa: PLC0415
    from kvauth.core.modules.mail.service import MailService  # noqa: PLC0415
    from kvauth.core.modules.ratelimit.service import RateLimitService  # noqa: PLC0415
    from kvauth.core.modules.session.service import SessionService  # noqa: PLC0415
    from kvauth.core.modules.user.service import UserService  # noqa: PLC0415

    audit: AuditService
    session: SessionService
    rate_limit: RateLimitService
    email_validation: EmailValidationService
    user: UserService
    captcha: CaptchaService
    mail: MailService

    def __init__(self, stores: KVNamespaces) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._stores = stores

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("audit", "kvauth.core.modules.audit.service", "AuditService"),
            ("session", "kvauth.core.modules.session.service", "SessionService"),
            ("rate_limit", "kvauth.core.modules.ratelimit.service", "RateLimitService"),
            ("email_validation", "kvauth.core.modules.email_validation.service", "EmailValidationService"),
            ("user", "kvauth.core.modules.user.service", "UserService"),
            ("captcha", "kvauth.core.modules.captcha.service", "CaptchaService"),
            ("mail", "kvauth.core.modules.mail.service", "MailService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(stores)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop all services that have cleanup logic."""
        for service in self._services:
            await service.on_stop()


class Core:
    """Container providing config, stores, shared clients, and all service instances.

    Process-local state that outlives a single request (the throttled audit
    logger, the disposable-domain blocklist cache, the resolved email provider)
    is owned here and reached through ``service.core``, never through module globals.
    """

    config: Config
    clock: Clock
    stores: KVNamespaces
    http: httpx.AsyncClient
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    services: Services

    def __init__(
        self,
        config: Config,
        stores: KVNamespaces | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = now,
    ) -> None:
        """Initialize core with config, KV namespaces, and auto-register services."""
        from kvauth.core.modules.audit.throttle import ThrottledLogger  # noqa: PLC0415
        from kvauth.core.modules.email_validation.blocklist import BlocklistCache  # noqa: PLC0415
        from kvauth.core.modules.mail.providers import resolve_provider  # noqa: PLC0415

        self.config = config
        self.clock = clock
        self.mongo_client = None
        if stores is None:
            stores = self._create_stores(config, clock)
        self.stores = stores
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient()

        self.throttled_logger = ThrottledLogger(
            stores.audit,
            max_logs_per_hour=config.max_logs_per_hour,
            expiration_ttl=config.audit_log_ttl,
            clock=clock,
        )
        self.blocklist = BlocklistCache(
            stores.audit,
            self.http,
            source_url=config.blocklist_url,
            freshness=timedelta(seconds=config.blocklist_cache_duration),
            retry_interval=timedelta(seconds=config.blocklist_retry_interval),
            store_ttl=timedelta(seconds=config.blocklist_store_ttl),
            clock=clock,
        )
        self.mail_provider = resolve_provider(config, self.http)

        self.services = Services(stores)
        self.services.set_core(self)

    def _create_stores(self, config: Config, clock: Clock) -> KVNamespaces:
        if config.kv_backend == "memory":
            return KVNamespaces.in_memory(clock)
        if config.kv_backend != "mongo":
            raise ValueError(f"Unknown KV backend '{config.kv_backend}'")
        self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
        database = self.mongo_client.get_database(urlparse(config.database_url).path[1:] or "kvauth")
        return KVNamespaces.from_mongo(database, clock)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Create store indexes and start all services."""
        await self.stores.ensure_indexes()
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close owned connections."""
        await self.services.stop_all()
        if self._owns_http:
            await self.http.aclose()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
