from datetime import datetime, timedelta

import httpx
import structlog

from kvauth.core.kv import Clock, KVStore, WriteOutcome, safe_kv_write
from kvauth.core.modules.email_validation.models import BlocklistSnapshot, BlocklistSource, PersistedBlocklist
from kvauth.core.modules.email_validation.rules import FALLBACK_DISPOSABLE_DOMAINS, parse_blocklist
from kvauth.utils import now

logger = structlog.get_logger(__name__)

BLOCKLIST_CACHE_KEY = "cache:disposable_domains"


class BlocklistCache:
    """Disposable-domain set with a freshness window and layered fallback.

    Lookup order: fresh in-memory set, fresh stored copy, remote refresh, then
    whatever is left (stale memory, stale stored copy, built-in list). A failed
    refresh is not retried until ``retry_interval`` has passed. ``snapshot``
    never raises.

    Freshness is judged by ``fetched_at``. The stored copy lives for
    ``store_ttl`` so a new process can still fall back to it once stale.
    """

    def __init__(
        self,
        store: KVStore,
        http: httpx.AsyncClient,
        source_url: str,
        freshness: timedelta = timedelta(hours=24),
        retry_interval: timedelta = timedelta(hours=1),
        store_ttl: timedelta = timedelta(days=7),
        clock: Clock = now,
        fallback: frozenset[str] = FALLBACK_DISPOSABLE_DOMAINS,
    ) -> None:
        self._store = store
        self._http = http
        self._clock = clock
        self.source_url = source_url
        self.freshness = freshness
        self.retry_interval = retry_interval
        self.store_ttl = store_ttl
        self.fallback = fallback
        self._domains: frozenset[str] | None = None
        self._fetched_at: datetime | None = None
        self._source = BlocklistSource.FALLBACK
        self._last_attempt: datetime | None = None

    def _is_fresh(self, fetched_at: datetime | None, at: datetime) -> bool:
        return fetched_at is not None and at - fetched_at < self.freshness

    def _snapshot(self, at: datetime) -> BlocklistSnapshot:
        if self._domains is None:
            return BlocklistSnapshot(domains=self.fallback, source=BlocklistSource.FALLBACK, stale=True)
        return BlocklistSnapshot(
            domains=self._domains,
            source=self._source,
            fetched_at=self._fetched_at,
            stale=not self._is_fresh(self._fetched_at, at),
        )

    def _remember(self, domains: frozenset[str], fetched_at: datetime, source: BlocklistSource) -> None:
        self._domains = domains
        self._fetched_at = fetched_at
        self._source = source

    async def snapshot(self) -> BlocklistSnapshot:
        """Return the best available domain set, refreshing it if stale."""
        current = self._clock()
        if self._domains is not None and self._is_fresh(self._fetched_at, current):
            return self._snapshot(current)

        if self._domains is None:
            persisted = await self._load_persisted()
            if persisted is not None:
                self._remember(frozenset(persisted.domains), persisted.fetched_at, BlocklistSource.STORE)
                if self._is_fresh(persisted.fetched_at, current):
                    return self._snapshot(current)

        if self._last_attempt is None or current - self._last_attempt >= self.retry_interval:
            self._last_attempt = current
            domains = await self._fetch_remote()
            if domains is not None:
                self._remember(domains, current, BlocklistSource.REMOTE)
                await self._persist(domains, current)
                return self._snapshot(current)

        return self._snapshot(current)

    async def _fetch_remote(self) -> frozenset[str] | None:
        try:
            response = await self._http.get(self.source_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("blocklist_fetch_failed", url=self.source_url, error=str(e))
            return None

        domains = parse_blocklist(response.text)
        if not domains:
            logger.warning("blocklist_fetch_empty", url=self.source_url)
            return None
        logger.info("blocklist_refreshed", domain_count=len(domains))
        return domains

    async def _load_persisted(self) -> PersistedBlocklist | None:
        try:
            raw = await self._store.get(BLOCKLIST_CACHE_KEY)
            if raw is None:
                return None
            return PersistedBlocklist.model_validate_json(raw)
        except Exception:
            logger.exception("blocklist_load_failed")
            return None

    async def _persist(self, domains: frozenset[str], fetched_at: datetime) -> WriteOutcome:
        payload = PersistedBlocklist(domains=sorted(domains), fetched_at=fetched_at).model_dump_json()
        ttl = int(self.store_ttl.total_seconds())
        try:
            return await safe_kv_write(
                lambda: self._store.put(BLOCKLIST_CACHE_KEY, payload, expiration_ttl=ttl),
                "blocklist cache update",
            )
        except Exception:
            return WriteOutcome.FAILED
