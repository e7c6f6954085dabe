import math
from datetime import datetime, timedelta

import structlog

from kvauth.core.core import Service
from kvauth.core.kv import KVNamespaces, WriteOutcome, safe_kv_write
from kvauth.core.modules.ratelimit.models import RateLimitRecord, RateLimitResult

logger = structlog.get_logger(__name__)

TTL_BUFFER_SECONDS = 60


def rate_limit_key(action: str, client: str) -> str:
    return f"ratelimit:{action}:{client}"


class RateLimitService(Service):
    """Per-(action, client) sliding-window counters kept in the audit store.

    The read-modify-write is not atomic, so concurrent bursts may admit a few
    requests over the limit.
    """

    def __init__(self, stores: KVNamespaces) -> None:
        super().__init__(stores)
        self._store = stores.audit

    async def check_and_record(self, action: str, client: str, limit: int, window_ms: int) -> RateLimitResult:
        """Count a request against the limit, recording it only when allowed.

        Any store failure fails open: the request is allowed and the result is
        marked degraded.
        """
        key = rate_limit_key(action, client)
        current = self.core.clock()
        window = timedelta(milliseconds=window_ms)
        window_start = current - window

        try:
            requests: list[datetime] = []
            raw = await self._store.get(key)
            if raw:
                requests = [ts for ts in RateLimitRecord.model_validate_json(raw).requests if ts > window_start]

            if len(requests) >= limit:
                oldest = min(requests, default=current)
                return RateLimitResult(allowed=False, remaining=0, reset_at=oldest + window)

            requests.append(current)
            record = RateLimitRecord(requests=requests)
            outcome = await safe_kv_write(
                lambda: self._store.put(
                    key, record.model_dump_json(), expiration_ttl=math.ceil(window_ms / 1000) + TTL_BUFFER_SECONDS
                ),
                f"rate limit update for {action}",
            )
            return RateLimitResult(
                allowed=True,
                remaining=limit - len(requests),
                reset_at=min(requests) + window,
                degraded=outcome is not WriteOutcome.WRITTEN,
            )
        except Exception:
            logger.exception("rate_limit_check_failed", action=action, client=client)
            return RateLimitResult(allowed=True, remaining=max(limit - 1, 0), degraded=True)
