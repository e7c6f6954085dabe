from datetime import timedelta
from typing import Any

from kvauth.core.kv import Clock, KVStore, WriteOutcome, safe_kv_write
from kvauth.core.modules.audit.models import AuditEvent, audit_key
from kvauth.utils import now, random_suffix

THROTTLE_WINDOW = timedelta(hours=1)


class ThrottledLogger:
    """Audit writer capped at a fixed number of writes per rolling hour.

    The counter is process-local. It bounds write amplification under abuse
    and is not an exact cross-instance count.
    """

    def __init__(
        self, store: KVStore, max_logs_per_hour: int, expiration_ttl: int, clock: Clock = now
    ) -> None:
        self._store = store
        self._clock = clock
        self.max_logs_per_hour = max_logs_per_hour
        self.expiration_ttl = expiration_ttl
        self.count = 0
        self.window_start = clock()

    async def log(self, kind: str, data: dict[str, Any], expiration_ttl: int | None = None) -> WriteOutcome:
        current = self._clock()
        if current - self.window_start > THROTTLE_WINDOW:
            self.count = 0
            self.window_start = current

        if self.count >= self.max_logs_per_hour:
            return WriteOutcome.THROTTLED

        ip = data.get("ip")
        entry = AuditEvent(event=kind, details=data, time=current, ip=str(ip) if ip else None)
        key = audit_key("security", kind, current, random_suffix(9))
        try:
            outcome = await safe_kv_write(
                lambda: self._store.put(key, entry.model_dump_json(), expiration_ttl=expiration_ttl or self.expiration_ttl),
                f"throttled log: {kind}",
            )
        except Exception:
            return WriteOutcome.FAILED

        if outcome is WriteOutcome.WRITTEN:
            self.count += 1
        return outcome
