"""Namespaced key-value storage with per-key TTL.

Values are opaque strings (JSON in practice). Every backend honours the same
contract: ``get`` never returns an expired value, ``delete`` of a missing key is
a no-op, and a backend that runs out of write quota raises ``KVLimitExceededError``.
"""

import re
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Protocol

import structlog
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase

from kvauth.utils import now

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


class KVLimitExceededError(Exception):
    """Raised by a store when its write quota is exhausted."""

    def __init__(self, message: str = "KV put() limit exceeded") -> None:
        super().__init__(message)


class WriteOutcome(StrEnum):
    """Result of a best-effort write."""

    WRITTEN = "written"
    QUOTA_EXCEEDED = "quota_exceeded"
    THROTTLED = "throttled"
    FAILED = "failed"


class KVStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def put(self, key: str, value: str, expiration_ttl: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def list(self, prefix: str | None = None) -> list[str]: ...


class MemoryKVStore:
    """In-process store with lazy expiry and an optional write quota."""

    def __init__(self, clock: Clock = now, write_limit: int | None = None) -> None:
        self._clock = clock
        self._items: dict[str, tuple[str, datetime | None]] = {}
        self.write_limit = write_limit
        self.writes = 0

    async def get(self, key: str) -> str | None:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._items[key]
            return None
        return value

    async def put(self, key: str, value: str, expiration_ttl: int | None = None) -> None:
        if self.write_limit is not None and self.writes >= self.write_limit:
            raise KVLimitExceededError
        expires_at = self._clock() + timedelta(seconds=expiration_ttl) if expiration_ttl else None
        self._items[key] = (value, expires_at)
        self.writes += 1

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)

    async def list(self, prefix: str | None = None) -> list[str]:
        current = self._clock()
        return sorted(
            key
            for key, (_, expires_at) in self._items.items()
            if (prefix is None or key.startswith(prefix)) and (expires_at is None or expires_at > current)
        )


class MongoKVStore:
    """Store backed by one MongoDB collection per namespace.

    Documents look like ``{_id: key, value: str, expires_at: datetime | None}``.
    A TTL index on ``expires_at`` removes dead keys; reads filter on it too since
    the TTL monitor only runs periodically.
    """

    def __init__(self, collection: AsyncCollection[dict[str, Any]], clock: Clock = now) -> None:
        self._collection = collection
        self._clock = clock

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    def _live(self) -> dict[str, Any]:
        return {"$or": [{"expires_at": None}, {"expires_at": {"$gt": self._clock()}}]}

    async def get(self, key: str) -> str | None:
        doc = await self._collection.find_one({"_id": key, **self._live()})
        if doc is None:
            return None
        return str(doc["value"])

    async def put(self, key: str, value: str, expiration_ttl: int | None = None) -> None:
        expires_at = self._clock() + timedelta(seconds=expiration_ttl) if expiration_ttl else None
        await self._collection.replace_one(
            {"_id": key}, {"_id": key, "value": value, "expires_at": expires_at}, upsert=True
        )

    async def delete(self, key: str) -> None:
        await self._collection.delete_one({"_id": key})

    async def list(self, prefix: str | None = None) -> list[str]:
        query = self._live()
        if prefix:
            query = {"_id": {"$regex": f"^{re.escape(prefix)}"}, **query}
        cursor = self._collection.find(query, projection={"_id": 1}).sort("_id", 1)
        return [str(doc["_id"]) async for doc in cursor]


class KVNamespaces:
    """The logical stores the application works with."""

    def __init__(self, sessions: KVStore, users: KVStore, audit: KVStore) -> None:
        self.sessions = sessions
        self.users = users
        self.audit = audit  # Audit events, rate-limit counters and the blocklist cache

    @classmethod
    def in_memory(cls, clock: Clock = now) -> "KVNamespaces":
        return cls(MemoryKVStore(clock), MemoryKVStore(clock), MemoryKVStore(clock))

    @classmethod
    def from_mongo(cls, database: AsyncDatabase[dict[str, Any]], clock: Clock = now) -> "KVNamespaces":
        return cls(
            MongoKVStore(database.get_collection("kv_sessions"), clock),
            MongoKVStore(database.get_collection("kv_users"), clock),
            MongoKVStore(database.get_collection("kv_audit"), clock),
        )

    async def ensure_indexes(self) -> None:
        for store in (self.sessions, self.users, self.audit):
            if isinstance(store, MongoKVStore):
                await store.ensure_indexes()


async def safe_kv_write(write: Callable[[], Awaitable[None]], operation: str = "KV write") -> WriteOutcome:
    """Run a store write, downgrading quota exhaustion to a warning.

    Any other error is logged and re-raised.
    """
    try:
        await write()
    except KVLimitExceededError:
        logger.warning("kv_write_limit_exceeded", operation=operation)
        return WriteOutcome.QUOTA_EXCEEDED
    except Exception:
        logger.exception("kv_write_failed", operation=operation)
        raise
    return WriteOutcome.WRITTEN
