"""Shared pytest fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from kvauth.config import Config
from kvauth.core.core import Core
from kvauth.core.kv import KVNamespaces

START_TIME = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class MockRouter:
    """Routes requests of an ``httpx.MockTransport`` by URL and records them."""

    def __init__(self) -> None:
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, url: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[url] = handler

    def calls_to(self, url: str) -> list[httpx.Request]:
        return [request for request in self.requests if str(request.url) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(str(request.url))
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stores(clock):
    return KVNamespaces.in_memory(clock)


@pytest.fixture
def config():
    return Config(_env_file=None, kv_backend="memory", cookie_secure=False)


@pytest.fixture
def http_router():
    return MockRouter()


@pytest.fixture
async def http_client(http_router) -> AsyncGenerator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(http_router)) as client:
        yield client


@pytest.fixture
def core(config, stores, http_client, clock):
    """Core wired to memory stores, a mocked HTTP transport and the fake clock."""
    return Core(config, stores=stores, http_client=http_client, clock=clock)
