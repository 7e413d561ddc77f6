"""Shared fixtures for the Pylon MCP test suite."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator

import httpx
import pytest
import pytest_asyncio
import respx

from pylon_mcp.pylon.client import PylonClient
from pylon_mcp.services.client import ServiceClient
from pylon_mcp.services.retry import RetryEngine, RetryPolicy

BASE_URL = "https://api.usepylon.com"


class RecordingSleep:
    """Stands in for asyncio.sleep and records every requested delay (seconds)."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def status_error(
    status: int,
    json: object | None = None,
    headers: dict[str, str] | None = None,
    content: bytes | None = None,
) -> httpx.HTTPStatusError:
    """Build the error httpx raises from raise_for_status()."""
    request = httpx.Request("GET", f"{BASE_URL}/issues")
    if json is not None:
        response = httpx.Response(status, json=json, headers=headers, request=request)
    else:
        response = httpx.Response(
            status, content=content or b"", headers=headers, request=request
        )
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def pylon_api() -> Iterator[respx.MockRouter]:
    """Mock the Pylon API at the httpx transport level."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as mock:
        yield mock


@pytest_asyncio.fixture
async def make_service_client(
    sleep: RecordingSleep,
) -> AsyncIterator[Callable[..., ServiceClient]]:
    """Factory for ServiceClients wired to the recording sleep."""
    clients: list[ServiceClient] = []

    def factory(
        cache_ttl_ms: int = 30000,
        cache_max_size: int = 1000,
        max_retries: int = 3,
        base_delay_ms: int = 10,
    ) -> ServiceClient:
        client = ServiceClient(
            service_id="pylon",
            service_name="Pylon API",
            base_url=BASE_URL,
            headers={"Authorization": "Bearer test-token"},
            cache_ttl_ms=cache_ttl_ms,
            cache_max_size=cache_max_size,
            retry_engine=RetryEngine(
                RetryPolicy(max_retries=max_retries, base_delay_ms=base_delay_ms),
                sleep=sleep,
            ),
        )
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


@pytest.fixture
def make_pylon(
    make_service_client: Callable[..., ServiceClient],
) -> Callable[..., PylonClient]:
    """Factory for PylonClients on top of test ServiceClients."""

    def factory(**kwargs) -> PylonClient:
        return PylonClient(api_token="test-token", client=make_service_client(**kwargs))

    return factory
