"""
ServiceClient - Async HTTP access layer with caching, retries and error enrichment.

Combines:
- ResponseCache for read results
- RetryEngine for transient failures on idempotent operations
- enrich_error for the terminal failure a caller sees
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from loguru import logger

from pylon_mcp.services.cache import (
    DEFAULT_MAX_SIZE,
    DEFAULT_TTL_MS,
    ResponseCache,
)
from pylon_mcp.services.errors import enrich_error
from pylon_mcp.services.retry import RetryEngine, RetryPolicy

REQUEST_TIMEOUT_SECONDS = 30.0


class OperationKind(str, Enum):
    """What an endpoint call does to remote state."""

    READ = "read"  # GET, cached
    QUERY = "query"  # POST search body, no side effects
    UPDATE = "update"  # PATCH/PUT, repeatable
    DELETE = "delete"  # repeatable
    CREATE = "create"  # POST that creates or appends; never resubmitted


RETRY_SAFE_OPERATIONS = frozenset(
    {
        OperationKind.READ,
        OperationKind.QUERY,
        OperationKind.UPDATE,
        OperationKind.DELETE,
    }
)
CACHEABLE_OPERATIONS = frozenset({OperationKind.READ})


@dataclass(frozen=True)
class RequestDescriptor:
    """One logical request against the remote API."""

    method: str
    path: str
    operation: OperationKind
    params: dict[str, Any] | None = None
    json_data: Any = None
    data: dict[str, Any] | None = None
    files: dict[str, Any] | None = None

    @property
    def retryable(self) -> bool:
        return self.operation in RETRY_SAFE_OPERATIONS

    @property
    def cacheable(self) -> bool:
        return self.operation in CACHEABLE_OPERATIONS

    @property
    def query_params(self) -> dict[str, Any] | None:
        if not self.params:
            return None
        return {k: v for k, v in self.params.items() if v is not None} or None

    def describe(self) -> str:
        return f"{self.method} {self.path}"


def generate_cache_key(request: RequestDescriptor) -> str:
    """Canonical key: identical logical requests map to identical keys."""
    params = json.dumps(
        request.query_params or {},
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )
    return f"{request.method.upper()}:{request.path}:{params}"


class ServiceClient:
    """
    HTTP access facade every endpoint method calls through.

    Usage:
        async with ServiceClient(
            service_id="pylon",
            service_name="Pylon API",
            base_url="https://api.usepylon.com",
            headers={"Authorization": "Bearer ..."},
        ) as client:
            issues = await client.cached_read(
                RequestDescriptor("GET", "/issues", OperationKind.READ)
            )
    """

    def __init__(
        self,
        service_id: str,
        service_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        cache_ttl_ms: int = DEFAULT_TTL_MS,
        cache_max_size: int = DEFAULT_MAX_SIZE,
        retry_policy: RetryPolicy | None = None,
        retry_engine: RetryEngine | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ):
        self.service_id = service_id
        self.service_name = service_name
        self._base_url = base_url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport
        self._debug = debug

        # No store at all when caching is disabled
        self._cache: ResponseCache | None = (
            ResponseCache(ttl_ms=cache_ttl_ms, max_size=cache_max_size, debug=debug)
            if cache_ttl_ms > 0
            else None
        )
        self._retry = retry_engine or RetryEngine(retry_policy)

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry.policy

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._http_client

    async def request(self, request: RequestDescriptor) -> Any:
        """Route a request through the cached or uncached path by its kind."""
        if request.cacheable:
            return await self.cached_read(request)
        return await self.uncached_write(request)

    async def cached_read(self, request: RequestDescriptor) -> Any:
        """Cache check, then retry-wrapped fetch, then cache store."""
        if not request.cacheable:
            raise ValueError(
                f"{request.describe()} is a {request.operation.value} operation "
                "and cannot be served from cache"
            )

        if self._cache is None:
            return await self._execute(request)

        cache_key = generate_cache_key(request)
        cached = self._cache_lookup(cache_key)
        if cached is not None:
            return cached.data

        data = await self._execute(request)
        self._cache_store(cache_key, data)
        return data

    async def uncached_write(self, request: RequestDescriptor) -> Any:
        """Retry-wrapped call that never touches the cache."""
        return await self._execute(request)

    def _cache_lookup(self, cache_key: str):
        try:
            return self._cache.get(cache_key)
        except Exception as e:
            logger.warning(f"Cache lookup failed for {cache_key[:80]}, treating as miss: {e}")
            return None

    def _cache_store(self, cache_key: str, data: Any) -> None:
        try:
            self._cache.set(cache_key, data)
        except Exception as e:
            logger.warning(f"Cache store failed for {cache_key[:80]}: {e}")

    async def _execute(self, request: RequestDescriptor) -> Any:
        """Run the request through the retry engine and enrich terminal failures."""
        try:
            return await self._retry.run(
                lambda: self._send(request),
                retryable=request.retryable,
                description=f"{self.service_id} {request.describe()}",
            )
        except httpx.HTTPStatusError as e:
            enriched = enrich_error(e, self.service_name, service_id=self.service_id)
            if enriched is e:
                raise
            raise enriched from e

    async def _send(self, request: RequestDescriptor) -> Any:
        """Execute a single attempt and decode the body."""
        client = await self._get_http_client()

        if self._debug:
            logger.debug(
                f"[{self.service_id}] -> {request.describe()} "
                f"params={request.query_params} body={request.json_data}"
            )

        response = await client.request(
            method=request.method,
            url=request.path,
            params=request.query_params,
            json=request.json_data,
            data=request.data,
            files=request.files,
        )

        if self._debug:
            logger.debug(
                f"[{self.service_id}] <- {response.status_code} {request.describe()}"
            )

        response.raise_for_status()
        return self._decode(response)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        """Stop the cache sweep and close the HTTP client. Idempotent."""
        if self._cache is not None:
            self._cache.dispose()

        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

        logger.debug(f"ServiceClient '{self.service_id}' closed")

    async def __aenter__(self) -> "ServiceClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    # Cache management

    def clear_cache(self) -> None:
        """Drop every cached response."""
        if self._cache is not None:
            self._cache.clear()

    def cache_stats(self) -> dict[str, Any] | None:
        """Cache size/ttl/max_size, or None when caching is disabled."""
        if self._cache is None:
            return None
        return self._cache.get_stats().to_dict()
