"""
Service layer infrastructure - resilient HTTP access for remote API calls.

Provides:
- ResponseCache: Bounded TTL cache with LRU eviction and background sweep
- RetryEngine: Transient-failure retries with backoff and Retry-After support
- enrich_error: Terminal error enrichment with the remote error payload
- ServiceClient: Facade combining all three around httpx
"""

from pylon_mcp.services.errors import (
    ServiceError,
    APIResponseError,
    enrich_error,
)
from pylon_mcp.services.cache import ResponseCache, CacheEntry, CacheResult, CacheStats
from pylon_mcp.services.retry import (
    RetryEngine,
    RetryPolicy,
    FailureClassification,
    classify_error,
    parse_retry_after,
)
from pylon_mcp.services.client import (
    ServiceClient,
    RequestDescriptor,
    OperationKind,
    generate_cache_key,
)

__all__ = [
    # Errors
    "ServiceError",
    "APIResponseError",
    "enrich_error",
    # Cache
    "ResponseCache",
    "CacheEntry",
    "CacheResult",
    "CacheStats",
    # Retry
    "RetryEngine",
    "RetryPolicy",
    "FailureClassification",
    "classify_error",
    "parse_retry_after",
    # Client
    "ServiceClient",
    "RequestDescriptor",
    "OperationKind",
    "generate_cache_key",
]
