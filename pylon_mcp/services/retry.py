"""
RetryEngine - Bounded resubmission of idempotent requests on transient failures.

Classification:
- Transient: 429, any 5xx, network timeouts/resets/connection failures
- Permanent: any other 4xx

Delay before retry N (0-based):
- Server Retry-After (delta-seconds or HTTP-date) when present and parseable
- Otherwise base * 2^N plus random jitter
- Always clamped to [0, max_delay]
"""

import asyncio
import random
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 1000
MAX_RETRY_DELAY_MS = 30_000

_DELTA_SECONDS = re.compile(r"^\d+(\.\d+)?$")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = DEFAULT_MAX_RETRIES  # 0 disables retries
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS
    max_delay_ms: float = MAX_RETRY_DELAY_MS
    jitter_ratio: float = 0.2  # jitter is drawn from [0, base * ratio)


@dataclass(frozen=True)
class FailureClassification:
    """Verdict for one failed attempt."""

    transient: bool
    status: int | None = None
    code: str | None = None  # exception class name for network failures
    retry_after: str | None = None

    @property
    def reason(self) -> str:
        if self.status is not None:
            return f"HTTP {self.status}"
        return self.code or "unknown"


def classify_error(error: Exception) -> FailureClassification:
    """Classify an attempt failure as transient or permanent."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return FailureClassification(
            transient=status == 429 or status >= 500,
            status=status,
            retry_after=error.response.headers.get("retry-after"),
        )

    if isinstance(
        error,
        (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError),
    ):
        return FailureClassification(transient=True, code=type(error).__name__)

    return FailureClassification(transient=False, code=type(error).__name__)


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """
    Parse a Retry-After header into milliseconds.

    Returns None when the value is missing or malformed so callers can fall
    back to computed backoff.
    """
    if value is None:
        return None

    value = value.strip()
    if _DELTA_SECONDS.match(value):
        return float(value) * 1000

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if retry_at is None:
        return None

    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (retry_at - now).total_seconds() * 1000)


class RetryEngine:
    """
    Executes a request callable under a bounded retry policy.

    Usage:
        engine = RetryEngine(RetryPolicy(max_retries=3))

        response = await engine.run(
            lambda: http_client.get(url),
            retryable=True,  # only idempotent operations
            description="GET /issues",
        )
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def compute_delay(self, attempt: int, retry_after: str | None = None) -> float:
        """Delay in milliseconds before the retry that follows ``attempt``."""
        delay = parse_retry_after(retry_after)

        if delay is None:
            base = self.policy.base_delay_ms
            jitter = self._rng.uniform(0, base * self.policy.jitter_ratio)
            delay = base * (2**attempt) + jitter

        return min(max(delay, 0.0), self.policy.max_delay_ms)

    def should_retry(
        self,
        failure: FailureClassification,
        attempt: int,
        retryable: bool,
    ) -> bool:
        return retryable and failure.transient and attempt < self.policy.max_retries

    async def run(
        self,
        send: Callable[[], Awaitable[T]],
        *,
        retryable: bool,
        description: str = "request",
    ) -> T:
        """
        Call ``send`` until it succeeds or the failure is terminal.

        Args:
            send: Async callable issuing one attempt; raises on failure
            retryable: Whether the operation is safe to repeat
            description: Label used in log lines

        Returns:
            The first successful result, unchanged

        Raises:
            The last attempt's exception, unchanged
        """
        attempt = 0
        while True:
            try:
                return await send()
            except Exception as e:
                failure = classify_error(e)
                if not self.should_retry(failure, attempt, retryable):
                    if attempt > 0:
                        e.add_note(
                            f"{description} gave up after {attempt + 1} attempts "
                            f"(last failure: {failure.reason})"
                        )
                    raise

                delay = self.compute_delay(attempt, failure.retry_after)
                logger.warning(
                    f"[Retry] {description} failed ({failure.reason}), "
                    f"retrying in {delay:.0f}ms "
                    f"(retry {attempt + 1}/{self.policy.max_retries})"
                )
                await self._sleep(delay / 1000)
                attempt += 1
