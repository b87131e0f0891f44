"""
Shared quota for Google API calls.

Each Google API (Gmail, People, Calendar) gets its own token bucket in Redis,
so the API process and every Celery worker draw from one budget per API.
Calls that still hit a 429 or a 5xx are retried with tenacity.
"""

import time
from typing import Any, Callable

import redis
from googleapiclient.errors import HttpError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
MAX_ATTEMPTS = 5
POLL_INTERVAL_SECONDS = 0.1


class GoogleRateLimitExceeded(Exception):
    """Quota for a Google API is exhausted; the call may be retried later."""


class GoogleApiRateLimiter:
    """
    Redis token bucket for one Google API.

    The bucket holds up to max_tokens and regains refill_rate tokens per
    second. A missing key means the bucket has never been used and is full.
    """

    def __init__(
        self,
        namespace: str,
        redis_url: str | None = None,
        max_tokens: int | None = None,
        refill_rate: float | None = None,
    ):
        self.namespace = namespace
        self.max_tokens = max_tokens or settings.google_rate_limit_burst
        self.refill_rate = refill_rate or float(settings.google_rate_limit_qps)

        prefix = f"google:{namespace}:rate_limiter"
        self.bucket_key = f"{prefix}:tokens"
        self.timestamp_key = f"{prefix}:last_refill"

        self.redis_client = redis.from_url(
            redis_url or settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )

    def _read_bucket(self) -> tuple[float, float]:
        """Return (tokens, last_refill_timestamp)."""
        pipe = self.redis_client.pipeline()
        pipe.get(self.bucket_key)
        pipe.get(self.timestamp_key)
        tokens, stamp = pipe.execute()
        return (
            float(tokens) if tokens else float(self.max_tokens),
            float(stamp) if stamp else time.time(),
        )

    def _write_bucket(self, tokens: float | int, stamp: float) -> None:
        pipe = self.redis_client.pipeline()
        pipe.set(self.bucket_key, str(tokens))
        pipe.set(self.timestamp_key, str(stamp))
        pipe.execute()

    def _refill_tokens(self) -> float:
        tokens, last_refill = self._read_bucket()
        now = time.time()
        tokens = min(self.max_tokens, tokens + (now - last_refill) * self.refill_rate)
        self._write_bucket(tokens, now)
        return tokens

    def acquire(self, tokens: int = 1) -> bool:
        """Take tokens if the bucket has enough; never blocks."""
        available = self._refill_tokens()
        if available < tokens:
            return False
        self.redis_client.set(self.bucket_key, str(available - tokens))
        return True

    def wait_for_token(self, tokens: int = 1, timeout: float = 60.0) -> None:
        """
        Poll the bucket until tokens are taken.

        Raises:
            GoogleRateLimitExceeded: Nothing was acquired within timeout seconds
        """
        deadline = time.time() + timeout
        pause = min(1.0 / self.refill_rate, POLL_INTERVAL_SECONDS)

        while time.time() < deadline:
            if self.acquire(tokens):
                return
            time.sleep(pause)

        raise GoogleRateLimitExceeded(
            f"Rate limit exceeded for {self.namespace}: no token within {timeout}s"
        )

    def get_token_count(self) -> float:
        return self._read_bucket()[0]

    def reset(self) -> None:
        self._write_bucket(self.max_tokens, time.time())

    def close(self) -> None:
        self.redis_client.close()


def is_retryable_error(error: BaseException) -> bool:
    if isinstance(error, HttpError):
        return error.resp.status in RETRYABLE_STATUS_CODES
    return isinstance(error, GoogleRateLimitExceeded)


def with_retry(func: Callable) -> Callable:
    """
    Retry a Google API call on quota and server errors.

    Waits grow exponentially from 4s to 60s over at most five attempts.
    A 429 is re-raised as GoogleRateLimitExceeded so callers see one
    exception type for quota exhaustion; 4xx errors propagate immediately.
    """

    @retry(
        wait=wait_exponential(min=4, max=60),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        retry=retry_if_exception(is_retryable_error),
        reraise=True,
    )
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except HttpError as e:
            if e.resp.status != 429:
                raise
            logger.warning(f"Google API rate limited: {e}")
            raise GoogleRateLimitExceeded(f"Google API rate limit: {e}") from e

    return wrapper
