"""
Unit tests for the Redis-backed Google API rate limiter.
"""

import time
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from src.integrations.google.rate_limiter import (
    GoogleApiRateLimiter,
    GoogleRateLimitExceeded,
    is_retryable_error,
    with_retry,
)


def http_error(status: int) -> HttpError:
    resp = MagicMock()
    resp.status = status
    resp.reason = "error"
    return HttpError(resp, b"{}")


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    with patch("src.integrations.google.rate_limiter.redis.from_url") as mock:
        redis_mock = MagicMock()
        mock.return_value = redis_mock

        # Default: full bucket of tokens
        redis_mock.pipeline.return_value.execute.return_value = [None, None]

        yield redis_mock


@pytest.fixture
def rate_limiter(mock_redis):
    """Create rate limiter instance with mocked Redis."""
    return GoogleApiRateLimiter(
        "gmail",
        redis_url="redis://localhost:6379/0",
        max_tokens=10,
        refill_rate=10.0,
    )


@pytest.fixture
def no_sleep():
    """Skip tenacity backoff waits."""
    with patch("tenacity.nap.time.sleep"):
        yield


class TestGoogleApiRateLimiter:
    """Test suite for GoogleApiRateLimiter."""

    def test_init(self, mock_redis):
        """Test rate limiter initialization and per-API keys."""
        limiter = GoogleApiRateLimiter(
            "people",
            redis_url="redis://localhost:6379/0",
            max_tokens=250,
            refill_rate=250.0,
        )

        assert limiter.max_tokens == 250
        assert limiter.refill_rate == 250.0
        assert limiter.bucket_key == "google:people:rate_limiter:tokens"
        assert limiter.timestamp_key == "google:people:rate_limiter:last_refill"

    def test_namespaces_do_not_share_buckets(self, mock_redis):
        gmail = GoogleApiRateLimiter("gmail", redis_url="redis://localhost:6379/0")
        calendar = GoogleApiRateLimiter("calendar", redis_url="redis://localhost:6379/0")

        assert gmail.bucket_key != calendar.bucket_key

    def test_acquire_success(self, rate_limiter, mock_redis):
        """Test successful token acquisition."""
        mock_redis.pipeline.return_value.execute.return_value = ["10.0", str(time.time())]

        assert rate_limiter.acquire(tokens=1) is True
        mock_redis.set.assert_called()

    def test_acquire_failure(self, rate_limiter, mock_redis):
        """Test token acquisition failure when bucket is empty."""
        mock_redis.pipeline.return_value.execute.return_value = ["0.0", str(time.time())]

        assert rate_limiter.acquire(tokens=1) is False

    def test_empty_redis_means_full_bucket(self, rate_limiter, mock_redis):
        assert rate_limiter.get_token_count() == 10.0

    def test_refill_capped_at_max(self, rate_limiter, mock_redis):
        """Test token refill is capped at max_tokens."""
        past_time = time.time() - 5.0
        mock_redis.pipeline.return_value.execute.return_value = ["8.0", str(past_time)]

        assert rate_limiter._refill_tokens() == 10.0

    def test_wait_for_token_timeout(self, rate_limiter, mock_redis):
        """Test wait_for_token times out when no tokens are available."""
        mock_redis.pipeline.return_value.execute.return_value = ["0.0", str(time.time())]

        with pytest.raises(GoogleRateLimitExceeded):
            rate_limiter.wait_for_token(timeout=0.2)

    def test_reset(self, rate_limiter, mock_redis):
        """Test resetting rate limiter to full capacity."""
        rate_limiter.reset()

        calls = mock_redis.pipeline.return_value.set.call_args_list
        assert calls[0][0] == (rate_limiter.bucket_key, "10")

    def test_close(self, rate_limiter, mock_redis):
        rate_limiter.close()
        mock_redis.close.assert_called_once()


class TestIsRetryableError:
    """Test which failures get retried."""

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, status):
        assert is_retryable_error(http_error(status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_not_retried(self, status):
        assert is_retryable_error(http_error(status)) is False

    def test_other_exceptions(self):
        assert is_retryable_error(GoogleRateLimitExceeded("slow down")) is True
        assert is_retryable_error(ValueError("bad")) is False


class TestWithRetryDecorator:
    """Test suite for with_retry decorator."""

    def test_success(self, no_sleep):
        @with_retry
        def call():
            return "success"

        assert call() == "success"

    def test_retries_server_errors(self, no_sleep):
        """Test 503s are retried until the call succeeds."""
        call_count = 0

        @with_retry
        def call():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise http_error(503)
            return "success"

        assert call() == "success"
        assert call_count == 3

    def test_429_becomes_rate_limit_error(self, no_sleep):
        """Test a persistent 429 surfaces as GoogleRateLimitExceeded after 5 attempts."""
        call_count = 0

        @with_retry
        def call():
            nonlocal call_count
            call_count += 1
            raise http_error(429)

        with pytest.raises(GoogleRateLimitExceeded):
            call()
        assert call_count == 5

    def test_client_error_not_retried(self, no_sleep):
        call_count = 0

        @with_retry
        def call():
            nonlocal call_count
            call_count += 1
            raise http_error(404)

        with pytest.raises(HttpError):
            call()
        assert call_count == 1
