"""
Shared plumbing for Google API clients: rate limiting, retries and error translation.
"""

from typing import Any

from google.oauth2.credentials import Credentials
from googleapiclient.errors import HttpError

from src.integrations.google.rate_limiter import GoogleApiRateLimiter, with_retry


class GoogleApiError(Exception):
    """A Google API call failed with a non-retryable error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def api_error(action: str, error: HttpError) -> GoogleApiError:
    return GoogleApiError(f"Failed to {action}: {error}", status_code=error.resp.status)


class GoogleApiClient:
    """Base class; subclasses build their discovery service in __init__."""

    rate_limit_namespace = "default"

    def __init__(
        self,
        credentials: Credentials,
        rate_limiter: GoogleApiRateLimiter | None = None,
    ):
        self.credentials = credentials
        self.rate_limiter = rate_limiter or GoogleApiRateLimiter(self.rate_limit_namespace)

    @with_retry
    def _execute(self, request: Any, tokens: int = 1) -> Any:
        """Execute a request after taking rate limit tokens (retried on 429/5xx)."""
        self.rate_limiter.wait_for_token(tokens=tokens)
        return request.execute()

    def close(self) -> None:
        """Close rate limiter connection."""
        self.rate_limiter.close()
