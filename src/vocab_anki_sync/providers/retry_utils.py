"""Shared error classification and backoff utilities for LLM providers.

Providers never retry on their own. They translate httpx failures into the
typed provider errors below, and the enrichment orchestrator decides what
to retry, using :func:`calculate_retry_wait` for the delay.
"""

import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx

from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderRequestError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

# HTTP status codes that should be retried
HTTP_STATUS_RETRYABLE = {429, 500, 502, 503, 504}


def is_retryable_status(status_code: int) -> bool:
    """Check if HTTP status code should be retried.

    Args:
        status_code: HTTP status code

    Returns:
        True if status code is retryable (429, 5xx)
    """
    return status_code in HTTP_STATUS_RETRYABLE or status_code >= 500


def parse_retry_after_header(response: httpx.Response) -> float | None:
    """Parse Retry-After header from response.

    Supports both numeric seconds and HTTP date formats.

    Args:
        response: HTTP response object

    Returns:
        Wait time in seconds, or None if header is missing/invalid
    """
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return None

    try:
        wait_seconds = float(retry_after)
    except ValueError:
        try:
            retry_datetime = parsedate_to_datetime(retry_after)
        except (TypeError, ValueError):
            return None
        if retry_datetime.tzinfo is None:
            retry_datetime = retry_datetime.replace(tzinfo=timezone.utc)
        delta = (retry_datetime - datetime.now(timezone.utc)).total_seconds()
        return float(delta) if delta > 0 else None

    return wait_seconds if wait_seconds > 0 else None


def classify_http_error(error: httpx.HTTPError, provider_name: str) -> ProviderError:
    """Translate an httpx failure into a typed provider error.

    Args:
        error: Exception raised by httpx
        provider_name: Provider name for the message

    Returns:
        The provider error to raise; the caller raises it
    """
    if isinstance(error, httpx.TimeoutException):
        return ProviderTimeoutError(
            f"{provider_name} request timed out: {error}",
            suggestion="Increase llm_timeout or use a faster model",
            error_code=ErrorCode.ENR_TIMEOUT.value,
        )
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status = response.status_code
        body = response.text[:300]
        if status == 429:
            return ProviderRateLimitError(
                f"{provider_name} rate limited the request: {body}",
                retry_after=parse_retry_after_header(response),
                error_code=ErrorCode.ENR_RATE_LIMITED.value,
            )
        if status in (401, 403):
            return ProviderAuthError(
                f"{provider_name} rejected the credentials (HTTP {status})",
                suggestion="Check llm_api_key",
                error_code=ErrorCode.ENR_AUTH.value,
            )
        if status >= 500:
            return ProviderUnavailableError(
                f"{provider_name} returned HTTP {status}: {body}",
                error_code=ErrorCode.ENR_UNAVAILABLE.value,
            )
        return ProviderRequestError(
            f"{provider_name} rejected the request (HTTP {status}): {body}",
            suggestion="Check llm_model and the provider base URL",
            error_code=ErrorCode.ENR_REQUEST.value,
        )
    return ProviderConnectionError(
        f"Cannot reach {provider_name}: {error}",
        suggestion="Check the provider base URL and that the service is running",
        error_code=ErrorCode.ENR_CONNECTION.value,
    )


def calculate_retry_wait(
    attempt: int,
    error: BaseException | None = None,
    base_delay: float = 1.0,
    backoff_factor: float = 2.0,
    max_delay: float = 60.0,
    jitter: bool = True,
) -> float:
    """Calculate wait time before the next attempt.

    For rate limits, respects the provider's Retry-After value if present.
    Otherwise uses exponential backoff with optional jitter.

    Args:
        attempt: Number of the attempt that just failed (1-indexed)
        error: The failure that triggered the retry
        base_delay: Delay after the first failed attempt
        backoff_factor: Multiplier applied per further attempt
        max_delay: Maximum delay cap in seconds
        jitter: Whether to add jitter to prevent thundering herd

    Returns:
        Wait time in seconds
    """
    if isinstance(error, ProviderRateLimitError) and error.retry_after is not None:
        retry_after = error.retry_after
        if jitter:
            retry_after += random.uniform(0.1, 1.0)
        return min(retry_after, max_delay)

    delay = base_delay * (backoff_factor ** max(attempt - 1, 0))

    # random 0-25% of delay
    if jitter:
        delay += delay * random.uniform(0, 0.25)

    return float(min(delay, max_delay))
