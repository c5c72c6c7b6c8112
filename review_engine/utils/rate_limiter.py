"""Rate limiting and retry utilities for GitHub API calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from github import GithubException, RateLimitExceededException

from review_engine.models.github_types import RateLimitInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIABLE_STATUSES = {429, 500, 502, 503, 504}


def is_retriable_error(error: Exception) -> bool:
    """True for rate limiting, 5xx responses and dropped connections."""
    if isinstance(error, RateLimitExceededException):
        return True
    if isinstance(error, GithubException):
        return error.status in RETRIABLE_STATUSES
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    error_str = str(error).lower()
    return "rate limit" in error_str or "timeout" in error_str


async def with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 5,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    **kwargs: Any,
) -> T:
    """
    Execute a function with exponential backoff retry logic.

    Args:
        func: The async function to execute
        *args: Positional arguments to pass to func
        max_retries: Maximum number of attempts
        initial_delay: Initial delay in seconds before first retry
        max_delay: Maximum delay in seconds between retries
        **kwargs: Keyword arguments to pass to func

    Returns:
        The result of the function call

    Raises:
        The first non-retriable exception, or the last one once all
        attempts are exhausted
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            last_exception = e

            if not is_retriable_error(e):
                logger.error(f"Non-retriable error: {e}")
                raise

            if attempt < max_retries - 1:
                delay = min(initial_delay * (2**attempt), max_delay)

                logger.warning(
                    f"Attempt {attempt + 1}/{max_retries} failed with {type(e).__name__}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )

                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"All {max_retries} retry attempts exhausted. Last error: {e}"
                )

    raise last_exception  # type: ignore


def seconds_until_reset(info: RateLimitInfo, now: datetime | None = None) -> float:
    """Seconds until the rate-limit window resets; 0 if already past or unknown."""
    reset_at = info.reset_at
    if reset_at is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    if reset_at.tzinfo is None:
        reset_at = reset_at.replace(tzinfo=timezone.utc)
    return max((reset_at - now).total_seconds(), 0.0)


async def wait_for_rate_limit(
    info: RateLimitInfo,
    min_remaining: int = 2,
    max_wait: float = 300.0,
) -> float:
    """
    Sleep until the rate-limit window resets when too few requests remain.

    Args:
        info: Current rate-limit metadata from the diff supplier
        min_remaining: Back off when fewer requests than this remain
        max_wait: Upper bound on the sleep, in seconds

    Returns:
        Seconds slept (0 when no back-off was needed)
    """
    if info.remaining is None or info.remaining >= min_remaining:
        return 0.0

    delay = min(seconds_until_reset(info), max_wait)
    logger.warning(
        f"GitHub rate limit low ({info.remaining} remaining), waiting {delay:.1f}s"
    )
    if delay > 0:
        await asyncio.sleep(delay)
    return delay
