"""Unit tests for retry and rate-limit helpers."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from github import GithubException

from review_engine.models.github_types import RateLimitInfo
from review_engine.utils.rate_limiter import (
    is_retriable_error,
    seconds_until_reset,
    wait_for_rate_limit,
    with_exponential_backoff,
)


class TestIsRetriableError:
    """Tests for classifying GitHub errors."""

    def test_server_errors_are_retriable(self):
        assert is_retriable_error(GithubException(502, {"message": "Bad Gateway"}))
        assert is_retriable_error(ConnectionError("reset by peer"))

    def test_validation_errors_are_not(self):
        assert not is_retriable_error(GithubException(422, {"message": "Unprocessable"}))
        assert not is_retriable_error(ValueError("bad input"))


class TestWithExponentialBackoff:
    """Tests for with_exponential_backoff."""

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[GithubException(503, {}), "ok"])

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await with_exponential_backoff(func, "a", max_retries=3, initial_delay=2.0)

        assert result == "ok"
        assert func.await_count == 2
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_non_retriable_raises_immediately(self):
        func = AsyncMock(side_effect=GithubException(422, {}))

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(GithubException):
                await with_exponential_backoff(func, max_retries=3)

        assert func.await_count == 1

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        func = AsyncMock(side_effect=TimeoutError("slow"))

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(TimeoutError):
                await with_exponential_backoff(func, max_retries=3, initial_delay=1.0)

        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


class TestWaitForRateLimit:
    """Tests for rate-limit back-off."""

    @pytest.mark.asyncio
    async def test_no_wait_when_enough_remaining(self):
        info = RateLimitInfo(remaining=100, reset_at=datetime.now(timezone.utc))

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            waited = await wait_for_rate_limit(info, min_remaining=2)

        assert waited == 0.0
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wait_is_capped(self):
        info = RateLimitInfo(
            remaining=0, reset_at=datetime.now(timezone.utc) + timedelta(hours=1)
        )

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()) as sleep:
            waited = await wait_for_rate_limit(info, min_remaining=2, max_wait=30.0)

        assert waited == 30.0
        sleep.assert_awaited_once_with(30.0)

    def test_seconds_until_reset_in_past(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        info = RateLimitInfo(remaining=0, reset_at=now - timedelta(seconds=5))

        assert seconds_until_reset(info, now=now) == 0.0

    def test_naive_reset_is_treated_as_utc(self):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        info = RateLimitInfo(remaining=0, reset_at=datetime(2024, 1, 1, 12, 1))

        assert seconds_until_reset(info, now=now) == 60.0
