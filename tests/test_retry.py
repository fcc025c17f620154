"""Test the bounded retry wrapper and the adaptive inter-batch delay"""

import random
from unittest.mock import AsyncMock

import pytest

from catalog_builder.application.rate_shaper import AdaptiveDelay
from catalog_builder.application.retry import RetryPolicy, retry_async
from catalog_builder.domain.exceptions import (
    ProviderError,
    RateLimitError,
    RetryExhaustedError,
    TransientProviderError,
)


class TestRetryPolicy:

    def test_backoff_is_exponential_without_jitter(self):
        policy = RetryPolicy(base_delay=2.0, max_delay=60.0, jitter=0.0)
        assert [policy.backoff(n) for n in range(6)] == [2.0, 4.0, 8.0, 16.0, 32.0, 60.0]

    def test_jitter_stays_within_band_and_cap(self):
        policy = RetryPolicy(base_delay=2.0, max_delay=10.0, jitter=0.2)
        rng = random.Random(42)
        for _ in range(200):
            assert 1.6 <= policy.backoff(0, rng) <= 2.4
            assert policy.backoff(5, rng) <= 10.0


@pytest.mark.asyncio
class TestRetryAsync:

    async def test_returns_after_transient_failures(self, no_sleep):
        action = AsyncMock(side_effect=[RateLimitError(), TransientProviderError("502"), "ok"])

        result = await retry_async(action, RetryPolicy(jitter=0.0), sleep=no_sleep)

        assert result == "ok"
        assert action.await_count == 3
        assert [c.args[0] for c in no_sleep.await_args_list] == [2.0, 4.0]

    async def test_raises_after_max_retries_plus_one_attempts(self, no_sleep):
        action = AsyncMock(side_effect=RateLimitError())

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry_async(action, RetryPolicy(max_retries=3), sleep=no_sleep)

        assert action.await_count == 4
        assert no_sleep.await_count == 3
        assert isinstance(exc_info.value.__cause__, RateLimitError)

    async def test_non_retryable_error_propagates_immediately(self, no_sleep):
        action = AsyncMock(side_effect=ProviderError("401"))

        with pytest.raises(ProviderError):
            await retry_async(action, RetryPolicy(), sleep=no_sleep)

        assert action.await_count == 1
        no_sleep.assert_not_awaited()

    async def test_retry_after_hint_extends_wait(self, no_sleep):
        action = AsyncMock(side_effect=[RateLimitError(retry_after=30.0), "ok"])

        await retry_async(action, RetryPolicy(jitter=0.0, max_delay=60.0), sleep=no_sleep)

        no_sleep.assert_awaited_once_with(30.0)


class TestAdaptiveDelay:

    def test_shrinks_toward_floor_on_healthy_quota(self):
        delay = AdaptiveDelay(base=0.5, floor=0.25)
        for _ in range(50):
            delay.record_success(5000)
        assert delay.current == pytest.approx(0.25)

    def test_unknown_quota_counts_as_healthy(self):
        delay = AdaptiveDelay(base=0.5)
        assert delay.record_success(None) == pytest.approx(0.45)

    def test_grows_below_low_water_up_to_ceiling(self):
        delay = AdaptiveDelay(base=0.5, ceiling=10.0, low_water=500)
        assert delay.record_success(499) == pytest.approx(0.75)
        for _ in range(50):
            delay.record_success(50)
        assert delay.current == pytest.approx(10.0)
