"""
Tests unitaires Network - RetryPolicy

Retry borné avec backoff exponentiel.
"""

from unittest.mock import AsyncMock, call, patch

import pytest

from authlifecycle.network import (
    InvalidRetryConfigError,
    IRetryPolicy,
    RetryConfig,
    RetryPolicy,
)


class TestRetryBound:
    """Nombre de tentatives borné par max_attempts."""

    def test_implements_interface(self) -> None:
        assert isinstance(RetryPolicy(), IRetryPolicy)

    @pytest.mark.asyncio
    async def test_success_on_first_attempt(self) -> None:
        policy = RetryPolicy()
        operation = AsyncMock(return_value="session")

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await policy.retry(operation)

        assert result == "session"
        assert operation.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_always_failing_operation_called_exactly_max_attempts(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        operation = AsyncMock(side_effect=ConnectionError("down"))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ConnectionError, match="down"):
                await policy.retry(operation)

        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_last_error_propagated(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=2))
        operation = AsyncMock(side_effect=[ValueError("first"), KeyError("last")])

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(KeyError):
                await policy.retry(operation)

    @pytest.mark.asyncio
    async def test_success_after_failures(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        operation = AsyncMock(side_effect=[ConnectionError(), ConnectionError(), "ok"])

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await policy.retry(operation)

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_single_attempt_never_sleeps(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=1))
        operation = AsyncMock(side_effect=ConnectionError())

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ConnectionError):
                await policy.retry(operation)

        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_operation_supported(self) -> None:
        policy = RetryPolicy()
        assert await policy.retry(lambda: 42) == 42

    @pytest.mark.asyncio
    async def test_non_retryable_error_raised_immediately(self) -> None:
        policy = RetryPolicy(RetryConfig(retryable_exceptions=(ConnectionError,)))
        operation = AsyncMock(side_effect=PermissionError("denied"))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(PermissionError):
                await policy.retry(operation)

        assert operation.await_count == 1


class TestBackoff:
    """Délais entre tentatives."""

    @pytest.mark.asyncio
    async def test_sleep_delays_follow_backoff(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=3, base_delay=1.0, backoff_factor=1.5))
        operation = AsyncMock(side_effect=ConnectionError())

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ConnectionError):
                await policy.retry(operation)

        assert sleep.await_args_list == [call(1.5), call(2.25)]

    def test_calculate_delay(self) -> None:
        policy = RetryPolicy(RetryConfig(base_delay=1.0, backoff_factor=1.5))
        assert policy.calculate_delay(0) == 1.0
        assert policy.calculate_delay(1) == 1.5
        assert policy.calculate_delay(2) == 2.25

    def test_delay_capped(self) -> None:
        policy = RetryPolicy(RetryConfig(base_delay=1.0, backoff_factor=2.0, max_delay=5.0))
        assert policy.calculate_delay(10) == 5.0


class TestConfigAndStats:
    """Validation config et statistiques."""

    @pytest.mark.parametrize(
        "config",
        [
            RetryConfig(max_attempts=0),
            RetryConfig(base_delay=-1.0),
            RetryConfig(backoff_factor=0.5),
        ],
    )
    def test_invalid_config_rejected(self, config: RetryConfig) -> None:
        with pytest.raises(InvalidRetryConfigError):
            RetryPolicy(config)

    @pytest.mark.asyncio
    async def test_stats(self) -> None:
        policy = RetryPolicy(RetryConfig(max_attempts=2))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            await policy.retry(AsyncMock(side_effect=[ConnectionError(), "ok"]))
            with pytest.raises(ConnectionError):
                await policy.retry(AsyncMock(side_effect=ConnectionError()))

        stats = policy.get_retry_stats()
        assert stats == {"total_retries": 3, "successful_retries": 1, "failed_retries": 1}

        policy.reset_stats()
        assert policy.get_retry_stats()["total_retries"] == 0
