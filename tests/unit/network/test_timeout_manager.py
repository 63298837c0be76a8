"""
Tests unitaires Network - TimeoutManager
"""

import asyncio

import pytest

from authlifecycle.network import (
    InvalidTimeoutError,
    ITimeoutManager,
    TimeoutConfig,
    TimeoutExceededError,
    TimeoutManager,
    TimeoutType,
)


class TestTimeoutConfig:
    """Valeurs par défaut et validation."""

    def test_implements_interface(self) -> None:
        assert isinstance(TimeoutManager(), ITimeoutManager)

    def test_defaults(self) -> None:
        manager = TimeoutManager()
        assert manager.get_timeout(TimeoutType.AUTH_CHECK) == 30.0
        assert manager.get_timeout(TimeoutType.REQUEST) == 10.0

    @pytest.mark.parametrize(
        "config",
        [
            TimeoutConfig(auth_check_timeout=0.0),
            TimeoutConfig(request_timeout=-1.0),
            TimeoutConfig(auth_check_timeout=5.0, request_timeout=6.0),
        ],
    )
    def test_invalid_config(self, config: TimeoutConfig) -> None:
        with pytest.raises(InvalidTimeoutError):
            TimeoutManager(config)

    def test_validate_timeout(self) -> None:
        manager = TimeoutManager(TimeoutConfig(auth_check_timeout=20.0, request_timeout=5.0))
        assert manager.validate_timeout(TimeoutType.REQUEST, 20.0) is True
        assert manager.validate_timeout(TimeoutType.REQUEST, 21.0) is False
        assert manager.validate_timeout(TimeoutType.AUTH_CHECK, 0.0) is False

    def test_get_default_config(self) -> None:
        config = TimeoutConfig(auth_check_timeout=12.0, request_timeout=3.0)
        assert TimeoutManager(config).get_default_config() is config


class TestRun:
    """Exécution bornée."""

    @pytest.mark.asyncio
    async def test_result_returned(self) -> None:
        async def fast() -> str:
            return "done"

        manager = TimeoutManager()
        assert await manager.run(fast(), TimeoutType.REQUEST) == "done"

    @pytest.mark.asyncio
    async def test_slow_operation_raises(self) -> None:
        manager = TimeoutManager(TimeoutConfig(auth_check_timeout=0.05, request_timeout=0.01))

        with pytest.raises(TimeoutExceededError) as exc:
            await manager.run(asyncio.sleep(1), TimeoutType.REQUEST)

        assert exc.value.timeout_type == TimeoutType.REQUEST
        assert exc.value.timeout_value == 0.01
        assert "request timeout exceeded" in str(exc.value)

    @pytest.mark.asyncio
    async def test_operation_errors_propagate(self) -> None:
        async def failing() -> None:
            raise ConnectionError("refused")

        with pytest.raises(ConnectionError):
            await TimeoutManager().run(failing(), TimeoutType.AUTH_CHECK)
