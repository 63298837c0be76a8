"""
AUTHLIFECYCLE - Network - Timeout Manager

Gestion centralisée des timeouts d'authentification.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .interfaces import ITimeoutManager, TimeoutConfig, TimeoutType

T = TypeVar("T")


class TimeoutExceededError(Exception):
    """Timeout dépassé."""

    def __init__(self, timeout_type: TimeoutType, timeout_value: float) -> None:
        self.timeout_type = timeout_type
        self.timeout_value = timeout_value
        super().__init__(f"{timeout_type.value} timeout exceeded: {timeout_value}s")


class InvalidTimeoutError(Exception):
    """Configuration timeout invalide."""

    pass


class TimeoutManager(ITimeoutManager):
    """
    Gestion centralisée des timeouts.

    Aucune opération ne peut rester suspendue indéfiniment: chaque appel
    backend est borné par request_timeout et l'initialisation complète
    par auth_check_timeout.

    Example:
        manager = TimeoutManager(TimeoutConfig(auth_check_timeout=30.0))
        user = await manager.run(backend.get_user(token), TimeoutType.REQUEST)
    """

    def __init__(self, default_config: Optional[TimeoutConfig] = None) -> None:
        """
        Args:
            default_config: Configuration (optionnel)

        Raises:
            InvalidTimeoutError: Si configuration invalide
        """
        self._config = default_config or TimeoutConfig()
        self._validate_config(self._config)

    def _validate_config(self, config: TimeoutConfig) -> None:
        if config.auth_check_timeout <= 0:
            raise InvalidTimeoutError("auth_check_timeout must be positive")

        if config.request_timeout <= 0:
            raise InvalidTimeoutError("request_timeout must be positive")

        # Un appel unitaire doit tenir dans la fenêtre d'initialisation
        if config.request_timeout > config.auth_check_timeout:
            raise InvalidTimeoutError(
                f"request_timeout ({config.request_timeout}s) exceeds "
                f"auth_check_timeout ({config.auth_check_timeout}s)"
            )

    def get_timeout(self, timeout_type: TimeoutType) -> float:
        if timeout_type == TimeoutType.AUTH_CHECK:
            return self._config.auth_check_timeout
        elif timeout_type == TimeoutType.REQUEST:
            return self._config.request_timeout
        else:
            raise ValueError(f"Unknown timeout type: {timeout_type}")

    def validate_timeout(self, timeout_type: TimeoutType, value: float) -> bool:
        """
        Valide qu'une valeur respecte les limites du type.

        Returns:
            True si valide, False sinon
        """
        if value <= 0:
            return False
        if timeout_type == TimeoutType.REQUEST:
            return value <= self._config.auth_check_timeout
        return True

    async def run(self, awaitable: Awaitable[T], timeout_type: TimeoutType) -> T:
        """
        Attend awaitable en annulant l'opération si le délai est dépassé.

        Raises:
            TimeoutExceededError: Si le délai est dépassé
        """
        timeout = self.get_timeout(timeout_type)
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutExceededError(timeout_type, timeout)

    def get_default_config(self) -> TimeoutConfig:
        return self._config
