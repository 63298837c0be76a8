"""
AUTHLIFECYCLE - Network - Retry Policy

Gestion des retries avec backoff exponentiel.
"""

import asyncio
import inspect
from typing import Any, Dict, Optional

from ..logging import IStructuredLogger, StructuredLogger
from .interfaces import IRetryPolicy, Operation, RetryConfig, RetryState


class InvalidRetryConfigError(Exception):
    """Configuration retry invalide."""

    pass


class RetryPolicy(IRetryPolicy):
    """
    Retry avec backoff exponentiel borné.

    Backoff (base=1s, factor=1.5, max=30s):
    - Après 1 échec: 1.5s
    - Après 2 échecs: 2.25s

    La politique ne sait rien de l'opération: toute exception couverte par
    retryable_exceptions est retentée, la dernière est relancée telle quelle
    une fois les tentatives épuisées.

    Example:
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        session = await policy.retry(lambda: store.authenticate(credentials))
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            config: Configuration retry (défaut: 3 tentatives)
            logger: Logger structuré (optionnel)

        Raises:
            InvalidRetryConfigError: Si configuration invalide
        """
        self._config = config or RetryConfig()
        self._validate_config(self._config)
        self._logger = logger or StructuredLogger("authlifecycle.retry")
        self._retry_stats: Dict[str, int] = {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
        }

    @property
    def config(self) -> RetryConfig:
        return self._config

    def _validate_config(self, config: RetryConfig) -> None:
        if config.max_attempts < 1:
            raise InvalidRetryConfigError("max_attempts must be >= 1")
        if config.base_delay < 0 or config.max_delay < 0:
            raise InvalidRetryConfigError("delays cannot be negative")
        if config.backoff_factor < 1:
            raise InvalidRetryConfigError("backoff_factor must be >= 1")

    async def retry(self, operation: Operation) -> Any:
        """
        Exécute operation avec max_attempts tentatives.

        Args:
            operation: Callable sans argument (sync ou async)

        Returns:
            Résultat de la première tentative réussie

        Raises:
            Exception: Dernière erreur levée par operation
        """
        state = RetryState()

        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                state.attempt += 1
                self._retry_stats["total_retries"] += 1

                if not self.is_retryable(e) or state.attempt >= self._config.max_attempts:
                    self._retry_stats["failed_retries"] += 1
                    self._logger.warn(
                        "Retry exhausted",
                        attempts=state.attempt,
                        total_delay=state.total_delay,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise

                delay = self.calculate_delay(state.attempt)
                state.total_delay += delay
                self._logger.debug(
                    "Retrying after failure",
                    attempt=state.attempt,
                    delay=delay,
                    error_type=type(e).__name__,
                )
                await asyncio.sleep(delay)
                continue

            if state.attempt > 0:
                self._retry_stats["successful_retries"] += 1
            state.attempt = 0
            return result

    def calculate_delay(self, attempt: int) -> float:
        """
        Formula: min(base_delay * (backoff_factor ^ attempt), max_delay)

        Args:
            attempt: Nombre d'échecs déjà subis

        Returns:
            Délai en secondes
        """
        delay = self._config.base_delay * (self._config.backoff_factor**attempt)
        return min(delay, self._config.max_delay)

    def is_retryable(self, error: Exception) -> bool:
        return isinstance(error, self._config.retryable_exceptions)

    def get_retry_stats(self) -> Dict[str, int]:
        """
        Returns:
            Dict avec total_retries, successful_retries, failed_retries
        """
        return dict(self._retry_stats)

    def reset_stats(self) -> None:
        """Remet les statistiques à zéro."""
        self._retry_stats = {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
        }
