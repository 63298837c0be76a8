"""
AUTHLIFECYCLE - Network - Interfaces

Interfaces pour les appels au backend d'authentification:
- Timeouts (vérification globale, requête unitaire)
- Retry avec backoff exponentiel
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar, Union

T = TypeVar("T")

Operation = Callable[[], Union[T, Awaitable[T]]]


class TimeoutType(Enum):
    """Types de timeout supportés."""

    AUTH_CHECK = "auth_check"
    REQUEST = "request"


@dataclass
class TimeoutConfig:
    """
    Configuration des timeouts.

    auth_check_timeout borne une initialisation complète (retries inclus),
    request_timeout borne un appel unitaire au backend.
    """

    auth_check_timeout: float = 30.0
    request_timeout: float = 10.0


@dataclass
class RetryConfig:
    """
    Configuration des retries.

    Délai après le k-ième échec: min(base_delay * backoff_factor^k, max_delay)
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 1.5
    max_delay: float = 30.0
    retryable_exceptions: tuple = field(default_factory=lambda: (Exception,))


@dataclass
class RetryState:
    """
    Compteur d'une séquence de tentatives.

    Créé à chaque appel de retry(), jamais partagé entre opérations.
    """

    attempt: int = 0
    total_delay: float = 0.0


class ITimeoutManager(ABC):
    """Interface gestion timeouts."""

    @abstractmethod
    def get_timeout(self, timeout_type: TimeoutType) -> float:
        """Retourne le timeout configuré en secondes."""
        pass

    @abstractmethod
    async def run(self, awaitable: Awaitable[T], timeout_type: TimeoutType) -> T:
        """
        Attend awaitable dans la limite du timeout.

        Raises:
            TimeoutExceededError: Si le délai est dépassé
        """
        pass


class IRetryPolicy(ABC):
    """Interface gestion retries."""

    @abstractmethod
    async def retry(self, operation: Operation) -> Any:
        """
        Exécute operation avec retry et backoff exponentiel.

        Returns:
            Résultat de la première tentative réussie

        Raises:
            Exception: Dernière erreur de l'opération après épuisement
        """
        pass

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calcule délai backoff exponentiel.

        Args:
            attempt: Nombre d'échecs déjà subis

        Returns:
            Délai en secondes
        """
        pass

    @abstractmethod
    def is_retryable(self, error: Exception) -> bool:
        """Vérifie si erreur est retryable."""
        pass
