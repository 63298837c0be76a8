"""
AUTHLIFECYCLE - Network

Appels au backend d'authentification avec:
- Timeouts vérification globale / requête unitaire
- Retry avec backoff exponentiel borné
"""

from .interfaces import (
    # Enums
    TimeoutType,
    # Data classes
    TimeoutConfig,
    RetryConfig,
    RetryState,
    # Interfaces
    ITimeoutManager,
    IRetryPolicy,
)
from .timeout_manager import (
    TimeoutManager,
    TimeoutExceededError,
    InvalidTimeoutError,
)
from .retry_policy import (
    RetryPolicy,
    InvalidRetryConfigError,
)

__all__ = [
    # Enums
    "TimeoutType",
    # Data classes
    "TimeoutConfig",
    "RetryConfig",
    "RetryState",
    # Interfaces
    "ITimeoutManager",
    "IRetryPolicy",
    # Implementations
    "TimeoutManager",
    "RetryPolicy",
    # Exceptions
    "TimeoutExceededError",
    "InvalidTimeoutError",
    "InvalidRetryConfigError",
]
