"""
AUTHLIFECYCLE

Gestionnaire du cycle de vie d'une session d'authentification:
acquisition, validation, refresh proactif et récupération d'un credential
à durée limitée.

Modules:
- core: configuration (AuthSettings, ConfigLoader)
- logging: logging JSON structuré avec masquage des tokens
- network: retry avec backoff, timeouts
- auth: session, backend, gestionnaire de cycle de vie
"""

from .core import AuthSettings, ConfigLoader
from .auth import (
    Credentials,
    InitializationFailure,
    LifecycleState,
    Session,
    SessionLifecycleManager,
    build_lifecycle_manager,
    get_auth_error_message,
)

__version__ = "0.1.0"

__all__ = [
    "AuthSettings",
    "ConfigLoader",
    "Credentials",
    "InitializationFailure",
    "LifecycleState",
    "Session",
    "SessionLifecycleManager",
    "build_lifecycle_manager",
    "get_auth_error_message",
]
