"""
AUTHLIFECYCLE - Auth

Cycle de vie de la session d'authentification:
- Taxonomie d'erreurs et messages utilisateur
- Lecture de l'expiration des tokens (JWT)
- Adaptateur backend (SessionStore) et validation fail-closed
- Gestionnaire à états avec refresh proactif et repli sur ré-authentification
"""

from .interfaces import (
    # Enums
    LifecycleState,
    AuthEvent,
    # Data classes
    Credentials,
    Identity,
    Session,
    Subscription,
    # Interfaces
    ITokenInspector,
    IKeyValueStorage,
    IAuthBackend,
    ISessionStore,
    ISessionValidator,
    ISessionLifecycleManager,
)
from .errors import (
    AuthErrorKind,
    AuthError,
    InitializationFailure,
    InvalidCredentials,
    SessionExpired,
    NetworkError,
    DecodeError,
    UnknownAuthError,
    AuthBackendError,
    AUTH_ERROR_MESSAGES,
    classify_error,
    get_auth_error_message,
)
from .token_inspector import JWTTokenInspector
from .storage import MemoryStorage, FileStorage, StorageError
from .session_store import SessionStore
from .session_validator import SessionValidator
from .http_backend import HttpAuthBackend
from .lifecycle_manager import SessionLifecycleManager
from .factory import build_lifecycle_manager

__all__ = [
    # Enums
    "LifecycleState",
    "AuthEvent",
    "AuthErrorKind",
    # Data classes
    "Credentials",
    "Identity",
    "Session",
    "Subscription",
    # Interfaces
    "ITokenInspector",
    "IKeyValueStorage",
    "IAuthBackend",
    "ISessionStore",
    "ISessionValidator",
    "ISessionLifecycleManager",
    # Implementations
    "JWTTokenInspector",
    "MemoryStorage",
    "FileStorage",
    "SessionStore",
    "SessionValidator",
    "HttpAuthBackend",
    "SessionLifecycleManager",
    "build_lifecycle_manager",
    # Errors
    "AuthError",
    "InitializationFailure",
    "InvalidCredentials",
    "SessionExpired",
    "NetworkError",
    "DecodeError",
    "UnknownAuthError",
    "AuthBackendError",
    "StorageError",
    "AUTH_ERROR_MESSAGES",
    "classify_error",
    "get_auth_error_message",
]
