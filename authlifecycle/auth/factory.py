"""
AUTHLIFECYCLE - Composition Root

Assemble un SessionLifecycleManager et ses collaborateurs.
Aucune instance globale: l'application construit le gestionnaire une fois
et le transmet à ses consommateurs.
"""

from typing import Optional

from ..core import AuthSettings, ConfigIntegrityError
from ..logging import StructuredLogger
from ..network import RetryConfig, RetryPolicy, TimeoutConfig, TimeoutManager
from .http_backend import HttpAuthBackend
from .interfaces import Credentials, IAuthBackend, IKeyValueStorage
from .lifecycle_manager import SessionLifecycleManager
from .session_store import SessionStore
from .session_validator import SessionValidator
from .storage import MemoryStorage
from .token_inspector import JWTTokenInspector


def build_lifecycle_manager(
    settings: Optional[AuthSettings] = None,
    backend: Optional[IAuthBackend] = None,
    storage: Optional[IKeyValueStorage] = None,
    logger: Optional[StructuredLogger] = None,
    credentials: Optional[Credentials] = None,
) -> SessionLifecycleManager:
    """
    Construit un gestionnaire prêt à initialiser.

    Args:
        settings: Constantes (défaut: AuthSettings())
        backend: Backend d'authentification (défaut: HttpAuthBackend sur settings.backend_url)
        storage: Stockage local partagé backend/gestionnaire (défaut: mémoire)
        logger: Logger structuré commun
        credentials: Identifiants (défaut: compte de démonstration)

    Raises:
        ConfigIntegrityError: Aucun backend fourni et backend_url absent
    """
    settings = settings or AuthSettings()
    storage = storage or MemoryStorage()
    logger = logger or StructuredLogger("authlifecycle")

    if backend is None:
        if not settings.backend_url:
            raise ConfigIntegrityError("backend_url manquant (AUTH_BACKEND_URL)")
        backend = HttpAuthBackend(
            settings.backend_url,
            api_key=settings.api_key,
            storage=storage,
            storage_key=settings.session_storage_key,
            timeout=settings.request_timeout,
            logger=logger,
        )

    timeouts = TimeoutManager(
        TimeoutConfig(
            auth_check_timeout=settings.auth_check_timeout,
            request_timeout=settings.request_timeout,
        )
    )
    retry_policy = RetryPolicy(
        RetryConfig(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            backoff_factor=settings.retry_backoff_factor,
            max_delay=settings.auth_check_timeout,
        ),
        logger=logger,
    )
    inspector = JWTTokenInspector()

    return SessionLifecycleManager(
        store=SessionStore(backend, token_inspector=inspector, timeout_manager=timeouts, logger=logger),
        validator=SessionValidator(backend, timeout_manager=timeouts, logger=logger),
        storage=storage,
        settings=settings,
        token_inspector=inspector,
        retry_policy=retry_policy,
        timeout_manager=timeouts,
        logger=logger,
        credentials=credentials,
    )
