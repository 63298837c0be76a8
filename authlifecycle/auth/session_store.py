"""
AUTHLIFECYCLE - Session Store

Adaptateur mince au-dessus du backend d'authentification:
- convertit les sessions brutes en Session (expiration lue dans le token)
- ramène toute erreur backend dans la taxonomie AuthError
- borne chaque appel par le timeout de requête
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..logging import IStructuredLogger, StructuredLogger
from ..network import ITimeoutManager, TimeoutExceededError, TimeoutManager, TimeoutType
from .errors import (
    AuthBackendError,
    AuthError,
    AuthErrorKind,
    DecodeError,
    InvalidCredentials,
    NetworkError,
    SessionExpired,
    UnknownAuthError,
    classify_error,
)
from .interfaces import (
    AuthEvent,
    Credentials,
    IAuthBackend,
    ISessionStore,
    ITokenInspector,
    RawSession,
    Session,
    Subscription,
)
from .token_inspector import JWTTokenInspector

SessionListener = Callable[[AuthEvent, Optional[Session]], None]

_REJECTION_STATUSES = (400, 401, 403, 404, 422)


class SessionStore(ISessionStore):
    """
    Accès normalisé aux sessions du backend.

    Example:
        store = SessionStore(backend)
        session = await store.authenticate(Credentials("a@b.c", "secret"))
    """

    def __init__(
        self,
        backend: IAuthBackend,
        token_inspector: Optional[ITokenInspector] = None,
        timeout_manager: Optional[ITimeoutManager] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        self._backend = backend
        self._inspector = token_inspector or JWTTokenInspector()
        self._timeouts = timeout_manager or TimeoutManager()
        self._logger = logger or StructuredLogger("authlifecycle.store")

    async def current(self) -> Optional[Session]:
        """
        Session existante récupérable.

        Returns:
            Session ou None (absence comme échec)
        """
        try:
            raw = await self._timeouts.run(self._backend.get_session(), TimeoutType.REQUEST)
            if not raw:
                return None
            return self.to_session(raw)
        except Exception as e:
            self._logger.debug("No existing session", error=str(e), error_type=type(e).__name__)
            return None

    async def authenticate(self, credentials: Credentials) -> Session:
        """
        Connexion par identifiants.

        Raises:
            InvalidCredentials: Identifiants refusés
            NetworkError: Transport, timeout ou erreur serveur
            UnknownAuthError: Réponse inexploitable
        """
        try:
            raw = await self._timeouts.run(self._backend.sign_in(credentials), TimeoutType.REQUEST)
        except Exception as e:
            raise self._normalize(e, refreshing=False) from e

        if not raw:
            raise UnknownAuthError("No session received")
        return self.to_session(raw)

    async def sign_up(self, credentials: Credentials, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Création de compte.

        Raises:
            InvalidCredentials: Création refusée
            NetworkError: Transport, timeout ou erreur serveur
        """
        try:
            await self._timeouts.run(self._backend.sign_up(credentials, metadata), TimeoutType.REQUEST)
        except Exception as e:
            raise self._normalize(e, refreshing=False) from e

    async def refresh(self) -> Session:
        """
        Renouvellement sans ré-présenter les identifiants.

        Raises:
            SessionExpired: Grant non renouvelable
            NetworkError: Transport, timeout ou erreur serveur
        """
        try:
            raw = await self._timeouts.run(self._backend.refresh_session(), TimeoutType.REQUEST)
        except Exception as e:
            raise self._normalize(e, refreshing=True) from e

        if not raw:
            raise SessionExpired("Session refresh returned no session")
        return self.to_session(raw)

    async def sign_out(self) -> None:
        """
        Déconnexion distante best-effort.

        Si l'appel distant échoue, la copie locale est supprimée quand même.
        """
        try:
            await self._timeouts.run(self._backend.sign_out("global"), TimeoutType.REQUEST)
        except Exception as e:
            self._logger.warn("Remote sign out failed", error=str(e), error_type=type(e).__name__)
            await self.clear_local()

    async def clear_local(self) -> None:
        """Supprime la session locale sans appel distant (best-effort)."""
        try:
            await self._timeouts.run(self._backend.sign_out("local"), TimeoutType.REQUEST)
        except Exception as e:
            self._logger.warn("Local sign out failed", error=str(e), error_type=type(e).__name__)

    def on_auth_state_change(self, listener: SessionListener) -> Subscription:
        """
        Relaie les notifications du backend avec des Session normalisées.

        Une session brute inexploitable est transmise comme None.
        """

        def relay(event: AuthEvent, raw: Optional[RawSession]) -> None:
            session: Optional[Session] = None
            if raw:
                try:
                    session = self.to_session(raw)
                except AuthError as e:
                    self._logger.warn("Unusable session in notification", error=str(e), auth_event=event.value)
            listener(event, session)

        return self._backend.on_auth_state_change(relay)

    def to_session(self, raw: RawSession) -> Session:
        """
        Convertit une session brute (format GoTrue) en Session.

        Raises:
            UnknownAuthError: access_token ou identifiant utilisateur absent
        """
        access_token = raw.get("access_token")
        user = raw.get("user") or {}
        user_id = user.get("id") or raw.get("user_id")
        if not access_token or not user_id:
            raise UnknownAuthError("Incomplete session received")

        return Session(
            access_token=access_token,
            user_id=str(user_id),
            expires_at=self._resolve_expiry(access_token, raw.get("expires_at")),
            refresh_token=raw.get("refresh_token"),
            user_email=user.get("email"),
        )

    def _resolve_expiry(self, access_token: str, fallback_epoch_seconds) -> Optional[datetime]:
        try:
            return datetime.fromtimestamp(self._inspector.expiry_of(access_token) / 1000, tz=timezone.utc)
        except DecodeError:
            if isinstance(fallback_epoch_seconds, (int, float)) and not isinstance(fallback_epoch_seconds, bool):
                return datetime.fromtimestamp(fallback_epoch_seconds, tz=timezone.utc)
            return None

    def _normalize(self, error: Exception, refreshing: bool) -> AuthError:
        """Ramène une erreur backend dans la taxonomie."""
        if isinstance(error, AuthError):
            return error

        message = str(error) or type(error).__name__

        if isinstance(error, TimeoutExceededError):
            return NetworkError(message, cause=error)

        if isinstance(error, AuthBackendError):
            if error.is_transport_failure or error.status == 429:
                return NetworkError(message, cause=error)
            if refreshing:
                return SessionExpired(message, cause=error)
            if error.status in _REJECTION_STATUSES or error.code == "invalid_credentials":
                return InvalidCredentials(message, cause=error)

        if isinstance(error, (ConnectionError, TimeoutError, OSError)):
            return NetworkError(message, cause=error)

        kind = classify_error(error)
        if kind == AuthErrorKind.NETWORK:
            return NetworkError(message, cause=error)
        if kind == AuthErrorKind.INVALID_CREDENTIALS and not refreshing:
            return InvalidCredentials(message, cause=error)
        if kind == AuthErrorKind.SESSION_EXPIRED:
            return SessionExpired(message, cause=error)
        return UnknownAuthError(message, cause=error)
