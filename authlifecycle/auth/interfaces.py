"""
AUTHLIFECYCLE - Auth Interfaces

Définit les contrats du cycle de vie de session et de ses collaborateurs
externes (backend d'authentification, stockage local, décodage de token).
Toute implémentation DOIT respecter ces interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class LifecycleState(Enum):
    """États du gestionnaire de cycle de vie."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    UNAUTHENTICATED = "unauthenticated"
    DESTROYED = "destroyed"


class AuthEvent(Enum):
    """Transitions de session (poussées par le backend ou émises par le gestionnaire)."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True)
class Credentials:
    """Identifiants de connexion par mot de passe."""

    email: str
    password: str


@dataclass(frozen=True)
class Identity:
    """Utilisateur résolu depuis un token."""

    user_id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """
    Grant authentifié.

    Remplacée en bloc à chaque refresh, jamais modifiée en place.

    Attributes:
        access_token: Token signé opaque (sert au calcul du refresh)
        user_id: Identité propriétaire
        expires_at: Expiration UTC (claim exp du token)
        refresh_token: Jeton de renouvellement
        user_email: Email de l'utilisateur
    """

    access_token: str
    user_id: str
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None
    user_email: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True si expires_at est dépassé (False si inconnu)."""
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


# Mapping brut retourné par le backend (format GoTrue):
# {"access_token", "refresh_token", "expires_at", "user": {"id", "email"}}
RawSession = Dict[str, Any]

AuthStateListener = Callable[[AuthEvent, Optional[RawSession]], None]
SessionCallback = Callable[[Optional[Session]], None]
Unsubscribe = Callable[[], None]


class Subscription:
    """Abonnement révocable à des notifications."""

    def __init__(self, on_unsubscribe: Callable[[], None]) -> None:
        self._on_unsubscribe = on_unsubscribe
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Révoque l'abonnement (idempotent)."""
        if self._active:
            self._active = False
            self._on_unsubscribe()


# ══════════════════════════════════════════════════════════════════════════════
# COLLABORATEURS EXTERNES
# ══════════════════════════════════════════════════════════════════════════════


class ITokenInspector(ABC):
    """Extraction de l'expiration d'un token opaque. Sans effet de bord."""

    @abstractmethod
    def expiry_of(self, token: str) -> int:
        """
        Retourne l'expiration du token.

        Args:
            token: Token signé brut

        Returns:
            Expiration en millisecondes depuis epoch

        Raises:
            DecodeError: Token structurellement invalide
        """
        pass


class IKeyValueStorage(ABC):
    """Stockage clé/valeur persistant (équivalent localStorage)."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass


class IAuthBackend(ABC):
    """
    Backend d'authentification distant.

    Les refus lèvent AuthBackendError (status=None pour un échec de transport).
    """

    @abstractmethod
    async def sign_in(self, credentials: Credentials) -> Optional[RawSession]:
        """Connexion par mot de passe."""
        pass

    @abstractmethod
    async def sign_up(
        self, credentials: Credentials, metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Crée un compte (metadata: données utilisateur, ex. rôle)."""
        pass

    @abstractmethod
    async def get_session(self) -> Optional[RawSession]:
        """Session récupérable localement, None si absente."""
        pass

    @abstractmethod
    async def refresh_session(self) -> Optional[RawSession]:
        """Renouvelle la session courante sans ré-présenter les identifiants."""
        pass

    @abstractmethod
    async def sign_out(self, scope: str = "global") -> None:
        """Déconnexion (scope "global" ou "local")."""
        pass

    @abstractmethod
    async def get_user(self, token: str) -> Optional[Identity]:
        """Résout l'utilisateur propriétaire d'un token."""
        pass

    @abstractmethod
    def on_auth_state_change(self, listener: AuthStateListener) -> Subscription:
        """Notifications des changements de session (dont révocation externe)."""
        pass


# ══════════════════════════════════════════════════════════════════════════════
# COMPOSANTS
# ══════════════════════════════════════════════════════════════════════════════


class ISessionStore(ABC):
    """Adaptateur normalisant sessions et erreurs du backend."""

    @abstractmethod
    async def current(self) -> Optional[Session]:
        """Session existante, None en cas d'échec. Ne lève jamais."""
        pass

    @abstractmethod
    async def authenticate(self, credentials: Credentials) -> Session:
        """
        Raises:
            InvalidCredentials: Identifiants refusés
            NetworkError: Échec de transport
        """
        pass

    @abstractmethod
    async def sign_up(self, credentials: Credentials, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Crée le compte sans ouvrir de session.

        Raises:
            InvalidCredentials: Création refusée (compte existant, mot de passe invalide)
            NetworkError: Échec de transport
        """
        pass

    @abstractmethod
    async def refresh(self) -> Session:
        """
        Raises:
            SessionExpired: Grant non renouvelable
            NetworkError: Échec de transport
        """
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        """Best-effort: la copie locale est toujours supprimée."""
        pass

    @abstractmethod
    async def clear_local(self) -> None:
        """Supprime la session locale sans appel distant (best-effort)."""
        pass

    @abstractmethod
    def on_auth_state_change(
        self, listener: Callable[[AuthEvent, Optional[Session]], None]
    ) -> Subscription:
        """Notifications backend avec sessions normalisées."""
        pass


class ISessionValidator(ABC):
    """Vérifie qu'une session fait toujours autorité auprès du backend."""

    @abstractmethod
    async def is_valid(self, session: Optional[Session]) -> bool:
        """False sans appel réseau si session absente ou incomplète."""
        pass


class ISessionLifecycleManager(ABC):
    """Garde une session valide disponible pour le reste de l'application."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Raises:
            InitializationFailure: Aucune session n'a pu être établie
        """
        pass

    @abstractmethod
    def get_current_session(self) -> Optional[Session]:
        pass

    @abstractmethod
    def on_change(self, callback: SessionCallback) -> Unsubscribe:
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    def cleanup(self) -> None:
        pass
