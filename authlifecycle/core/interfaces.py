"""
AUTHLIFECYCLE - Core Interfaces
Contrats et modèle de configuration du module Core.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class DemoCredentials(BaseModel):
    """
    Identifiants du compte de démonstration (connexion sans formulaire).

    Si le compte n'existe pas encore (identifiants refusés), il est créé
    avec le rôle `role` puis la connexion est retentée.
    """

    email: str = "demo@swagger-editor.com"
    password: str = "demo123456"
    role: str = "demo"
    create_if_missing: bool = True


class AuthSettings(BaseModel):
    """
    Constantes du cycle de vie de session.

    Toutes les durées sont exprimées en secondes.

    Attributes:
        auth_check_timeout: Plafond global d'une initialisation (et du backoff)
        session_refresh_ceiling: Délai maximum avant un refresh programmé
        retry_max_attempts: Nombre max de tentatives d'authentification
        retry_backoff_factor: Multiplicateur du délai entre tentatives
        retry_base_delay: Délai de base entre tentatives
        refresh_safety_margin: Avance prise sur l'expiration du token
        request_timeout: Timeout d'un appel unitaire au backend
        demo_credentials: Compte utilisé quand aucun identifiant n'est fourni
        stale_storage_keys: Clés obsolètes purgées au démarrage
        session_storage_key: Clé de persistance de la session courante
        backend_url: URL du backend d'authentification (GoTrue)
        api_key: Clé publique du projet (header apikey)
    """

    auth_check_timeout: float = 30.0
    session_refresh_ceiling: float = 300.0
    retry_max_attempts: int = 3
    retry_backoff_factor: float = 1.5
    retry_base_delay: float = 1.0
    refresh_safety_margin: float = 60.0
    request_timeout: float = 10.0
    demo_credentials: DemoCredentials = Field(default_factory=DemoCredentials)
    stale_storage_keys: List[str] = Field(
        default_factory=lambda: ["supabase.auth.token", "supabase.auth.expires_at"]
    )
    session_storage_key: str = "authlifecycle.session"
    backend_url: Optional[str] = None
    api_key: Optional[str] = None

    @field_validator("auth_check_timeout", "session_refresh_ceiling", "request_timeout")
    @classmethod
    def _positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("duration must be positive")
        return value

    @field_validator("retry_base_delay", "refresh_safety_margin")
    @classmethod
    def _non_negative_duration(cls, value: float) -> float:
        if value < 0:
            raise ValueError("duration cannot be negative")
        return value

    @field_validator("retry_max_attempts")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        return value

    @field_validator("retry_backoff_factor")
    @classmethod
    def _non_shrinking_backoff(cls, value: float) -> float:
        if value < 1:
            raise ValueError("retry_backoff_factor must be >= 1")
        return value

    @model_validator(mode="after")
    def _request_fits_in_auth_check(self) -> "AuthSettings":
        if self.request_timeout > self.auth_check_timeout:
            raise ValueError("request_timeout cannot exceed auth_check_timeout")
        return self


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration d'authentification et vérifie son intégrité."""

    @abstractmethod
    async def load(self, name: str = "auth") -> AuthSettings:
        """
        Charge une configuration nommée.

        Raises:
            ConfigIntegrityError: Fichier absent, YAML invalide ou valeurs hors limites
        """
        pass
