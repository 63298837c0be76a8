"""
AUTHLIFECYCLE - Auth Errors

Taxonomie des échecs d'authentification et messages utilisateur associés.

L'interface utilisateur branche sur AuthErrorKind, jamais sur le texte libre:
une InitializationFailure s'affiche comme un problème de connectivité,
pas comme un problème d'identifiants.
"""

from enum import Enum
from typing import Dict, Optional


class AuthErrorKind(Enum):
    """Catégories d'échec."""

    INITIALIZATION = "initialization"
    INVALID_CREDENTIALS = "invalid_credentials"
    SESSION_EXPIRED = "session_expired"
    NETWORK = "network"
    DECODE = "decode"
    UNKNOWN = "unknown"


class AuthError(Exception):
    """Erreur d'authentification classifiée."""

    kind: AuthErrorKind = AuthErrorKind.UNKNOWN
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message or self.default_message)


class InitializationFailure(AuthError):
    """Aucune session valide n'a pu être établie au démarrage."""

    kind = AuthErrorKind.INITIALIZATION
    default_message = "Failed to initialize authentication"


class InvalidCredentials(AuthError):
    """Identifiants refusés par le backend."""

    kind = AuthErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class SessionExpired(AuthError):
    """Le grant ne peut plus être renouvelé."""

    kind = AuthErrorKind.SESSION_EXPIRED
    default_message = "Session expired"


class NetworkError(AuthError):
    """Échec de transport (connexion, timeout, 5xx)."""

    kind = AuthErrorKind.NETWORK
    default_message = "Network error"


class DecodeError(AuthError):
    """Token structurellement invalide. Non retryable."""

    kind = AuthErrorKind.DECODE
    default_message = "Malformed token"


class UnknownAuthError(AuthError):
    """Échec non classifié."""

    kind = AuthErrorKind.UNKNOWN


class AuthBackendError(Exception):
    """
    Refus ou échec remonté par le backend d'authentification.

    Attributes:
        status: Code HTTP, None pour un échec de transport
        code: Code d'erreur applicatif (ex: invalid_credentials)
    """

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        self.status = status
        self.code = code
        super().__init__(message)

    @property
    def is_transport_failure(self) -> bool:
        return self.status is None or self.status >= 500


AUTH_ERROR_MESSAGES: Dict[str, str] = {
    "INVALID_CREDENTIALS": "Invalid credentials. Please try again.",
    "SESSION_EXPIRED": "Your session has expired. Please sign in again.",
    "NETWORK_ERROR": "Network error. Please check your connection.",
    "SESSION_MISSING": "Session not found. Please sign in again.",
    "MAX_RETRIES": "Failed to authenticate after multiple attempts.",
    "UNKNOWN": "An unexpected error occurred. Please try again.",
}

_KIND_MESSAGES: Dict[AuthErrorKind, str] = {
    AuthErrorKind.INITIALIZATION: AUTH_ERROR_MESSAGES["NETWORK_ERROR"],
    AuthErrorKind.INVALID_CREDENTIALS: AUTH_ERROR_MESSAGES["INVALID_CREDENTIALS"],
    AuthErrorKind.SESSION_EXPIRED: AUTH_ERROR_MESSAGES["SESSION_EXPIRED"],
    AuthErrorKind.NETWORK: AUTH_ERROR_MESSAGES["NETWORK_ERROR"],
    AuthErrorKind.DECODE: AUTH_ERROR_MESSAGES["SESSION_MISSING"],
    AuthErrorKind.UNKNOWN: AUTH_ERROR_MESSAGES["UNKNOWN"],
}


def classify_error(error: BaseException) -> AuthErrorKind:
    """
    Classe une exception quelconque dans la taxonomie.

    Les AuthError portent déjà leur catégorie; les autres exceptions sont
    classées d'après leur type puis leur message.
    """
    if isinstance(error, AuthError):
        return error.kind

    if isinstance(error, (ConnectionError, TimeoutError)):
        return AuthErrorKind.NETWORK

    message = str(error).lower()
    if "invalid_credentials" in message or "invalid login credentials" in message:
        return AuthErrorKind.INVALID_CREDENTIALS
    if "network" in message:
        return AuthErrorKind.NETWORK
    if "session expired" in message:
        return AuthErrorKind.SESSION_EXPIRED
    return AuthErrorKind.UNKNOWN


def get_auth_error_message(error: Optional[BaseException]) -> str:
    """
    Retourne le message affichable pour une erreur.

    Args:
        error: Exception levée (ou None)

    Returns:
        Message utilisateur
    """
    if error is None:
        return AUTH_ERROR_MESSAGES["UNKNOWN"]

    if isinstance(error, AuthBackendError) and error.code == "session_not_found":
        return AUTH_ERROR_MESSAGES["SESSION_MISSING"]

    if "max retries exceeded" in str(error).lower():
        return AUTH_ERROR_MESSAGES["MAX_RETRIES"]

    return _KIND_MESSAGES[classify_error(error)]
