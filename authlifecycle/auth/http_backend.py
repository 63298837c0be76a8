"""
AUTHLIFECYCLE - HTTP Auth Backend

Client httpx pour une API d'authentification compatible GoTrue
(Supabase Auth). La session courante est persistée dans un
IKeyValueStorage et chaque transition est poussée aux listeners.
"""

import json
from typing import Any, Dict, List, Optional

import httpx

from ..logging import IStructuredLogger, StructuredLogger
from .errors import AuthBackendError
from .interfaces import (
    AuthEvent,
    AuthStateListener,
    Credentials,
    IAuthBackend,
    IKeyValueStorage,
    Identity,
    RawSession,
    Subscription,
)
from .storage import MemoryStorage


class HttpAuthBackend(IAuthBackend):
    """
    Backend GoTrue via REST.

    Endpoints:
        POST /auth/v1/token?grant_type=password
        POST /auth/v1/token?grant_type=refresh_token
        POST /auth/v1/signup
        GET  /auth/v1/user
        POST /auth/v1/logout?scope=global|local

    Example:
        backend = HttpAuthBackend("https://xyz.supabase.co", api_key="anon-key")
        raw = await backend.sign_in(Credentials("demo@swagger-editor.com", "demo123456"))
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        storage: Optional[IKeyValueStorage] = None,
        storage_key: str = "authlifecycle.session",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            base_url: URL du projet (sans /auth/v1)
            api_key: Clé publique envoyée dans le header apikey
            storage: Persistance de la session (défaut: mémoire)
            storage_key: Clé de la session dans le stockage
            client: Client httpx injecté (tests); sinon créé et possédé
            timeout: Timeout httpx en secondes
            logger: Logger structuré
        """
        if not base_url or not base_url.strip():
            raise ValueError("base_url cannot be empty")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.storage = storage or MemoryStorage()
        self.storage_key = storage_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._logger = logger or StructuredLogger("authlifecycle.http_backend")
        self._listeners: List[AuthStateListener] = []

    @property
    def auth_url(self) -> str:
        return f"{self.base_url}/auth/v1"

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        token = bearer or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
        bearer: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Exécute une requête et décode la réponse JSON.

        Raises:
            AuthBackendError: status=None pour un échec de transport,
                code HTTP et code applicatif sinon
        """
        try:
            response = await self._client.request(
                method,
                f"{self.auth_url}{path}",
                params=params,
                json=payload,
                headers=self._headers(bearer),
            )
        except httpx.TransportError as e:
            raise AuthBackendError(f"Transport error: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise AuthBackendError("Invalid JSON response", status=response.status_code) from e

    def _error_from_response(self, response: httpx.Response) -> AuthBackendError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = body.get("error_code") or body.get("error")
        message = (
            body.get("msg")
            or body.get("message")
            or body.get("error_description")
            or response.reason_phrase
            or f"HTTP {response.status_code}"
        )
        return AuthBackendError(str(message), status=response.status_code, code=code)

    # ──────────────────────────────────────────────────────────────────────────
    # Persistance
    # ──────────────────────────────────────────────────────────────────────────

    def _load(self) -> Optional[RawSession]:
        raw = self.storage.get(self.storage_key)
        if not raw:
            return None
        try:
            session = json.loads(raw)
        except json.JSONDecodeError:
            self._logger.warn("Corrupted persisted session dropped", storage_entry=self.storage_key)
            self.storage.remove(self.storage_key)
            return None
        return session if isinstance(session, dict) else None

    def _save(self, session: RawSession) -> None:
        self.storage.set(self.storage_key, json.dumps(session))

    def _clear(self) -> None:
        self.storage.remove(self.storage_key)

    # ──────────────────────────────────────────────────────────────────────────
    # IAuthBackend
    # ──────────────────────────────────────────────────────────────────────────

    async def sign_in(self, credentials: Credentials) -> Optional[RawSession]:
        session = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            payload={"email": credentials.email, "password": credentials.password},
        )
        if not session or not session.get("access_token"):
            return None
        self._save(session)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_up(
        self, credentials: Credentials, metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Inscription. Aucune session n'est persistée: une connexion doit suivre.

        Returns:
            Corps de la réponse (utilisateur ou session selon la confirmation)
        """
        payload: Dict[str, Any] = {"email": credentials.email, "password": credentials.password}
        if metadata:
            payload["data"] = metadata
        created = await self._request("POST", "/signup", payload=payload)
        self._logger.info("Account created", has_session=bool(created and created.get("access_token")))
        return created

    async def get_session(self) -> Optional[RawSession]:
        return self._load()

    async def refresh_session(self) -> Optional[RawSession]:
        current = self._load()
        refresh_token = current.get("refresh_token") if current else None
        if not refresh_token:
            raise AuthBackendError("Auth session missing", status=401, code="session_not_found")

        session = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            payload={"refresh_token": refresh_token},
        )
        if not session or not session.get("access_token"):
            return None
        self._save(session)
        self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self, scope: str = "global") -> None:
        """
        Déconnexion. La session locale est supprimée même si l'appel distant échoue.
        """
        current = self._load()
        try:
            if scope != "local" and current and current.get("access_token"):
                await self._request(
                    "POST",
                    "/logout",
                    params={"scope": scope},
                    bearer=current["access_token"],
                )
        finally:
            self._clear()
            if current:
                self._emit(AuthEvent.SIGNED_OUT, None)

    async def get_user(self, token: str) -> Optional[Identity]:
        user = await self._request("GET", "/user", bearer=token)
        if not user or not user.get("id"):
            return None
        return Identity(user_id=str(user["id"]), email=user.get("email"))

    def on_auth_state_change(self, listener: AuthStateListener) -> Subscription:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    def _emit(self, event: AuthEvent, session: Optional[RawSession]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception as e:
                self._logger.error(
                    "Auth state listener failed",
                    auth_event=event.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )

    async def aclose(self) -> None:
        """Ferme le client httpx s'il a été créé par ce backend."""
        if self._owns_client:
            await self._client.aclose()
