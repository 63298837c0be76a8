"""
Tests d'intégration du cycle de vie de session.
Vérifie que ConfigLoader, HttpAuthBackend, SessionStore, SessionValidator
et SessionLifecycleManager fonctionnent ensemble contre un backend simulé.
"""

import asyncio
import json
from typing import Callable, List, Tuple

import httpx
import pytest

from authlifecycle import build_lifecycle_manager
from authlifecycle.auth import Credentials, HttpAuthBackend, LifecycleState, MemoryStorage
from authlifecycle.core import ConfigLoader
from authlifecycle.logging import StructuredLogger

STORAGE_KEY = "authlifecycle.session"


class FakeGoTrue:
    """Serveur GoTrue minimal pour httpx.MockTransport."""

    def __init__(self, sign_in_tokens: List[str]) -> None:
        self.sign_in_tokens = list(sign_in_tokens)
        self.refresh_status = 200
        self.refresh_token_value = ""
        self.account_exists = True
        self.sign_up_payloads: List[dict] = []
        self.requests: List[Tuple[str, str, str]] = []

    def session(self, token: str, refresh_token: str) -> dict:
        return {
            "access_token": token,
            "refresh_token": refresh_token,
            "user": {"id": "user-123", "email": "demo@swagger-editor.com"},
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        grant = request.url.params.get("grant_type", "")
        self.requests.append((request.method, request.url.path, grant))

        if request.url.path == "/auth/v1/signup":
            self.sign_up_payloads.append(json.loads(request.content))
            self.account_exists = True
            return httpx.Response(200, json={"id": "user-123", "email": "demo@swagger-editor.com"})
        if request.url.path == "/auth/v1/token" and grant == "password":
            if not self.account_exists:
                return httpx.Response(
                    400,
                    json={"error_code": "invalid_credentials", "msg": "Invalid login credentials"},
                )
            token = self.sign_in_tokens.pop(0) if len(self.sign_in_tokens) > 1 else self.sign_in_tokens[0]
            return httpx.Response(200, json=self.session(token, "refresh-1"))
        if request.url.path == "/auth/v1/token" and grant == "refresh_token":
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json={"error_code": "refresh_token_not_found", "msg": "Invalid Refresh Token"},
                )
            return httpx.Response(200, json=self.session(self.refresh_token_value, "refresh-2"))
        if request.url.path == "/auth/v1/user":
            return httpx.Response(200, json={"id": "user-123", "email": "demo@swagger-editor.com"})
        if request.url.path == "/auth/v1/logout":
            return httpx.Response(204)
        return httpx.Response(404, json={"msg": "not found"})


async def wait_until(condition: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


def make_backend(server: FakeGoTrue, storage: MemoryStorage) -> HttpAuthBackend:
    return HttpAuthBackend(
        "https://project.example.co",
        api_key="anon-key",
        storage=storage,
        client=httpx.AsyncClient(transport=httpx.MockTransport(server)),
    )


class TestAuthIntegration:
    """Tests d'intégration bout en bout."""

    @pytest.mark.asyncio
    async def test_config_to_sign_out(self, fixtures_path, make_token):
        """Config YAML → connexion → déconnexion."""
        settings = await ConfigLoader(str(fixtures_path / "configs"), environ={}).load("valid_minimal")
        token = make_token(expires_in=3600)
        server = FakeGoTrue([token])
        storage = MemoryStorage({"supabase.auth.token": "legacy"})
        backend = make_backend(server, storage)
        logger = StructuredLogger("authlifecycle.integration")
        manager = build_lifecycle_manager(
            settings,
            backend=backend,
            storage=storage,
            logger=logger,
            credentials=Credentials("user@example.com", "s3cret-pass"),
        )
        notifications = []
        manager.on_change(notifications.append)

        await manager.initialize()

        session = manager.get_current_session()
        assert session is not None
        assert session.user_id == "user-123"
        assert session.expires_at is not None
        assert manager.has_pending_refresh
        assert storage.get("supabase.auth.token") is None
        assert json.loads(storage.get(STORAGE_KEY))["refresh_token"] == "refresh-1"

        await manager.sign_out()

        assert notifications == [session, None]
        assert storage.get(STORAGE_KEY) is None
        assert [r[:2] for r in server.requests] == [("POST", "/auth/v1/token"), ("POST", "/auth/v1/logout")]
        dumped = "\n".join(e.to_json() for e in logger.get_entries())
        assert "s3cret-pass" not in dumped
        assert token not in dumped

        manager.cleanup()
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_persisted_session_recovered(self, make_token, fast_settings):
        """Session persistée validée par /user, sans nouvelle connexion."""
        token = make_token(expires_in=3600)
        server = FakeGoTrue([token])
        storage = MemoryStorage({STORAGE_KEY: json.dumps(server.session(token, "refresh-1"))})
        backend = make_backend(server, storage)
        manager = build_lifecycle_manager(fast_settings, backend=backend, storage=storage)

        await manager.initialize()

        assert manager.get_current_session().access_token == token
        assert server.requests == [("GET", "/auth/v1/user", "")]

        manager.cleanup()
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_rejected_refresh_falls_back_to_sign_in(self, make_token, fast_settings):
        """Token proche de l'expiration, refresh refusé → nouvelle connexion."""
        short = make_token(expires_in=10)
        fresh = make_token(expires_in=3600, sub="user-123")
        server = FakeGoTrue([short, fresh])
        server.refresh_status = 400
        storage = MemoryStorage()
        backend = make_backend(server, storage)
        manager = build_lifecycle_manager(fast_settings, backend=backend, storage=storage)
        notifications = []
        manager.on_change(notifications.append)

        await manager.initialize()
        await wait_until(
            lambda: manager.state == LifecycleState.AUTHENTICATED
            and manager.get_current_session() is not None
            and manager.get_current_session().access_token == fresh
        )

        assert [n.access_token if n else None for n in notifications] == [short, None, fresh]
        assert [r[2] for r in server.requests if r[1] == "/auth/v1/token"] == [
            "password",
            "refresh_token",
            "password",
        ]
        assert manager.has_pending_refresh

        manager.cleanup()
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_successful_refresh(self, make_token, fast_settings):
        """Token proche de l'expiration, refresh accepté."""
        short = make_token(expires_in=10)
        renewed = make_token(expires_in=3600)
        server = FakeGoTrue([short])
        server.refresh_token_value = renewed
        storage = MemoryStorage()
        backend = make_backend(server, storage)
        manager = build_lifecycle_manager(fast_settings, backend=backend, storage=storage)

        await manager.initialize()
        await wait_until(lambda: manager.state == LifecycleState.AUTHENTICATED)

        assert manager.get_current_session().access_token == renewed
        assert manager.get_current_session().refresh_token == "refresh-2"
        assert json.loads(storage.get(STORAGE_KEY))["refresh_token"] == "refresh-2"

        manager.cleanup()
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_demo_account_created_on_first_start(self, make_token, fast_settings):
        """Compte de démonstration absent → inscription puis connexion."""
        token = make_token(expires_in=3600)
        server = FakeGoTrue([token])
        server.account_exists = False
        storage = MemoryStorage()
        backend = make_backend(server, storage)
        manager = build_lifecycle_manager(fast_settings, backend=backend, storage=storage)

        await manager.initialize()

        assert manager.get_current_session().access_token == token
        assert [(r[1], r[2]) for r in server.requests] == [
            ("/auth/v1/token", "password"),
            ("/auth/v1/signup", ""),
            ("/auth/v1/token", "password"),
        ]
        assert server.sign_up_payloads == [
            {"email": "demo@swagger-editor.com", "password": "demo123456", "data": {"role": "demo"}}
        ]

        manager.cleanup()
        await backend.aclose()
