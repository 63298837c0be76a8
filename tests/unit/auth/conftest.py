"""
Fixtures auth: store scriptable et fabrique de sessions.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, Mock

import pytest

from authlifecycle.auth import (
    AuthEvent,
    Credentials,
    ISessionStore,
    ISessionValidator,
    Session,
    Subscription,
)
from authlifecycle.auth.token_inspector import JWTTokenInspector


class FakeSessionStore(ISessionStore):
    """
    Store scriptable.

    Chaque liste de résultats est consommée dans l'ordre; le dernier
    élément est rejoué indéfiniment. Un élément Exception est levé.
    `completed` liste les appels allés au bout (gate franchie).
    """

    def __init__(self) -> None:
        self.existing: Optional[Session] = None
        self.authenticate_results: List[Any] = []
        self.refresh_results: List[Any] = []
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.sign_ups: List[Tuple[Credentials, Optional[Dict[str, Any]]]] = []
        self.sign_up_error: Optional[Exception] = None
        self.listener: Optional[Callable[[AuthEvent, Optional[Session]], None]] = None
        self.authenticate_gate: Optional[asyncio.Event] = None
        self.refresh_gate: Optional[asyncio.Event] = None

    @staticmethod
    def _next(results: List[Any]) -> Any:
        outcome = results.pop(0) if len(results) > 1 else results[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def current(self) -> Optional[Session]:
        self.calls.append("current")
        return self.existing

    async def authenticate(self, credentials: Credentials) -> Session:
        self.calls.append("authenticate")
        if self.authenticate_gate is not None:
            await self.authenticate_gate.wait()
        self.completed.append("authenticate")
        return self._next(self.authenticate_results)

    async def sign_up(self, credentials: Credentials, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.calls.append("sign_up")
        self.sign_ups.append((credentials, metadata))
        if self.sign_up_error is not None:
            raise self.sign_up_error

    async def refresh(self) -> Session:
        self.calls.append("refresh")
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        self.completed.append("refresh")
        return self._next(self.refresh_results)

    async def sign_out(self) -> None:
        self.calls.append("sign_out")

    async def clear_local(self) -> None:
        self.calls.append("clear_local")

    def on_auth_state_change(self, listener) -> Subscription:
        self.listener = listener

        def remove() -> None:
            self.listener = None

        return Subscription(remove)

    def emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        if self.listener is not None:
            self.listener(event, session)


@pytest.fixture
def make_session(make_token) -> Callable[..., Session]:
    """Fabrique de Session portant un JWT qui expire dans `expires_in` secondes."""
    inspector = JWTTokenInspector()

    def _make(expires_in: float = 3600, user_id: str = "user-123", refresh_token: str = "refresh-1") -> Session:
        token = make_token(expires_in=expires_in, sub=user_id)
        return Session(
            access_token=token,
            user_id=user_id,
            expires_at=datetime.fromtimestamp(inspector.expiry_of(token) / 1000, tz=timezone.utc),
            refresh_token=refresh_token,
        )

    return _make


@pytest.fixture
def store() -> FakeSessionStore:
    return FakeSessionStore()


@pytest.fixture
def validator() -> Mock:
    """Validator acceptant toute session par défaut."""
    mock = Mock(spec=ISessionValidator)
    mock.is_valid = AsyncMock(return_value=True)
    return mock


