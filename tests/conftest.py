"""
AUTHLIFECYCLE - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

import time
from pathlib import Path
from typing import Callable, Optional

import jwt
import pytest

from authlifecycle.core import AuthSettings

TEST_SIGNING_KEY = "authlifecycle-test-signing-key-0123456789"


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Fabrique de JWT HS256 expirant dans `expires_in` secondes."""

    def _make(expires_in: float = 3600, sub: str = "user-123", now: Optional[float] = None) -> str:
        issued = now if now is not None else time.time()
        payload = {"sub": sub, "iat": int(issued), "exp": int(issued + expires_in)}
        return jwt.encode(payload, TEST_SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def fast_settings() -> AuthSettings:
    """Constantes réduites pour des tests rapides."""
    return AuthSettings(
        auth_check_timeout=2.0,
        request_timeout=1.0,
        retry_base_delay=0.001,
        retry_backoff_factor=1.5,
        retry_max_attempts=3,
    )
