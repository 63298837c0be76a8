"""
Tests unitaires JWTTokenInspector
"""

import jwt
import pytest

from authlifecycle.auth import DecodeError, ITokenInspector, JWTTokenInspector


@pytest.fixture
def inspector():
    return JWTTokenInspector()


class TestExpiryOf:
    """Lecture du claim exp."""

    def test_implements_interface(self, inspector):
        assert isinstance(inspector, ITokenInspector)

    def test_exp_in_milliseconds(self, inspector, make_token):
        token = make_token(expires_in=3600, now=1_700_000_000)
        assert inspector.expiry_of(token) == (1_700_000_000 + 3600) * 1000

    def test_signature_not_verified(self, inspector):
        token = jwt.encode({"exp": 2_000_000_000}, "another-key-entirely-0123456789abc", algorithm="HS256")
        assert inspector.expiry_of(token) == 2_000_000_000_000

    def test_expired_token_still_readable(self, inspector, make_token):
        token = make_token(expires_in=-3600, now=1_700_000_000)
        assert inspector.expiry_of(token) == (1_700_000_000 - 3600) * 1000


class TestMalformedTokens:
    """Tokens structurellement invalides."""

    @pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
    def test_malformed(self, inspector, token):
        with pytest.raises(DecodeError):
            inspector.expiry_of(token)

    def test_missing_exp(self, inspector):
        token = jwt.encode({"sub": "user-123"}, "key-0123456789abcdef0123456789ab", algorithm="HS256")
        with pytest.raises(DecodeError):
            inspector.expiry_of(token)

    def test_non_numeric_exp(self, inspector):
        token = jwt.encode({"exp": "tomorrow"}, "key-0123456789abcdef0123456789ab", algorithm="HS256")
        with pytest.raises(DecodeError):
            inspector.expiry_of(token)
