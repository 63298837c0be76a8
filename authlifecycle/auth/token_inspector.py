"""
AUTHLIFECYCLE - Token Inspector

Lecture du claim d'expiration d'un JWT, sans vérification de signature.
La confiance n'est jamais établie ici: seul le SessionValidator fait foi.
"""

import jwt

from .errors import DecodeError
from .interfaces import ITokenInspector


class JWTTokenInspector(ITokenInspector):
    """
    Inspecteur JWT basé sur PyJWT.

    Example:
        inspector = JWTTokenInspector()
        expires_ms = inspector.expiry_of(session.access_token)
    """

    def decode_without_validation(self, token: str) -> dict:
        """
        Décode le payload sans valider.

        ⚠️ NE JAMAIS utiliser pour authentifier.

        Raises:
            DecodeError: Token structurellement invalide
        """
        if not token or not isinstance(token, str):
            raise DecodeError("Token is empty")
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            raise DecodeError(f"Invalid token: {e}", cause=e)
        if not isinstance(payload, dict):
            raise DecodeError("Token payload is not an object")
        return payload

    def expiry_of(self, token: str) -> int:
        """
        Returns:
            Claim exp converti en millisecondes depuis epoch

        Raises:
            DecodeError: Token invalide ou claim exp absent/non numérique
        """
        payload = self.decode_without_validation(token)
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise DecodeError("Token has no numeric exp claim")
        return int(exp * 1000)
