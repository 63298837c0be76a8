"""
AUTHLIFECYCLE - Logging - Sensitive Masker

Masquage des tokens et identifiants avant écriture dans les logs.
"""

import re
from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker

# Forme compacte d'un JWT: header.payload.signature en base64url
_JWT_PATTERN = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]*")


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des données sensibles.

    Deux règles:
        - Clé contenant un pattern sensible → valeur remplacée
        - Chaîne ressemblant à un JWT (quelle que soit la clé) → occurrences remplacées

    Example:
        masker = SensitiveMasker()
        safe = masker.mask({"access_token": "eyJ...", "user_id": "u-1"})
        # {"access_token": "***MASKED***", "user_id": "u-1"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        """
        Args:
            additional_patterns: Patterns supplémentaires à masquer
        """
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.lower() not in self._patterns:
                self._patterns.append(pattern.lower())

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque récursivement toutes les données sensibles.

        Args:
            data: Dictionnaire à masquer

        Returns:
            Copie avec données sensibles masquées
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            else:
                result[key] = self._mask_value(value)
        return result

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        if isinstance(value, str):
            return _JWT_PATTERN.sub(self.MASK_VALUE, value)
        return value

    def is_sensitive_key(self, key: str) -> bool:
        """
        Vérifie si clé contient un pattern sensible (case-insensitive).

        Args:
            key: Nom de la clé à vérifier

        Returns:
            True si clé contient pattern sensible
        """
        if not key:
            return False

        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)
