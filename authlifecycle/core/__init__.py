"""
AUTHLIFECYCLE - Core

Configuration du cycle de vie de session:
- Modèle AuthSettings validé (pydantic)
- Chargement YAML avec surcharge par variables d'environnement
"""

from .interfaces import AuthSettings, DemoCredentials, IConfigLoader
from .config_loader import ConfigLoader, ConfigIntegrityError

__all__ = [
    # Data classes
    "AuthSettings",
    "DemoCredentials",
    # Interfaces
    "IConfigLoader",
    # Implementations
    "ConfigLoader",
    # Exceptions
    "ConfigIntegrityError",
]
