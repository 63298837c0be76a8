"""
AUTHLIFECYCLE - Config Loader Implementation
Charge la configuration d'authentification depuis fichiers YAML.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .interfaces import AuthSettings, IConfigLoader


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


class ConfigLoader(IConfigLoader):
    """
    Chargement de AuthSettings depuis fichiers YAML.

    Le fichier peut contenir les clés à la racine ou sous une section ``auth``.
    Les variables d'environnement AUTH_BACKEND_URL et AUTH_API_KEY
    surchargent les valeurs du fichier.

    Example:
        loader = ConfigLoader("config")
        settings = await loader.load("auth")
    """

    ENV_OVERRIDES: Dict[str, str] = {
        "AUTH_BACKEND_URL": "backend_url",
        "AUTH_API_KEY": "api_key",
    }

    def __init__(self, configs_path: str = "config", environ: Optional[Dict[str, str]] = None):
        self.configs_path = Path(configs_path)
        self._environ = environ if environ is not None else os.environ

    async def load(self, name: str = "auth") -> AuthSettings:
        """
        Charge la config nommée.

        Args:
            name: Nom du fichier sans extension

        Returns:
            AuthSettings validés

        Raises:
            ConfigIntegrityError: Si fichier inexistant, YAML invalide ou valeurs refusées
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {config_file}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        return self.from_mapping(raw or {})

    def from_mapping(self, raw: Any) -> AuthSettings:
        """
        Valide un mapping déjà chargé (fichier ou dict).

        Raises:
            ConfigIntegrityError: Si structure ou valeurs invalides
        """
        if not isinstance(raw, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        section = raw.get("auth", raw)
        if not isinstance(section, dict):
            raise ConfigIntegrityError("Section auth doit être un objet")

        values = dict(section)
        for env_name, field_name in self.ENV_OVERRIDES.items():
            env_value = self._environ.get(env_name)
            if env_value:
                values[field_name] = env_value

        try:
            return AuthSettings(**values)
        except ValidationError as e:
            raise ConfigIntegrityError(f"Configuration invalide: {e}")
