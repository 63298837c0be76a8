"""
AUTHLIFECYCLE - Key/Value Storage

Stockages clé/valeur pour la persistance de session entre redémarrages.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from .interfaces import IKeyValueStorage


class StorageError(Exception):
    """Erreur de lecture/écriture du stockage."""

    pass


class MemoryStorage(IKeyValueStorage):
    """
    Stockage en mémoire.

    Note:
        Perdu à l'arrêt du processus. Utiliser FileStorage pour persister.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())


class FileStorage(IKeyValueStorage):
    """
    Stockage dans un fichier JSON (un objet clé → valeur).

    Le fichier est relu à chaque accès et réécrit à chaque modification.

    Example:
        storage = FileStorage("~/.cache/authlifecycle/session.json")
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Lecture impossible ({self.path}): {e}")
        if not isinstance(data, dict):
            raise StorageError(f"Contenu invalide ({self.path}): objet attendu")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            tmp_path.replace(self.path)
        except OSError as e:
            raise StorageError(f"Écriture impossible ({self.path}): {e}")

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)
