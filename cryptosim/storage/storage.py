"""Key-value document storage.

``JsonFileStorage`` keeps one JSON document per key in a directory. The
ledger and the application settings are each stored as a single document.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class IStorageService(ABC):
    """Interface for storing JSON-compatible documents under string keys."""

    @abstractmethod
    def save(self, key: str, data: Any) -> None:
        """Store ``data`` under ``key``, replacing any previous document.

        Raises:
            TypeError: If data cannot be encoded
            OSError: If the document cannot be written
        """
        ...

    @abstractmethod
    def load(self, key: str) -> Optional[Any]:
        """Return the document stored under ``key``, or None."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Whether a document is stored under ``key``, readable or not."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class JsonFileStorage(IStorageService):
    """Documents as ``<key>.json`` files below a base directory.

    A save writes ``<key>.json.tmp`` and renames it over the target, so the
    file on disk is always either the old or the new document.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path_for(self, key: str) -> Path:
        # Keys never address subdirectories
        name = key.replace("/", "_").replace("\\", "_")
        return self._base_path / f"{name}.json"

    def save(self, key: str, data: Any) -> None:
        target = self._path_for(key)
        staging = target.with_name(target.name + ".tmp")
        try:
            encoded = json.dumps(data, indent=2, ensure_ascii=False)
            staging.write_text(encoded, encoding="utf-8")
            staging.replace(target)
        except (TypeError, OSError) as e:
            logger.error(f"Could not write document '{key}' to {target}: {e}")
            staging.unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote document '{key}' ({len(encoded)} bytes)")

    def exists(self, key: str) -> bool:
        return self._path_for(key).exists()

    def load(self, key: str) -> Optional[Any]:
        """Read a document.

        Returns:
            The decoded document, or None when the file is missing,
            unreadable or not valid JSON
        """
        source = self._path_for(key)
        if not source.exists():
            return None
        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Document '{key}' is not valid JSON: {e}")
        except OSError as e:
            logger.error(f"Could not read document '{key}': {e}")
        return None

    def delete(self, key: str) -> None:
        """Remove a document; a missing key is not an error."""
        try:
            self._path_for(key).unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Could not delete document '{key}': {e}")
