"""
Client-side key-value storage adapters.

InMemoryClientStorage keeps everything in process. FileClientStorage keeps
durable values in a JSON file and ephemeral values in process, matching a
browser's local/session storage split.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from pathlib import Path
from threading import Lock

from src.components.identity import ClientStorageError

logger = logging.getLogger(__name__)


class InMemoryClientStorage:
    def __init__(self) -> None:
        self.durable: dict[str, str] = {}
        self.ephemeral: dict[str, str] = {}

    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        if key not in self.durable:
            self.durable[key] = factory()
        return self.durable[key]

    def get_ephemeral(self, key: str) -> str | None:
        return self.ephemeral.get(key)

    def set_ephemeral(self, key: str, value: str) -> None:
        self.ephemeral[key] = value

    def clear_ephemeral(self, key: str) -> None:
        self.ephemeral.pop(key, None)


class FileClientStorage(InMemoryClientStorage):
    """Durable values persisted to a JSON file; never overwritten once set."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._lock = Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ClientStorageError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ClientStorageError(f"Unexpected content in {self.path}")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise ClientStorageError(f"Cannot write {self.path}: {e}") from e

    def get_or_create(self, key: str, factory: Callable[[], str]) -> str:
        with self._lock:
            data = self._load()
            if key in data:
                return data[key]
            value = factory()
            data[key] = value
            self._save(data)
            logger.debug("Stored new durable value for %s", key)
            return value
