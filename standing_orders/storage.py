"""
Key-value persistence for wizard and quiz progress.

Stores are plain get/set/delete of strings. The save/load/clear helpers are
best-effort: a failing store is logged and otherwise ignored, never retried.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Type, TypeVar, runtime_checkable

from pydantic import BaseModel

log = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


@runtime_checkable
class KeyValueStore(Protocol):
    """Interface for a string key-value store. Implement to plug in another backend."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store; state lives as long as the object."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore:
    """Store backed by one JSON object file; every write rewrites the file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"State file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def save_state(store: Optional[KeyValueStore], key: str, state: BaseModel) -> bool:
    """Persist a model as JSON under `key`. Returns False (and logs) if the store fails."""
    if store is None:
        return False
    try:
        store.set(key, state.model_dump_json(by_alias=True))
    except (OSError, ValueError) as e:
        log.warning("Error saving %s: %s", key, e)
        return False
    return True


def load_state(store: Optional[KeyValueStore], key: str, model: Type[M]) -> Optional[M]:
    """Load a model saved under `key`, or None if absent, unreadable or invalid."""
    if store is None:
        return None
    try:
        raw = store.get(key)
        if raw is None:
            return None
        return model.model_validate_json(raw)
    except (OSError, ValueError) as e:
        log.warning("Error loading %s: %s", key, e)
        return None


def clear_state(store: Optional[KeyValueStore], key: str) -> None:
    if store is None:
        return
    try:
        store.delete(key)
    except (OSError, ValueError) as e:
        log.warning("Error clearing %s: %s", key, e)
