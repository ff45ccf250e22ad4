"""Key-value persistence used by device identity and trust grants.

The store is process-local and synchronous. TTL is enforced by readers
(lazy expiry), never by the store itself.
"""

import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String-valued key-value store."""

    def get(self, key: str) -> str | None:
        """Return value, or None if the key doesn't exist."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        """Delete key. Safe to call with a missing key."""
        ...


class InMemoryKeyValueStore:
    """Dict-backed KeyValueStore for tests and single-process use."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


def get_json(store: KeyValueStore, key: str) -> Any | None:
    """
    Read and deserialize a JSON value.

    Returns None if the key is missing. A corrupt value is removed and
    treated as missing.
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Discarding unreadable JSON in key '{key}'")
        store.remove(key)
        return None


def set_json(store: KeyValueStore, key: str, value: dict | list) -> None:
    """Serialize value to JSON and store it."""
    store.set(key, json.dumps(value))
