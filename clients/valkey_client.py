"""
Valkey (Redis-compatible) backed KeyValueStore.

Lets device identity and trust grants persist outside the process, e.g.
when the auth flow runs behind a desktop shell or a thin server.
Fail-fast: raises on connection failure, never returns fallback values.
"""

import logging

import redis

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    KeyValueStore over a Redis-compatible server.

    Keys are namespaced so several installations can share one server.
    No TTLs are set here: grant expiry is enforced by readers.

    Usage:
        store = ValkeyClient("redis://localhost:6379/0", namespace="desktop-01")
        store.set("connecta_device_id", "...")
        value = store.get("connecta_device_id")  # Returns None if missing
    """

    def __init__(self, url: str, namespace: str = ""):
        """
        Initialize Valkey connection.

        Args:
            url: Redis-compatible connection URL (e.g., redis://localhost:6379/0)
            namespace: Prefix applied to every key

        Raises:
            redis.ConnectionError: If connection fails
        """
        self._client = redis.from_url(url, decode_responses=True)
        self._namespace = namespace
        # Verify connectivity immediately (fail-fast)
        self._client.ping()
        logger.info("ValkeyClient connected")

    def _key(self, key: str) -> str:
        if not self._namespace:
            return key
        return f"{self._namespace}:{key}"

    def ping(self) -> bool:
        """
        Health check.

        Returns True if Valkey responds.
        Raises redis.ConnectionError if unreachable.
        """
        self._client.ping()
        return True

    def get(self, key: str) -> str | None:
        """
        Get value by key.

        Returns None if key doesn't exist (not an error).
        Raises on connection failure.
        """
        return self._client.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        """Set key to value, without expiration."""
        self._client.set(self._key(key), value)

    def remove(self, key: str) -> None:
        """Delete key. Missing keys are not an error."""
        self._client.delete(self._key(key))

    def close(self) -> None:
        """Close the connection."""
        self._client.close()
        logger.info("ValkeyClient closed")
