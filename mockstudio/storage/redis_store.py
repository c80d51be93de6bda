"""
Redis-backed key/value store.

Lets several Mock Studio processes (desktop shell, CLI helpers, a container)
share one set of environments. Keys are namespaced so the blobs can live in a
Redis database used for other things.

Falls back to an in-memory dict when Redis is unavailable at connect time.
"""

import logging
from typing import Dict, Optional

import redis

from mockstudio.storage.kv_store import KeyValueStore, StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)


class RedisStore(KeyValueStore):
    """
    Key/value store on plain Redis string keys.

    Usage:
        store = RedisStore(redis_url="redis://localhost:6379/0")
        store.connect()
        store.set("mock-api-environments", "[]")
        raw = store.get("mock-api-environments")
    """

    name = "redis"

    def __init__(self, redis_url: str = "redis://localhost:6379/0",
                 namespace: str = "mockstudio",
                 client: Optional[redis.Redis] = None):
        self._redis_url = redis_url
        self._namespace = namespace
        self._redis = client
        self._connected = client is not None
        # In-memory fallback when Redis is unavailable
        self._fallback: Dict[str, str] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> bool:
        """Attempt to connect to Redis. Returns True if successful."""
        try:
            client = self._redis or redis.Redis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
            )
            client.ping()
            self._redis = client
            self._connected = True
            logger.info(f"[REDIS] Connected to {self._redis_url}")
            return True
        except redis.RedisError as e:
            logger.warning(f"[REDIS] Connection failed ({e}). Using in-memory fallback.")
            self._connected = False
            self._redis = None
            return False

    def disconnect(self):
        """Close Redis connection."""
        if self._redis:
            try:
                self._redis.close()
            except redis.RedisError as e:
                logger.debug(f"[REDIS] close failed: {e}")
        self._redis = None
        self._connected = False

    def _ns(self, key: str) -> str:
        """Prefix namespace for Redis keys."""
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        if self._connected and self._redis:
            try:
                return self._redis.get(self._ns(key))
            except (redis.RedisError, UnicodeDecodeError) as e:
                raise StorageReadError(f"[REDIS] get {key} failed: {e}") from e
        return self._fallback.get(key)

    def set(self, key: str, value: str) -> None:
        # Keep the fallback current so a later disconnect does not lose the value
        self._fallback[key] = value
        if self._connected and self._redis:
            try:
                self._redis.set(self._ns(key), value)
            except redis.RedisError as e:
                raise StorageWriteError(f"[REDIS] set {key} failed: {e}") from e

    def remove(self, key: str) -> None:
        self._fallback.pop(key, None)
        if self._connected and self._redis:
            try:
                self._redis.delete(self._ns(key))
            except redis.RedisError as e:
                raise StorageWriteError(f"[REDIS] delete {key} failed: {e}") from e
