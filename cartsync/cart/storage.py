"""
String key/value media for local cart persistence.

Two lifetimes are needed: a session-scoped medium that dies with the
browsing session/process, and a reload-surviving one. The engine relies on
nothing beyond get/set/remove of strings.
"""
from typing import Dict, Optional

from cartsync.db import RedisKeys, get_redis_sync
from cartsync.logging import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    """Minimal string key/value interface."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store; its lifetime is the session that owns it."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisStore(KeyValueStore):
    """
    Reload-surviving store on Upstash Redis.

    Keys are namespaced so several devices/profiles can share one database.
    Redis errors propagate; PersistenceAdapter decides how to degrade.
    """

    def __init__(self, namespace: str, redis_client=None, ttl: Optional[int] = None):
        self.namespace = namespace
        self.ttl = ttl
        self._redis = redis_client  # Lazy initialization

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis_sync()
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get(self, key: str) -> Optional[str]:
        value = self.redis.get(self._key(key))
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        if self.ttl:
            self.redis.set(self._key(key), value, ex=self.ttl)
        else:
            self.redis.set(self._key(key), value)

    def remove(self, key: str) -> None:
        self.redis.delete(self._key(key))


class StorageKeys:
    """Keys used inside the local stores."""

    CART = RedisKeys.LOCAL_CART
    PREFERENCES = RedisKeys.LOCAL_PREFERENCES
    SESSION_ID = RedisKeys.SESSION_ID
