"""Key-value store used for sync deduplication and the background order queue."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Callable
from functools import lru_cache

import redis

from foodflow.core.config import settings

logger = logging.getLogger(__name__)

# Deletes KEYS[1] only while it still holds ARGV[1].
_DELETE_IF_EQUALS_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

# Resets the expiry of KEYS[1] to ARGV[2] seconds only while it still holds ARGV[1].
_EXPIRE_IF_EQUALS_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('expire', KEYS[1], ARGV[2])
end
return 0
"""


class KeyValueStoreError(RuntimeError):
    """Raised when the backing store cannot be reached or rejects a command."""


class KeyValueStore(ABC):
    """String values with optional expiry plus simple FIFO lists."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    def set_if_absent(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        """Store ``value`` only when ``key`` is missing; return whether it was stored."""

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def delete_if_equals(self, key: str, value: str) -> bool: ...

    @abstractmethod
    def expire_if_equals(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Reset the expiry of ``key`` only while it holds ``value``; return whether it did."""

    @abstractmethod
    def rpush(self, key: str, value: str) -> int: ...

    @abstractmethod
    def lpop(self, key: str) -> str | None: ...

    @abstractmethod
    def llen(self, key: str) -> int: ...


class RedisKeyValueStore(KeyValueStore):
    """Redis implementation backed by a redis-py connection pool."""

    def __init__(self, url: str, socket_timeout: float = 5.0) -> None:
        self._client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        self._delete_if_equals = self._client.register_script(_DELETE_IF_EQUALS_SCRIPT)
        self._expire_if_equals = self._client.register_script(_EXPIRE_IF_EQUALS_SCRIPT)

    def _call(self, command: str, key: str, func: Callable[[], object]):
        try:
            return func()
        except redis.RedisError as exc:
            logger.warning("[KV] Redis %s failed for key '%s': %s", command, key, exc)
            raise KeyValueStoreError(f"Redis {command} failed for key '{key}'") from exc

    def get(self, key: str) -> str | None:
        return self._call("GET", key, lambda: self._client.get(key))

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        self._call("SET", key, lambda: self._client.set(key, value, ex=ttl_seconds))

    def set_if_absent(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        return bool(self._call("SET NX", key, lambda: self._client.set(key, value, ex=ttl_seconds, nx=True)))

    def delete(self, key: str) -> None:
        self._call("DEL", key, lambda: self._client.delete(key))

    def delete_if_equals(self, key: str, value: str) -> bool:
        return bool(self._call("EVALSHA", key, lambda: self._delete_if_equals(keys=[key], args=[value])))

    def expire_if_equals(self, key: str, value: str, ttl_seconds: int) -> bool:
        return bool(
            self._call("EVALSHA", key, lambda: self._expire_if_equals(keys=[key], args=[value, ttl_seconds]))
        )

    def rpush(self, key: str, value: str) -> int:
        return int(self._call("RPUSH", key, lambda: self._client.rpush(key, value)))

    def lpop(self, key: str) -> str | None:
        return self._call("LPOP", key, lambda: self._client.lpop(key))

    def llen(self, key: str) -> int:
        return int(self._call("LLEN", key, lambda: self._client.llen(key)))


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store for development and tests.

    Expiry is evaluated lazily on access against ``clock`` (monotonic seconds).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._values: dict[str, tuple[str, float | None]] = {}
        self._lists: dict[str, deque[str]] = {}

    def _expires_at(self, ttl_seconds: int | None) -> float | None:
        return None if ttl_seconds is None else self._clock() + ttl_seconds

    def _live_value(self, key: str) -> str | None:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._values[key]
            return None
        return value

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        with self._lock:
            self._values[key] = (value, self._expires_at(ttl_seconds))

    def set_if_absent(self, key: str, value: str, ttl_seconds: int | None = None) -> bool:
        with self._lock:
            if self._live_value(key) is not None:
                return False
            self._values[key] = (value, self._expires_at(ttl_seconds))
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)
            self._lists.pop(key, None)

    def delete_if_equals(self, key: str, value: str) -> bool:
        with self._lock:
            if self._live_value(key) != value:
                return False
            del self._values[key]
            return True

    def expire_if_equals(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live_value(key) != value:
                return False
            self._values[key] = (value, self._expires_at(ttl_seconds))
            return True

    def rpush(self, key: str, value: str) -> int:
        with self._lock:
            items = self._lists.setdefault(key, deque())
            items.append(value)
            return len(items)

    def lpop(self, key: str) -> str | None:
        with self._lock:
            items = self._lists.get(key)
            if not items:
                return None
            value = items.popleft()
            if not items:
                del self._lists[key]
            return value

    def llen(self, key: str) -> int:
        with self._lock:
            return len(self._lists.get(key, ()))


@lru_cache(maxsize=1)
def _default_store() -> KeyValueStore:
    if settings.redis_url:
        logger.info("[KV] Using Redis key-value store")
        return RedisKeyValueStore(settings.redis_url)
    logger.warning("[KV] REDIS_URL not set; using in-memory key-value store")
    return InMemoryKeyValueStore()


def get_kv_store() -> KeyValueStore:
    """FastAPI dependency returning the process-wide key-value store."""
    return _default_store()
