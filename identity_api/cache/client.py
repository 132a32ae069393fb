"""Redis-backed key-value store used for caching and advisory locks."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Callable, TypeVar

import redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from identity_api.cache.errors import CacheConnectionFailedError, CacheError
from identity_api.core.config import RedisConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

# Backoff between in-call reconnects: 50ms doubling, capped at 5s.
_BACKOFF_BASE_SECONDS = 0.05
_BACKOFF_CAP_SECONDS = 5.0
_IN_CALL_RETRIES = 3

# Owner check and delete run as one atomic server-side command.
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


def create_redis_client(config: RedisConfig) -> redis.Redis:
    """Build the process-wide Redis client from configuration."""
    return redis.Redis(
        host=config.host,
        port=config.port,
        password=config.password,
        db=config.db,
        decode_responses=True,
        socket_timeout=config.socket_timeout_seconds,
        socket_connect_timeout=config.connect_timeout_seconds,
        retry=Retry(
            ExponentialBackoff(cap=_BACKOFF_CAP_SECONDS, base=_BACKOFF_BASE_SECONDS),
            _IN_CALL_RETRIES,
        ),
        retry_on_error=[redis.ConnectionError, redis.TimeoutError],
    )


class KeyValueStore:
    """Thin wrapper over a Redis client with uniform error mapping.

    Every command goes through ``_execute``. Connection and timeout errors
    count towards ``max_reconnect_attempts``; once that many happen in a row
    the store raises ``CacheConnectionFailedError`` and the process is
    expected to exit. Any successful command resets the counter.
    """

    def __init__(self, client: Any, *, max_reconnect_attempts: int = 15) -> None:
        self._client = client
        self._max_reconnect_attempts = max(1, int(max_reconnect_attempts))
        self._consecutive_failures = 0
        self._lock = Lock()
        self._release_lock_script = client.register_script(_RELEASE_LOCK_SCRIPT)

    @classmethod
    def from_config(cls, config: RedisConfig) -> "KeyValueStore":
        return cls(
            create_redis_client(config),
            max_reconnect_attempts=config.max_reconnect_attempts,
        )

    @property
    def client(self) -> Any:
        return self._client

    def _execute(self, operation: str, fn: Callable[[], T]) -> T:
        try:
            result = fn()
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            with self._lock:
                self._consecutive_failures += 1
                failures = self._consecutive_failures
            LOGGER.error(
                "redis_connection_error attempt=%s/%s: %s",
                failures,
                self._max_reconnect_attempts,
                exc,
                extra={"operation": operation},
            )
            if failures >= self._max_reconnect_attempts:
                raise CacheConnectionFailedError(failures) from exc
            raise CacheError(operation, str(exc)) from exc
        except redis.RedisError as exc:
            raise CacheError(operation, str(exc)) from exc

        if self._consecutive_failures:
            with self._lock:
                self._consecutive_failures = 0
        return result

    # Strings

    def get(self, key: str) -> str | None:
        return self._execute("get", lambda: self._client.get(key))

    def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Set ``key``; ``ttl`` seconds when given, otherwise no expiry."""
        if ttl:
            self._execute("set", lambda: self._client.set(key, value, ex=ttl))
        else:
            self._execute("set", lambda: self._client.set(key, value))

    def set_and_expire_at(self, key: str, value: str, expiry_ms: int) -> None:
        """Set ``key`` to expire at an absolute unix time in milliseconds."""
        self._execute("set_and_expire_at", lambda: self._client.set(key, value, pxat=expiry_ms))

    def delete(self, key: str) -> int:
        return int(self._execute("delete", lambda: self._client.delete(key)))

    def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob ``pattern`` (SCAN, not KEYS)."""

        def _scan_and_delete() -> int:
            removed = 0
            for key in self._client.scan_iter(match=pattern, count=200):
                removed += int(self._client.delete(key))
            return removed

        return self._execute("delete_matching", _scan_and_delete)

    def exists(self, key: str) -> int:
        return int(self._execute("exists", lambda: self._client.exists(key)))

    def incr(self, key: str) -> int:
        return int(self._execute("incr", lambda: self._client.incr(key)))

    def decr(self, key: str) -> int:
        return int(self._execute("decr", lambda: self._client.decr(key)))

    def incr_by(self, key: str, amount: int) -> int:
        return int(self._execute("incr_by", lambda: self._client.incrby(key, amount)))

    def decr_by(self, key: str, amount: int) -> int:
        return int(self._execute("decr_by", lambda: self._client.decrby(key, amount)))

    # Hashes

    def hset(self, key: str, field: str, value: str) -> int:
        return int(self._execute("hset", lambda: self._client.hset(key, field, value)))

    def hget(self, key: str, field: str) -> str | None:
        return self._execute("hget", lambda: self._client.hget(key, field))

    def hgetall(self, key: str) -> dict[str, str]:
        return dict(self._execute("hgetall", lambda: self._client.hgetall(key)) or {})

    def hdel(self, key: str, field: str) -> int:
        return int(self._execute("hdel", lambda: self._client.hdel(key, field)))

    def hexists(self, key: str, field: str) -> bool:
        return bool(self._execute("hexists", lambda: self._client.hexists(key, field)))

    # Expiry

    def expire(self, key: str, ttl: int) -> bool:
        return bool(self._execute("expire", lambda: self._client.expire(key, ttl)))

    def ttl(self, key: str) -> int:
        return int(self._execute("ttl", lambda: self._client.ttl(key)))

    def persist(self, key: str) -> bool:
        return bool(self._execute("persist", lambda: self._client.persist(key)))

    def expire_at(self, key: str, unix_seconds: int) -> bool:
        return bool(self._execute("expire_at", lambda: self._client.expireat(key, unix_seconds)))

    # Lists

    def lpush(self, key: str, value: str) -> int:
        return int(self._execute("lpush", lambda: self._client.lpush(key, value)))

    def lrange(self, key: str, start: int, end: int) -> list[str]:
        return list(self._execute("lrange", lambda: self._client.lrange(key, start, end)) or [])

    def lpop(self, key: str) -> str | None:
        return self._execute("lpop", lambda: self._client.lpop(key))

    def llen(self, key: str) -> int:
        return int(self._execute("llen", lambda: self._client.llen(key)))

    def lindex(self, key: str, index: int) -> str | None:
        return self._execute("lindex", lambda: self._client.lindex(key, index))

    def lset(self, key: str, index: int, value: str) -> bool:
        return bool(self._execute("lset", lambda: self._client.lset(key, index, value)))

    def lrem(self, key: str, count: int, value: str) -> int:
        return int(self._execute("lrem", lambda: self._client.lrem(key, count, value)))

    # Advisory lock

    def acquire_lock(self, key: str, owner: str, ttl: int) -> bool:
        """Take ``key`` for ``owner`` unless someone holds it (SET NX EX)."""
        result = self._execute(
            "acquire_lock", lambda: self._client.set(key, owner, nx=True, ex=ttl)
        )
        return bool(result)

    def release_lock(self, key: str, owner: str) -> bool:
        """Release ``key`` only when ``owner`` still holds it."""
        released = self._execute(
            "release_lock",
            lambda: self._release_lock_script(keys=[key], args=[owner]),
        )
        return bool(released)

    # Lifecycle

    def ping(self) -> bool:
        """Return reachability without touching the failure counter."""
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        try:
            self._client.close()
        except redis.RedisError:
            LOGGER.exception("Error disconnecting from Redis")
