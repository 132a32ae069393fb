from __future__ import annotations

import pytest
import redis

from identity_api.cache.client import KeyValueStore
from identity_api.cache.errors import CacheConnectionFailedError, CacheError
from tests.fakes import FakeRedis


def test_set_with_ttl_uses_relative_expiry_and_without_ttl_none() -> None:
    client = FakeRedis()
    store = KeyValueStore(client)

    store.set("a", "1", ttl=60)
    store.set("b", "2")

    assert client.ttls == {"a": 60}
    assert store.get("a") == "1"
    assert store.get("b") == "2"


def test_set_and_expire_at_uses_absolute_milliseconds() -> None:
    client = FakeRedis()
    store = KeyValueStore(client)

    store.set_and_expire_at("k", "v", 1_900_000_000_000)

    assert client.expire_at_ms == {"k": 1_900_000_000_000}


def test_delete_matching_only_removes_keys_matching_the_pattern() -> None:
    client = FakeRedis()
    store = KeyValueStore(client)
    store.set("user:list:1:10", "[]")
    store.set("user:list:2:10", "[]")
    store.set("user:id:1", "{}")

    removed = store.delete_matching("user:list:*")

    assert removed == 2
    assert set(client.values) == {"user:id:1"}


def test_redis_error_is_wrapped_with_operation_name() -> None:
    client = FakeRedis()
    client.fail_with = redis.ResponseError("WRONGTYPE")
    store = KeyValueStore(client)

    with pytest.raises(CacheError) as exc:
        store.get("k")

    assert exc.value.operation == "get"
    assert "Redis get failed" in str(exc.value)
    assert not isinstance(exc.value, CacheConnectionFailedError)


def test_consecutive_connection_failures_become_fatal_at_threshold() -> None:
    client = FakeRedis()
    client.fail_with = redis.ConnectionError("refused")
    store = KeyValueStore(client, max_reconnect_attempts=3)

    for _ in range(2):
        with pytest.raises(CacheError) as exc:
            store.get("k")
        assert not isinstance(exc.value, CacheConnectionFailedError)

    with pytest.raises(CacheConnectionFailedError) as fatal:
        store.get("k")
    assert fatal.value.attempts == 3


def test_successful_command_resets_failure_counter() -> None:
    client = FakeRedis()
    store = KeyValueStore(client, max_reconnect_attempts=2)

    client.fail_with = redis.TimeoutError("slow")
    with pytest.raises(CacheError):
        store.get("k")
    client.fail_with = None
    store.set("k", "v")
    client.fail_with = redis.TimeoutError("slow")

    with pytest.raises(CacheError) as exc:
        store.get("k")
    assert not isinstance(exc.value, CacheConnectionFailedError)


def test_lock_is_exclusive_and_released_only_by_owner() -> None:
    store = KeyValueStore(FakeRedis())

    assert store.acquire_lock("lock:job", "worker-a", ttl=30) is True
    assert store.acquire_lock("lock:job", "worker-b", ttl=30) is False
    assert store.release_lock("lock:job", "worker-b") is False
    assert store.release_lock("lock:job", "worker-a") is True
    assert store.acquire_lock("lock:job", "worker-b", ttl=30) is True


def test_release_after_expiry_does_not_drop_next_owners_lock() -> None:
    client = FakeRedis()
    store = KeyValueStore(client)
    store.acquire_lock("lock:job", "worker-a", ttl=30)
    client.values.pop("lock:job")
    store.acquire_lock("lock:job", "worker-b", ttl=30)
    client.calls.clear()

    released = store.release_lock("lock:job", "worker-a")

    assert released is False
    assert client.values["lock:job"] == "worker-b"
    assert client.calls == ["evalsha"]
    assert "redis.call(\"del\", KEYS[1])" in client.scripts[0]


def test_hash_list_and_counter_commands_pass_through() -> None:
    store = KeyValueStore(FakeRedis())

    store.hset("h", "field", "value")
    store.lpush("l", "first")
    store.lpush("l", "second")

    assert store.hget("h", "field") == "value"
    assert store.hgetall("h") == {"field": "value"}
    assert store.lrange("l", 0, -1) == ["second", "first"]
    assert store.incr("n") == 1
    assert store.incr_by("n", 4) == 5


def test_ping_reports_false_instead_of_raising() -> None:
    client = FakeRedis()
    store = KeyValueStore(client)
    assert store.ping() is True

    client.fail_with = redis.ConnectionError("down")

    assert store.ping() is False
