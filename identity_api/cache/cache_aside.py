"""Cache-aside wrapper around any data-access callable.

The persisted record is the source of truth. Redis only accelerates reads:

* reads check the cache first and populate it on a miss,
* creates and updates write the fresh value after the store write succeeds,
* deletes always drop the key after the store delete.

A failing Redis command is logged and treated as a miss (reads) or a no-op
(writes). ``CacheConnectionFailedError`` is the exception: it propagates so
the process can stop instead of serving with a dead cache forever.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, Generic, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from identity_api.api.errors import ApiError, ApiErrorCode
from identity_api.cache.client import KeyValueStore
from identity_api.cache.errors import CacheConnectionFailedError, CacheError
from identity_api.core.ttl import DEFAULT_TTL_SECONDS

LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

CacheExpiry = int | datetime

_MISS = object()


class CacheAside(Generic[T]):
    """Read/write-through cache policy for one model type."""

    def __init__(
        self,
        store: KeyValueStore,
        model: type[T],
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._item = TypeAdapter(model)
        self._items = TypeAdapter(list[model])  # type: ignore[valid-type]
        self._default_ttl = default_ttl
        self._clock = clock

    def find_with_cache(
        self,
        key: str,
        fetch: Callable[[], T | None],
        expiry: CacheExpiry | None = None,
    ) -> T | None:
        """Return cached value or fetch, caching non-null results."""
        cached = self._read(key, self._item)
        if cached is not _MISS:
            return cached  # type: ignore[return-value]
        data = fetch()
        if data is not None:
            self._write(key, self._item.dump_json(data).decode("utf-8"), expiry)
        return data

    def find_many_with_cache(
        self,
        key: str,
        fetch: Callable[[], list[T]],
        expiry: CacheExpiry | None = None,
    ) -> list[T]:
        cached = self._read(key, self._items)
        if cached is not _MISS:
            return cached  # type: ignore[return-value]
        data = fetch()
        if data is not None:
            self._write(key, self._items.dump_json(data).decode("utf-8"), expiry)
        return data

    def find_with_cache_or_raise(
        self,
        key: str,
        fetch: Callable[[], T | None],
        expiry: CacheExpiry | None = None,
        *,
        message: str = "Resource not found",
        error_code: ApiErrorCode = ApiErrorCode.RESOURCE_NOT_FOUND,
    ) -> T:
        """Like ``find_with_cache`` but a missing value is a 404."""
        data = self.find_with_cache(key, fetch, expiry)
        if data is None:
            raise ApiError(status_code=404, error_code=error_code, message=message)
        return data

    def create_with_cache(
        self, key: str, create: Callable[[], T], ttl: int | None = None
    ) -> T:
        """Run ``create`` (no existence check here) and cache its result."""
        data = create()
        if data is not None:
            self._write(key, self._item.dump_json(data).decode("utf-8"), ttl)
        return data

    def update_with_cache(
        self, key: str, update: Callable[[], T | None], ttl: int | None = None
    ) -> T | None:
        data = update()
        if data is not None:
            self._write(key, self._item.dump_json(data).decode("utf-8"), ttl)
        return data

    def delete_with_cache(self, key: str, delete: Callable[[], T | None]) -> T | None:
        """Run ``delete`` then drop ``key`` whatever the outcome."""
        data = delete()
        self._delete(key)
        return data

    def invalidate(self, key: str) -> None:
        self._delete(key)

    def invalidate_matching(self, pattern: str) -> None:
        """Drop every key matching ``pattern``; failures are logged only."""
        try:
            removed = self._store.delete_matching(pattern)
        except CacheConnectionFailedError:
            raise
        except CacheError as exc:
            LOGGER.warning("cache_delete_failed: %s", exc, extra={"cache_key": pattern})
            return
        LOGGER.info("cache_deleted count=%s", removed, extra={"cache_key": pattern})

    def _read(self, key: str, adapter: TypeAdapter[Any]) -> Any:
        try:
            raw = self._store.get(key)
        except CacheConnectionFailedError:
            raise
        except CacheError as exc:
            LOGGER.warning("cache_read_failed: %s", exc, extra={"cache_key": key})
            return _MISS
        if raw is None:
            return _MISS
        try:
            value = adapter.validate_json(raw)
        except ValidationError:
            LOGGER.warning("cache_entry_unreadable", extra={"cache_key": key})
            return _MISS
        LOGGER.info("cache_hit", extra={"cache_key": key})
        return value

    def _write(self, key: str, payload: str, expiry: CacheExpiry | None) -> None:
        expiry = self._default_ttl if expiry is None else expiry
        try:
            if isinstance(expiry, datetime):
                expiry_ms = int(expiry.timestamp() * 1000)
                if expiry_ms <= int(self._clock() * 1000):
                    LOGGER.warning(
                        "cache_expiry_in_past: value not cached",
                        extra={"cache_key": key},
                    )
                    return
                self._store.set_and_expire_at(key, payload, expiry_ms)
            elif expiry <= 0:
                LOGGER.warning(
                    "cache_ttl_not_positive: value not cached",
                    extra={"cache_key": key},
                )
                return
            else:
                self._store.set(key, payload, ttl=expiry)
        except CacheConnectionFailedError:
            raise
        except CacheError as exc:
            LOGGER.warning("cache_write_failed: %s", exc, extra={"cache_key": key})
            return
        LOGGER.info("cache_set", extra={"cache_key": key})

    def _delete(self, key: str) -> None:
        try:
            self._store.delete(key)
        except CacheConnectionFailedError:
            raise
        except CacheError as exc:
            LOGGER.warning("cache_delete_failed: %s", exc, extra={"cache_key": key})
            return
        LOGGER.info("cache_deleted", extra={"cache_key": key})
