"""Liveness route reporting MongoDB and Redis reachability."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from fastapi import FastAPI
from pymongo.errors import PyMongoError

from identity_api.api.contracts import HealthResponse

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def mongo_pinger(client: Any) -> Callable[[], bool]:
    """Return a callable that pings MongoDB and reports success."""

    def _ping() -> bool:
        try:
            client.admin.command("ping")
        except PyMongoError as exc:
            LOGGER.warning("mongo_ping_failed: %s", exc, extra={"operation": "health"})
            return False
        return True

    return _ping


@dataclass(frozen=True)
class HealthRouteDeps:
    """Dependencies required to mount the health route."""

    api_prefix: str
    mongo_ping: Callable[[], bool]
    redis_ping: Callable[[], bool]
    clock: Callable[[], datetime] = field(default=_utc_now)


def register_health_routes(app: FastAPI, *, deps: HealthRouteDeps) -> None:
    @app.get(f"{deps.api_prefix}/health", response_model=HealthResponse, tags=["health"])
    def health() -> HealthResponse:
        checks = {"mongo": bool(deps.mongo_ping()), "redis": bool(deps.redis_ping())}
        return HealthResponse(
            status="ok" if all(checks.values()) else "degraded",
            checks=checks,
            timestamp=deps.clock().isoformat(),
        )
