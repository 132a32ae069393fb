"""Cache lifetime presets and wall-clock expiry helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo
from typing import Callable

IMMEDIATE = 60
HOURLY = 3600
DAILY = 86400
WEEKLY = 604800
MONTHLY = 2592000
YEARLY = 31536000

DEFAULT_TTL_SECONDS = HOURLY


def next_daily_expiry(
    hour: int,
    minute: int,
    tz: tzinfo,
    *,
    now: Callable[[tzinfo], datetime] = datetime.now,
) -> datetime:
    """Return the next ``hour:minute`` in ``tz``; tomorrow if already passed."""
    current = now(tz)
    target = current.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if current >= target:
        target += timedelta(days=1)
    return target


def next_2am(tz: tzinfo) -> datetime:
    """Nightly expiry used for caches refreshed by batch jobs."""
    return next_daily_expiry(2, 0, tz)
