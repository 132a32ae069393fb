"""Calendar range helpers for month-scoped queries."""

from __future__ import annotations

from datetime import datetime, tzinfo


def month_range(year: int | str, month: int | str, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` where end is the first instant of the next month."""
    year_i = int(year)
    month_i = int(month)
    if not 1 <= month_i <= 12:
        raise ValueError(f"Invalid month: {month}")
    start = datetime(year_i, month_i, 1, tzinfo=tz)
    if month_i == 12:
        end = datetime(year_i + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year_i, month_i + 1, 1, tzinfo=tz)
    return start, end
