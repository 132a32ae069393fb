"""Bounded retry helper for callers that opt into retrying."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar, cast

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhaustedError(RuntimeError):
    """Raised when every attempt of a retried call has failed."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"Failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


def retry(
    fn: Callable[[], T],
    max_attempts: int,
    delay_seconds: float = 0.0,
    *,
    retry_on: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` up to ``max_attempts`` times, sleeping between failures."""
    attempts = max(1, int(max_attempts))
    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            last_error = exc
            LOGGER.warning("retry_attempt_failed attempt=%s/%s: %s", attempt, attempts, exc)
            if attempt < attempts and delay_seconds > 0:
                sleep(delay_seconds)
    # attempts >= 1, so the loop ran and failed at least once.
    failure = cast(Exception, last_error)
    raise RetryExhaustedError(attempts, failure) from failure
