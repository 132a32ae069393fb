"""Key-value store failure types."""

from __future__ import annotations


class CacheError(RuntimeError):
    """A single Redis operation failed or timed out."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"Redis {operation} failed: {message}")
        self.operation = operation


class CacheConnectionFailedError(CacheError):
    """Redis stayed unreachable past the reconnect budget; the process must stop."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            "connect",
            f"connection permanently failed after {attempts} reconnect attempts",
        )
        self.attempts = attempts
