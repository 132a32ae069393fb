"""Password hashing service."""

from __future__ import annotations

import secrets

from identity_api.core.security import PBKDF2_DEFAULT_ROUNDS, hash_password, verify_password


class PasswordService:
    def __init__(self, rounds: int = PBKDF2_DEFAULT_ROUNDS) -> None:
        self._rounds = rounds

    def hash(self, password: str) -> str:
        return hash_password(password, rounds=self._rounds)

    def compare(self, password: str, stored_hash: str) -> bool:
        return verify_password(password, stored_hash)

    def unusable_hash(self) -> str:
        """Hash of a random secret nobody knows, for accounts that sign in via SSO."""
        return self.hash(secrets.token_urlsafe(32))
