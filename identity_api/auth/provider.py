"""User lookup/creation contract the auth core depends on."""

from __future__ import annotations

from typing import Protocol

from identity_api.auth.models import AuthUser, NewUser


class UserProvider(Protocol):
    def find_by_email(self, email: str) -> AuthUser | None: ...

    def find_by_id(self, user_id: str) -> AuthUser | None: ...

    def create_user(self, new_user: NewUser) -> AuthUser:
        """Persist ``new_user``; raise a 409 ``ApiError`` if the email is taken."""
        ...

    def find_or_create_user(self, new_user: NewUser) -> AuthUser:
        """Return the active user with ``new_user.email``, creating it atomically."""
        ...

    def get_roles(self, user_id: str) -> list[int]: ...
