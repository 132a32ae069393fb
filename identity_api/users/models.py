"""Persisted user and role models plus user-facing projections."""

from __future__ import annotations

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, Field

from identity_api.auth.models import AuthProviderName, AuthUser


class Role(IntEnum):
    MEMBER = 100
    ADMIN = 150


class User(BaseModel):
    """Document stored in the ``users`` collection."""

    id: str
    employee_id: str
    username: str
    email: str
    password_hash: str
    is_active: bool = True
    external_id: str | None = None
    auth_provider: AuthProviderName | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None

    def to_auth_user(self) -> AuthUser:
        return AuthUser(
            id=self.id,
            username=self.username,
            email=self.email,
            password_hash=self.password_hash,
            auth_provider=self.auth_provider,
            is_active=self.is_active,
        )

    def to_profile(self) -> "UserProfile":
        return UserProfile(
            id=self.id,
            username=self.username,
            email=self.email,
            is_active=self.is_active,
            auth_provider=self.auth_provider,
        )


class UserRole(BaseModel):
    """Document stored in the ``user_roles`` collection."""

    id: str
    user_id: str
    role: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserProfile(BaseModel):
    """Public projection of a user."""

    id: str
    username: str
    email: str
    is_active: bool
    auth_provider: AuthProviderName | None = None


class UserPage(BaseModel):
    """One cached page of user profiles."""

    data: list[UserProfile]
    total: int
    page: int
    total_pages: int


class SignupStats(BaseModel):
    year: int
    month: int
    count: int


class UpdateProfileRequest(BaseModel):
    """Self-service profile update payload."""

    username: str = Field(min_length=1, max_length=64)
