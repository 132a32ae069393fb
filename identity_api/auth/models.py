"""Pydantic models for authentication domain."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

AuthProviderName = Literal["google", "okta", "other"]


class AuthUser(BaseModel):
    """User shape consumed by the auth core."""

    id: str
    username: str
    email: str
    password_hash: str
    auth_provider: AuthProviderName | None = None
    is_active: bool = True


class NewUser(BaseModel):
    """User creation payload handed to the user provider; password already hashed."""

    employee_id: str
    username: str
    email: str
    password_hash: str
    auth_provider: AuthProviderName | None = None
    external_id: str | None = None


class SignupRequest(BaseModel):
    """Signup request payload."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    employee_id: str = Field(alias="employeeID", min_length=1)
    auth_provider: AuthProviderName | None = Field(default=None, alias="authProvider")
    external_id: str | None = Field(default=None, alias="externalId")


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class TokenSet(BaseModel):
    """Access, refresh and id tokens issued together."""

    access_token: str
    refresh_token: str
    id_token: str


class AccessClaims(BaseModel):
    """Verified access-token claims attached to ``request.state.user``."""

    sub: str
    username: str
    email: str
    auth_provider: str | None = None
    roles: list[int] = Field(default_factory=list)


class OidcTokens(BaseModel):
    """Token endpoint response from the identity provider."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    scope: str | None = None
    id_token: str | None = None
    refresh_token: str | None = None


class OidcUserInfo(BaseModel):
    """Userinfo claims; only ``sub``, ``email`` and ``name`` are relied on."""

    model_config = ConfigDict(extra="allow")

    sub: str | None = None
    email: str | None = None
    name: str | None = None
    preferred_username: str | None = None
    email_verified: bool | None = None
