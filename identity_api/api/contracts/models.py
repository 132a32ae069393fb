"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    status_code: int = Field(description="HTTP status code")
    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    timestamp: str = Field(description="ISO-8601 time the error was produced")
    path: str = ""
    method: str = ""
    details: list[dict[str, Any]] | None = None


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok", "degraded"]
    checks: dict[str, bool]
    timestamp: str


class MessageResponse(BaseModel):
    message: str


class TokenSetResponse(BaseModel):
    """Token triple returned by signup, serialised as ``accessToken`` etc."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")
    id_token: str = Field(alias="idToken")


class UserProfileResponse(BaseModel):
    id: str
    username: str
    email: str
    is_active: bool
    auth_provider: str | None = None


class PaginatedUsersResponse(BaseModel):
    data: list[UserProfileResponse]
    total: int
    page: int
    total_pages: int


class SignupStatsResponse(BaseModel):
    """Number of accounts created in one calendar month."""

    year: int
    month: int
    count: int
