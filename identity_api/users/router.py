"""User profile and administration routes."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request

from identity_api.api.contracts import (
    ApiErrorResponse,
    PaginatedUsersResponse,
    SignupStatsResponse,
    UserProfileResponse,
)
from identity_api.auth.middleware import current_user, require_role
from identity_api.persistence.repository import DEFAULT_LIMIT, MAX_LIMIT
from identity_api.users.models import Role, UpdateProfileRequest
from identity_api.users.service import UsersService


def create_users_router(service: UsersService, *, api_prefix: str) -> APIRouter:
    """Build users router; every route requires an authenticated caller."""
    router = APIRouter(prefix=f"{api_prefix}/users", tags=["users"])
    auth_errors = {401: {"model": ApiErrorResponse}, 404: {"model": ApiErrorResponse}}
    admin_errors = {**auth_errors, 403: {"model": ApiErrorResponse}}

    @router.get("/me", response_model=UserProfileResponse, responses=auth_errors)
    def get_me(request: Request) -> UserProfileResponse:
        """Return the caller's profile."""
        profile = service.get_profile(current_user(request).sub)
        return UserProfileResponse(**profile.model_dump())

    @router.patch("/me", response_model=UserProfileResponse, responses=auth_errors)
    def update_me(req: UpdateProfileRequest, request: Request) -> UserProfileResponse:
        profile = service.update_profile(current_user(request).sub, req.username)
        return UserProfileResponse(**profile.model_dump())

    @router.get("", response_model=PaginatedUsersResponse, responses=admin_errors)
    def list_users(
        request: Request,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    ) -> PaginatedUsersResponse:
        """List active users, newest first."""
        require_role(request, Role.ADMIN)
        result = service.list_users(page=page, limit=limit)
        return PaginatedUsersResponse(**result.model_dump())

    @router.get("/stats/signups", response_model=SignupStatsResponse, responses=admin_errors)
    def signup_stats(
        request: Request,
        year: int = Query(ge=1970, le=9999),
        month: int = Query(ge=1, le=12),
    ) -> SignupStatsResponse:
        require_role(request, Role.ADMIN)
        stats = service.count_signups(year, month)
        return SignupStatsResponse(**stats.model_dump())

    @router.delete("/{user_id}", response_model=UserProfileResponse, responses=admin_errors)
    def deactivate_user(user_id: str, request: Request) -> UserProfileResponse:
        """Soft delete a user."""
        require_role(request, Role.ADMIN)
        profile = service.deactivate_user(user_id)
        return UserProfileResponse(**profile.model_dump())

    return router
