"""User management service; also the user provider for the auth core."""

from __future__ import annotations

import logging
from datetime import timezone, tzinfo
from typing import cast

from pymongo.errors import DuplicateKeyError

from identity_api.api.errors import ApiError, ApiErrorCode
from identity_api.auth.models import AuthUser, NewUser
from identity_api.cache.cache_aside import CacheAside
from identity_api.cache.client import KeyValueStore
from identity_api.cache.keys import CacheKeys
from identity_api.core.date_range import month_range
from identity_api.core.ttl import DEFAULT_TTL_SECONDS, IMMEDIATE, next_2am
from identity_api.persistence.repository import PaginationOptions, to_object_id
from identity_api.users.models import (
    Role,
    SignupStats,
    User,
    UserPage,
    UserProfile,
    UserRole,
)
from identity_api.users.repository import UserRepository, UserRoleRepository

LOGGER = logging.getLogger(__name__)

USER_LIST_TTL_SECONDS = IMMEDIATE


def _user_conflict() -> ApiError:
    return ApiError(
        status_code=409,
        error_code=ApiErrorCode.USER_CONFLICT,
        message="User already exists",
    )


def _user_not_found() -> ApiError:
    return ApiError(
        status_code=404,
        error_code=ApiErrorCode.USER_NOT_FOUND,
        message="User not found",
    )


class UsersService:
    """User lookups, creation, profile and role management with cache-aside reads."""

    def __init__(
        self,
        users: UserRepository,
        roles: UserRoleRepository,
        store: KeyValueStore,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        tz: tzinfo = timezone.utc,
    ) -> None:
        self._users = users
        self._roles = roles
        self._tz = tz
        self._user_cache = CacheAside(store, User, default_ttl=default_ttl)
        self._profile_cache = CacheAside(store, UserProfile, default_ttl=default_ttl)
        self._page_cache = CacheAside(store, UserPage, default_ttl=default_ttl)
        self._stats_cache = CacheAside(store, SignupStats, default_ttl=default_ttl)

    # User provider

    def find_by_email(self, email: str) -> AuthUser | None:
        normalized = email.strip().lower()
        user = self._user_cache.find_with_cache(
            CacheKeys.user.by_email(normalized),
            lambda: self._users.find_active_by_email(normalized),
        )
        if user is None or not user.is_active:
            return None
        return user.to_auth_user()

    def find_by_id(self, user_id: str) -> AuthUser | None:
        user = self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user.to_auth_user()

    def create_user(self, new_user: NewUser) -> AuthUser:
        email = new_user.email.strip().lower()
        if self._users.exists({"email": email, "is_active": True}):
            raise _user_conflict()

        document = new_user.model_dump()
        document.update(email=email, is_active=True)
        try:
            user = self._user_cache.create_with_cache(
                CacheKeys.user.by_email(email),
                lambda: self._users.create(document),
            )
        except DuplicateKeyError as exc:
            raise _user_conflict() from exc

        self._page_cache.invalidate_matching(CacheKeys.user.all_pages())
        LOGGER.info("user_created", extra={"user_id": user.id})
        return user.to_auth_user()

    def find_or_create_user(self, new_user: NewUser) -> AuthUser:
        email = new_user.email.strip().lower()
        document = new_user.model_dump(exclude={"email"})
        try:
            user = self._users.find_or_create({"email": email, "is_active": True}, document)
        except DuplicateKeyError as exc:
            raise _user_conflict() from exc
        return user.to_auth_user()

    def get_roles(self, user_id: str) -> list[int]:
        return self._roles.roles_for(user_id)

    # Management

    def assign_role(self, user_id: str, role: Role) -> UserRole:
        if self.find_by_id(user_id) is None:
            raise _user_not_found()
        return self._roles.find_or_create({"user_id": user_id, "role": int(role)}, {})

    def get_profile(self, user_id: str) -> UserProfile:
        return self._profile_cache.find_with_cache_or_raise(
            CacheKeys.user.by_id(user_id),
            lambda: self._active_profile(user_id),
            message="User not found",
            error_code=ApiErrorCode.USER_NOT_FOUND,
        )

    def update_profile(self, user_id: str, username: str) -> UserProfile:
        profile = self._profile_cache.update_with_cache(
            CacheKeys.user.by_id(user_id),
            lambda: self._update_active(user_id, {"username": username.strip()}),
        )
        if profile is None:
            raise _user_not_found()
        self._user_cache.invalidate(CacheKeys.user.by_email(profile.email))
        self._page_cache.invalidate_matching(CacheKeys.user.all_pages())
        return profile

    def deactivate_user(self, user_id: str) -> UserProfile:
        """Soft delete the user and drop every cached projection of it."""
        if self._active_profile(user_id) is None:
            raise _user_not_found()

        def _soft_delete() -> UserProfile | None:
            user = self._users.soft_delete(user_id)
            return None if user is None else user.to_profile()

        profile = self._profile_cache.delete_with_cache(CacheKeys.user.by_id(user_id), _soft_delete)
        if profile is None:
            raise _user_not_found()
        self._user_cache.invalidate(CacheKeys.user.by_email(profile.email))
        self._page_cache.invalidate_matching(CacheKeys.user.all_pages())
        LOGGER.info("user_deactivated", extra={"user_id": user_id})
        return profile

    def list_users(self, page: int = 1, limit: int = 10) -> UserPage:
        options = PaginationOptions(page=page, limit=limit).normalized()

        def _fetch() -> UserPage:
            result = self._users.find_with_pagination({"is_active": True}, options)
            return UserPage(
                data=[user.to_profile() for user in result.data],
                total=result.total,
                page=result.page,
                total_pages=result.total_pages,
            )

        page_data = self._page_cache.find_with_cache(
            CacheKeys.user.page(options.page, options.limit),
            _fetch,
            USER_LIST_TTL_SECONDS,
        )
        # _fetch always returns a page, so a miss never yields None.
        return cast(UserPage, page_data)

    def count_signups(self, year: int, month: int) -> SignupStats:
        """Users created in one calendar month; cached until the next 2 AM."""
        try:
            start, end = month_range(year, month, self._tz)
        except ValueError as exc:
            raise ApiError(
                status_code=422,
                error_code=ApiErrorCode.VALIDATION_ERROR,
                message=str(exc),
            ) from exc

        stats = self._stats_cache.find_with_cache(
            CacheKeys.user.signups(year, month),
            lambda: SignupStats(
                year=year,
                month=month,
                count=self._users.count_created_between(start, end),
            ),
            next_2am(self._tz),
        )
        return cast(SignupStats, stats)

    def _active_profile(self, user_id: str) -> UserProfile | None:
        user = self._users.find_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user.to_profile()

    def _update_active(self, user_id: str, changes: dict[str, str]) -> UserProfile | None:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = self._users.find_one_and_update({"_id": oid, "is_active": True}, changes)
        return None if user is None else user.to_profile()
