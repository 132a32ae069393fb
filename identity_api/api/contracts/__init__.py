"""Public API response contracts."""

from identity_api.api.contracts.models import (
    ApiErrorResponse,
    HealthResponse,
    MessageResponse,
    PaginatedUsersResponse,
    SignupStatsResponse,
    TokenSetResponse,
    UserProfileResponse,
)

__all__ = [
    "ApiErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "PaginatedUsersResponse",
    "SignupStatsResponse",
    "TokenSetResponse",
    "UserProfileResponse",
]
