"""Shared API error types and helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from identity_api.api.contracts import ApiErrorResponse


class ApiErrorCode(StrEnum):
    """Machine-readable API error codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    AUTH_INVALID_CREDENTIALS = "AUTH_INVALID_CREDENTIALS"
    AUTH_TOKEN_INVALID = "AUTH_TOKEN_INVALID"
    AUTH_TOKEN_EXPIRED = "AUTH_TOKEN_EXPIRED"
    AUTH_OIDC_INVALID = "AUTH_OIDC_INVALID"
    AUTH_ROLE_REQUIRED = "AUTH_ROLE_REQUIRED"
    AUTH_FORBIDDEN = "AUTH_FORBIDDEN"
    USER_CONFLICT = "USER_CONFLICT"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self, *, status_code: int, error_code: ApiErrorCode, message: str
    ) -> None:
        super().__init__(
            status_code=status_code,
            detail={"error_code": str(error_code), "message": message},
        )

    @property
    def error_code(self) -> str:
        return str(self.detail["error_code"])


def unauthorized(
    message: str, error_code: ApiErrorCode = ApiErrorCode.AUTH_INVALID_CREDENTIALS
) -> ApiError:
    """Build the 401 raised for any credential, token or identity failure."""
    return ApiError(status_code=401, error_code=error_code, message=message)


def to_error_payload(detail: Any, status_code: int) -> dict[str, str]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        return {"error_code": error_code, "message": message}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
    }


def error_response(
    request: Request,
    *,
    status_code: int,
    error_code: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    """Render the error envelope for ``request``."""
    return JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(
            status_code=status_code,
            error_code=str(error_code),
            message=message,
            timestamp=datetime.now(timezone.utc).isoformat(),
            path=request.url.path,
            method=request.method,
            details=details,
        ).model_dump(exclude_none=True),
    )
