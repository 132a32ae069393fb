"""HTTP middleware that enforces auth on protected API routes."""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import HTTPException, Request

from identity_api.api.errors import ApiError, ApiErrorCode, error_response, to_error_payload
from identity_api.auth.models import AccessClaims
from identity_api.auth.service import AuthService

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"
ID_TOKEN_COOKIE = "idToken"

PUBLIC_PATHS = (
    "/health",
    "/auth/signup",
    "/auth/signin",
    "/auth/refresh-token",
    "/auth/okta",
    "/auth/okta/callback",
)


def _extract_bearer_token(authorization: str) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def extract_access_token(request: Request) -> str:
    """Access token from the cookie, falling back to a bearer header."""
    return request.cookies.get(ACCESS_TOKEN_COOKIE) or _extract_bearer_token(
        request.headers.get("authorization", "")
    )


def create_auth_middleware(
    service: AuthService,
    *,
    api_prefix: str,
    public_paths: Iterable[str] = PUBLIC_PATHS,
) -> Callable:
    """Create middleware function that validates access tokens under ``api_prefix``."""
    public = {f"{api_prefix}{path}" for path in public_paths}

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate auth for protected API paths and attach claims to request state."""
        path = request.url.path.rstrip("/") or "/"
        if not path.startswith(f"{api_prefix}/") or path in public:
            return await call_next(request)

        token = extract_access_token(request)
        if not token:
            return error_response(
                request,
                status_code=401,
                error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
                message="Missing access token",
            )

        try:
            user = service.verify_access_token(token)
        except HTTPException as exc:
            payload = to_error_payload(exc.detail, exc.status_code)
            return error_response(request, status_code=exc.status_code, **payload)

        request.state.user = user
        return await call_next(request)

    return auth_middleware


def current_user(request: Request) -> AccessClaims:
    """Claims attached by the auth middleware."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, AccessClaims):
        raise ApiError(
            status_code=401,
            error_code=ApiErrorCode.AUTH_MISSING_TOKEN,
            message="Missing access token",
        )
    return user


def require_role(request: Request, role: int) -> AccessClaims:
    user = current_user(request)
    if role not in user.roles:
        raise ApiError(
            status_code=403,
            error_code=ApiErrorCode.AUTH_FORBIDDEN,
            message="Insufficient role",
        )
    return user
