"""Authentication API router."""

from __future__ import annotations

import hmac
import secrets
from urllib.parse import quote

from fastapi import APIRouter, Request, Response
from fastapi.responses import RedirectResponse

from identity_api.api.contracts import ApiErrorResponse, MessageResponse, TokenSetResponse
from identity_api.api.errors import ApiErrorCode, unauthorized
from identity_api.auth.middleware import (
    ACCESS_TOKEN_COOKIE,
    ID_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    current_user,
)
from identity_api.auth.models import LoginRequest, SignupRequest, TokenSet
from identity_api.auth.service import AuthService
from identity_api.core.config import AppConfig, CookieConfig

OKTA_STATE_COOKIE = "oktaState"
OKTA_STATE_MAX_AGE = 600


def set_token_cookies(response: Response, tokens: TokenSet, cookies: CookieConfig) -> None:
    """Attach the three http-only token cookies."""
    for name, value, max_age in (
        (ACCESS_TOKEN_COOKIE, tokens.access_token, cookies.access_max_age),
        (REFRESH_TOKEN_COOKIE, tokens.refresh_token, cookies.refresh_max_age),
        (ID_TOKEN_COOKIE, tokens.id_token, cookies.id_max_age),
    ):
        response.set_cookie(
            name,
            value,
            max_age=max_age,
            path="/",
            httponly=True,
            secure=cookies.secure,
            samesite=cookies.samesite,
        )


def clear_token_cookies(response: Response, cookies: CookieConfig) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, ID_TOKEN_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=cookies.secure,
            samesite=cookies.samesite,
        )


def create_auth_router(service: AuthService, config: AppConfig) -> APIRouter:
    """Build authentication router with signup/signin/refresh/logout/okta endpoints."""
    router = APIRouter(prefix=f"{config.server.api_prefix}/auth", tags=["auth"])
    cookies = config.cookies
    frontend_url = config.okta.frontend_url

    @router.post(
        "/signup",
        status_code=201,
        response_model=TokenSetResponse,
        response_model_by_alias=True,
        responses={409: {"model": ApiErrorResponse}, 422: {"model": ApiErrorResponse}},
    )
    def signup(req: SignupRequest) -> TokenSetResponse:
        """Register a local account and return its token set."""
        tokens = service.signup(req)
        return TokenSetResponse(**tokens.model_dump())

    @router.post(
        "/signin",
        response_model=MessageResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def signin(req: LoginRequest, response: Response) -> MessageResponse:
        """Authenticate credentials and set token cookies."""
        tokens = service.signin(req)
        set_token_cookies(response, tokens, cookies)
        return MessageResponse(message="Login successful")

    @router.get(
        "/refresh-token",
        response_model=MessageResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def refresh_token(request: Request, response: Response) -> MessageResponse:
        """Redeem the refresh cookie and rotate all three cookies."""
        tokens = service.redeem_refresh_token(request.cookies.get(REFRESH_TOKEN_COOKIE))
        set_token_cookies(response, tokens, cookies)
        return MessageResponse(message="Refresh token successful")

    @router.post(
        "/logout",
        response_model=MessageResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def logout(request: Request, response: Response) -> MessageResponse:
        current_user(request)
        clear_token_cookies(response, cookies)
        return MessageResponse(message="Logout successful")

    @router.get("/okta", response_class=RedirectResponse, status_code=302)
    def okta_login() -> RedirectResponse:
        """Start the Okta authorization code flow."""
        state = secrets.token_urlsafe(24)
        redirect = RedirectResponse(service.build_okta_authorization_url(state), status_code=302)
        # Lax regardless of config: the cookie must survive the redirect back from Okta.
        redirect.set_cookie(
            OKTA_STATE_COOKIE,
            state,
            max_age=OKTA_STATE_MAX_AGE,
            path="/",
            httponly=True,
            secure=cookies.secure,
            samesite="lax",
        )
        return redirect

    @router.get(
        "/okta/callback",
        response_class=RedirectResponse,
        status_code=302,
        responses={401: {"model": ApiErrorResponse}, 502: {"model": ApiErrorResponse}},
    )
    def okta_callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
    ) -> RedirectResponse:
        """Finish the Okta flow, set cookies and send the browser to the frontend."""
        if error:
            return RedirectResponse(
                f"{frontend_url}/login?error={quote(error, safe='')}", status_code=302
            )

        expected_state = request.cookies.get(OKTA_STATE_COOKIE) or ""
        if not expected_state or not hmac.compare_digest(
            expected_state.encode("utf-8"), (state or "").encode("utf-8")
        ):
            raise unauthorized("Invalid OIDC state", ApiErrorCode.AUTH_OIDC_INVALID)

        tokens = service.okta_login(code or "")
        redirect = RedirectResponse(f"{frontend_url}/dashboard", status_code=302)
        set_token_cookies(redirect, tokens, cookies)
        redirect.delete_cookie(OKTA_STATE_COOKIE, path="/")
        return redirect

    return router
