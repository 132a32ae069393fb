"""Authentication service for signup, signin, refresh and Okta SSO."""

from __future__ import annotations

import logging

from identity_api.api.errors import ApiErrorCode, unauthorized
from identity_api.auth.models import (
    AccessClaims,
    AuthUser,
    LoginRequest,
    NewUser,
    SignupRequest,
    TokenSet,
)
from identity_api.auth.oidc_client import OktaClient
from identity_api.auth.passwords import PasswordService
from identity_api.auth.provider import UserProvider
from identity_api.auth.tokens import TokenService

LOGGER = logging.getLogger(__name__)


class AuthService:
    """Authentication domain service.

    Depends on the ``UserProvider`` contract only; user storage and caching
    are the provider's concern.
    """

    def __init__(
        self,
        users: UserProvider,
        tokens: TokenService,
        passwords: PasswordService,
        okta: OktaClient,
        *,
        required_roles: tuple[int, ...] = (),
    ) -> None:
        self._users = users
        self._tokens = tokens
        self._passwords = passwords
        self._okta = okta
        self._required_roles = frozenset(required_roles)

    def signup(self, req: SignupRequest) -> TokenSet:
        """Create a local account and issue its first token set."""
        user = self._users.create_user(
            NewUser(
                employee_id=req.employee_id.strip(),
                username=req.username.strip(),
                email=req.email.strip().lower(),
                password_hash=self._passwords.hash(req.password),
                auth_provider=req.auth_provider,
                external_id=req.external_id,
            )
        )
        # A brand-new account holds no role assignments yet.
        return self._issue(user, roles=[])

    def signin(self, req: LoginRequest) -> TokenSet:
        """Authenticate credentials and issue a token set."""
        user = self._users.find_by_email(req.email.strip().lower())
        if user is None or not user.is_active:
            raise unauthorized("Invalid credentials")
        if not self._passwords.compare(req.password, user.password_hash):
            raise unauthorized("Invalid credentials")
        return self._issue(user, self._users.get_roles(user.id))

    def refresh_tokens(self, email: str) -> TokenSet:
        user = self._users.find_by_email(email.strip().lower())
        if user is None or not user.is_active:
            raise unauthorized("User not found", ApiErrorCode.AUTH_TOKEN_INVALID)
        return self._issue(user, self._users.get_roles(user.id))

    def redeem_refresh_token(self, refresh_token: str | None) -> TokenSet:
        """Verify a refresh token and mint a full new token set for its subject."""
        if not refresh_token:
            raise unauthorized("Missing refresh token", ApiErrorCode.AUTH_MISSING_TOKEN)
        claims = self._tokens.verify_refresh_token(refresh_token)
        user = self._users.find_by_id(str(claims["sub"]))
        if user is None:
            raise unauthorized("User not found", ApiErrorCode.AUTH_TOKEN_INVALID)
        return self.refresh_tokens(user.email)

    def okta_login(self, code: str) -> TokenSet:
        """Exchange an authorization code, resolve the local user and issue tokens.

        The identity must carry ``sub``, ``email`` and ``name``; anything less
        is rejected before a user record is touched.
        """
        if not (code or "").strip():
            raise unauthorized("Missing authorization code", ApiErrorCode.AUTH_OIDC_INVALID)

        oidc_tokens = self._okta.exchange_code_for_tokens(code)
        info = self._okta.get_user_info(oidc_tokens.access_token)
        if not (info.sub and info.email and info.name):
            LOGGER.warning("okta_identity_incomplete", extra={"operation": "okta_login"})
            raise unauthorized(
                "Incomplete identity from provider", ApiErrorCode.AUTH_OIDC_INVALID
            )

        email = info.email.strip().lower()
        user = self._users.find_or_create_user(
            NewUser(
                employee_id=f"okta:{info.sub}",
                username=info.name,
                email=email,
                password_hash=self._passwords.unusable_hash(),
                auth_provider="okta",
                external_id=info.sub,
            )
        )
        if not user.is_active:
            raise unauthorized("Invalid credentials")

        roles = self._users.get_roles(user.id)
        if self._required_roles and not self._required_roles.intersection(roles):
            LOGGER.warning(
                "okta_role_required",
                extra={"user_id": user.id, "error_code": ApiErrorCode.AUTH_ROLE_REQUIRED},
            )
            raise unauthorized("Required role missing", ApiErrorCode.AUTH_ROLE_REQUIRED)

        LOGGER.info("okta_login_succeeded", extra={"user_id": user.id})
        return self._issue(user, roles)

    def build_okta_authorization_url(self, state: str) -> str:
        return self._okta.build_authorization_url(state)

    def verify_access_token(self, token: str) -> AccessClaims:
        """Validate access token and return normalized user claims."""
        return AccessClaims.model_validate(self._tokens.verify_access_token(token))

    def _issue(self, user: AuthUser, roles: list[int]) -> TokenSet:
        return self._tokens.generate_tokens(
            user_id=user.id,
            username=user.username,
            email=user.email,
            auth_provider=user.auth_provider,
            roles=roles,
        )
