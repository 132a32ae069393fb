"""Issue and verify the access, refresh and id tokens."""

from __future__ import annotations

import time
import uuid
from typing import Any, Callable

from identity_api.api.errors import ApiErrorCode, unauthorized
from identity_api.auth.models import TokenSet
from identity_api.core.config import JwtConfig, TokenConfig
from identity_api.core.security import (
    TokenError,
    TokenExpiredError,
    build_signed_token,
    decode_signed_token,
)

ACCESS = "access"
REFRESH = "refresh"
ID = "id"


class TokenService:
    """HS256 token issuance; each token type has its own secret and lifetime."""

    def __init__(self, config: JwtConfig, *, clock: Callable[[], float] = time.time) -> None:
        self._config = config
        self._clock = clock

    def _settings(self, token_type: str) -> TokenConfig:
        return {
            ACCESS: self._config.access,
            REFRESH: self._config.refresh,
            ID: self._config.id,
        }[token_type]

    def _sign(self, token_type: str, claims: dict[str, Any]) -> str:
        settings = self._settings(token_type)
        now_ts = int(self._clock())
        payload = {
            **claims,
            "iss": self._config.issuer,
            "type": token_type,
            "iat": now_ts,
            "exp": now_ts + settings.ttl_seconds,
            "jti": uuid.uuid4().hex,
        }
        return build_signed_token(payload, settings.secret)

    def _verify(self, token: str, token_type: str) -> dict[str, Any]:
        try:
            payload = decode_signed_token(
                token, self._settings(token_type).secret, now=int(self._clock())
            )
        except TokenExpiredError as exc:
            raise unauthorized("Token expired", ApiErrorCode.AUTH_TOKEN_EXPIRED) from exc
        except TokenError as exc:
            raise unauthorized(str(exc), ApiErrorCode.AUTH_TOKEN_INVALID) from exc

        if str(payload.get("iss") or "") != self._config.issuer:
            raise unauthorized("Invalid token issuer", ApiErrorCode.AUTH_TOKEN_INVALID)
        if str(payload.get("type") or "") != token_type:
            raise unauthorized("Invalid token type", ApiErrorCode.AUTH_TOKEN_INVALID)
        if not payload.get("sub"):
            raise unauthorized("Token subject missing", ApiErrorCode.AUTH_TOKEN_INVALID)
        return payload

    def generate_access_token(
        self,
        user_id: str,
        username: str,
        email: str,
        auth_provider: str | None,
        roles: list[int],
    ) -> str:
        return self._sign(
            ACCESS,
            {
                "sub": user_id,
                "username": username,
                "email": email,
                "auth_provider": auth_provider,
                "roles": list(roles),
            },
        )

    def generate_refresh_token(self, user_id: str, username: str) -> str:
        return self._sign(REFRESH, {"sub": user_id, "username": username})

    def generate_id_token(
        self, user_id: str, email: str, username: str, auth_provider: str | None
    ) -> str:
        return self._sign(
            ID,
            {
                "sub": user_id,
                "email": email,
                "username": username,
                "auth_provider": auth_provider,
            },
        )

    def generate_tokens(
        self,
        user_id: str,
        username: str,
        email: str,
        auth_provider: str | None,
        roles: list[int],
    ) -> TokenSet:
        """Mint a fresh access/refresh/id triple for one user."""
        return TokenSet(
            access_token=self.generate_access_token(user_id, username, email, auth_provider, roles),
            refresh_token=self.generate_refresh_token(user_id, username),
            id_token=self.generate_id_token(user_id, email, username, auth_provider),
        )

    def verify_access_token(self, token: str) -> dict[str, Any]:
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> dict[str, Any]:
        return self._verify(token, REFRESH)

    def verify_id_token(self, token: str) -> dict[str, Any]:
        return self._verify(token, ID)
