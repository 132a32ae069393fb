"""HTTP client for the Okta OAuth 2.0 / OIDC endpoints.

Only transport lives here; user creation and token issuance belong to
``AuthService``. No caching, retries or claim validation.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import requests
from pydantic import ValidationError

from identity_api.auth.models import OidcTokens, OidcUserInfo
from identity_api.core.config import OktaConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_SCOPE = "openid profile email"


class OidcClientError(RuntimeError):
    """An Okta endpoint failed or returned an unusable body."""

    def __init__(self, operation: str, description: str, status_code: int | None = None) -> None:
        super().__init__(f"Okta {operation} failed: {description}")
        self.operation = operation
        self.description = description
        self.status_code = status_code


class OktaClient:
    """Stateless calls against ``{issuer}/v1/*``."""

    def __init__(self, config: OktaConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    def _url(self, endpoint: str) -> str:
        return f"{self._config.issuer}/v1/{endpoint}"

    def build_authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self._config.client_id,
                "response_type": "code",
                "scope": self._config.scope or DEFAULT_SCOPE,
                "redirect_uri": self._config.callback_url,
                "state": state,
            }
        )
        return f"{self._url('authorize')}?{query}"

    def exchange_code_for_tokens(self, code: str) -> OidcTokens:
        LOGGER.info("okta_exchange_code", extra={"operation": "exchange_code_for_tokens"})
        body = self._post_form(
            "exchange_code_for_tokens",
            "token",
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._config.callback_url,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
            },
        )
        return self._parse("exchange_code_for_tokens", OidcTokens, body)

    def refresh_access_token(self, refresh_token: str) -> OidcTokens:
        body = self._post_form(
            "refresh_access_token",
            "token",
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
                "scope": self._config.scope or DEFAULT_SCOPE,
            },
        )
        return self._parse("refresh_access_token", OidcTokens, body)

    def get_user_info(self, access_token: str) -> OidcUserInfo:
        LOGGER.info("okta_userinfo", extra={"operation": "get_user_info"})
        try:
            response = self._session.get(
                self._url("userinfo"),
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise OidcClientError("get_user_info", str(exc)) from exc
        body = self._json_or_raise("get_user_info", response)
        return self._parse("get_user_info", OidcUserInfo, body)

    def revoke_token(self, token: str, token_type_hint: str = "access_token") -> None:
        self._post_form(
            "revoke_token",
            "revoke",
            {
                "token": token,
                "token_type_hint": token_type_hint,
                "client_id": self._config.client_id,
                "client_secret": self._config.client_secret,
            },
            expect_body=False,
        )

    def close(self) -> None:
        self._session.close()

    def _post_form(
        self,
        operation: str,
        endpoint: str,
        data: dict[str, str],
        *,
        expect_body: bool = True,
    ) -> dict[str, Any]:
        try:
            response = self._session.post(
                self._url(endpoint),
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise OidcClientError(operation, str(exc)) from exc
        if not expect_body:
            if response.status_code >= 400:
                self._json_or_raise(operation, response)
            return {}
        return self._json_or_raise(operation, response)

    @staticmethod
    def _json_or_raise(operation: str, response: requests.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400:
            description = str(
                body.get("error_description")
                or body.get("message")
                or body.get("error")
                or f"HTTP {response.status_code}"
            )
            LOGGER.error(
                "okta_request_failed: %s",
                description,
                extra={"operation": operation, "status_code": response.status_code},
            )
            raise OidcClientError(operation, description, response.status_code)
        return body

    @staticmethod
    def _parse(operation: str, model: Any, body: dict[str, Any]) -> Any:
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise OidcClientError(operation, "unexpected response body") from exc
