from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from identity_api.auth.oidc_client import OidcClientError, OktaClient
from tests.fakes import build_config


@dataclass
class _FakeResponse:
    status_code: int
    body: Any

    def json(self) -> Any:
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


@dataclass
class _FakeSession:
    responses: list[Any] = field(default_factory=list)
    calls: list[tuple[str, str, dict[str, Any]]] = field(default_factory=list)
    closed: bool = False

    def _next(self, method: str, url: str, kwargs: dict[str, Any]) -> _FakeResponse:
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url: str, **kwargs: Any) -> _FakeResponse:
        return self._next("POST", url, kwargs)

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        return self._next("GET", url, kwargs)

    def close(self) -> None:
        self.closed = True


def _client(*responses: Any) -> tuple[OktaClient, _FakeSession]:
    session = _FakeSession(list(responses))
    return OktaClient(build_config().okta, session=session), session  # type: ignore[arg-type]


def test_build_authorization_url_carries_client_and_state() -> None:
    client, _ = _client()

    url = urlparse(client.build_authorization_url("state-1"))
    query = parse_qs(url.query)

    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://example.okta.test/oauth2/v1/authorize"
    assert query["client_id"] == ["client-1"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["openid profile email"]
    assert query["state"] == ["state-1"]


def test_exchange_code_posts_form_and_parses_tokens() -> None:
    client, session = _client(
        _FakeResponse(200, {"access_token": "at", "id_token": "it", "token_type": "Bearer"})
    )

    tokens = client.exchange_code_for_tokens("code-1")

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://example.okta.test/oauth2/v1/token")
    assert kwargs["data"]["grant_type"] == "authorization_code"
    assert kwargs["data"]["code"] == "code-1"
    assert kwargs["timeout"] == 10
    assert tokens.access_token == "at"


def test_error_body_description_is_surfaced() -> None:
    client, _ = _client(
        _FakeResponse(400, {"error": "invalid_grant", "error_description": "code expired"})
    )

    with pytest.raises(OidcClientError) as exc:
        client.exchange_code_for_tokens("stale")

    assert str(exc.value) == "Okta exchange_code_for_tokens failed: code expired"
    assert exc.value.status_code == 400


def test_error_without_json_body_falls_back_to_status() -> None:
    client, _ = _client(_FakeResponse(503, ValueError("not json")))

    with pytest.raises(OidcClientError) as exc:
        client.refresh_access_token("rt")

    assert exc.value.description == "HTTP 503"


def test_get_user_info_sends_bearer_and_keeps_extra_claims() -> None:
    client, session = _client(
        _FakeResponse(200, {"sub": "00u1", "email": "d@example.com", "name": "Dana", "locale": "en"})
    )

    info = client.get_user_info("at")

    _, url, kwargs = session.calls[0]
    assert url == "https://example.okta.test/oauth2/v1/userinfo"
    assert kwargs["headers"]["Authorization"] == "Bearer at"
    assert info.sub == "00u1"
    assert info.model_extra == {"locale": "en"}


def test_transport_failure_is_wrapped() -> None:
    client, _ = _client(requests.ConnectionError("refused"))

    with pytest.raises(OidcClientError) as exc:
        client.get_user_info("at")

    assert exc.value.operation == "get_user_info"
    assert exc.value.status_code is None


def test_revoke_token_ignores_empty_success_body_and_close_closes_session() -> None:
    client, session = _client(_FakeResponse(200, ValueError("empty")))

    client.revoke_token("at")
    client.close()

    assert session.calls[0][1] == "https://example.okta.test/oauth2/v1/revoke"
    assert session.closed is True
