from __future__ import annotations

import json
from typing import Any

from starlette.requests import Request

from identity_api.api.errors import ApiError, ApiErrorCode, error_response, to_error_payload, unauthorized


def _request(path: str = "/api/v1/users/me", method: str = "GET") -> Request:
    scope: dict[str, Any] = {
        "type": "http",
        "method": method,
        "path": path,
        "query_string": b"",
        "headers": [],
        "scheme": "http",
        "server": ("testserver", 80),
    }
    return Request(scope)


def test_to_error_payload_preserves_structured_detail() -> None:
    payload = to_error_payload(
        {"error_code": "AUTH_TOKEN_INVALID", "message": "Invalid"},
        401,
    )

    assert payload == {"error_code": "AUTH_TOKEN_INVALID", "message": "Invalid"}


def test_to_error_payload_normalizes_plain_string() -> None:
    payload = to_error_payload("boom", 500)

    assert payload == {"error_code": "HTTP_500", "message": "boom"}


def test_api_error_exposes_code_and_unauthorized_defaults_to_credentials() -> None:
    error = ApiError(status_code=404, error_code=ApiErrorCode.USER_NOT_FOUND, message="missing")

    assert error.error_code == "USER_NOT_FOUND"
    assert unauthorized("nope").error_code == "AUTH_INVALID_CREDENTIALS"
    assert unauthorized("nope", ApiErrorCode.AUTH_OIDC_INVALID).status_code == 401


def test_error_response_renders_envelope_with_request_context() -> None:
    response = error_response(
        _request(method="PATCH"),
        status_code=409,
        error_code=ApiErrorCode.USER_CONFLICT,
        message="User already exists",
    )

    body = json.loads(response.body)
    assert response.status_code == 409
    assert body["status_code"] == 409
    assert body["error_code"] == "USER_CONFLICT"
    assert body["path"] == "/api/v1/users/me"
    assert body["method"] == "PATCH"
    assert body["timestamp"]
    assert "details" not in body


def test_error_response_includes_details_when_given() -> None:
    details = [{"field": "body.email", "message": "required", "type": "missing"}]

    response = error_response(
        _request(), status_code=422, error_code="VALIDATION_ERROR", message="bad", details=details
    )

    assert json.loads(response.body)["details"] == details
