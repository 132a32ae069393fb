from __future__ import annotations

import pytest

from identity_api.api.errors import ApiError
from identity_api.auth.passwords import PasswordService
from identity_api.auth.tokens import TokenService
from identity_api.core.config import JwtConfig, TokenConfig
from identity_api.core.security import (
    TokenError,
    TokenExpiredError,
    build_signed_token,
    decode_signed_token,
    decode_unverified_claims,
)


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _jwt_config(**overrides: TokenConfig) -> JwtConfig:
    return JwtConfig(
        issuer="identity-test",
        access=overrides.get("access", TokenConfig(secret="access-secret", ttl_seconds=900)),
        refresh=overrides.get("refresh", TokenConfig(secret="refresh-secret", ttl_seconds=3600)),
        id=overrides.get("id", TokenConfig(secret="id-secret", ttl_seconds=600)),
    )


def test_signed_token_round_trip_and_tamper_detection() -> None:
    token = build_signed_token({"sub": "u1", "exp": 2_000}, "secret")

    assert decode_signed_token(token, "secret", now=1_000)["sub"] == "u1"
    with pytest.raises(TokenError):
        decode_signed_token(token, "other-secret", now=1_000)
    with pytest.raises(TokenExpiredError):
        decode_signed_token(token, "secret", now=2_000)
    with pytest.raises(TokenError):
        decode_signed_token("garbage", "secret")


def test_generate_tokens_carries_documented_claims() -> None:
    service = TokenService(_jwt_config(), clock=_Clock(1_000))

    tokens = service.generate_tokens("u1", "alice", "alice@example.com", "okta", [100])
    access = service.verify_access_token(tokens.access_token)
    refresh = service.verify_refresh_token(tokens.refresh_token)
    id_claims = service.verify_id_token(tokens.id_token)

    assert access["sub"] == "u1"
    assert access["roles"] == [100]
    assert access["exp"] == 1_900
    assert set(refresh) >= {"sub", "username"}
    assert "email" not in refresh
    assert id_claims["email"] == "alice@example.com"
    assert id_claims["exp"] == 1_600


def test_each_token_type_is_rejected_under_another_secret() -> None:
    service = TokenService(_jwt_config(), clock=_Clock(1_000))
    tokens = service.generate_tokens("u1", "alice", "alice@example.com", None, [])

    with pytest.raises(ApiError) as exc:
        service.verify_access_token(tokens.refresh_token)

    assert exc.value.status_code == 401
    assert exc.value.error_code == "AUTH_TOKEN_INVALID"


def test_expired_token_reports_expired_code() -> None:
    clock = _Clock(1_000)
    service = TokenService(_jwt_config(), clock=clock)
    token = service.generate_access_token("u1", "alice", "alice@example.com", None, [])
    clock.now = 1_000 + 900

    with pytest.raises(ApiError) as exc:
        service.verify_access_token(token)

    assert exc.value.error_code == "AUTH_TOKEN_EXPIRED"


def test_type_claim_is_checked_even_with_shared_secret() -> None:
    shared = TokenConfig(secret="shared", ttl_seconds=900)
    service = TokenService(_jwt_config(access=shared, id=shared), clock=_Clock(1_000))
    id_token = service.generate_id_token("u1", "alice@example.com", "alice", None)

    with pytest.raises(ApiError) as exc:
        service.verify_access_token(id_token)

    assert exc.value.error_code == "AUTH_TOKEN_INVALID"


def test_decode_unverified_claims_reads_subject() -> None:
    service = TokenService(_jwt_config())
    token = service.generate_refresh_token("u42", "bob")

    assert decode_unverified_claims(token)["sub"] == "u42"


def test_password_hash_and_compare() -> None:
    passwords = PasswordService(rounds=1_000)

    stored = passwords.hash("correct horse")

    assert stored.startswith("pbkdf2_sha256$1000$")
    assert "correct horse" not in stored
    assert passwords.compare("correct horse", stored) is True
    assert passwords.compare("wrong", stored) is False
    assert passwords.compare("correct horse", "plain-text") is False


def test_unusable_hash_matches_no_guessable_password() -> None:
    passwords = PasswordService(rounds=1_000)

    stored = passwords.unusable_hash()

    assert passwords.compare("", stored) is False
    assert stored != passwords.unusable_hash()
