"""Password hashing and HS256 token signing primitives."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any

PBKDF2_ALGORITHM = "pbkdf2_sha256"
PBKDF2_DEFAULT_ROUNDS = 120_000


class TokenError(ValueError):
    """Token could not be decoded or its signature does not match."""


class TokenExpiredError(TokenError):
    """Token signature is valid but its ``exp`` claim is in the past."""


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("utf-8"))


def _sign(signing_input: bytes, secret_key: str) -> bytes:
    return hmac.new(secret_key.encode("utf-8"), signing_input, hashlib.sha256).digest()


def hash_password(password: str, rounds: int = PBKDF2_DEFAULT_ROUNDS) -> str:
    """Hash password with PBKDF2-HMAC-SHA256 and a random 16-byte salt."""
    salt = os.urandom(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return f"{PBKDF2_ALGORITHM}${rounds}${_b64url_encode(salt)}${_b64url_encode(derived)}"


def verify_password(password: str, stored_hash: str) -> bool:
    """Check password against a stored hash; malformed hashes never match."""
    try:
        algo, rounds_raw, salt_b64, digest_b64 = stored_hash.split("$", 3)
        if algo != PBKDF2_ALGORITHM:
            return False
        rounds = int(rounds_raw)
        salt = _b64url_decode(salt_b64)
        expected = _b64url_decode(digest_b64)
    except (ValueError, TypeError, AttributeError):
        return False

    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(derived, expected)


def build_signed_token(payload: dict[str, Any], secret_key: str) -> str:
    """Encode payload as a compact HS256 JWT."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_part = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    return f"{header_part}.{payload_part}.{_b64url_encode(_sign(signing_input, secret_key))}"


def decode_signed_token(token: str, secret_key: str, *, now: int | None = None) -> dict[str, Any]:
    """Verify an HS256 JWT and return its claims.

    Raises ``TokenExpiredError`` for an expired but otherwise valid token and
    ``TokenError`` for anything malformed or signed with another key.
    """
    try:
        header_part, payload_part, signature_part = token.split(".")
        got_sig = _b64url_decode(signature_part)
        header = json.loads(_b64url_decode(header_part).decode("utf-8"))
    except (ValueError, AttributeError) as exc:
        raise TokenError("Malformed token") from exc

    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise TokenError("Unsupported token algorithm")

    signing_input = f"{header_part}.{payload_part}".encode("utf-8")
    if not hmac.compare_digest(_sign(signing_input, secret_key), got_sig):
        raise TokenError("Invalid token signature")

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except ValueError as exc:
        raise TokenError("Invalid token payload") from exc
    if not isinstance(payload, dict):
        raise TokenError("Invalid token payload")

    current = int(time.time()) if now is None else now
    exp = int(payload.get("exp") or 0)
    if exp and exp <= current:
        raise TokenExpiredError("Token expired")

    return payload


def decode_unverified_claims(token: str) -> dict[str, Any]:
    """Return token claims without checking the signature."""
    try:
        _, payload_part, _ = token.split(".")
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except (ValueError, AttributeError) as exc:
        raise TokenError("Malformed token") from exc
    return payload if isinstance(payload, dict) else {}
