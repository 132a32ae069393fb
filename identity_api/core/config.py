"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str, default_seconds: int) -> int:
    """Parse ``900``, ``15m``, ``12h`` or ``30d`` into seconds."""
    match = _DURATION_RE.match(value or "")
    if match is None:
        return default_seconds
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class MongoConfig:
    """MongoDB connection settings."""

    uri: str
    db_name: str
    server_selection_timeout_ms: int


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection settings."""

    host: str
    port: int
    password: str | None
    db: int
    socket_timeout_seconds: float
    connect_timeout_seconds: float
    max_reconnect_attempts: int


@dataclass(frozen=True)
class TokenConfig:
    """Signing secret and lifetime for one token type."""

    secret: str
    ttl_seconds: int


@dataclass(frozen=True)
class JwtConfig:
    """Per-token-type signing configuration."""

    issuer: str
    access: TokenConfig
    refresh: TokenConfig
    id: TokenConfig


@dataclass(frozen=True)
class OktaConfig:
    """Okta OIDC client settings."""

    issuer: str
    client_id: str
    client_secret: str
    callback_url: str
    scope: str
    frontend_url: str
    required_roles: tuple[int, ...]
    timeout_seconds: float


@dataclass(frozen=True)
class CookieConfig:
    """Token cookie attributes."""

    secure: bool
    samesite: str
    access_max_age: int
    refresh_max_age: int
    id_max_age: int


@dataclass(frozen=True)
class CacheConfig:
    """Cache-aside defaults."""

    default_ttl_seconds: int


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server runtime settings."""

    port: int
    api_prefix: str
    environment: str
    timezone: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str]
    request_max_bytes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    mongo: MongoConfig
    redis: RedisConfig
    jwt: JwtConfig
    okta: OktaConfig
    cookies: CookieConfig
    cache: CacheConfig
    server: ServerConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        environment = os.getenv("APP_ENV", "development").strip().lower() or "development"

        okta_issuer = os.getenv("OKTA_ISSUER", "").strip().rstrip("/")
        if not okta_issuer:
            okta_domain = os.getenv("OKTA_DOMAIN", "").strip().rstrip("/")
            okta_issuer = f"{okta_domain}/oauth2" if okta_domain else ""
        required_roles = tuple(
            int(role) for role in _env_list("OKTA_REQUIRED_ROLES", "") if role.isdigit()
        )

        api_prefix = os.getenv("API_PREFIX", "/api/v1").strip().rstrip("/")
        if api_prefix and not api_prefix.startswith("/"):
            api_prefix = f"/{api_prefix}"

        return AppConfig(
            mongo=MongoConfig(
                uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017").strip(),
                db_name=os.getenv("MONGODB_DB", "identity").strip() or "identity",
                server_selection_timeout_ms=int(
                    os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "3000")
                ),
            ),
            redis=RedisConfig(
                host=os.getenv("REDIS_HOST", "localhost").strip() or "localhost",
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD") or None,
                db=int(os.getenv("REDIS_DB", "0")),
                socket_timeout_seconds=float(os.getenv("REDIS_SOCKET_TIMEOUT_SECONDS", "3")),
                connect_timeout_seconds=float(os.getenv("REDIS_CONNECT_TIMEOUT_SECONDS", "30")),
                max_reconnect_attempts=int(os.getenv("REDIS_MAX_RECONNECT_ATTEMPTS", "15")),
            ),
            jwt=JwtConfig(
                issuer=os.getenv("JWT_ISSUER", "identity-api").strip() or "identity-api",
                access=TokenConfig(
                    secret=os.getenv("JWT_SECRET", "").strip() or "dev-access-secret-change-me",
                    ttl_seconds=parse_duration(os.getenv("JWT_EXPIRES_IN", "15m"), 900),
                ),
                refresh=TokenConfig(
                    secret=os.getenv("JWT_REFRESH_SECRET", "").strip()
                    or "dev-refresh-secret-change-me",
                    ttl_seconds=parse_duration(
                        os.getenv("JWT_REFRESH_EXPIRES_IN", "30d"), 2_592_000
                    ),
                ),
                id=TokenConfig(
                    secret=os.getenv("JWT_ID_TOKEN_SECRET", "").strip()
                    or "dev-id-secret-change-me",
                    ttl_seconds=parse_duration(os.getenv("JWT_ID_TOKEN_EXPIRES_IN", "1d"), 86400),
                ),
            ),
            okta=OktaConfig(
                issuer=okta_issuer,
                client_id=os.getenv("OKTA_CLIENT_ID", "").strip(),
                client_secret=os.getenv("OKTA_CLIENT_SECRET", "").strip(),
                callback_url=os.getenv("OKTA_CALLBACK_URL", "").strip(),
                scope=os.getenv("OKTA_SCOPE", "").strip() or "openid profile email",
                frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").strip().rstrip("/"),
                required_roles=required_roles,
                timeout_seconds=float(os.getenv("OKTA_TIMEOUT_SECONDS", "10")),
            ),
            cookies=CookieConfig(
                secure=environment == "production",
                samesite=os.getenv("COOKIE_SAMESITE", "lax").strip().lower() or "lax",
                access_max_age=15 * 60,
                refresh_max_age=60 * 60 * 24 * 30,
                id_max_age=60 * 60 * 24 * 30,
            ),
            cache=CacheConfig(
                default_ttl_seconds=int(os.getenv("CACHE_DEFAULT_TTL_SECONDS", "3600")),
            ),
            server=ServerConfig(
                port=int(os.getenv("PORT", "3000")),
                api_prefix=api_prefix,
                environment=environment,
                timezone=os.getenv("TZ", "UTC").strip() or "UTC",
            ),
            logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
            security=SecurityConfig(
                cors_allowed_origins=_env_list(
                    "CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
                ),
                request_max_bytes=int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024))),
            ),
        )
