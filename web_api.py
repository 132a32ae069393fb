from __future__ import annotations

import logging
from typing import Any

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo import MongoClient

from identity_api.api.health_routes import HealthRouteDeps, mongo_pinger, register_health_routes
from identity_api.api.http_setup import register_exception_handlers, register_http_middleware
from identity_api.auth.middleware import create_auth_middleware
from identity_api.auth.oidc_client import OktaClient
from identity_api.auth.passwords import PasswordService
from identity_api.auth.router import create_auth_router
from identity_api.auth.service import AuthService
from identity_api.auth.tokens import TokenService
from identity_api.cache.client import KeyValueStore
from identity_api.core.config import AppConfig
from identity_api.core.logging import resolve_timezone, setup_logging
from identity_api.core.mongo_migrations import apply_mongo_migrations
from identity_api.users.repository import UserRepository, UserRoleRepository
from identity_api.users.router import create_users_router
from identity_api.users.service import UsersService

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level, APP_CONFIG.server.timezone)
LOGGER = logging.getLogger(__name__)


def create_app(
    config: AppConfig = APP_CONFIG,
    *,
    mongo_client: Any = None,
    store: KeyValueStore | None = None,
    okta: OktaClient | None = None,
) -> FastAPI:
    """Assemble the API; clients default to ones built from ``config``."""
    app = FastAPI(title="Identity API", version="1.0.0")
    prefix = config.server.api_prefix

    if mongo_client is None:
        mongo_client = MongoClient(
            config.mongo.uri,
            serverSelectionTimeoutMS=config.mongo.server_selection_timeout_ms,
            tz_aware=True,
        )
    db = mongo_client[config.mongo.db_name]
    if store is None:
        store = KeyValueStore.from_config(config.redis)
    if okta is None:
        okta = OktaClient(config.okta)

    users_service = UsersService(
        UserRepository(db),
        UserRoleRepository(db),
        store,
        default_ttl=config.cache.default_ttl_seconds,
        tz=resolve_timezone(config.server.timezone),
    )
    auth_service = AuthService(
        users_service,
        TokenService(config.jwt),
        PasswordService(),
        okta,
        required_roles=config.okta.required_roles,
    )

    app.include_router(create_auth_router(auth_service, config))
    app.include_router(create_users_router(users_service, api_prefix=prefix))
    register_health_routes(
        app,
        deps=HealthRouteDeps(
            api_prefix=prefix,
            mongo_ping=mongo_pinger(mongo_client),
            redis_ping=store.ping,
        ),
    )

    # Registered innermost-first: CORS wraps request logging, which wraps auth.
    app.middleware("http")(create_auth_middleware(auth_service, api_prefix=prefix))
    register_http_middleware(app, config=config, logger=LOGGER)
    register_exception_handlers(app, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    @app.on_event("startup")
    def startup() -> None:
        apply_mongo_migrations(db)
        if store.ping():
            LOGGER.info("redis_connected", extra={"operation": "startup"})
        else:
            LOGGER.warning("redis_unreachable_at_startup", extra={"operation": "startup"})

    @app.on_event("shutdown")
    def shutdown() -> None:
        okta.close()
        store.close()
        mongo_client.close()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=APP_CONFIG.server.port)
