"""HTTP middleware and exception handler wiring for FastAPI apps."""

from __future__ import annotations

import os
import signal
import uuid
from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_api.api.errors import ApiErrorCode, error_response, to_error_payload
from identity_api.auth.oidc_client import OidcClientError
from identity_api.cache.errors import CacheConnectionFailedError
from identity_api.core.config import AppConfig
from identity_api.core.logging import set_correlation_id


def terminate_process() -> None:
    """Ask the server to shut down, as if stopped by the supervisor."""
    os.kill(os.getpid(), signal.SIGTERM)


def _request_extra(request: Request, status_code: int, **extra: Any) -> dict[str, Any]:
    return {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        **extra,
    }


def register_http_middleware(app: FastAPI, *, config: AppConfig, logger: Any) -> None:
    """Attach common security and observability middleware to an app."""

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                parsed_length = int(content_length)
            except ValueError:
                parsed_length = 0
            if parsed_length > config.security.request_max_bytes:
                return error_response(
                    request,
                    status_code=413,
                    error_code=ApiErrorCode.REQUEST_TOO_LARGE,
                    message=(
                        "Request size exceeds configured limit "
                        f"({config.security.request_max_bytes} bytes)."
                    ),
                )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        set_correlation_id(correlation_id)
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'"
        )
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=()"
        )
        logger.info(
            "request_completed",
            extra=_request_extra(request, response.status_code),
        )
        return response


def register_exception_handlers(
    app: FastAPI,
    *,
    logger: Any,
    on_fatal: Callable[[], None] = terminate_process,
) -> None:
    """Attach API exception handlers that return stable error contracts."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning(
            "http_exception",
            extra=_request_extra(request, exc.status_code, error_code=payload["error_code"]),
        )
        return error_response(request, status_code=exc.status_code, **payload)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("validation_exception", extra=_request_extra(request, 422))
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())),
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in jsonable_encoder(exc.errors())
        ]
        return error_response(
            request,
            status_code=422,
            error_code=ApiErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details=details,
        )

    @app.exception_handler(OidcClientError)
    async def handle_oidc_exception(
        request: Request,
        exc: OidcClientError,
    ) -> JSONResponse:
        logger.error(
            "oidc_client_exception: %s",
            exc,
            extra=_request_extra(request, 502, operation=exc.operation),
        )
        return error_response(
            request,
            status_code=502,
            error_code=ApiErrorCode.UPSTREAM_ERROR,
            message=str(exc),
        )

    @app.exception_handler(CacheConnectionFailedError)
    async def handle_cache_connection_failed(
        request: Request,
        exc: CacheConnectionFailedError,
    ) -> JSONResponse:
        logger.critical(
            "cache_connection_failed: shutting down: %s",
            exc,
            extra=_request_extra(request, 503, error_code=ApiErrorCode.CACHE_UNAVAILABLE),
        )
        on_fatal()
        return error_response(
            request,
            status_code=503,
            error_code=ApiErrorCode.CACHE_UNAVAILABLE,
            message="Cache unavailable",
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.exception("unexpected_exception", extra=_request_extra(request, 500))
        return error_response(
            request,
            status_code=500,
            error_code=ApiErrorCode.INTERNAL_SERVER_ERROR,
            message="Internal server error",
        )
