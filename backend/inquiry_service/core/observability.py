from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import Response
from sqlalchemy.exc import TimeoutError as SATimeoutError

from inquiry_service.core.errors import InquiryError

_APP_START_MONOTONIC = time.monotonic()

_SLOW_REQUEST_MS = int(os.getenv("SLOW_REQUEST_MS", "2000"))

_QUIET_PATHS = {"/health", "/healthz"}


def _pool_status() -> str | None:
    try:
        from inquiry_service.database import engine

        return engine.pool.status()
    except Exception:
        return None


def _app_logger(request: Request) -> logging.Logger:
    logger = getattr(getattr(request.app, "state", None), "logger", None)
    return logger or logging.getLogger("inquiries")


def request_id_for(request: Request) -> str:
    """Request correlation id, assigned once per request by the middleware."""

    rid = getattr(request.state, "request_id", None)
    if rid:
        return str(rid)
    return request.headers.get("x-request-id") or str(uuid.uuid4())


def uptime_seconds() -> float:
    return max(0.0, time.monotonic() - _APP_START_MONOTONIC)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


async def inquiry_error_handler(request: Request, exc: InquiryError) -> JSONResponse:
    """Render a typed inquiry error as ``{"detail", "code"}`` with its HTTP status."""

    request_id = request_id_for(request)
    log = _app_logger(request)
    extra = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "code": exc.code,
        "status_code": exc.status_code,
        **{f"ctx_{k}": v for k, v in exc.context.items()},
    }
    if exc.status_code >= 500:
        log.warning("inquiry_error", extra=extra)
    else:
        log.info("inquiry_error", extra=extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"X-Request-ID": request_id},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler that returns a structured error response.

    This handler catches all unhandled exceptions and returns a clean
    JSON response without exposing internal details to the client.
    """
    request_id = request_id_for(request)

    extra = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "exception_type": type(exc).__name__,
    }
    _app_logger(request).error("unhandled_exception", exc_info=exc, extra=extra)

    headers = {"X-Request-ID": request_id}

    # Attach CORS headers when the request Origin is allowed.
    # This prevents browsers from turning real 500s into opaque CORS errors.
    origin = request.headers.get("origin")
    if origin:
        from inquiry_service.config import settings

        allowed = set(settings.cors_origins or [])
        if origin in allowed or "*" in allowed:
            headers.update(
                {
                    "Access-Control-Allow-Origin": origin,
                    "Access-Control-Allow-Credentials": "true",
                    "Vary": "Origin",
                }
            )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "code": "INTERNAL_ERROR",
            "request_id": request_id,
        },
        headers=headers,
    )


async def request_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Request-level logging middleware.

    Adds/propagates X-Request-ID and measures request duration.
    Does not log request/response bodies.
    """

    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    log = _app_logger(request)

    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    except SATimeoutError as exc:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log.error(
            "db_pool_timeout",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round(duration_ms, 2),
                "pool_status": _pool_status(),
                "error": str(exc),
            },
        )
        raise
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000.0
        log.exception(
            "http_request_failed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round(duration_ms, 2),
            },
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000.0

    if duration_ms >= _SLOW_REQUEST_MS:
        log.info(
            "slow_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round(duration_ms, 2),
                "pool_status": _pool_status(),
            },
        )

    # Avoid noisy logging for liveness endpoints.
    if request.url.path not in _QUIET_PATHS:
        log.info(
            "http_request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

    response.headers.setdefault("X-Request-ID", request_id)
    return response
