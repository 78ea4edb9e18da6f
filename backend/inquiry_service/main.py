# ruff: noqa: I001

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from inquiry_service import models  # noqa: F401
from inquiry_service.api.router import api_router
from inquiry_service.config import settings
from inquiry_service.core.errors import InquiryError
from inquiry_service.core.observability import (
    global_exception_handler,
    inquiry_error_handler,
    request_logging_middleware,
    uptime_seconds,
    utc_now_iso,
)
from inquiry_service.database import POOL_CONFIG, engine

api_prefix = (
    settings.api_prefix
    if settings.api_prefix.startswith("/")
    else f"/{settings.api_prefix}"
    if settings.api_prefix
    else ""
)

logger = logging.getLogger("inquiries")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(
    title=settings.app_name,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url=(f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
    if settings.enable_docs
    else None,
)

# Expose logger for middleware without creating circular imports.
app.state.logger = logger

# Typed inquiry errors carry their own status and machine-readable code.
app.add_exception_handler(InquiryError, inquiry_error_handler)
# Global exception handler - catches all unhandled exceptions and returns structured error
app.add_exception_handler(Exception, global_exception_handler)

# Request-level logging + request correlation id.
app.middleware("http")(request_logging_middleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=api_prefix)


def _run_migrations_if_configured() -> None:
    if not settings.run_migrations_on_start:
        return

    # Avoid running migrations during tests.
    if (settings.environment or "").lower() == "test":
        return

    # Import lazily to keep import graph light for non-migration startups.
    from alembic import command
    from alembic.config import Config
    from sqlalchemy import text
    from sqlalchemy.engine.url import make_url

    backend_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(backend_root / "alembic.ini"))

    # Log the DB target without leaking credentials.
    url_obj = make_url(str(settings.database_url))
    logger.info(
        "migrations_db_target",
        extra={
            "driver": url_obj.drivername,
            "host": url_obj.host,
            "port": url_obj.port,
            "db": url_obj.database,
        },
    )

    try:
        with engine.connect() as connection:
            is_postgres = connection.dialect.name == "postgresql"

            # Avoid concurrent migrations across multiple instances.
            if is_postgres:
                acquired = bool(
                    connection.execute(
                        text("select pg_try_advisory_lock(:k)"), {"k": 73310419}
                    ).scalar()
                )
                if not acquired:
                    logger.info("migrations_skipped_lock_not_acquired")
                    return

            try:
                alembic_cfg.attributes["connection"] = connection
                command.upgrade(alembic_cfg, "head")
                logger.info("migrations_applied")
            finally:
                if is_postgres:
                    connection.execute(text("select pg_advisory_unlock(:k)"), {"k": 73310419})
                    connection.commit()
    except Exception:
        # Don't crash the API if migrations fail; endpoints surface DB errors themselves.
        logger.exception("migrations_failed")


@app.on_event("startup")
def _startup():
    logger.info(
        "runtime_config",
        extra={
            "pid": os.getpid(),
            "web_concurrency": os.getenv("WEB_CONCURRENCY"),
            "db_pool": POOL_CONFIG,
            "moderation_enabled": settings.inquiry_moderation_enabled,
            "catalog_configured": bool(settings.catalog_base_url),
        },
    )
    _run_migrations_if_configured()


@app.get("/", tags=["meta"])
def root():
    docs_path = (
        (f"{api_prefix}/openapi.json" if api_prefix else "/openapi.json")
        if settings.enable_docs
        else None
    )
    return {"message": settings.app_name, "docs": docs_path}


@app.get("/health", tags=["meta"])
@app.get("/healthz", tags=["meta"])
def healthcheck():
    """Liveness. Keep payload stable for monitoring systems."""

    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
    }
