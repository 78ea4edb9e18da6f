import logging
import os

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from inquiry_service.config import settings

logger = logging.getLogger("inquiries.database")

db_url = str(settings.database_url)
is_postgres = db_url.startswith("postgresql")
is_sqlite = db_url.startswith("sqlite")


def _env_bool(key: str, default: str = "false") -> bool:
    v = os.getenv(key, default)
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


engine_kwargs: dict = {"future": True}
POOL_CONFIG: dict[str, int | str | None] = {
    "pool_size": None,
    "max_overflow": None,
    "pool_timeout": None,
    "use_null_pool": None,
}

if is_postgres:
    # Avoid long hangs on DB outages (psycopg 3 accepts connect_timeout in seconds).
    engine_kwargs["connect_args"] = {
        "connect_timeout": int(os.getenv("DB_CONNECT_TIMEOUT_SECONDS", "10"))
    }
    engine_kwargs["pool_pre_ping"] = True

    if _env_bool("DB_USE_NULL_POOL", "false"):
        engine_kwargs["poolclass"] = NullPool
        POOL_CONFIG["use_null_pool"] = "true"
    else:
        pool_size = int(os.getenv("DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
        pool_timeout = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "30"))
        engine_kwargs.update(
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE_SECONDS", "1800")),
        )
        POOL_CONFIG.update(
            {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_timeout": pool_timeout,
                "use_null_pool": "false",
            }
        )
elif is_sqlite:
    # Request handlers run in FastAPI's threadpool; sessions never cross threads.
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(db_url, **engine_kwargs)

if is_sqlite:

    @event.listens_for(engine, "connect")
    def _sqlite_pragmas(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        if is_postgres:
            timeout_ms = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
            if timeout_ms > 0:
                try:
                    db.execute(text(f"SET statement_timeout = {timeout_ms}"))
                except SQLAlchemyError as exc:
                    logger.warning("statement_timeout_not_applied", extra={"error": str(exc)})
        yield db
    finally:
        db.close()
