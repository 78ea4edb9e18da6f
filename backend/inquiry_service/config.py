import json
import os
import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_name: str = Field(default="Marketplace Inquiry API", alias="PROJECT_NAME")
    environment: str = Field(default="dev", alias="ENVIRONMENT")
    build_version: Optional[str] = Field(default=None, alias="BUILD_VERSION")
    database_url: str = Field(
        default="sqlite+pysqlite:///./dev-inquiries.db",
        alias="DATABASE_URL",
        validate_default=True,
    )
    # API prefix used by the FastAPI router include (e.g. "/api/v1").
    api_prefix: str = Field(default="", alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(default=None, alias="ENABLE_DOCS", validate_default=True)
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    session_token_expire_minutes: int = Field(default=60, alias="SESSION_TOKEN_EXPIRE_MINUTES")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, alias="CORS_ORIGINS", validate_default=True
    )
    run_migrations_on_start: bool = Field(default=False, alias="RUN_MIGRATIONS_ON_START")

    # Identity
    super_admin_id: int = Field(default=999, alias="SUPER_ADMIN_ID")
    admin_session_header: str = Field(
        default="X-Admin-Authorization", alias="ADMIN_SESSION_HEADER"
    )

    # Inquiry lifecycle
    write_conflict_max_retries: int = Field(default=2, ge=0, alias="WRITE_CONFLICT_MAX_RETRIES")
    inquiry_moderation_enabled: bool = Field(default=False, alias="INQUIRY_MODERATION_ENABLED")

    # Catalog collaborator (product lookup on submit)
    catalog_base_url: Optional[str] = Field(default=None, alias="CATALOG_BASE_URL")
    catalog_timeout_seconds: float = Field(default=5.0, gt=0, alias="CATALOG_TIMEOUT_SECONDS")

    # Notifications
    notifications_email_enabled: bool = Field(default=False, alias="NOTIFICATIONS_EMAIL_ENABLED")
    messaging_base_url: Optional[str] = Field(default=None, alias="MESSAGING_BASE_URL")
    messaging_timeout_seconds: float = Field(default=5.0, gt=0, alias="MESSAGING_TIMEOUT_SECONDS")
    notification_email_max_retries: int = Field(
        default=2, ge=1, alias="NOTIFICATION_EMAIL_MAX_RETRIES"
    )

    @field_validator("enable_docs", mode="after")
    @classmethod
    def default_enable_docs(cls, value, info):
        if value is None:
            env = str(info.data.get("environment", "dev") or "dev").lower()
            return env not in {"prod", "production"}
        return value

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        def _normalize_origin(o: str) -> str:
            s = str(o).strip().strip('"').strip("'")
            # Browsers send the Origin header without a trailing slash.
            if s.endswith("/"):
                s = s[:-1]
            return s

        if value is None or value == "":
            return []

        if isinstance(value, str):
            s = value.strip()
            if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
                s = s[1:-1].strip()

            try:
                parsed = json.loads(s)
                if isinstance(parsed, str):
                    return [_normalize_origin(parsed)]
                if isinstance(parsed, list):
                    return [_normalize_origin(v) for v in parsed if str(v).strip()]
                return [_normalize_origin(str(parsed))]
            except json.JSONDecodeError:
                pass

            # Python-ish list strings: ['http://...','http://...']
            if s.startswith("[") and s.endswith("]") and "'" in s and '"' not in s:
                try:
                    parsed = json.loads(s.replace("'", '"'))
                    if isinstance(parsed, list):
                        return [_normalize_origin(v) for v in parsed if str(v).strip()]
                except json.JSONDecodeError:
                    pass

            return [_normalize_origin(v) for v in s.split(",") if str(v).strip()]

        return [_normalize_origin(v) for v in value]

    @field_validator("cors_origins", mode="after")
    @classmethod
    def default_cors_origins(cls, value, info):
        if value:
            return value
        env = str(info.data.get("environment", "dev") or "dev").lower()
        if env in {"prod", "production"}:
            raise ValueError("CORS_ORIGINS must be explicitly set in production")
        return [
            "http://localhost:5173",
            "http://localhost:3000",
            "http://127.0.0.1:5173",
        ]

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v) -> str:
        """Normalize the API prefix coming from env/.env.

        Git Bash on Windows may rewrite "/api/v1" into a Windows path such as
        "C:/Program Files/Git/api/v1"; keep only the trailing "/api/..." part.
        """
        if v is None:
            return ""
        s = str(v).strip()
        if not s:
            return ""
        if s.startswith("/api/") or s == "/api":
            return s

        m = re.search(r"(/api/[^\s]+)$", s.replace("\\", "/"))
        if m:
            return m.group(1)
        if s.startswith("api/"):
            return f"/{s}"
        return s

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v) -> str:
        """Pin psycopg 3 for Postgres URLs and anchor relative SQLite paths.

        Relative SQLite URLs (sqlite+pysqlite:///./dev.db) are resolved against
        the backend folder so that running uvicorn from elsewhere still finds
        the same file.
        """
        if v is None:
            return v

        s = str(v).strip()
        if not s:
            return s

        if s.startswith("postgres://"):
            s = "postgresql://" + s[len("postgres://") :]
        if s.startswith("postgresql://"):
            return "postgresql+psycopg://" + s[len("postgresql://") :]
        if s.startswith("postgresql+psycopg2://"):
            return "postgresql+psycopg://" + s[len("postgresql+psycopg2://") :]

        if not s.startswith("sqlite"):
            return s

        marker = ":///"
        i = s.find(marker)
        if i == -1:
            return s

        path_part = s[i + len(marker) :]
        if path_part.startswith("/") or path_part.startswith(":memory:"):
            return s
        if re.match(r"^[A-Za-z]:/", path_part):
            return s

        if path_part.startswith("./") or path_part.startswith(".\\"):
            backend_root = Path(__file__).resolve().parents[1]
            abs_path = (backend_root / path_part[2:]).resolve().as_posix()
            return f"{s[: i + len(marker)]}{abs_path}"

        return s

    @field_validator("database_url", mode="after")
    @classmethod
    def validate_database_url_for_environment(cls, v: str, info) -> str:
        env = str(info.data.get("environment", "dev") or "dev").strip().lower()
        s = str(v or "").strip()

        if env in {"prod", "production"}:
            if not os.getenv("DATABASE_URL"):
                raise ValueError("DATABASE_URL must be explicitly set in production")
            if s.startswith("sqlite"):
                raise ValueError("SQLite DATABASE_URL is not allowed in production")
            if "localhost" in s or "127.0.0.1" in s:
                raise ValueError("DATABASE_URL must not point to localhost in production")

        return s

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if not v or v.lower() in {"change-me", "secret", "changeme"}:
            raise ValueError("SECRET_KEY must be set to a strong value")
        return v


settings = Settings()
