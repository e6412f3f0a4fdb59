"""Configuration for filevault."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, find_dotenv
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

BUILTIN_ADMIN_PASSWORD = "admin123"


class ConfigError(Exception):
    """Raised when the base file or an environment override is unusable."""


@dataclass(frozen=True)
class Settings:
    # Database
    database_url: str
    db_sslmode: str

    # Object store (S3-compatible, e.g. MinIO)
    minio_endpoint: str
    minio_access_key_id: str
    minio_secret_access_key: str
    minio_use_ssl: bool
    minio_bucket_name: str

    # HTTP server
    server_host: str
    server_port: int

    # Session cookie
    session_secret: str
    session_cookie_secure: bool
    session_cookie_samesite: str

    # Admin bootstrap (password is reset to this on every start)
    default_admin_username: str
    default_admin_password: str

    @property
    def minio_url(self) -> str:
        scheme = "https" if self.minio_use_ssl else "http"
        return f"{scheme}://{self.minio_endpoint}"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _parse_port(value: str) -> int:
    # Accept the ":8080" form as well as "8080"
    return _parse_int("SERVER_PORT", value.strip().lstrip(":"))


def _database_url(env: dict) -> str:
    explicit = env.get("DATABASE_URL")
    if explicit:
        return explicit
    url = URL.create(
        "postgresql+asyncpg",
        username=env.get("DB_USER", "postgres"),
        password=env.get("DB_PASSWORD", "") or None,
        host=env.get("DB_HOST", "localhost"),
        port=_parse_int("DB_PORT", env.get("DB_PORT", "5432")),
        database=env.get("DB_NAME", "knowledge"),
    )
    return url.render_as_string(hide_password=False)


def load_config(path: Optional[str] = None) -> Settings:
    """Read settings from the base file, with environment variables taking precedence.

    The base file is ``path``, else $CONFIG_FILE, else a .env found from the working directory.
    """
    path = path or os.getenv("CONFIG_FILE")
    if path:
        if not Path(path).is_file():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = find_dotenv(usecwd=True)
    env = {k: v for k, v in dotenv_values(path).items() if v is not None} if path else {}
    env.update(os.environ)

    samesite = env.get("SESSION_COOKIE_SAMESITE", "lax").strip().lower()
    if samesite not in ("lax", "strict", "none"):
        raise ConfigError(f"SESSION_COOKIE_SAMESITE must be lax, strict or none, got {samesite!r}")

    bucket = env.get("MINIO_BUCKET_NAME", "files").strip()
    if not bucket:
        raise ConfigError("MINIO_BUCKET_NAME must not be empty")

    database_url = _database_url(env)
    try:
        make_url(database_url)
    except ArgumentError:
        raise ConfigError("DATABASE_URL is not a valid database URL") from None

    return Settings(
        database_url=database_url,
        db_sslmode=env.get("DB_SSLMODE", "disable"),
        minio_endpoint=env.get("MINIO_ENDPOINT", "localhost:9000"),
        minio_access_key_id=env.get("MINIO_ACCESS_KEY_ID", ""),
        minio_secret_access_key=env.get("MINIO_SECRET_ACCESS_KEY", ""),
        minio_use_ssl=_parse_bool(env.get("MINIO_USE_SSL", "false")),
        minio_bucket_name=bucket,
        server_host=env.get("SERVER_HOST", "0.0.0.0"),
        server_port=_parse_port(env.get("SERVER_PORT", "8080")),
        session_secret=env.get("SESSION_SECRET", "change-me-in-production-use-long-random-string"),
        session_cookie_secure=_parse_bool(env.get("SESSION_COOKIE_SECURE", "false")),
        session_cookie_samesite=samesite,
        default_admin_username=env.get("DEFAULT_ADMIN_USERNAME", "admin"),
        default_admin_password=env.get("DEFAULT_ADMIN_PASSWORD", BUILTIN_ADMIN_PASSWORD),
    )
