"""Configuration settings for the server.

Settings are read from the environment once and validated eagerly; the
process refuses to start when a required value is missing or malformed.
"""

import os
from functools import lru_cache
from typing import Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from common.constants import MAX_UPLOAD_BATCH, SESSION_MAX_AGE_DAYS
from server.exceptions import ConfigurationError


ENV_VARS = {
    "database_url": "DATABASE_URL",
    "google_id": "GOOGLE_ID",
    "google_secret": "GOOGLE_SECRET",
    "auth_secret": "AUTH_SECRET",
    "auth_url": "AUTH_URL",
    "host": "GARCHOMPER_HOST",
    "port": "GARCHOMPER_PORT",
    "max_upload_batch": "MAX_UPLOAD_BATCH",
    "session_max_age_days": "SESSION_MAX_AGE_DAYS",
}


def sqlite_path_from_url(database_url: str) -> str:
    """
    Resolve a DATABASE_URL to a sqlite database file path.

    Accepts sqlite:///relative.db, sqlite:////absolute.db or a bare path.

    Raises:
        ValueError: If the URL uses another scheme or names an in-memory database
    """
    url = database_url.strip()
    if "://" in url:
        scheme, _, rest = url.partition("://")
        if scheme.lower() != "sqlite":
            raise ValueError(f"unsupported database scheme '{scheme}', expected sqlite")
        if not rest.startswith("/"):
            raise ValueError("sqlite URL must look like sqlite:///path/to/file.db")
        path = rest[1:]
    else:
        path = url

    if not path:
        raise ValueError("database path is empty")
    if path == ":memory:":
        raise ValueError("in-memory databases are not shared between connections")
    return path


class Settings(BaseModel):
    """Validated server settings."""

    database_url: str
    google_id: str = Field(..., min_length=1)
    google_secret: str = Field(..., min_length=1)
    auth_secret: str = Field(..., min_length=16)
    auth_url: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = Field(8000, ge=1, le=65535)
    max_upload_batch: int = Field(MAX_UPLOAD_BATCH, ge=1)
    session_max_age_days: int = Field(SESSION_MAX_AGE_DAYS, ge=1)

    @field_validator("database_url")
    @classmethod
    def _check_database_url(cls, value: str) -> str:
        sqlite_path_from_url(value)
        return value

    @field_validator("auth_url")
    @classmethod
    def _check_auth_url(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return value

    @property
    def database_path(self) -> str:
        return sqlite_path_from_url(self.database_url)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: Naming every missing or malformed variable
    """
    if environ is None:
        environ = os.environ

    raw = {}
    for field_name, env_var in ENV_VARS.items():
        value = environ.get(env_var)
        if value is not None and value.strip() != "":
            raw[field_name] = value

    try:
        return Settings(**raw)
    except ValidationError as e:
        problems = []
        for error in e.errors():
            field_name = error["loc"][0] if error["loc"] else ""
            env_var = ENV_VARS.get(field_name, str(field_name))
            message = "missing" if error["type"] == "missing" else error["msg"]
            problems.append(f"{env_var}: {message}")
        raise ConfigurationError("Invalid environment configuration: " + "; ".join(problems)) from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load settings once per process.
    """
    return load_settings()
