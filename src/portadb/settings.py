"""Environment-driven settings for portadb.

Manifesto:
    Connection targets and credentials come from the environment, not from
    code. ``DatabaseSettings`` reads ``PORTADB_*`` variables (and a ``.env``
    file), validates them once at startup, and hands them to
    ``Database.from_settings()``.

    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** ``PORTADB_URL``, ``PORTADB_PASSWORD`` ...
    - **Secret-safe:** the password is a ``SecretStr`` and never printed
    - **Extra ignore:** unrelated env vars don't cause startup failures

Examples:
    >>> import os
    >>> os.environ["PORTADB_URL"] = "sqlite:///app.db"
    >>> DatabaseSettings().url
    'sqlite:///app.db'

Tags:
    settings, configuration, pydantic, environment, portadb

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from typing import Any, TextIO

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portadb.dialect import DialectName
from portadb.logging import configure_logging


class DatabaseSettings(BaseSettings):
    """Connection and logging settings.

    Fields
    ──────
    url              : SQLAlchemy URL, SQLite file path, or ``memory``
    username         : Overrides the user in ``url``
    password         : Overrides the password in ``url``
    dialect          : Explicit dialect tag (derived from the driver if unset)
    echo             : Log every SQL statement through SQLAlchemy
    connect_timeout  : Seconds; passed to the driver when set
    log_level        : Structlog log level
    log_json         : JSON logs (True), console (False), auto (unset)
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTADB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    url: str = "memory"
    username: str | None = None
    password: SecretStr | None = None
    dialect: DialectName | None = None
    echo: bool = False
    connect_timeout: float | None = Field(default=None, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    def driver_options(self) -> dict[str, Any]:
        """Driver ``connect()`` arguments derived from these settings."""
        if self.connect_timeout is None:
            return {}
        if self.url.startswith(("postgres", "mysql")):
            return {"connect_timeout": int(self.connect_timeout)}
        return {"timeout": self.connect_timeout}

    def password_value(self) -> str | None:
        return self.password.get_secret_value() if self.password is not None else None

    def configure_logging(self, stream: TextIO | None = None) -> None:
        """Apply ``log_level`` and ``log_json`` to structlog."""
        configure_logging(level=self.log_level, json_format=self.log_json, stream=stream)


__all__ = ["DatabaseSettings"]
