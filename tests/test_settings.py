"""Tests for environment-driven settings and URL helpers."""

from __future__ import annotations

import io

import pytest
from pydantic import ValidationError

from portadb.dialect import DialectName
from portadb.logging import get_logger
from portadb.settings import DatabaseSettings
from portadb.urls import mysql_url, postgres_url, sqlite_url


class TestDatabaseSettings:
    def test_defaults(self, monkeypatch):
        for key in ("PORTADB_URL", "PORTADB_DIALECT", "PORTADB_LOG_LEVEL"):
            monkeypatch.delenv(key, raising=False)
        settings = DatabaseSettings(_env_file=None)
        assert settings.url == "memory"
        assert settings.dialect is None
        assert settings.log_level == "INFO"
        assert settings.driver_options() == {}

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("PORTADB_URL", "sqlite:///app.db")
        monkeypatch.setenv("PORTADB_DIALECT", "other")
        monkeypatch.setenv("PORTADB_PASSWORD", "s3cret")
        monkeypatch.setenv("PORTADB_LOG_LEVEL", "debug")

        settings = DatabaseSettings(_env_file=None)
        assert settings.url == "sqlite:///app.db"
        assert settings.dialect is DialectName.OTHER
        assert settings.password_value() == "s3cret"
        assert "s3cret" not in repr(settings)
        assert settings.log_level == "DEBUG"

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("PORTADB_URL", raising=False)
        env = tmp_path / ".env"
        env.write_text("PORTADB_URL=postgresql://db/app\nUNRELATED=1\n")
        settings = DatabaseSettings(_env_file=env)
        assert settings.url == "postgresql://db/app"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            DatabaseSettings(_env_file=None, log_level="LOUD")

    def test_invalid_timeout(self):
        with pytest.raises(ValidationError):
            DatabaseSettings(_env_file=None, connect_timeout=0)

    def test_driver_options_server(self):
        settings = DatabaseSettings(_env_file=None, url="mysql+pymysql://db/app", connect_timeout=2.5)
        assert settings.driver_options() == {"connect_timeout": 2}

    def test_driver_options_sqlite(self):
        settings = DatabaseSettings(_env_file=None, url="app.db", connect_timeout=2.5)
        assert settings.driver_options() == {"timeout": 2.5}


class TestUrls:
    def test_sqlite_memory(self):
        assert sqlite_url().database is None

    def test_sqlite_file(self, tmp_path):
        url = sqlite_url(tmp_path / "a.db")
        assert url.database == str(tmp_path / "a.db")

    def test_postgres_escapes_password(self):
        url = postgres_url("db", "app", "svc", "p@ss/word")
        assert url.drivername == "postgresql+psycopg2"
        assert url.password == "p@ss/word"
        assert "p%40ss%2Fword" in url.render_as_string(hide_password=False)

    def test_mysql_charset(self):
        url = mysql_url("db", "app", "svc", "pw")
        assert url.drivername == "mysql+mysqlconnector"
        assert url.port == 3306
        assert url.query["charset"] == "utf8mb4"


class TestConfigureLogging:
    def test_applies_level_and_format(self):
        stream = io.StringIO()
        DatabaseSettings(_env_file=None, log_level="warning", log_json=True).configure_logging(stream=stream)

        logger = get_logger("portadb.test.settings")
        logger.info("hidden")
        logger.warning("shown")

        output = stream.getvalue()
        assert "hidden" not in output
        assert '"event": "shown"' in output
