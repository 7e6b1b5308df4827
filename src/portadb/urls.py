"""Connection URL builders for the supported engines.

Thin helpers over SQLAlchemy's ``URL.create`` so callers never hand-format
credentials into a DSN string (passwords with ``@`` or ``/`` are escaped
correctly).

Drivers::

    sqlite      stdlib sqlite3 (always available)
    postgres    psycopg2        pip install portadb[postgres]
    mysql       mysql.connector pip install portadb[mysql]
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import URL


def sqlite_url(path: str | Path | None = None) -> URL:
    """SQLite URL for ``path``, or an in-memory database when ``path`` is None."""
    if path is None or str(path) in ("", ":memory:"):
        return URL.create("sqlite")
    return URL.create("sqlite", database=str(path))


def postgres_url(
    host: str = "localhost",
    database: str = "",
    username: str | None = None,
    password: str | None = None,
    port: int = 5432,
    *,
    driver: str = "psycopg2",
) -> URL:
    """PostgreSQL URL (``postgresql+psycopg2://`` by default)."""
    return URL.create(
        f"postgresql+{driver}",
        username=username,
        password=password,
        host=host,
        port=port,
        database=database or None,
    )


def mysql_url(
    host: str = "localhost",
    database: str = "",
    username: str | None = None,
    password: str | None = None,
    port: int = 3306,
    *,
    driver: str = "mysqlconnector",
    charset: str = "utf8mb4",
) -> URL:
    """MySQL / MariaDB URL (``mysql+mysqlconnector://`` by default)."""
    return URL.create(
        f"mysql+{driver}",
        username=username,
        password=password,
        host=host,
        port=port,
        database=database or None,
        query={"charset": charset},
    )


__all__ = ["sqlite_url", "postgres_url", "mysql_url"]
