"""Connection holder: owns zero or one live database connection.

The holder is the only shared mutable resource of the data layer. It is
replaced wholesale by ``connect()`` and cleared wholesale by
``disconnect()``; there is no partial state and no implicit reconnect.

Supported targets
-----------------
==================  ==========================================  ============
Target              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/my.db`` or ``/tmp/app.db``          SQLite file
``postgresql``      ``postgresql://user:pw@host:port/db``        PostgreSQL
``postgres``        ``postgres://user:pw@host:port/db``          PostgreSQL
``mysql``           ``mysql+pymysql://user:pw@host/db``          MySQL
``(other)``         any SQLAlchemy URL                           other
==================  ==========================================  ============

Usage
-----
::

    holder = ConnectionHolder()
    holder.connect("sqlite:///app.db")
    holder.dialect()          # DialectName.SQLITE
    holder.handle()           # sqlalchemy.engine.Connection
    holder.disconnect()

Threading
---------
One holder wraps one connection. It is not safe to use the same holder from
several threads at once; serialize access externally or give each thread
its own holder. No lock is taken here.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import NullPool

from portadb.dialect import DialectName, SqlDialect, get_dialect
from portadb.errors import DatabaseConnectionError, NotConnectedError
from portadb.logging import get_logger

logger = get_logger(__name__)


# ── URL parsing ──────────────────────────────────────────────────────────


def resolve_url(dsn: str | URL | None) -> URL:
    """Turn a DSN, path or keyword into a SQLAlchemy ``URL``.

    ``None``, ``""``, ``"memory"`` and ``":memory:"`` mean in-memory SQLite;
    anything without a ``scheme://`` is treated as a SQLite file path.
    ``postgres://`` is accepted as an alias of ``postgresql://``.

    Raises:
        ArgumentError: If ``dsn`` looks like a URL but cannot be parsed.
    """
    if isinstance(dsn, URL):
        return dsn

    if dsn is None or dsn in ("", "memory", ":memory:"):
        return make_url("sqlite://")

    if "://" not in dsn:
        return URL.create("sqlite", database=dsn)

    if dsn.startswith("postgres://"):
        dsn = "postgresql://" + dsn[len("postgres://"):]
    elif dsn.startswith("postgres+"):
        dsn = "postgresql+" + dsn[len("postgres+"):]

    return make_url(dsn)


# ── Holder ───────────────────────────────────────────────────────────────


class ConnectionHolder:
    """Holds at most one live SQLAlchemy connection and its dialect.

    The dialect is resolved once at connect time, from the explicit
    ``dialect`` tag if one is given, otherwise from ``engine.dialect.name``.
    It never changes for the life of the connection.
    """

    def __init__(self, *, echo: bool = False) -> None:
        self._echo = echo
        self._engine: Engine | None = None
        self._conn: Connection | None = None
        self._dialect: DialectName | None = None
        self._url: URL | None = None

    # -- lifecycle ---------------------------------------------------------

    def connect(
        self,
        dsn: str | URL | None = None,
        username: str | None = None,
        password: str | None = None,
        options: Mapping[str, Any] | None = None,
        *,
        dialect: DialectName | str | None = None,
    ) -> None:
        """Open a connection, replacing any handle already held.

        Args:
            dsn: SQLAlchemy URL, SQLite file path, or ``memory``.
            username: Overrides the user in ``dsn``.
            password: Overrides the password in ``dsn``.
            options: Passed to the DBAPI driver's ``connect()`` untouched
                (``timeout``, ``connect_timeout``, ``sslmode`` ...).
            dialect: Explicit dialect tag; derived from the driver if omitted.

        Raises:
            DatabaseConnectionError: If the URL is invalid, the driver is
                missing, or the engine refuses the connection.
        """
        try:
            url = resolve_url(dsn)
            if username is not None:
                url = url.set(username=username)
            if password is not None:
                url = url.set(password=password)
            tag = DialectName(dialect) if dialect is not None else None
        except (ArgumentError, ValueError) as e:
            logger.error("connect_failed", error=str(e))
            raise DatabaseConnectionError(f"Invalid connection target: {e}", cause=e) from e

        safe_url = url.render_as_string(hide_password=True)

        try:
            engine = self._create_engine(url, options)
            conn = engine.connect()
        except SQLAlchemyError as e:
            logger.error("connect_failed", url=safe_url, error=str(e))
            raise DatabaseConnectionError(
                f"Failed to connect to {safe_url}: {e}",
                cause=e,
            ).with_context(operation="connect") from e
        except ImportError as e:
            # Driver module for the URL is not installed
            logger.error("connect_failed", url=safe_url, error=str(e))
            raise DatabaseConnectionError(
                f"Database driver for {safe_url} is not installed: {e}",
                cause=e,
            ).with_context(operation="connect") from e

        if self._conn is not None:
            # The previous handle is left to its owner; it is not closed here
            logger.warning("connection_replaced", previous=self._url_string())

        self._engine = engine
        self._conn = conn
        self._url = url
        self._dialect = tag or DialectName.from_driver(engine.dialect.name)

        logger.info("connected", url=safe_url, dialect=self._dialect.value)

    def _create_engine(self, url: URL, options: Mapping[str, Any] | None) -> Engine:
        kwargs: dict[str, Any] = {"echo": self._echo, "poolclass": NullPool}
        connect_args = dict(options or {})

        if url.get_backend_name() == "sqlite":
            connect_args.setdefault("check_same_thread", False)

        if connect_args:
            kwargs["connect_args"] = connect_args

        engine = create_engine(url, **kwargs)

        if url.get_backend_name() == "sqlite":
            @event.listens_for(engine, "connect")
            def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    def disconnect(self) -> None:
        """Close and release the handle. No-op when already disconnected."""
        if self._conn is None:
            return

        conn, engine = self._conn, self._engine
        self._conn = None
        self._engine = None
        self._dialect = None
        url = self._url_string()
        self._url = None

        try:
            conn.close()
        finally:
            if engine is not None:
                engine.dispose()
        logger.info("disconnected", url=url)

    # -- state -------------------------------------------------------------

    def connected(self) -> bool:
        """Whether a connection is currently held."""
        return self._conn is not None

    def handle(self) -> Connection:
        """The live SQLAlchemy connection.

        Raises:
            NotConnectedError: If no connection is held.
        """
        if self._conn is None:
            raise NotConnectedError()
        return self._conn

    def dialect(self) -> DialectName:
        """Dialect of the active connection.

        Raises:
            NotConnectedError: If no connection is held.
        """
        if self._dialect is None:
            raise NotConnectedError()
        return self._dialect

    def sql_dialect(self) -> SqlDialect:
        """SQL generator for the active dialect."""
        return get_dialect(self.dialect())

    @property
    def url(self) -> URL | None:
        return self._url

    def _url_string(self) -> str | None:
        if self._url is None:
            return None
        return self._url.render_as_string(hide_password=True)

    def __enter__(self) -> ConnectionHolder:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        if self._dialect is None:
            return "ConnectionHolder(connected=False)"
        return f"ConnectionHolder(dialect={self._dialect.value!r}, url={self._url_string()!r})"


__all__ = [
    "ConnectionHolder",
    "resolve_url",
]
