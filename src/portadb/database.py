"""Database facade: the single entry point of the data-access layer.

Manifesto:
    Callers should see one object, not three. ``Database`` owns a
    :class:`ConnectionHolder`, a :class:`QueryExecutor` and a
    :class:`StatementBuilder`, wires them together, and exposes their
    operations as one synchronous call surface.

    - **Explicit, not global:** construct one ``Database`` at process start
      and pass it to whatever needs it; there is no hidden singleton
    - **One connection:** at most one live handle per ``Database``
    - **Typed failures:** every error is a :mod:`portadb.errors` type

Architecture::

    caller
      │
      ▼
    Database ──► StatementBuilder ──► QueryExecutor ──► ConnectionHolder
                 (SQL + binds)        (bind, run,        (SQLAlchemy
                                       buffer, wrap)      Connection)

Examples:
    >>> db = Database()
    >>> db.connect("memory")
    >>> _ = db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT UNIQUE, age INTEGER)")
    >>> db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, ["id"])
    >>> db.upsert("users", {"id": 1, "email": "a@x.com", "age": 25}, ["id"], ["age"])
    >>> db.get_row("SELECT age FROM users WHERE id = 1")
    {'age': 25}
    >>> db.count("users")
    1

Guardrails:
    ❌ DON'T: Share one ``Database`` between threads without a lock
    ✅ DO: Serialize access, or give each thread its own ``Database``

    ❌ DON'T: ``db.count("users", f"email = '{email}'")``
    ✅ DO: ``db.count("users", "email = ?", [email])``

Tags:
    database, facade, upsert, transactions, portadb

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy.engine import URL, Connection

from portadb.builder import StatementBuilder
from portadb.connection import ConnectionHolder
from portadb.dialect import DialectName
from portadb.executor import QueryExecutor, Row, StatementHandle
from portadb.logging import get_logger
from portadb.placeholders import Params
from portadb.settings import DatabaseSettings

logger = get_logger(__name__)

T = TypeVar("T")


class Database:
    """Portable relational data access over one connection."""

    def __init__(self, *, echo: bool = False) -> None:
        self._holder = ConnectionHolder(echo=echo)
        self._executor = QueryExecutor(self._holder)
        self._builder = StatementBuilder(self._holder, self._executor)

    @classmethod
    def from_settings(cls, settings: DatabaseSettings | None = None) -> Database:
        """Create a connected ``Database`` from :class:`DatabaseSettings`."""
        settings = settings or DatabaseSettings()
        db = cls(echo=settings.echo)
        db.connect(
            settings.url,
            settings.username,
            settings.password_value(),
            settings.driver_options(),
            dialect=settings.dialect,
        )
        return db

    # -- connection ----------------------------------------------------------

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

        See :meth:`ConnectionHolder.connect` for the accepted targets.
        """
        self._holder.connect(dsn, username, password, options, dialect=dialect)
        self._executor.reset()

    def disconnect(self) -> None:
        """Close the connection; an open transaction is rolled back by the engine."""
        if self._executor.in_transaction():
            logger.warning("disconnect_in_transaction")
        self._executor.reset()
        self._holder.disconnect()

    def connected(self) -> bool:
        return self._holder.connected()

    def dialect(self) -> DialectName:
        return self._holder.dialect()

    def handle(self) -> Connection:
        """The underlying SQLAlchemy connection."""
        return self._holder.handle()

    # -- queries ---------------------------------------------------------------

    def query(self, sql: str, params: Params = None) -> StatementHandle:
        return self._executor.query(sql, params)

    def execute(self, sql: str, params: Params = None) -> int:
        return self._executor.execute(sql, params)

    def get_row(self, sql: str, params: Params = None) -> Row | None:
        return self._executor.get_row(sql, params)

    def get_rows(self, sql: str, params: Params = None) -> list[Row]:
        return self._executor.get_rows(sql, params)

    def get_value(self, sql: str, params: Params = None) -> Any | None:
        return self._executor.get_value(sql, params)

    def count(self, table: str, where: str | None = None, params: Params = None) -> int:
        return self._executor.count(table, where, params)

    # -- statements ------------------------------------------------------------

    def insert(self, table: str, data: Mapping[str, Any]) -> str:
        return self._builder.insert(table, data)

    def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where: str,
        where_params: Params = None,
    ) -> int:
        return self._builder.update(table, data, where, where_params)

    def delete(self, table: str, where: str, params: Params = None) -> int:
        return self._builder.delete(table, where, params)

    def upsert(
        self,
        table: str,
        data: Mapping[str, Any],
        conflict_columns: str | Sequence[str],
        update_columns: Sequence[str] | None = None,
    ) -> None:
        self._builder.upsert(table, data, conflict_columns, update_columns)

    def quote_identifier(self, name: str) -> str:
        return self._builder.quote_identifier(name)

    # -- transactions ----------------------------------------------------------

    def begin(self) -> None:
        self._executor.begin()

    def commit(self) -> None:
        self._executor.commit()

    def rollback(self) -> None:
        self._executor.rollback()

    def in_transaction(self) -> bool:
        return self._executor.in_transaction()

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """``with db.transaction():`` form of :meth:`with_transaction`."""
        with self._executor.transaction():
            yield self

    def with_transaction(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return self._executor.with_transaction(fn, *args, **kwargs)

    # -- lifecycle -------------------------------------------------------------

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def __repr__(self) -> str:
        return f"Database({self._holder!r})"


__all__ = ["Database"]
