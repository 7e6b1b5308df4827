"""Query executor: run parameterized statements and normalize results.

Every statement goes through SQLAlchemy ``text()`` on the holder's single
connection. Results are buffered into a :class:`StatementHandle` before the
surrounding transaction ends, so a handle is always safe to read.

Transactions
------------
``begin()`` / ``commit()`` / ``rollback()`` keep a depth counter. Only the
outermost pair reaches the engine; inner requests collapse into it. Outside
an explicit transaction every statement runs in its own short transaction
(autocommit).

``with_transaction(fn)`` and ``transaction()`` begin only when no
transaction is open, commit on normal exit, roll back and re-raise on any
exception, and are plain pass-throughs when nested.

Errors
------
Any SQLAlchemy or driver failure surfaces as :class:`QueryError`
(constraint violations as its subclass :class:`IntegrityError`). Nothing is
retried and nothing is downgraded to a default value.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection, CursorResult, RootTransaction
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.exc import IntegrityError as SAIntegrityError

from portadb.connection import ConnectionHolder
from portadb.dialect import DialectName
from portadb.errors import IntegrityError, QueryError
from portadb.logging import get_logger
from portadb.placeholders import Params, normalize

logger = get_logger(__name__)

Row = dict[str, Any]
T = TypeVar("T")


class StatementHandle:
    """Buffered result of one executed statement.

    Rows are drawn in engine order with :meth:`fetch`, :meth:`fetch_all`
    and :meth:`fetch_column`, or by iterating the handle.
    """

    def __init__(
        self,
        sql: str,
        columns: list[str],
        rows: list[Row],
        rowcount: int,
        lastrowid: Any = None,
    ) -> None:
        self.sql = sql
        self.columns = columns
        self.rowcount = rowcount
        self.lastrowid = lastrowid
        self._rows = rows
        self._position = 0

    @classmethod
    def from_result(cls, sql: str, result: CursorResult) -> StatementHandle:
        rowcount = result.rowcount
        if result.returns_rows:
            columns = list(result.keys())
            rows = [dict(m) for m in result.mappings()]
            return cls(sql, columns, rows, rowcount)
        return cls(sql, [], [], rowcount, result.lastrowid)

    def fetch(self) -> Row | None:
        """Next row, or ``None`` when the result is exhausted."""
        if self._position >= len(self._rows):
            return None
        row = self._rows[self._position]
        self._position += 1
        return row

    def fetch_all(self) -> list[Row]:
        """All remaining rows."""
        rows = self._rows[self._position:]
        self._position = len(self._rows)
        return rows

    def fetch_column(self, index: int = 0) -> Any | None:
        """Column ``index`` of the next row, or ``None`` when exhausted."""
        row = self.fetch()
        if row is None:
            return None
        return list(row.values())[index]

    def __iter__(self) -> Iterator[Row]:
        while (row := self.fetch()) is not None:
            yield row

    def __repr__(self) -> str:
        return f"StatementHandle(rows={len(self._rows)}, rowcount={self.rowcount})"


class QueryExecutor:
    """Runs SQL against the connection held by a :class:`ConnectionHolder`."""

    def __init__(self, holder: ConnectionHolder) -> None:
        self._holder = holder
        self._transaction: RootTransaction | None = None
        self._depth = 0

    # -- statements --------------------------------------------------------

    def query(self, sql: str, params: Params = None) -> StatementHandle:
        """Prepare, bind and execute ``sql``; return a buffered handle.

        Args:
            sql: SQL text with ``?`` (positional) or ``:name`` (named) binds.
            params: Sequence for ``?``, mapping for ``:name``.

        Raises:
            NotConnectedError: If no connection is held.
            QueryError: On any prepare, bind or execute failure.
        """
        conn = self._holder.handle()
        try:
            prepared, bound = normalize(sql, params, backslash_escapes=self._backslash_escapes())
        except TypeError as e:
            raise QueryError(str(e), sql=sql, cause=e) from e

        try:
            if self._transaction is not None:
                return self._run(conn, sql, prepared, bound)
            with conn.begin():
                return self._run(conn, sql, prepared, bound)
        except SQLAlchemyError as e:
            raise self._wrap(e, sql) from e
        except (OverflowError, ValueError, TypeError) as e:
            # Raised by the driver while binding, outside the DBAPI error tree
            raise self._wrap(e, sql) from e

    def _backslash_escapes(self) -> bool:
        return self._holder.dialect() is DialectName.MYSQL

    @staticmethod
    def _run(conn: Connection, sql: str, prepared: str, bound: dict[str, Any]) -> StatementHandle:
        result = conn.execute(text(prepared), bound)
        return StatementHandle.from_result(sql, result)

    def execute(self, sql: str, params: Params = None) -> int:
        """Run an INSERT/UPDATE/DELETE and return the affected-row count.

        ``0`` is a valid result. Statements for which the engine reports no
        count (``-1``) also return ``0``.
        """
        return max(self.query(sql, params).rowcount, 0)

    def get_row(self, sql: str, params: Params = None) -> Row | None:
        """First row, or ``None`` if the query returned no rows."""
        return self.query(sql, params).fetch()

    def get_rows(self, sql: str, params: Params = None) -> list[Row]:
        """All rows in engine order."""
        return self.query(sql, params).fetch_all()

    def get_value(self, sql: str, params: Params = None) -> Any | None:
        """First column of the first row.

        SQL ``NULL`` and "no row" both return ``None``; use :meth:`get_row`
        to tell them apart.
        """
        return self.query(sql, params).fetch_column(0)

    def count(self, table: str, where: str | None = None, params: Params = None) -> int:
        """``SELECT COUNT(*) FROM <table> [WHERE <where>]``.

        ``where`` is raw SQL supplied by the caller and is not validated;
        never interpolate untrusted values into it, bind them via ``params``.
        """
        sql = f"SELECT COUNT(*) FROM {self._holder.sql_dialect().quote_identifier(table)}"
        if where:
            sql += f" WHERE {where}"
        return int(self.get_value(sql, params) or 0)

    def last_insert_id(self, handle: StatementHandle) -> str:
        """Engine-reported id of the row inserted by ``handle``, as a string.

        PostgreSQL reports it through ``lastval()``; ``""`` is returned when
        no sequence has been used in the session. Other engines use the
        DBAPI cursor's ``lastrowid``.
        """
        if self._holder.dialect() is DialectName.POSTGRES:
            return self._postgres_lastval()
        return "" if handle.lastrowid is None else str(handle.lastrowid)

    def _postgres_lastval(self) -> str:
        conn = self._holder.handle()
        try:
            # A failed lastval() must not abort an enclosing transaction
            scope = conn.begin_nested() if self._transaction is not None else conn.begin()
            with scope:
                value = conn.execute(text("SELECT lastval()")).scalar()
        except DBAPIError as e:
            logger.debug("lastval_unavailable", error=str(e.orig))
            return ""
        return "" if value is None else str(value)

    # -- transactions ------------------------------------------------------

    def in_transaction(self) -> bool:
        """Whether an explicit transaction is open."""
        return self._depth > 0

    def begin(self) -> None:
        """Open a transaction, or join the one already open."""
        conn = self._holder.handle()
        if self._depth == 0:
            try:
                self._transaction = conn.begin()
            except SQLAlchemyError as e:
                raise self._wrap(e, "BEGIN") from e
            logger.debug("transaction_begin")
        self._depth += 1

    def commit(self) -> None:
        """Commit the outermost transaction; inner commits only unwind depth.

        A failing commit is rolled back before the error propagates.
        """
        self._holder.handle()
        if self._depth == 0:
            raise QueryError("No active transaction to commit", sql="COMMIT")
        if self._depth > 1:
            self._depth -= 1
            return

        txn = self._transaction
        try:
            txn.commit()
        except SQLAlchemyError as e:
            self.abort()
            raise self._wrap(e, "COMMIT") from e
        self.reset()
        logger.debug("transaction_commit")

    def rollback(self) -> None:
        """Roll back the outermost transaction; inner rollbacks are deferred."""
        self._holder.handle()
        if self._depth == 0:
            raise QueryError("No active transaction to roll back", sql="ROLLBACK")
        if self._depth > 1:
            self._depth -= 1
            logger.warning("nested_rollback_deferred", depth=self._depth)
            return

        txn = self._transaction
        self.reset()
        try:
            txn.rollback()
        except SQLAlchemyError as e:
            raise self._wrap(e, "ROLLBACK") from e
        logger.debug("transaction_rollback")

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Context manager form of :meth:`with_transaction`.

        Example:
            with executor.transaction():
                executor.execute("UPDATE accounts SET balance = balance - ? WHERE id = ?", [10, 1])
                executor.execute("UPDATE accounts SET balance = balance + ? WHERE id = ?", [10, 2])
        """
        conn = self._holder.handle()
        if self.in_transaction():
            yield conn
            return

        self.begin()
        try:
            yield conn
        except BaseException:
            self.abort()
            raise
        self.commit()

    def with_transaction(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` inside a transaction and return its result.

        Safe to nest: an inner call neither begins nor commits, so only the
        outermost call decides the outcome.
        """
        with self.transaction():
            return fn(*args, **kwargs)

    def abort(self) -> None:
        """Roll back whatever transaction is open and clear all depth.

        Used on error paths; a failing rollback is logged, not raised, so
        the original error is the one that propagates.
        """
        txn = self._transaction
        self.reset()
        if txn is None:
            return
        try:
            txn.rollback()
        except SQLAlchemyError as e:
            logger.error("rollback_failed", error=str(e))
        else:
            logger.debug("transaction_rollback")

    def reset(self) -> None:
        """Forget transaction state (after commit, rollback or disconnect)."""
        self._transaction = None
        self._depth = 0

    # -- errors ------------------------------------------------------------

    def _wrap(self, error: Exception, sql: str) -> QueryError:
        dialect = self._holder.dialect().value if self._holder.connected() else None
        detail = str(error.orig) if isinstance(error, DBAPIError) else str(error)
        logger.error("query_failed", sql=sql, dialect=dialect, error=detail)

        error_cls = IntegrityError if isinstance(error, SAIntegrityError) else QueryError
        wrapped = error_cls(f"Query failed: {detail}", sql=sql, cause=error)
        wrapped.context.dialect = dialect
        return wrapped


__all__ = [
    "Row",
    "StatementHandle",
    "QueryExecutor",
]
