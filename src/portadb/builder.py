"""Dialect-aware statement builder.

Builds INSERT, UPDATE, DELETE and UPSERT statements from table/column names
and data mappings, quotes every identifier for the active dialect, and runs
the result through the :class:`~portadb.executor.QueryExecutor`.

Upsert flow::

    Validating ──► native dialect ──► single INSERT ... ON CONFLICT /
        │                              ON DUPLICATE KEY statement
        │
        └────────► generic dialect ──► BEGIN
                                        UPDATE ... WHERE <conflict cols>
                                        rows affected > 0 ? COMMIT
                                                          : INSERT, COMMIT
                                        (any error: ROLLBACK, re-raise)

The generic path is best-effort: two callers that both see zero updated rows
will both attempt the INSERT. Only a unique constraint on the conflict
columns turns the loser's INSERT into an :class:`IntegrityError`; without
one, duplicates are possible. Strengthening this needs engine-specific
locking and is left to the caller.

Bind names never come from caller input: values are bound as ``:v0``,
``:v1`` ..., SET values as ``:set_<column>`` and conflict keys as
``:key_<n>``, so a column name can never inject bind syntax.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from portadb.connection import ConnectionHolder
from portadb.dialect import DialectName, SqlDialect
from portadb.errors import (
    EmptyInsertError,
    EmptyUpsertError,
    MissingColumnInDataError,
    MissingConflictColumnsError,
    QueryError,
)
from portadb.executor import QueryExecutor
from portadb.logging import get_logger
from portadb.placeholders import Params, normalize

logger = get_logger(__name__)


class StatementBuilder:
    """Builds and executes dialect-correct DML for one connection."""

    def __init__(self, holder: ConnectionHolder, executor: QueryExecutor) -> None:
        self._holder = holder
        self._executor = executor

    @property
    def _dialect(self) -> SqlDialect:
        return self._holder.sql_dialect()

    def quote_identifier(self, name: str) -> str:
        """Quote ``name`` for the active dialect.

        ``schema.table`` and ``table.column`` are split on ``.`` and each
        segment is quoted on its own; ``*`` stays bare. This is escaping,
        not validation: restrict which names are accepted before calling it.
        """
        return self._dialect.quote_identifier(name)

    # -- insert / update / delete ------------------------------------------

    def insert(self, table: str, data: Mapping[str, Any]) -> str:
        """Insert one row and return the engine's last-insert id as a string.

        Raises:
            EmptyInsertError: If ``data`` is empty.
        """
        if not data:
            raise EmptyInsertError(table)

        sql, params = self._insert_statement(table, data)
        handle = self._executor.query(sql, params)
        return self._executor.last_insert_id(handle)

    def _insert_statement(self, table: str, data: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
        q = self.quote_identifier
        columns = list(data)
        binds = [f":v{i}" for i in range(len(columns))]
        sql = (
            f"INSERT INTO {q(table)} ({', '.join(q(c) for c in columns)}) "
            f"VALUES ({', '.join(binds)})"
        )
        return sql, {f"v{i}": data[c] for i, c in enumerate(columns)}

    def update(
        self,
        table: str,
        data: Mapping[str, Any],
        where: str,
        where_params: Params = None,
    ) -> int:
        """Update rows matching ``where``; return the affected-row count.

        An empty ``data`` mapping returns ``0`` without touching the engine.
        ``where_params`` may be positional (``?``) or named (``:name``); SET
        values are bound under a ``set_`` prefix so they never collide with
        WHERE names.
        """
        if not data:
            return 0

        dialect = self._dialect
        q = dialect.quote_identifier
        set_parts = []
        params: dict[str, Any] = {}
        for i, (column, value) in enumerate(data.items()):
            name = _bind_name("set_", column, i)
            set_parts.append(f"{q(column)} = :{name}")
            params[name] = value

        try:
            where_sql, bound_where = normalize(
                where,
                where_params,
                prefix="where_",
                escape=False,
                backslash_escapes=dialect.name is DialectName.MYSQL,
            )
        except TypeError as e:
            raise QueryError(str(e), sql=where, cause=e) from e
        params.update(bound_where)

        sql = f"UPDATE {q(table)} SET {', '.join(set_parts)} WHERE {where_sql}"
        return self._executor.execute(sql, params)

    def delete(self, table: str, where: str, params: Params = None) -> int:
        """Delete rows matching ``where``; return the affected-row count."""
        sql = f"DELETE FROM {self.quote_identifier(table)} WHERE {where}"
        return self._executor.execute(sql, params)

    # -- upsert --------------------------------------------------------------

    def upsert(
        self,
        table: str,
        data: Mapping[str, Any],
        conflict_columns: str | Sequence[str],
        update_columns: Sequence[str] | None = None,
    ) -> None:
        """Insert ``data`` or update the row that conflicts on ``conflict_columns``.

        Args:
            table: Target table.
            data: Column → value for the row.
            conflict_columns: Column(s) whose values identify an existing row.
            update_columns: Columns to overwrite on conflict; defaults to every
                data column that is not a conflict column. ``[]`` keeps an
                existing row untouched.

        Raises:
            EmptyUpsertError: If ``data`` is empty.
            MissingConflictColumnsError: If no conflict column is given.
            MissingColumnInDataError: If a conflict or update column is not in ``data``.
            QueryError: If the engine rejects the statement.
        """
        conflict, updates = self._validate_upsert(table, data, conflict_columns, update_columns)

        dialect = self._dialect
        if dialect.supports_native_upsert:
            columns = list(data)
            binds = [f":v{i}" for i in range(len(columns))]
            sql = dialect.upsert(table, columns, binds, conflict, updates)
            self._executor.query(sql, {f"v{i}": data[c] for i, c in enumerate(columns)})
            return

        logger.debug("upsert_emulated", table=table, dialect=dialect.name.value)
        self._executor.with_transaction(self._emulate_upsert, table, data, conflict, updates)

    @staticmethod
    def _validate_upsert(
        table: str,
        data: Mapping[str, Any],
        conflict_columns: str | Sequence[str],
        update_columns: Sequence[str] | None,
    ) -> tuple[list[str], list[str]]:
        if not data:
            raise EmptyUpsertError(table)

        if isinstance(conflict_columns, str):
            conflict_columns = [conflict_columns]
        conflict = list(conflict_columns)
        if not conflict:
            raise MissingConflictColumnsError(table)

        for column in conflict:
            if column not in data:
                raise MissingColumnInDataError(table, column, role="conflict")

        if update_columns is None:
            updates = [c for c in data if c not in conflict]
        else:
            updates = list(update_columns)
            for column in updates:
                if column not in data:
                    raise MissingColumnInDataError(table, column, role="update")

        return conflict, updates

    def _emulate_upsert(
        self,
        table: str,
        data: Mapping[str, Any],
        conflict: list[str],
        updates: list[str],
    ) -> None:
        q = self.quote_identifier
        where = " AND ".join(f"{q(c)} = :key_{i}" for i, c in enumerate(conflict))
        key_params = {f"key_{i}": data[c] for i, c in enumerate(conflict)}

        if updates:
            affected = self.update(table, {c: data[c] for c in updates}, where, key_params)
            if affected > 0:
                return
        elif self._executor.count(table, where, key_params) > 0:
            return

        self.insert(table, data)


def _bind_name(prefix: str, column: str, index: int) -> str:
    if column.isidentifier() and column.isascii():
        return f"{prefix}{column}"
    return f"{prefix}{index}"


__all__ = ["StatementBuilder"]
