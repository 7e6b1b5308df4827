"""SQL dialect abstraction for the portable data-access layer.

Provides the closed ``DialectName`` enumeration, a ``SqlDialect`` protocol,
and one concrete implementation per supported engine family. The statement
builder asks the active dialect for identifier quoting and for native upsert
text; it never compares driver-name strings itself.

Manifesto:
    Cross-engine differences belong in exactly one place. Without a dialect
    layer, backtick-vs-double-quote decisions and ``ON DUPLICATE KEY`` vs
    ``ON CONFLICT`` branches leak into every call site.

    - **Closed set:** mysql, postgres, sqlite, other
    - **Decided once:** the dialect is resolved at connect time
    - **Pure:** every method returns SQL text; nothing touches a connection
    - **Explicit fallback:** ``GenericDialect`` has no native upsert, so the
      builder emulates it

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                     Dialect Abstraction Layer                     │
    └──────────────────────────────────────────────────────────────────┘

    ┌──────────────┐ ┌────────────────────┐ ┌──────────────┐ ┌──────────┐
    │ MySQL        │ │ PostgreSQL         │ │ SQLite       │ │ Generic  │
    │ `a`.`b`      │ │ "a"."b"            │ │ "a"."b"      │ │ "a"."b"  │
    │ ON DUPLICATE │ │ ON CONFLICT ...    │ │ ON CONFLICT  │ │ (none:   │
    │ KEY UPDATE   │ │ EXCLUDED.col       │ │ excluded.col │ │ emulate) │
    └──────────────┘ └────────────────────┘ └──────────────┘ └──────────┘

Examples:
    >>> from portadb.dialect import get_dialect
    >>> get_dialect("mysql").quote_identifier("app.users")
    '`app`.`users`'
    >>> get_dialect("sqlite").quote_identifier("u.*")
    '"u".*'

Guardrails:
    ❌ DON'T: ``if driver == "mysql"`` at a call site
    ✅ DO: ``get_dialect(holder.dialect()).quote_identifier(name)``

    ❌ DON'T: Treat quoting as validation
    ✅ DO: Restrict which names are accepted before quoting them

Tags:
    dialect, sql, quoting, upsert, portability, portadb

Doc-Types:
    - API Reference
    - Database Portability Guide
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Protocol, runtime_checkable


class DialectName(str, Enum):
    """Closed set of SQL dialect families."""

    MYSQL = "mysql"
    POSTGRES = "postgres"
    SQLITE = "sqlite"
    OTHER = "other"

    @classmethod
    def from_driver(cls, driver_name: str) -> DialectName:
        """Map a SQLAlchemy dialect name (``engine.dialect.name``) to the enum.

        >>> DialectName.from_driver("postgresql")
        <DialectName.POSTGRES: 'postgres'>
        >>> DialectName.from_driver("mssql")
        <DialectName.OTHER: 'other'>
        """
        return _DRIVER_NAMES.get(driver_name.lower(), cls.OTHER)


_DRIVER_NAMES: dict[str, DialectName] = {
    "mysql": DialectName.MYSQL,
    "mariadb": DialectName.MYSQL,
    "postgresql": DialectName.POSTGRES,
    "postgres": DialectName.POSTGRES,
    "pgsql": DialectName.POSTGRES,
    "sqlite": DialectName.SQLITE,
}


@runtime_checkable
class SqlDialect(Protocol):
    """SQL dialect contract.

    Every method returns a SQL fragment or statement; none of them executes
    anything.
    """

    @property
    def name(self) -> DialectName:
        """Dialect family."""
        ...

    @property
    def supports_native_upsert(self) -> bool:
        """Whether ``upsert()`` returns a single native statement."""
        ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote a possibly dot-qualified identifier.

        Each ``.``-separated segment is quoted independently; a bare ``*``
        segment is left unquoted.
        """
        ...

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str | None:
        """Full native upsert statement, or ``None`` when unsupported.

        ``values`` are the bind markers (``:v0``, ``:v1`` ...) matching
        ``columns`` position by position.
        """
        ...

    # -- DDL helpers -------------------------------------------------------

    def auto_increment(self) -> str:
        """Column definition for an auto-incrementing integer primary key."""
        ...

    def key_type(self) -> str:
        """Column type for an indexable text key."""
        ...

    def timestamp_type(self) -> str:
        """Column type + default for a creation timestamp."""
        ...

    def table_options(self) -> str:
        """Suffix appended after the closing parenthesis of ``CREATE TABLE``."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class _DoubleQuoteDialect:
    """Shared behaviour for dialects that quote identifiers with ``"``."""

    def quote_identifier(self, identifier: str) -> str:
        return ".".join(_quote_part(part, '"') for part in identifier.split("."))

    def _insert_head(self, table: str, columns: Sequence[str], values: Sequence[str]) -> str:
        cols = ", ".join(self.quote_identifier(c) for c in columns)
        return f"INSERT INTO {self.quote_identifier(table)} ({cols}) VALUES ({', '.join(values)})"

    def key_type(self) -> str:
        return "TEXT"

    def timestamp_type(self) -> str:
        return "TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP"

    def table_options(self) -> str:
        return ""


class MySQLDialect:
    """MySQL / MariaDB dialect: backtick quoting, ``ON DUPLICATE KEY UPDATE``."""

    @property
    def name(self) -> DialectName:
        return DialectName.MYSQL

    @property
    def supports_native_upsert(self) -> bool:
        return True

    def quote_identifier(self, identifier: str) -> str:
        return ".".join(_quote_part(part, "`") for part in identifier.split("."))

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        q = self.quote_identifier
        cols = ", ".join(q(c) for c in columns)
        if update_columns:
            updates = ", ".join(f"{q(c)} = VALUES({q(c)})" for c in update_columns)
        else:
            # Touch the row without changing it
            key = q(conflict_columns[0])
            updates = f"{key} = {key}"
        return (
            f"INSERT INTO {q(table)} ({cols}) VALUES ({', '.join(values)}) "
            f"ON DUPLICATE KEY UPDATE {updates}"
        )

    def auto_increment(self) -> str:
        return "BIGINT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY"

    def key_type(self) -> str:
        return "VARCHAR(191)"

    def timestamp_type(self) -> str:
        return "TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP"

    def table_options(self) -> str:
        return " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"


class PostgreSQLDialect(_DoubleQuoteDialect):
    """PostgreSQL dialect: double-quote quoting, ``ON CONFLICT ... EXCLUDED``."""

    @property
    def name(self) -> DialectName:
        return DialectName.POSTGRES

    @property
    def supports_native_upsert(self) -> bool:
        return True

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        return _on_conflict(self, table, columns, values, conflict_columns, update_columns, "EXCLUDED")

    def auto_increment(self) -> str:
        return "BIGSERIAL PRIMARY KEY"

    def timestamp_type(self) -> str:
        return "TIMESTAMP(0) WITHOUT TIME ZONE NOT NULL DEFAULT CURRENT_TIMESTAMP"


class SQLiteDialect(_DoubleQuoteDialect):
    """SQLite dialect: double-quote quoting, ``ON CONFLICT ... excluded``.

    Native upsert needs SQLite 3.24 or newer.
    """

    @property
    def name(self) -> DialectName:
        return DialectName.SQLITE

    @property
    def supports_native_upsert(self) -> bool:
        return True

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> str:
        return _on_conflict(self, table, columns, values, conflict_columns, update_columns, "excluded")

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def timestamp_type(self) -> str:
        return "TEXT NOT NULL DEFAULT (datetime('now'))"


class GenericDialect(_DoubleQuoteDialect):
    """Any other engine: ANSI double-quote quoting, no native upsert."""

    @property
    def name(self) -> DialectName:
        return DialectName.OTHER

    @property
    def supports_native_upsert(self) -> bool:
        return False

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        values: Sequence[str],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
    ) -> None:
        return None

    def auto_increment(self) -> str:
        return "INTEGER GENERATED ALWAYS AS IDENTITY PRIMARY KEY"


def _quote_part(part: str, quote: str) -> str:
    if part == "*":
        return "*"
    return quote + part.replace(quote, quote * 2) + quote


def _on_conflict(
    dialect: _DoubleQuoteDialect,
    table: str,
    columns: Sequence[str],
    values: Sequence[str],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
    excluded: str,
) -> str:
    q = dialect.quote_identifier
    keys = ", ".join(q(c) for c in conflict_columns)
    head = dialect._insert_head(table, columns, values)
    if not update_columns:
        return f"{head} ON CONFLICT ({keys}) DO NOTHING"
    updates = ", ".join(f"{q(c)} = {excluded}.{q(c)}" for c in update_columns)
    return f"{head} ON CONFLICT ({keys}) DO UPDATE SET {updates}"


# =========================================================================
# Registry / Factory
# =========================================================================

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[DialectName, SqlDialect] = {
    DialectName.MYSQL: MySQLDialect(),
    DialectName.POSTGRES: PostgreSQLDialect(),
    DialectName.SQLITE: SQLiteDialect(),
    DialectName.OTHER: GenericDialect(),
}


def get_dialect(name: DialectName | str) -> SqlDialect:
    """Get the dialect implementation for a dialect name.

    Args:
        name: A :class:`DialectName` or its string value
              (``'mysql'``, ``'postgres'``, ``'sqlite'``, ``'other'``).

    Raises:
        ValueError: If ``name`` is not one of the closed set.
    """
    key = name if isinstance(name, DialectName) else DialectName(name.lower())
    return _DIALECTS[key]


def register_dialect(name: DialectName | str, dialect: SqlDialect) -> None:
    """Replace the implementation used for a dialect family.

    Useful for test doubles or an engine-specific ``OTHER`` implementation.
    """
    key = name if isinstance(name, DialectName) else DialectName(name.lower())
    _DIALECTS[key] = dialect


__all__ = [
    "DialectName",
    "SqlDialect",
    "MySQLDialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "GenericDialect",
    "get_dialect",
    "register_dialect",
]
