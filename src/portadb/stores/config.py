"""Key/value configuration table backed by a :class:`~portadb.database.Database`.

One row per key; ``set`` is an upsert on the key column so repeated writes
never fail on the primary key.

Examples:
    >>> store = ConfigStore(db)
    >>> store.create_table()
    >>> store.set("site.name", "Example")
    >>> store.get("site.name")
    'Example'
    >>> store.get("missing", "fallback")
    'fallback'
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

from portadb.database import Database
from portadb.dialect import get_dialect
from portadb.errors import InvalidConfigError, ValidationError
from portadb.logging import get_logger

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

MODIFIED_COLUMN = "modified_at"


def validate_identifier(name: str, label: str) -> str:
    """Return ``name`` if it is a plain SQL identifier.

    Raises:
        InvalidConfigError: If ``name`` contains anything but letters,
            digits and underscores, or starts with a digit.
    """
    if not _IDENTIFIER.match(name):
        raise InvalidConfigError(label, name, f"Invalid {label} name: {name!r}")
    return name


class ConfigStore:
    """String settings persisted in a ``config`` table.

    Args:
        db: Connected database.
        table: Table name (default ``config``).
        key_column: Primary-key column (default ``config_key``).
        value_column: Value column (default ``config_value``).
    """

    def __init__(
        self,
        db: Database,
        table: str = "config",
        key_column: str = "config_key",
        value_column: str = "config_value",
    ) -> None:
        self._db = db
        self.table = validate_identifier(table, "table")
        self.key_column = validate_identifier(key_column, "key column")
        self.value_column = validate_identifier(value_column, "value column")

    def create_table(self) -> None:
        """``CREATE TABLE IF NOT EXISTS`` with dialect-appropriate column types."""
        q = self._db.quote_identifier
        dialect = get_dialect(self._db.dialect())

        columns = [
            f"{q(self.key_column)} {dialect.key_type()} PRIMARY KEY NOT NULL",
            f"{q(self.value_column)} TEXT",
            f"{q(MODIFIED_COLUMN)} {dialect.timestamp_type()}",
        ]
        sql = (
            f"CREATE TABLE IF NOT EXISTS {q(self.table)} (\n    "
            + ",\n    ".join(columns)
            + "\n)"
            + dialect.table_options()
        )
        self._db.execute(sql)
        logger.debug("config_table_ready", table=self.table, dialect=dialect.name.value)

    def set(self, key: str, value: str | None) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        key = self._normalize_key(key)
        self._db.upsert(
            self.table,
            {
                self.key_column: key,
                self.value_column: value,
                MODIFIED_COLUMN: utc_now(),
            },
            self.key_column,
        )

    def get(self, key: str, default: str | None = None) -> str | None:
        """Value for ``key``; ``default`` when the key is absent.

        A key that exists with a ``NULL`` value returns ``None``, not
        ``default``.
        """
        key = self._normalize_key(key)
        q = self._db.quote_identifier
        row = self._db.get_row(
            f"SELECT {q(self.value_column)} FROM {q(self.table)} "
            f"WHERE {q(self.key_column)} = :config_key LIMIT 1",
            {"config_key": key},
        )
        if row is None:
            return default
        value = row.get(self.value_column)
        return None if value is None else str(value)

    def has(self, key: str) -> bool:
        key = self._normalize_key(key)
        return self._db.count(self.table, self._key_where(), {"config_key": key}) > 0

    def delete(self, key: str) -> bool:
        """Remove ``key``; ``True`` if a row was deleted."""
        key = self._normalize_key(key)
        return self._db.delete(self.table, self._key_where(), {"config_key": key}) > 0

    def all(self) -> dict[str, str | None]:
        """Every key and value, ordered by key."""
        q = self._db.quote_identifier
        rows = self._db.get_rows(
            f"SELECT {q(self.key_column)}, {q(self.value_column)} FROM {q(self.table)} "
            f"ORDER BY {q(self.key_column)} ASC"
        )
        result: dict[str, str | None] = {}
        for row in rows:
            value = row.get(self.value_column)
            result[str(row[self.key_column])] = None if value is None else str(value)
        return result

    def _key_where(self) -> str:
        return f"{self._db.quote_identifier(self.key_column)} = :config_key"

    @staticmethod
    def _normalize_key(key: str) -> str:
        key = key.strip()
        if not key:
            raise ValidationError("Config key cannot be empty", field="key", value=key)
        return key


def utc_now() -> str:
    """Current UTC time as ``YYYY-MM-DD HH:MM:SS``, the format both stores write."""
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")


__all__ = ["ConfigStore", "validate_identifier"]
