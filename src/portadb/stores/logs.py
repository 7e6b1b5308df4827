"""Database-backed log records.

``LogStore`` writes one row per call into a ``logs`` table:

    id | level | message | context (JSON) | meta (JSON) | created_at

It complements :mod:`portadb.logging` (structlog, process-level
diagnostics) for applications that need an auditable, queryable event
trail next to their own data.

Examples:
    >>> logs = LogStore(db, defaults={"channel": "billing"})
    >>> logs.create_table()
    >>> logs.info("invoice sent", {"invoice": 42})
    '1'
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from portadb.database import Database
from portadb.dialect import DialectName, get_dialect
from portadb.errors import ConfigError, ValidationError
from portadb.stores.config import utc_now


class LogStore:
    """Insert-only log table.

    Args:
        db: Connected database.
        table: Table name (default ``logs``).
        defaults: Column values merged into every record (e.g. ``channel``).
            Explicit record fields win over defaults.
    """

    def __init__(
        self,
        db: Database,
        table: str = "logs",
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self._db = db
        self.table = self._check_table(table)
        self._defaults: dict[str, Any] = {}
        if defaults:
            self.set_defaults(defaults)

    # -- configuration -----------------------------------------------------

    @property
    def defaults(self) -> dict[str, Any]:
        return dict(self._defaults)

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """Merge ``defaults`` into the current defaults."""
        for key in defaults:
            if not isinstance(key, str) or not key:
                raise ValidationError("Default keys must be non-empty strings", field="defaults", value=key)
        self._defaults.update(defaults)

    def clear_defaults(self) -> None:
        self._defaults = {}

    @staticmethod
    def _check_table(table: str) -> str:
        table = table.strip()
        if not table:
            raise ValidationError("Table name cannot be empty", field="table", value=table)
        return table

    # -- schema ------------------------------------------------------------

    def create_table(self) -> None:
        """Create the table and its ``(level, created_at)`` index.

        Raises:
            ConfigError: On dialects other than MySQL and SQLite.
        """
        name = self._db.dialect()
        if name not in (DialectName.MYSQL, DialectName.SQLITE):
            raise ConfigError(
                f"LogStore.create_table supports MySQL and SQLite, not {name.value}"
            ).with_context(operation="create_table", table=self.table, dialect=name.value)

        q = self._db.quote_identifier
        dialect = get_dialect(name)
        table = q(self.table)
        index = q(f"{self.table}_level_created_at_idx")
        columns = [
            f"id {dialect.auto_increment()}",
            f"level {dialect.key_type()} NOT NULL",
            "message TEXT NOT NULL",
            "context TEXT NULL",
            "meta TEXT NULL",
            f"created_at {dialect.timestamp_type()}",
        ]
        # MySQL has no CREATE INDEX IF NOT EXISTS
        if name is DialectName.MYSQL:
            columns.append(f"INDEX {index} (level, created_at)")

        self._db.execute(
            f"CREATE TABLE IF NOT EXISTS {table} (\n    "
            + ",\n    ".join(columns)
            + "\n)"
            + dialect.table_options()
        )
        if name is DialectName.SQLITE:
            self._db.execute(f"CREATE INDEX IF NOT EXISTS {index} ON {table} (level, created_at)")

    # -- writing -----------------------------------------------------------

    def log(
        self,
        level: str,
        message: str,
        context: Mapping[str, Any] | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> str:
        """Insert one record and return its id.

        ``level`` is lower-cased; ``context`` and ``meta`` are stored as
        JSON (empty mappings are stored as ``NULL``); ``None`` values are
        left to the column defaults.

        Raises:
            ValidationError: If ``level`` or ``message`` is blank, or
                ``context``/``meta`` cannot be JSON-encoded.
        """
        level = level.strip().lower()
        if not level:
            raise ValidationError("Log level cannot be empty", field="level")
        message = message.strip()
        if not message:
            raise ValidationError("Log message cannot be empty", field="message")

        record = {
            **self._defaults,
            "level": level,
            "message": message,
            "context": _encode(context, "context"),
            "meta": _encode(meta, "meta"),
        }
        record.setdefault("created_at", utc_now())

        return self._db.insert(self.table, {k: v for k, v in record.items() if v is not None})

    def debug(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("debug", message, context, meta)

    def info(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("info", message, context, meta)

    def notice(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("notice", message, context, meta)

    def warning(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("warning", message, context, meta)

    def error(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("error", message, context, meta)

    def critical(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("critical", message, context, meta)

    def alert(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("alert", message, context, meta)

    def emergency(self, message: str, context: Mapping[str, Any] | None = None, meta: Mapping[str, Any] | None = None) -> str:
        return self.log("emergency", message, context, meta)


def _encode(value: Mapping[str, Any] | None, field: str) -> str | None:
    if not value:
        return None
    try:
        return json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Unable to encode {field} to JSON: {e}", field=field, cause=e) from e


__all__ = ["LogStore"]
