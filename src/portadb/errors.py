"""
Structured error types for the portadb data-access layer.

Every failure that crosses the data-layer boundary is one of the types in
this module. Raw SQLAlchemy and DBAPI driver exceptions are always wrapped,
so callers (and tests) match on a stable, dialect-independent vocabulary
instead of on ``sqlite3.OperationalError`` vs ``psycopg2.errors.*``.

Manifesto:
    - **Typed hierarchy:** Connection, query and caller-contract errors are
      distinct types
    - **Wrapped, never leaked:** Driver errors travel as ``cause``
    - **Fail fast:** Caller-contract violations are raised before any SQL
      reaches the engine
    - **No retries here:** ``retryable`` is metadata for the caller; the
      layer itself never retries

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        PortaError                                │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  DatabaseError              ValidationError        ConfigError   │
        │  (DATABASE)                 (VALIDATION)           (CONFIG)      │
        │       │                          │                      │        │
        │  NotConnectedError          EmptyInsertError     InvalidConfig-  │
        │  DatabaseConnectionError    EmptyUpsertError     Error           │
        │  QueryError                 MissingConflict-                     │
        │    └─ IntegrityError          ColumnsError                       │
        │                             MissingColumnIn-                     │
        │                               DataError                          │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping a driver error:

    >>> try:
    ...     raise RuntimeError("syntax error near SELEC")
    ... except RuntimeError as e:
    ...     error = QueryError("Query failed", sql="SELEC 1", cause=e)
    >>> error.category
    <ErrorCategory.DATABASE: 'DATABASE'>
    >>> error.sql
    'SELEC 1'

    Adding context:

    >>> EmptyInsertError("users").with_context(dialect="sqlite").context.dialect
    'sqlite'

Guardrails:
    ❌ DON'T: Let ``sqlalchemy.exc.*`` escape a public method
    ✅ DO: Wrap it in ``QueryError``/``DatabaseConnectionError`` with ``cause=``

    ❌ DON'T: Put bound parameter values into error messages
    ✅ DO: Put the SQL text into ``context.sql``; values stay out of logs

Tags:
    error-handling, exception-hierarchy, database, portadb

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and routing."""

    DATABASE = "DATABASE"         # Connection, query, transaction
    VALIDATION = "VALIDATION"     # Caller-contract violations
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        operation: Data-layer operation that failed (``insert``, ``upsert``...)
        table: Table the operation targeted
        dialect: Active dialect name
        sql: SQL text that was being executed (never the parameter values)
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    table: str | None = None
    dialect: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "table", "dialect", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PortaError(Exception):
    """
    Base exception for all portadb errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    each error type carries sensible metadata without the raiser repeating
    it.

    Examples:
        >>> error = PortaError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
        >>> error.to_dict()["error_type"]
        'PortaError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PortaError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryError("Insert failed").with_context(
                table="users",
                operation="insert",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(PortaError):
    """Database connection, query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class NotConnectedError(DatabaseError):
    """An operation was attempted with no live connection."""

    def __init__(self, message: str = "Database is not connected. Call connect() first.", **kwargs: Any):
        super().__init__(message, **kwargs)


class DatabaseConnectionError(DatabaseError):
    """Connect-time failure: bad URL, missing driver, auth rejected, unreachable host."""

    default_retryable = True


class QueryError(DatabaseError):
    """Prepare, bind or execute failure."""

    def __init__(self, message: str, *, sql: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.sql = sql
        if sql is not None and self.context.sql is None:
            self.context.sql = sql


class IntegrityError(QueryError):
    """Constraint violation (unique, not-null, foreign key)."""
    pass


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(PortaError):
    """
    Caller-contract violation detected before any SQL is sent.

    Never retryable: the call itself must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class EmptyInsertError(ValidationError):
    """Insert called with an empty data mapping."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Insert into {table!r} requires non-empty data", field="data")
        self.context.table = table
        self.context.operation = "insert"


class EmptyUpsertError(ValidationError):
    """Upsert called with an empty data mapping."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Upsert into {table!r} requires non-empty data", field="data")
        self.context.table = table
        self.context.operation = "upsert"


class MissingConflictColumnsError(ValidationError):
    """Upsert called without any conflict columns."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(
            f"Upsert into {table!r} requires at least one conflict column",
            field="conflict_columns",
        )
        self.context.table = table
        self.context.operation = "upsert"


class MissingColumnInDataError(ValidationError):
    """A conflict or update column is absent from the upsert data."""

    def __init__(self, table: str, column: str, role: str = "conflict"):
        self.table = table
        self.column = column
        self.role = role
        super().__init__(
            f"Upsert {role} column {column!r} is missing from the data for {table!r}",
            field=column,
        )
        self.context.table = table
        self.context.operation = "upsert"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(PortaError):
    """
    Configuration error.
    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PortaError",
    "DatabaseError",
    "NotConnectedError",
    "DatabaseConnectionError",
    "QueryError",
    "IntegrityError",
    "ValidationError",
    "EmptyInsertError",
    "EmptyUpsertError",
    "MissingConflictColumnsError",
    "MissingColumnInDataError",
    "ConfigError",
    "InvalidConfigError",
]
