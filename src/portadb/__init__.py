"""
portadb - portable relational data access.

One connection, parameterized queries, dialect-aware DML and a portable
upsert over SQLAlchemy, for MySQL/MariaDB, PostgreSQL, SQLite and any other
engine SQLAlchemy can reach.

Quick start::

    from portadb import Database

    with Database() as db:
        db.connect("sqlite:///app.db")
        db.upsert("users", {"email": "a@x.com", "age": 25}, "email")
"""

__version__ = "0.1.0"

from portadb.database import Database
from portadb.dialect import DialectName, SqlDialect, get_dialect, register_dialect
from portadb.errors import (
    DatabaseConnectionError,
    DatabaseError,
    EmptyInsertError,
    EmptyUpsertError,
    IntegrityError,
    MissingColumnInDataError,
    MissingConflictColumnsError,
    NotConnectedError,
    PortaError,
    QueryError,
    ValidationError,
)
from portadb.executor import StatementHandle
from portadb.settings import DatabaseSettings

__all__ = [
    "__version__",
    "Database",
    "DatabaseSettings",
    "DialectName",
    "SqlDialect",
    "StatementHandle",
    "get_dialect",
    "register_dialect",
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
]
