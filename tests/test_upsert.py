"""Tests for upsert on the native and emulated paths."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from portadb import Database
from portadb.builder import StatementBuilder
from portadb.connection import ConnectionHolder
from portadb.dialect import DialectName, MySQLDialect, PostgreSQLDialect, SqlDialect
from portadb.errors import (
    EmptyUpsertError,
    IntegrityError,
    MissingColumnInDataError,
    MissingConflictColumnsError,
)
from portadb.executor import QueryExecutor


class TestUpsertScenarios:
    def test_insert_then_update(self, any_db: Database):
        any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, ["id"])
        any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 25}, ["id"], ["age"])

        assert any_db.get_row("SELECT age FROM users WHERE id=1") == {"age": 25}
        assert any_db.count("users") == 1

    def test_default_update_columns(self, any_db: Database):
        any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, "id")
        any_db.upsert("users", {"id": 1, "email": "b@x.com", "age": 21}, "id")

        assert any_db.get_row("SELECT email, age FROM users WHERE id = 1") == {"email": "b@x.com", "age": 21}
        assert any_db.count("users") == 1

    def test_only_listed_columns_updated(self, any_db: Database):
        any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, ["id"])
        any_db.upsert("users", {"id": 1, "email": "b@x.com", "age": 30}, ["id"], ["age"])

        assert any_db.get_row("SELECT email, age FROM users WHERE id = 1") == {"email": "a@x.com", "age": 30}

    def test_empty_update_columns_keeps_row(self, any_db: Database):
        any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, ["id"])
        any_db.upsert("users", {"id": 1, "email": "b@x.com", "age": 99}, ["id"], [])

        assert any_db.get_row("SELECT email, age FROM users WHERE id = 1") == {"email": "a@x.com", "age": 20}
        assert any_db.count("users") == 1

    def test_empty_update_columns_inserts_new_key(self, any_db: Database):
        any_db.upsert("users", {"id": 2, "email": "c@x.com", "age": 5}, ["id"], [])
        assert any_db.count("users") == 1

    def test_conflict_on_unique_column(self, any_db: Database):
        any_db.upsert("users", {"email": "a@x.com", "age": 1}, "email")
        any_db.upsert("users", {"email": "a@x.com", "age": 2}, "email")

        assert any_db.count("users") == 1
        assert any_db.get_value("SELECT age FROM users WHERE email = ?", ["a@x.com"]) == 2

    def test_repeated_upserts_single_row(self, any_db: Database):
        for age in range(5):
            any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": age}, ["id"])
        assert any_db.count("users") == 1
        assert any_db.get_value("SELECT age FROM users WHERE id = 1") == 4

    def test_inside_outer_transaction(self, any_db: Database):
        def body():
            any_db.upsert("users", {"id": 1, "email": "a@x.com", "age": 20}, ["id"])
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            any_db.with_transaction(body)
        assert any_db.count("users") == 0

    def test_failure_leaves_no_transaction(self, any_db: Database):
        # email is NOT NULL, so the insert half fails
        with pytest.raises(IntegrityError):
            any_db.upsert("users", {"id": 9, "age": 3}, ["id"])
        assert not any_db.in_transaction()
        assert any_db.count("users") == 0


class TestUpsertValidation:
    def test_empty_data(self, any_db: Database):
        with pytest.raises(EmptyUpsertError):
            any_db.upsert("users", {}, ["id"])

    def test_no_conflict_columns(self, any_db: Database):
        with pytest.raises(MissingConflictColumnsError):
            any_db.upsert("users", {"id": 1}, [])

    def test_conflict_column_missing_from_data(self, any_db: Database):
        with pytest.raises(MissingColumnInDataError) as exc_info:
            any_db.upsert("users", {"email": "a@x.com"}, ["id"])
        assert exc_info.value.column == "id"
        assert exc_info.value.role == "conflict"

    def test_update_column_missing_from_data(self, any_db: Database):
        with pytest.raises(MissingColumnInDataError) as exc_info:
            any_db.upsert("users", {"id": 1, "email": "a@x.com"}, ["id"], ["age"])
        assert exc_info.value.role == "update"

    def test_validation_sends_no_sql(self):
        holder = MagicMock(spec=ConnectionHolder)
        executor = MagicMock(spec=QueryExecutor)
        builder = StatementBuilder(holder, executor)

        with pytest.raises(MissingConflictColumnsError):
            builder.upsert("users", {"id": 1}, [])
        executor.query.assert_not_called()
        executor.with_transaction.assert_not_called()


class TestNativeStatements:
    """Native dialects issue exactly one statement; the rest are emulated."""

    def _builder(self, dialect) -> tuple[StatementBuilder, MagicMock]:
        holder = MagicMock(spec=ConnectionHolder)
        holder.sql_dialect.return_value = dialect
        executor = MagicMock(spec=QueryExecutor)
        return StatementBuilder(holder, executor), executor

    def test_mysql(self):
        builder, executor = self._builder(MySQLDialect())
        builder.upsert("users", {"id": 1, "email": "a@x.com", "age": 25}, ["id"], ["age"])

        executor.query.assert_called_once()
        sql, params = executor.query.call_args.args
        assert sql == (
            "INSERT INTO `users` (`id`, `email`, `age`) VALUES (:v0, :v1, :v2) "
            "ON DUPLICATE KEY UPDATE `age` = VALUES(`age`)"
        )
        assert params == {"v0": 1, "v1": "a@x.com", "v2": 25}
        executor.with_transaction.assert_not_called()

    def test_postgres(self):
        builder, executor = self._builder(PostgreSQLDialect())
        builder.upsert("app.users", {"id": 1, "email": "a@x.com"}, "id")

        sql, _ = executor.query.call_args.args
        assert sql.startswith('INSERT INTO "app"."users"')
        assert sql.endswith('ON CONFLICT ("id") DO UPDATE SET "email" = EXCLUDED."email"')

    def test_dialect_without_native_upsert_is_emulated(self):
        dialect = MagicMock(spec=SqlDialect)
        dialect.supports_native_upsert = False
        dialect.name = DialectName.OTHER
        builder, executor = self._builder(dialect)

        builder.upsert("users", {"id": 1, "email": "a@x.com"}, "id")

        dialect.upsert.assert_not_called()
        executor.query.assert_not_called()
        executor.with_transaction.assert_called_once()
        assert executor.with_transaction.call_args.args[1:] == (
            "users", {"id": 1, "email": "a@x.com"}, ["id"], ["email"],
        )
