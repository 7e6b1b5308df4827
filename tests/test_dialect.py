"""Tests for the dialect abstraction layer."""

from __future__ import annotations

import pytest

from portadb.dialect import (
    DialectName,
    GenericDialect,
    MySQLDialect,
    PostgreSQLDialect,
    SQLiteDialect,
    SqlDialect,
    get_dialect,
    register_dialect,
)

# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture(params=["mysql", "postgres", "sqlite", "other"])
def dialect(request: pytest.FixtureRequest) -> SqlDialect:
    """Parametric fixture: run each test against every dialect."""
    return get_dialect(request.param)


COLUMNS = ["id", "email", "age"]
BINDS = [":v0", ":v1", ":v2"]


# =========================================================================
# Protocol conformance
# =========================================================================


class TestProtocol:
    def test_isinstance(self, dialect: SqlDialect) -> None:
        assert isinstance(dialect, SqlDialect)

    def test_name_is_enum(self, dialect: SqlDialect) -> None:
        assert isinstance(dialect.name, DialectName)


class TestDialectName:
    @pytest.mark.parametrize(
        ("driver", "expected"),
        [
            ("mysql", DialectName.MYSQL),
            ("mariadb", DialectName.MYSQL),
            ("postgresql", DialectName.POSTGRES),
            ("pgsql", DialectName.POSTGRES),
            ("sqlite", DialectName.SQLITE),
            ("SQLite", DialectName.SQLITE),
            ("mssql", DialectName.OTHER),
            ("oracle", DialectName.OTHER),
        ],
    )
    def test_from_driver(self, driver: str, expected: DialectName) -> None:
        assert DialectName.from_driver(driver) is expected


# =========================================================================
# Quoting
# =========================================================================


class TestQuoteIdentifier:
    def test_dotted_segments_quoted_independently(self, dialect: SqlDialect) -> None:
        quoted = dialect.quote_identifier("a.b")
        q = "`" if dialect.name is DialectName.MYSQL else '"'
        assert quoted == f"{q}a{q}.{q}b{q}"

    def test_star_unquoted(self, dialect: SqlDialect) -> None:
        assert dialect.quote_identifier("*") == "*"

    def test_qualified_star(self, dialect: SqlDialect) -> None:
        assert dialect.quote_identifier("u.*").endswith(".*")

    def test_mysql_backticks(self) -> None:
        assert MySQLDialect().quote_identifier("users") == "`users`"

    def test_embedded_quote_doubled(self) -> None:
        assert MySQLDialect().quote_identifier("we`ird") == "`we``ird`"
        assert PostgreSQLDialect().quote_identifier('we"ird') == '"we""ird"'


# =========================================================================
# Upsert SQL
# =========================================================================


class TestUpsertSql:
    def test_mysql(self) -> None:
        sql = MySQLDialect().upsert("users", COLUMNS, BINDS, ["id"], ["age"])
        assert sql == (
            "INSERT INTO `users` (`id`, `email`, `age`) VALUES (:v0, :v1, :v2) "
            "ON DUPLICATE KEY UPDATE `age` = VALUES(`age`)"
        )

    def test_mysql_no_updates_touches_key(self) -> None:
        sql = MySQLDialect().upsert("users", COLUMNS, BINDS, ["id"], [])
        assert sql.endswith("ON DUPLICATE KEY UPDATE `id` = `id`")

    def test_postgres(self) -> None:
        sql = PostgreSQLDialect().upsert("users", COLUMNS, BINDS, ["id"], ["email", "age"])
        assert sql == (
            'INSERT INTO "users" ("id", "email", "age") VALUES (:v0, :v1, :v2) '
            'ON CONFLICT ("id") DO UPDATE SET "email" = EXCLUDED."email", "age" = EXCLUDED."age"'
        )

    def test_sqlite_lowercase_excluded(self) -> None:
        sql = SQLiteDialect().upsert("users", COLUMNS, BINDS, ["id"], ["age"])
        assert 'DO UPDATE SET "age" = excluded."age"' in sql

    def test_composite_conflict(self) -> None:
        sql = PostgreSQLDialect().upsert("users", COLUMNS, BINDS, ["id", "email"], ["age"])
        assert 'ON CONFLICT ("id", "email")' in sql

    def test_no_updates_do_nothing(self) -> None:
        sql = SQLiteDialect().upsert("users", COLUMNS, BINDS, ["id"], [])
        assert sql.endswith('ON CONFLICT ("id") DO NOTHING')

    def test_generic_has_no_native_upsert(self) -> None:
        generic = GenericDialect()
        assert generic.supports_native_upsert is False
        assert generic.upsert("users", COLUMNS, BINDS, ["id"], ["age"]) is None


# =========================================================================
# Registry
# =========================================================================


class TestRegistry:
    def test_lookup_by_string_and_enum(self) -> None:
        assert get_dialect("postgres") is get_dialect(DialectName.POSTGRES)
        assert get_dialect("MYSQL").name is DialectName.MYSQL

    def test_unknown_raises(self) -> None:
        with pytest.raises(ValueError):
            get_dialect("db2")

    def test_register_replaces(self) -> None:
        original = get_dialect("other")
        custom = GenericDialect()
        try:
            register_dialect("other", custom)
            assert get_dialect("other") is custom
        finally:
            register_dialect(DialectName.OTHER, original)

    def test_ddl_helpers(self, dialect: SqlDialect) -> None:
        assert "PRIMARY KEY" in dialect.auto_increment()
        assert dialect.key_type()
        assert dialect.timestamp_type()
        assert dialect.table_options() == (
            " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"
            if dialect.name is DialectName.MYSQL
            else ""
        )
