"""Tests for transaction handling: explicit, scoped and nested."""

from __future__ import annotations

import pytest

from portadb import Database
from portadb.errors import QueryError


class Boom(Exception):
    pass


def _add(db: Database, i: int) -> None:
    db.insert("users", {"id": i, "email": f"t{i}@x.com", "age": i})


class TestWithTransaction:
    def test_commits_on_success(self, any_db: Database):
        any_db.with_transaction(_add, any_db, 1)
        assert any_db.count("users") == 1
        assert not any_db.in_transaction()

    def test_returns_body_result(self, any_db: Database):
        assert any_db.with_transaction(lambda: 42) == 42

    def test_rollback_on_error(self, seeded: Database):
        before = seeded.count("users")

        def body():
            _add(seeded, 10)
            raise Boom()

        with pytest.raises(Boom):
            seeded.with_transaction(body)

        assert seeded.count("users") == before
        assert not seeded.in_transaction()

    def test_caller_exception_propagates_unchanged(self, any_db: Database):
        original = Boom("mine")

        def body():
            raise original

        with pytest.raises(Boom) as exc_info:
            any_db.with_transaction(body)
        assert exc_info.value is original

    def test_nested_only_outer_commits(self, any_db: Database):
        def inner():
            _add(any_db, 2)
            assert any_db.in_transaction()

        def outer():
            _add(any_db, 1)
            any_db.with_transaction(inner)
            assert any_db.in_transaction()

        any_db.with_transaction(outer)
        assert any_db.count("users") == 2
        assert not any_db.in_transaction()

    def test_inner_commit_undone_by_outer_error(self, any_db: Database):
        def outer():
            any_db.with_transaction(_add, any_db, 1)
            raise Boom()

        with pytest.raises(Boom):
            any_db.with_transaction(outer)
        assert any_db.count("users") == 0

    def test_inner_error_caught_by_outer_still_owned_by_outer(self, any_db: Database):
        def failing():
            _add(any_db, 1)
            raise Boom()

        def outer():
            with pytest.raises(Boom):
                any_db.with_transaction(failing)
            # Inner call did not roll back; the outer transaction is still open
            assert any_db.in_transaction()
            _add(any_db, 2)

        any_db.with_transaction(outer)
        assert any_db.count("users") == 2


class TestContextManager:
    def test_commit(self, any_db: Database):
        with any_db.transaction() as tx:
            assert tx is any_db
            _add(any_db, 1)
        assert any_db.count("users") == 1

    def test_rollback(self, any_db: Database):
        with pytest.raises(Boom):
            with any_db.transaction():
                _add(any_db, 1)
                raise Boom()
        assert any_db.count("users") == 0


class TestExplicit:
    def test_begin_commit(self, any_db: Database):
        any_db.begin()
        assert any_db.in_transaction()
        _add(any_db, 1)
        any_db.commit()
        assert not any_db.in_transaction()
        assert any_db.count("users") == 1

    def test_begin_rollback(self, any_db: Database):
        any_db.begin()
        _add(any_db, 1)
        any_db.rollback()
        assert any_db.count("users") == 0

    def test_nested_begin_single_commit(self, any_db: Database):
        any_db.begin()
        any_db.begin()
        _add(any_db, 1)
        any_db.commit()
        assert any_db.in_transaction()
        any_db.commit()
        assert not any_db.in_transaction()
        assert any_db.count("users") == 1

    def test_inner_rollback_deferred(self, any_db: Database):
        any_db.begin()
        any_db.begin()
        _add(any_db, 1)
        any_db.rollback()
        assert any_db.in_transaction()
        any_db.rollback()
        assert any_db.count("users") == 0

    def test_commit_without_transaction(self, any_db: Database):
        with pytest.raises(QueryError):
            any_db.commit()

    def test_rollback_without_transaction(self, any_db: Database):
        with pytest.raises(QueryError):
            any_db.rollback()

    def test_disconnect_discards_open_transaction(self, db_file: str):
        db = Database()
        db.connect(db_file)
        db.execute("CREATE TABLE t (x INTEGER)")
        db.begin()
        db.execute("INSERT INTO t (x) VALUES (1)")
        db.disconnect()

        db.connect(db_file)
        try:
            assert not db.in_transaction()
            assert db.count("t") == 0
        finally:
            db.disconnect()
