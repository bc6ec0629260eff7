"""
Tests for the SQLite unit of work

Fun fact: SQLite's rollback journal was the original design; WAL mode
arrived in 2010 (version 3.7.0) and lets readers keep reading while a
writer holds the lock.
"""

import sqlite3

import pytest

from effort_budget.kernel.database import SQLiteDatabase
from effort_budget.kernel.errors import TransientStoreFailure
from effort_budget.kernel.metrics import transaction_rollbacks_total
from effort_budget.kernel.retry import is_lock_error, retry_on_sqlite_lock

SCHEMA = (
    "CREATE TABLE IF NOT EXISTS parents (parent_id TEXT PRIMARY KEY)",
    """
    CREATE TABLE IF NOT EXISTS children (
        child_id TEXT PRIMARY KEY,
        parent_id TEXT NOT NULL REFERENCES parents(parent_id) ON DELETE CASCADE
    )
    """,
)


@pytest.fixture
def database(temp_db):
    return SQLiteDatabase(temp_db, SCHEMA)


def count(database, table):
    with database.connect() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def rollbacks():
    return transaction_rollbacks_total._value.get()


def test_schema_applied(database):
    assert database.table_names() == ["children", "parents"]


def test_wal_mode_enabled(database):
    with database.connect() as conn:
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"


def test_commit_on_success(database):
    with database.transaction("insert") as conn:
        conn.execute("INSERT INTO parents VALUES ('p-1')")
        conn.execute("INSERT INTO children VALUES ('c-1', 'p-1')")

    assert count(database, "parents") == 1
    assert count(database, "children") == 1


def test_domain_error_rolls_back_and_propagates(database):
    before = rollbacks()

    with pytest.raises(KeyError):
        with database.transaction("insert") as conn:
            conn.execute("INSERT INTO parents VALUES ('p-1')")
            raise KeyError("boom")

    assert count(database, "parents") == 0
    assert rollbacks() == before + 1


def test_sqlite_error_wrapped_after_rollback(database):
    with pytest.raises(TransientStoreFailure) as exc_info:
        with database.transaction("insert_pair") as conn:
            conn.execute("INSERT INTO parents VALUES ('p-1')")
            conn.execute("INSERT INTO parents VALUES ('p-1')")

    assert exc_info.value.operation == "insert_pair"
    assert isinstance(exc_info.value.cause, sqlite3.IntegrityError)
    assert count(database, "parents") == 0


def test_foreign_keys_enforced(database):
    with pytest.raises(TransientStoreFailure):
        with database.transaction() as conn:
            conn.execute("INSERT INTO children VALUES ('c-1', 'missing')")


def test_cascade_delete(database):
    with database.transaction() as conn:
        conn.execute("INSERT INTO parents VALUES ('p-1')")
        conn.executemany(
            "INSERT INTO children VALUES (?, 'p-1')", [("c-1",), ("c-2",)]
        )

    with database.transaction() as conn:
        conn.execute("DELETE FROM parents WHERE parent_id = 'p-1'")

    assert count(database, "children") == 0


def test_with_transaction_returns_result(database):
    def insert(conn):
        conn.execute("INSERT INTO parents VALUES ('p-1')")
        return "done"

    assert database.with_transaction(insert, "insert") == "done"
    assert count(database, "parents") == 1


def test_schema_init_is_idempotent(temp_db):
    SQLiteDatabase(temp_db, SCHEMA)
    database = SQLiteDatabase(temp_db, SCHEMA)

    assert database.table_names() == ["children", "parents"]


def test_non_database_file_rejected(temp_db):
    temp_db.write_text("plain text\n" * 200)

    with pytest.raises(TransientStoreFailure) as exc_info:
        SQLiteDatabase(temp_db, SCHEMA)

    assert exc_info.value.operation in ("connect", "initialize_schema")
    assert isinstance(exc_info.value.cause, sqlite3.DatabaseError)


def test_read_errors_wrapped(database):
    with pytest.raises(TransientStoreFailure) as exc_info:
        with database.read("count_orphans") as conn:
            conn.execute("SELECT COUNT(*) FROM orphans")

    assert exc_info.value.operation == "count_orphans"
    assert "no such table" in str(exc_info.value)


# Retry


def test_lock_errors_recognised():
    assert is_lock_error(sqlite3.OperationalError("database is locked"))
    assert is_lock_error(sqlite3.OperationalError("database table is busy"))
    assert not is_lock_error(sqlite3.OperationalError("disk I/O error"))
    assert not is_lock_error(ValueError("locked"))


def test_retry_until_lock_released():
    calls = []

    @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=1)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert flaky() == "ok"
    assert len(calls) == 3


def test_retry_gives_up_and_reraises():
    @retry_on_sqlite_lock(max_attempts=2, min_wait_ms=1, max_wait_ms=1)
    def always_locked():
        raise sqlite3.OperationalError("database is locked")

    with pytest.raises(sqlite3.OperationalError):
        always_locked()


def test_other_errors_not_retried():
    calls = []

    @retry_on_sqlite_lock(max_attempts=5, min_wait_ms=1, max_wait_ms=1)
    def broken():
        calls.append(1)
        raise sqlite3.OperationalError("no such table: x")

    with pytest.raises(sqlite3.OperationalError):
        broken()
    assert len(calls) == 1
