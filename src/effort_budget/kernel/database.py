"""
SQLite database with an explicit unit-of-work transaction

Every write in the system runs inside `SQLiteDatabase.transaction()`:
the block either commits as a whole or is rolled back as a whole, on
every exit path including exceptions. Writers are serialised with
BEGIN IMMEDIATE, so two updates of the same budget never interleave.

Fun fact: SQLite is the most deployed database engine in the world -
there are over a trillion SQLite databases in active use.
"""

import sqlite3
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from effort_budget.kernel.errors import TransientStoreFailure
from effort_budget.kernel.logging import get_logger
from effort_budget.kernel.metrics import transaction_rollbacks_total
from effort_budget.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)

T = TypeVar("T")


@retry_on_sqlite_lock()
def _begin_immediate(conn: sqlite3.Connection) -> None:
    conn.execute("BEGIN IMMEDIATE")


class SQLiteDatabase:
    """
    SQLite connection management

    Connections run in autocommit mode (isolation_level=None); transactions
    are opened explicitly by `transaction()`. Foreign keys are enforced on
    every connection, which gives cascading deletes of stories/activities.

    Args:
        db_path: Path to SQLite database file
        schema: DDL statements executed once on initialisation
        busy_timeout: Seconds a connection waits on a lock before failing
    """

    def __init__(
        self,
        db_path: str | Path,
        schema: Sequence[str] = (),
        busy_timeout: float = 5.0,
    ) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._initialize_schema(schema)

    def _initialize_schema(self, schema: Sequence[str]) -> None:
        with self.read("initialize_schema") as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            for statement in schema:
                conn.execute(statement)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """
        Open a connection for reads or schema work

        The connection is closed on exit; nothing is committed implicitly.
        Failing to open it raises TransientStoreFailure.
        """
        try:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self.busy_timeout, isolation_level=None
            )
        except sqlite3.Error as e:
            logger.error("Database connection failed", db_path=str(self.db_path), error=str(e))
            raise TransientStoreFailure("connect", e) from e

        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            conn.close()
            logger.error("Database connection failed", db_path=str(self.db_path), error=str(e))
            raise TransientStoreFailure("connect", e) from e

        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def read(self, operation: str = "read") -> Iterator[sqlite3.Connection]:
        """
        Connection for reads outside a write transaction

        sqlite3 errors raised inside the block are logged and wrapped in
        TransientStoreFailure; other exceptions propagate unchanged.

        Args:
            operation: Name used in logs and in TransientStoreFailure
        """
        try:
            with self.connect() as conn:
                yield conn
        except sqlite3.Error as e:
            logger.error("Store read failed", operation=operation, error=str(e))
            raise TransientStoreFailure(operation, e) from e

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[sqlite3.Connection]:
        """
        Unit of work: commit on success, roll back on any exception

        sqlite3 errors raised inside the block are wrapped in
        TransientStoreFailure after rollback; domain errors (NotFound,
        ValidationFailed, ...) propagate unchanged after rollback.

        Args:
            operation: Name used in logs and in TransientStoreFailure
        """
        with self.connect() as conn:
            try:
                _begin_immediate(conn)
            except sqlite3.Error as e:
                raise TransientStoreFailure(operation, e) from e

            try:
                yield conn
            except BaseException as e:
                self._rollback(conn, operation)
                if isinstance(e, sqlite3.Error):
                    raise TransientStoreFailure(operation, e) from e
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn, operation)
                raise TransientStoreFailure(operation, e) from e

    def _rollback(self, conn: sqlite3.Connection, operation: str) -> None:
        transaction_rollbacks_total.inc()
        logger.warning("Transaction rolled back", operation=operation)
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def with_transaction(
        self, fn: Callable[[sqlite3.Connection], T], operation: str = "transaction"
    ) -> T:
        """Run fn(conn) inside `transaction()` and return its result"""
        with self.transaction(operation) as conn:
            return fn(conn)

    def table_names(self) -> list[str]:
        with self.read("table_names") as conn:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            )
            return [row["name"] for row in cursor.fetchall()]
