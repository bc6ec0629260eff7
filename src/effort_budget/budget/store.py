"""
Budget Store - relational persistence for clients, budgets, stories and activities

`BudgetStore.transaction()` yields a `StoreSession` bound to one SQLite
transaction. All session methods run on that connection, so whatever a
handler does inside the `with` block commits or rolls back together.

Schema:
- clients: referenced by budgets (ON DELETE RESTRICT)
- budgets: owned by a user, carry parameters and derived totals
- stories: owned by a budget (ON DELETE CASCADE)
- activities: owned by a story (ON DELETE CASCADE)
- settings: single row of defaults (settings_id = 1)
"""

import sqlite3
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from effort_budget.budget.commands import ActivityInput, StoryInput
from effort_budget.budget.models import (
    Activity,
    Budget,
    BudgetSummary,
    Client,
    ClientRef,
    EstimateTotals,
    Settings,
    Story,
)
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.database import SQLiteDatabase
from effort_budget.kernel.ids import IdFactory, default_id_factory
from effort_budget.kernel.time import TimeProvider, default_time_provider

T = TypeVar("T")

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS clients (
        client_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        logo_url TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS budgets (
        budget_id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        user_id TEXT NOT NULL,
        client_id TEXT NOT NULL REFERENCES clients(client_id) ON DELETE RESTRICT,
        hourly_rate REAL NOT NULL,
        test_percentage REAL NOT NULL,
        available_hours REAL NOT NULL,
        project_complexity_factor REAL NOT NULL DEFAULT 1,
        total_hours REAL NOT NULL,
        total_test_hours REAL NOT NULL,
        total_value REAL NOT NULL,
        estimated_days INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stories (
        story_id TEXT PRIMARY KEY,
        budget_id TEXT NOT NULL REFERENCES budgets(budget_id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        complexity_factor REAL NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS activities (
        activity_id TEXT PRIMARY KEY,
        story_id TEXT NOT NULL REFERENCES stories(story_id) ON DELETE CASCADE,
        title TEXT NOT NULL,
        description TEXT,
        hours REAL NOT NULL,
        complexity_factor REAL NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settings (
        settings_id INTEGER PRIMARY KEY CHECK (settings_id = 1),
        default_hourly_rate REAL NOT NULL,
        default_test_percentage REAL NOT NULL,
        default_available_hours REAL NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_budgets_user ON budgets(user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_budgets_client ON budgets(client_id)",
    "CREATE INDEX IF NOT EXISTS idx_stories_budget ON stories(budget_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_activities_story ON activities(story_id, created_at)",
)

BUDGET_COLUMNS = (
    "b.budget_id, b.title, b.user_id, b.client_id, b.hourly_rate, b.test_percentage, "
    "b.available_hours, b.project_complexity_factor, b.total_hours, b.total_test_hours, "
    "b.total_value, b.estimated_days, b.created_at, b.updated_at, "
    "c.name AS client_name, c.logo_url AS client_logo_url"
)


def _factor(value: float | None) -> float:
    return value or 1.0


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class StoreSession:
    """
    Table operations bound to one connection

    Obtained from `BudgetStore.transaction()` (read-write) or
    `BudgetStore.session()` (read-only use).
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        time_provider: TimeProvider,
        id_factory: IdFactory,
    ) -> None:
        self.conn = conn
        self.time_provider = time_provider
        self.id_factory = id_factory

    def _now(self) -> str:
        return self.time_provider.now().isoformat(timespec="microseconds")

    # Clients

    def insert_client(self, name: str, email: str | None, logo_url: str | None) -> Client:
        client_id = self.id_factory.generate()
        created_at = self.time_provider.now()
        now = created_at.isoformat(timespec="microseconds")
        self.conn.execute(
            """
            INSERT INTO clients (client_id, name, email, logo_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (client_id, name, email, logo_url, now, now),
        )
        return Client(
            client_id=client_id,
            name=name,
            email=email,
            logo_url=logo_url,
            created_at=created_at,
            updated_at=created_at,
        )

    def get_client(self, client_id: str) -> Client | None:
        row = self.conn.execute(
            "SELECT * FROM clients WHERE client_id = ?", (client_id,)
        ).fetchone()
        return self._row_to_client(row) if row else None

    def list_clients(self) -> list[Client]:
        cursor = self.conn.execute("SELECT * FROM clients ORDER BY name ASC, rowid ASC")
        return [self._row_to_client(row) for row in cursor.fetchall()]

    def update_client(
        self,
        client_id: str,
        name: str,
        email: str | None,
        logo_url: str | None,
    ) -> Client | None:
        """Update a client; a None logo_url keeps the stored logo"""
        cursor = self.conn.execute(
            """
            UPDATE clients
            SET name = ?, email = ?, logo_url = COALESCE(?, logo_url), updated_at = ?
            WHERE client_id = ?
            """,
            (name, email, logo_url, self._now(), client_id),
        )
        if cursor.rowcount == 0:
            return None
        return self.get_client(client_id)

    def delete_client(self, client_id: str) -> bool:
        cursor = self.conn.execute("DELETE FROM clients WHERE client_id = ?", (client_id,))
        return cursor.rowcount > 0

    def count_budgets_for_client(self, client_id: str) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) FROM budgets WHERE client_id = ?", (client_id,)
        ).fetchone()
        return row[0]

    # Budgets

    def insert_budget(
        self,
        *,
        user_id: str,
        client_id: str,
        title: str,
        hourly_rate: float,
        test_percentage: float,
        available_hours: float,
        project_complexity_factor: float,
        totals: EstimateTotals,
    ) -> str:
        budget_id = self.id_factory.generate()
        now = self._now()
        self.conn.execute(
            """
            INSERT INTO budgets (
                budget_id, title, user_id, client_id, hourly_rate, test_percentage,
                available_hours, project_complexity_factor, total_hours,
                total_test_hours, total_value, estimated_days, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                budget_id,
                title,
                user_id,
                client_id,
                hourly_rate,
                test_percentage,
                available_hours,
                project_complexity_factor,
                totals.total_hours,
                totals.total_test_hours,
                totals.total_value,
                totals.estimated_days,
                now,
                now,
            ),
        )
        return budget_id

    def update_budget(
        self,
        budget_id: str,
        *,
        client_id: str,
        title: str,
        hourly_rate: float,
        test_percentage: float,
        available_hours: float,
        project_complexity_factor: float,
        totals: EstimateTotals,
    ) -> bool:
        """Rewrite budget scalars and derived totals (user_id never changes)"""
        cursor = self.conn.execute(
            """
            UPDATE budgets SET
                client_id = ?, title = ?, hourly_rate = ?, test_percentage = ?,
                available_hours = ?, project_complexity_factor = ?, total_hours = ?,
                total_test_hours = ?, total_value = ?, estimated_days = ?, updated_at = ?
            WHERE budget_id = ?
            """,
            (
                client_id,
                title,
                hourly_rate,
                test_percentage,
                available_hours,
                project_complexity_factor,
                totals.total_hours,
                totals.total_test_hours,
                totals.total_value,
                totals.estimated_days,
                self._now(),
                budget_id,
            ),
        )
        return cursor.rowcount > 0

    def get_budget(self, budget_id: str, user_id: str | None = None) -> Budget | None:
        """
        Fetch a budget with client projection and its ordered tree

        Args:
            budget_id: Budget to load
            user_id: When given, only a budget owned by this user matches

        Returns:
            Budget, or None if absent (or not owned)
        """
        query = (
            f"SELECT {BUDGET_COLUMNS} FROM budgets b "
            "JOIN clients c ON c.client_id = b.client_id WHERE b.budget_id = ?"
        )
        params: list[Any] = [budget_id]
        if user_id is not None:
            query += " AND b.user_id = ?"
            params.append(user_id)

        row = self.conn.execute(query, params).fetchone()
        if not row:
            return None

        return self._row_to_budget(row, self._load_stories(budget_id))

    def list_budgets(self, user_id: str | None = None) -> list[BudgetSummary]:
        """Budgets newest first, optionally restricted to one owner"""
        query = (
            f"SELECT {BUDGET_COLUMNS} FROM budgets b "
            "JOIN clients c ON c.client_id = b.client_id"
        )
        params: list[Any] = []
        if user_id is not None:
            query += " WHERE b.user_id = ?"
            params.append(user_id)
        query += " ORDER BY b.created_at DESC, b.rowid DESC"

        return [
            BudgetSummary(
                budget_id=row["budget_id"],
                title=row["title"],
                user_id=row["user_id"],
                client=self._row_to_client_ref(row),
                total_hours=row["total_hours"],
                total_value=row["total_value"],
                estimated_days=row["estimated_days"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in self.conn.execute(query, params).fetchall()
        ]

    def delete_budget(self, budget_id: str) -> bool:
        cursor = self.conn.execute("DELETE FROM budgets WHERE budget_id = ?", (budget_id,))
        return cursor.rowcount > 0

    def budget_owned_by(self, budget_id: str, user_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM budgets WHERE budget_id = ? AND user_id = ?", (budget_id, user_id)
        ).fetchone()
        return row is not None

    # Stories

    def insert_story(self, budget_id: str, story: StoryInput) -> str:
        """Create a story together with all of its activities"""
        story_id = self.id_factory.generate()
        now = self._now()
        self.conn.execute(
            """
            INSERT INTO stories (story_id, budget_id, title, complexity_factor, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (story_id, budget_id, story.title, _factor(story.complexity_factor), now, now),
        )
        self.insert_activities(story_id, story.activities)
        return story_id

    def update_story(self, story_id: str, title: str, complexity_factor: float | None) -> None:
        self.conn.execute(
            "UPDATE stories SET title = ?, complexity_factor = ?, updated_at = ? WHERE story_id = ?",
            (title, _factor(complexity_factor), self._now(), story_id),
        )

    def delete_stories(self, story_ids: Sequence[str]) -> int:
        """Bulk delete; activities go with their stories"""
        if not story_ids:
            return 0
        cursor = self.conn.execute(
            f"DELETE FROM stories WHERE story_id IN ({_placeholders(len(story_ids))})",
            list(story_ids),
        )
        return cursor.rowcount

    # Activities

    def insert_activities(self, story_id: str, activities: Sequence[ActivityInput]) -> list[str]:
        """Bulk create; submitted ids are ignored, new ids are generated"""
        now = self._now()
        rows = [
            (
                self.id_factory.generate(),
                story_id,
                activity.title,
                activity.description,
                activity.hours,
                _factor(activity.complexity_factor),
                now,
                now,
            )
            for activity in activities
        ]
        self.conn.executemany(
            """
            INSERT INTO activities (
                activity_id, story_id, title, description, hours,
                complexity_factor, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        return [row[0] for row in rows]

    def update_activity(self, activity_id: str, activity: ActivityInput) -> None:
        self.conn.execute(
            """
            UPDATE activities
            SET title = ?, description = ?, hours = ?, complexity_factor = ?, updated_at = ?
            WHERE activity_id = ?
            """,
            (
                activity.title,
                activity.description,
                activity.hours,
                _factor(activity.complexity_factor),
                self._now(),
                activity_id,
            ),
        )

    def delete_activities(self, activity_ids: Sequence[str]) -> int:
        if not activity_ids:
            return 0
        cursor = self.conn.execute(
            f"DELETE FROM activities WHERE activity_id IN ({_placeholders(len(activity_ids))})",
            list(activity_ids),
        )
        return cursor.rowcount

    # Settings

    def get_settings(self) -> Settings | None:
        row = self.conn.execute("SELECT * FROM settings WHERE settings_id = 1").fetchone()
        if not row:
            return None
        return Settings(
            default_hourly_rate=row["default_hourly_rate"],
            default_test_percentage=row["default_test_percentage"],
            default_available_hours=row["default_available_hours"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def save_settings(
        self,
        default_hourly_rate: float,
        default_test_percentage: float,
        default_available_hours: float,
    ) -> Settings:
        updated_at = self.time_provider.now()
        self.conn.execute(
            """
            INSERT INTO settings (
                settings_id, default_hourly_rate, default_test_percentage,
                default_available_hours, updated_at
            ) VALUES (1, ?, ?, ?, ?)
            ON CONFLICT(settings_id) DO UPDATE SET
                default_hourly_rate = excluded.default_hourly_rate,
                default_test_percentage = excluded.default_test_percentage,
                default_available_hours = excluded.default_available_hours,
                updated_at = excluded.updated_at
            """,
            (
                default_hourly_rate,
                default_test_percentage,
                default_available_hours,
                updated_at.isoformat(timespec="microseconds"),
            ),
        )
        return Settings(
            default_hourly_rate=default_hourly_rate,
            default_test_percentage=default_test_percentage,
            default_available_hours=default_available_hours,
            updated_at=updated_at,
        )

    # Row mapping

    def _load_stories(self, budget_id: str) -> list[Story]:
        story_rows = self.conn.execute(
            "SELECT * FROM stories WHERE budget_id = ? ORDER BY created_at ASC, rowid ASC",
            (budget_id,),
        ).fetchall()
        activity_rows = self.conn.execute(
            """
            SELECT a.* FROM activities a
            JOIN stories s ON s.story_id = a.story_id
            WHERE s.budget_id = ?
            ORDER BY a.created_at ASC, a.rowid ASC
            """,
            (budget_id,),
        ).fetchall()

        activities_by_story: dict[str, list[Activity]] = {}
        for row in activity_rows:
            activities_by_story.setdefault(row["story_id"], []).append(
                Activity(
                    activity_id=row["activity_id"],
                    story_id=row["story_id"],
                    title=row["title"],
                    description=row["description"],
                    hours=row["hours"],
                    complexity_factor=row["complexity_factor"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
            )

        return [
            Story(
                story_id=row["story_id"],
                budget_id=row["budget_id"],
                title=row["title"],
                complexity_factor=row["complexity_factor"],
                activities=activities_by_story.get(row["story_id"], []),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in story_rows
        ]

    def _row_to_client(self, row: sqlite3.Row) -> Client:
        return Client(
            client_id=row["client_id"],
            name=row["name"],
            email=row["email"],
            logo_url=row["logo_url"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_client_ref(self, row: sqlite3.Row) -> ClientRef:
        return ClientRef(
            client_id=row["client_id"],
            name=row["client_name"],
            logo_url=row["client_logo_url"],
        )

    def _row_to_budget(self, row: sqlite3.Row, stories: list[Story]) -> Budget:
        return Budget(
            budget_id=row["budget_id"],
            title=row["title"],
            user_id=row["user_id"],
            client_id=row["client_id"],
            client=self._row_to_client_ref(row),
            hourly_rate=row["hourly_rate"],
            test_percentage=row["test_percentage"],
            available_hours=row["available_hours"],
            project_complexity_factor=row["project_complexity_factor"],
            total_hours=row["total_hours"],
            total_test_hours=row["total_test_hours"],
            total_value=row["total_value"],
            estimated_days=row["estimated_days"],
            stories=stories,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class BudgetStore:
    """
    SQLite-backed store for the budgeting domain

    Args:
        db_path: Path to SQLite database file
        policy: Supplies the seed values for the settings row
        time_provider: Clock for created_at / updated_at
        id_factory: Id generation strategy
    """

    def __init__(
        self,
        db_path: str | Path,
        policy: EstimationPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.policy = policy or EstimationPolicy()
        self.time_provider = time_provider or default_time_provider
        self.id_factory = id_factory or default_id_factory
        self.database = SQLiteDatabase(db_path, SCHEMA)
        self._seed_settings()

    @property
    def db_path(self) -> Path:
        return self.database.db_path

    def _seed_settings(self) -> None:
        with self.transaction("seed_settings") as session:
            if session.get_settings() is None:
                session.save_settings(
                    self.policy.default_hourly_rate,
                    self.policy.default_test_percentage,
                    self.policy.default_available_hours,
                )

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[StoreSession]:
        """Read-write session; commits or rolls back as a unit"""
        with self.database.transaction(operation) as conn:
            yield StoreSession(conn, self.time_provider, self.id_factory)

    @contextmanager
    def session(self, operation: str = "read") -> Iterator[StoreSession]:
        """Session on an autocommit connection, for reads"""
        with self.database.read(operation) as conn:
            yield StoreSession(conn, self.time_provider, self.id_factory)

    def with_transaction(
        self, fn: Callable[[StoreSession], T], operation: str = "transaction"
    ) -> T:
        """Functional form of `transaction()`"""
        with self.transaction(operation) as session:
            return fn(session)
