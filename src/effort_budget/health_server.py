"""
Health check HTTP server for liveness and readiness checks.

Readiness means the database file exists, opens, and carries the budget
schema; the detailed endpoint adds row counts and file size.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from effort_budget import __version__
from effort_budget.kernel.logging import get_logger

logger = get_logger(__name__)

app = Flask(__name__)

REQUIRED_TABLES = ("activities", "budgets", "clients", "settings", "stories")

# Set by initialize_health_server()
_db_path: Path | None = None


def initialize_health_server(db_path: str | Path) -> None:
    """
    Point the health server at a database.

    Args:
        db_path: Path to the SQLite database used by EffortBudget
    """
    global _db_path
    _db_path = Path(db_path)
    logger.info("Health server initialized", db_path=str(_db_path))


def _missing_tables(conn: sqlite3.Connection) -> list[str]:
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    present = {row[0] for row in cursor.fetchall()}
    return [table for table in REQUIRED_TABLES if table not in present]


@app.after_request
def add_security_headers(response: Any) -> Any:
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """Liveness check - the process is running."""
    return jsonify({"status": "alive", "service": "effort-budget"}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness check - the database is reachable and initialised.

    Returns:
        200 with budget count when ready, 503 with a reason otherwise
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}), 503

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            missing = _missing_tables(conn)
            if missing:
                logger.error("Readiness check failed: schema incomplete", missing=missing)
                return (
                    jsonify(
                        {
                            "status": "not_ready",
                            "reason": "schema_not_initialized",
                            "missing_tables": missing,
                        }
                    ),
                    503,
                )
            budget_count = conn.execute("SELECT COUNT(*) FROM budgets").fetchone()[0]
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return (
            jsonify({"status": "not_ready", "reason": "database_error", "error": str(e)}),
            503,
        )

    logger.debug("Readiness check passed", budget_count=budget_count)
    return jsonify({"status": "ready", "database": "accessible", "budget_count": budget_count}), 200


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """Detailed health with table counts and database size."""
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": "effort-budget",
        "version": __version__,
    }

    if _db_path and _db_path.exists():
        try:
            conn = sqlite3.connect(str(_db_path), timeout=1.0)
            try:
                missing = _missing_tables(conn)
                counts = {}
                for table in REQUIRED_TABLES:
                    if table not in missing:
                        counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                page_count = conn.execute("PRAGMA page_count").fetchone()[0]
                page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            finally:
                conn.close()

            health_data["database"] = {
                "status": "healthy" if not missing else "incomplete",
                "path": str(_db_path),
                "counts": counts,
                "size_mb": round(page_count * page_size / (1024 * 1024), 2),
            }
            if missing:
                health_data["database"]["missing_tables"] = missing
                health_data["status"] = "degraded"

        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """Run the health check server."""
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)
