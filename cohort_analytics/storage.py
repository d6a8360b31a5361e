"""SQLite data source and JSON report output."""

import asyncio
import json
import logging
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from .filters import FilterCriteria
from .records import ActivityRecord, PurchaseRecord, UserRecord, parse_rows
from .report import CohortReport
from .utils import parse_timestamp

logger = logging.getLogger("cohort_analytics.storage")

# created_at columns hold ISO-8601 UTC text so range filters compare lexically.
SCHEMA: dict[str, str] = {
    "users": "id TEXT PRIMARY KEY, role TEXT, created_at TEXT NOT NULL",
    "apps": "id TEXT PRIMARY KEY, developer_id TEXT",
    "purchases": (
        "id TEXT PRIMARY KEY, user_id TEXT NOT NULL, app_id TEXT, amount REAL NOT NULL, "
        "status TEXT, created_at TEXT NOT NULL"
    ),
    "activity_logs": (
        "id INTEGER PRIMARY KEY AUTOINCREMENT, user_id TEXT NOT NULL, action TEXT, created_at TEXT NOT NULL"
    ),
}

COLUMNS: dict[str, tuple[str, ...]] = {
    "users": ("id", "role", "created_at"),
    "apps": ("id", "developer_id"),
    "purchases": ("id", "user_id", "app_id", "amount", "status", "created_at"),
    "activity_logs": ("user_id", "action", "created_at"),
}

_SCOPED_BUYERS = (
    "id IN (SELECT DISTINCT p.user_id FROM purchases p "
    "JOIN apps a ON p.app_id = a.id WHERE a.developer_id = ?)"
)
_SCOPED_APPS = "app_id IN (SELECT id FROM apps WHERE developer_id = ?)"


def _iso(value: Any) -> Any:
    """Normalize a timestamp to UTC ISO-8601 text; unparseable values pass through."""
    ts = parse_timestamp(value)
    return ts.isoformat() if ts is not None else value


def _column_value(column: str, value: Any) -> Any:
    return _iso(value) if column == "created_at" else value


def _where(criteria: FilterCriteria, scope_clause: str | None) -> tuple[str, list[Any]]:
    """WHERE clause and bound parameters for the criteria."""
    clauses: list[str] = []
    params: list[Any] = []
    if criteria.time_range.start is not None:
        clauses.append("created_at >= ?")
        params.append(_iso(criteria.time_range.start))
    if criteria.time_range.end is not None:
        clauses.append("created_at < ?")
        params.append(_iso(criteria.time_range.end))
    if criteria.scope_id is not None and scope_clause is not None:
        clauses.append(scope_clause)
        params.append(criteria.scope_id)
    if not clauses:
        return "", params
    return " WHERE " + " AND ".join(clauses), params


class SqliteDataSource:
    """Data source over a marketplace SQLite snapshot."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None

    def open(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1)
        # check_same_thread=False because queries run on the executor thread
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        logger.info("SQLite database opened: %s", self.db_path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("SQLite database closed")
        if self._executor:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "SqliteDataSource":
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def create_schema(self) -> None:
        assert self._conn is not None
        with self._lock:
            for table, columns in SCHEMA.items():
                self._conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({columns})")
            self._conn.commit()

    def write_rows(self, table: str, rows: list[dict[str, Any]]) -> int:
        """Insert rows into one of the known tables. Returns rows written."""
        assert self._conn is not None
        if table not in COLUMNS:
            raise ValueError(f"Unknown table {table!r}")
        columns = COLUMNS[table]
        placeholders = ", ".join("?" for _ in columns)
        batch = [tuple(_column_value(col, row.get(col)) for col in columns) for row in rows]
        with self._lock:
            self._conn.executemany(
                f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                batch,
            )
            self._conn.commit()
        logger.debug("Wrote %d rows to %s", len(batch), table)
        return len(batch)

    def _select(self, table: str, criteria: FilterCriteria, scope_clause: str | None) -> list[dict[str, Any]]:
        assert self._conn is not None, "SqliteDataSource.open() must be called first"
        where, params = _where(criteria, scope_clause)
        sql = f"SELECT {', '.join(COLUMNS[table])} FROM {table}{where}"
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [dict(row) for row in rows]

    async def _run(self, table: str, criteria: FilterCriteria, scope_clause: str | None) -> list[dict[str, Any]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._select, table, criteria, scope_clause)

    async def fetch_population(self, criteria: FilterCriteria) -> list[UserRecord]:
        return parse_rows(UserRecord, await self._run("users", criteria, _SCOPED_BUYERS))

    async def fetch_purchases(self, criteria: FilterCriteria) -> list[PurchaseRecord]:
        return parse_rows(PurchaseRecord, await self._run("purchases", criteria, _SCOPED_APPS))

    async def fetch_activity(self, criteria: FilterCriteria) -> list[ActivityRecord]:
        return parse_rows(ActivityRecord, await self._run("activity_logs", criteria, None))


def save_report(report: CohortReport, output_dir: Path) -> Path:
    """Write a report to ``cohort_<type>_<period>.json``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"cohort_{report.type}_{report.period}.json"

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2, default=str)

    logger.info("Cohort report saved to %s", output_path)
    return output_path
