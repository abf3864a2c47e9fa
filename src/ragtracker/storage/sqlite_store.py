"""SQLite storage backend with WAL mode and an atomic weekly-report upsert."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Collection
from datetime import date
from pathlib import Path
from typing import Any

import aiosqlite

from ragtracker.errors import Conflict
from ragtracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)

# Columns an UPDATE may touch, per table
_ALLOWED_COLUMNS: dict[str, set[str]] = {
    "users": {"name", "email", "password_hash", "role", "is_active", "updated_at"},
    "projects": {
        "name",
        "client",
        "contract_type",
        "pm_id",
        "status",
        "closed_at",
        "updated_at",
    },
}

_REPORT_JSON_FIELDS = ["deliverables", "attrition", "escalations"]

_REPORT_COLUMNS = (
    "id",
    "project_id",
    "pm_id",
    "week_key",
    "week_start_date",
    "rag",
    "prev_rag",
    "reason_for_rag",
    "path_to_green",
    "overall_summary",
    "team_size",
    "planned_team_size",
    "actual_team_size",
    "billing_count",
    "current_billable_count",
    "yet_to_bill",
    "buffer",
    "deliverables",
    "attrition",
    "escalations",
    "submitted_at",
    "last_edited_at",
)

# Kept from the first write of a (project, week)
_REPORT_IMMUTABLE = {"id", "project_id", "week_key", "prev_rag", "submitted_at"}

_REPORT_SUMMARY_COLUMNS = tuple(c for c in _REPORT_COLUMNS if c not in _REPORT_JSON_FIELDS)


def _validate_update_keys(table: str, updates: dict[str, Any]) -> dict[str, Any]:
    """Filter update dict to only allowed column names."""
    allowed = _ALLOWED_COLUMNS.get(table, set())
    filtered = {k: v for k, v in updates.items() if k in allowed}
    rejected = set(updates.keys()) - allowed - {"id"}
    if rejected:
        logger.warning("Rejected invalid column names for %s: %s", table, rejected)
    return filtered


class SQLiteStore(StorageBackend):
    """SQLite-based storage for users, projects and weekly reports."""

    def __init__(self, db_path: Path, *, wal_mode: bool = True) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create database and apply schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self.db_path))
        self._db.row_factory = aiosqlite.Row

        if self.wal_mode:
            await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")

        await self._db.executescript(_load_sql("ragtracker.sql"))
        await self._db.commit()
        logger.info("Initialized SQLite store at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._db

    async def _update(
        self, table: str, row_id: str, updates: dict[str, Any]
    ) -> bool:
        updates = _validate_update_keys(table, updates)
        if not updates:
            return False
        set_clauses = [f"{key} = ?" for key in updates]
        values = [*updates.values(), row_id]
        await self.db.execute(
            f"UPDATE {table} SET {', '.join(set_clauses)} WHERE id = ?",
            values,
        )
        await self.db.commit()
        return True

    # --- User operations ---

    async def insert_user(self, user: dict[str, Any]) -> dict[str, Any]:
        try:
            await self.db.execute(
                """INSERT INTO users (id, name, email, password_hash, role, is_active,
                   created_at, updated_at)
                   VALUES (:id, :name, :email, :password_hash, :role, :is_active,
                   :created_at, :updated_at)""",
                user,
            )
        except sqlite3.IntegrityError as e:
            await self.db.rollback()
            raise Conflict(f"Email already in use: {user['email']}") from e
        await self.db.commit()
        return user

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        cursor = await self.db.execute(
            "SELECT * FROM users WHERE email = ? COLLATE NOCASE", (email.strip(),)
        )
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def update_user(self, user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        existing = await self.get_user(user_id)
        if not existing:
            return None
        try:
            await self._update("users", user_id, updates)
        except sqlite3.IntegrityError as e:
            await self.db.rollback()
            raise Conflict(f"Email already in use: {updates.get('email')}") from e
        return await self.get_user(user_id)

    async def delete_user(self, user_id: str) -> bool:
        await self.db.execute("UPDATE projects SET pm_id = NULL WHERE pm_id = ?", (user_id,))
        cursor = await self.db.execute("DELETE FROM users WHERE id = ?", (user_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    async def list_users(
        self, *, role: str | None = None, active_only: bool = False
    ) -> list[dict[str, Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if role:
            conditions.append("role = ?")
            params.append(role)
        if active_only:
            conditions.append("is_active = 1")

        where = " AND ".join(conditions) if conditions else "1=1"
        cursor = await self.db.execute(
            f"SELECT * FROM users WHERE {where} ORDER BY role, name", params
        )
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    # --- Project operations ---

    async def insert_project(self, project: dict[str, Any]) -> dict[str, Any]:
        await self.db.execute(
            """INSERT INTO projects (id, name, client, contract_type, pm_id, status,
               closed_at, created_at, updated_at)
               VALUES (:id, :name, :client, :contract_type, :pm_id, :status,
               :closed_at, :created_at, :updated_at)""",
            project,
        )
        await self.db.commit()
        return project

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def update_project(
        self, project_id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        existing = await self.get_project(project_id)
        if not existing:
            return None
        await self._update("projects", project_id, updates)
        return await self.get_project(project_id)

    async def delete_project(self, project_id: str) -> bool:
        cursor = await self.db.execute("DELETE FROM projects WHERE id = ?", (project_id,))
        await self.db.commit()
        return cursor.rowcount > 0

    async def list_projects(
        self, *, status: str | None = None, pm_id: str | None = None
    ) -> list[dict[str, Any]]:
        conditions: list[str] = []
        params: list[Any] = []
        if status:
            conditions.append("status = ?")
            params.append(status)
        if pm_id:
            conditions.append("pm_id = ?")
            params.append(pm_id)

        where = " AND ".join(conditions) if conditions else "1=1"
        cursor = await self.db.execute(
            f"SELECT * FROM projects WHERE {where} ORDER BY name", params
        )
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    # --- Report operations ---

    async def upsert_report(self, report: dict[str, Any]) -> dict[str, Any]:
        columns = ", ".join(_REPORT_COLUMNS)
        placeholders = ", ".join(f":{c}" for c in _REPORT_COLUMNS)
        assignments = ", ".join(
            f"{c} = excluded.{c}" for c in _REPORT_COLUMNS if c not in _REPORT_IMMUTABLE
        )
        cursor = await self.db.execute(
            f"""INSERT INTO weekly_reports ({columns})
                VALUES ({placeholders})
                ON CONFLICT(project_id, week_key) DO UPDATE SET {assignments}
                RETURNING *""",
            _serialize_json_fields(report, _REPORT_JSON_FIELDS),
        )
        row = await cursor.fetchone()
        await self.db.commit()
        return _row_to_dict(row)

    async def get_report(self, project_id: str, week_key: str) -> dict[str, Any] | None:
        cursor = await self.db.execute(
            "SELECT * FROM weekly_reports WHERE project_id = ? AND week_key = ?",
            (project_id, week_key),
        )
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def query_reports(
        self,
        *,
        project_ids: Collection[str] | None = None,
        week_key: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        ascending: bool = False,
        summary: bool = False,
    ) -> list[dict[str, Any]]:
        if project_ids is not None and not project_ids:
            return []

        conditions: list[str] = []
        params: list[Any] = []

        if project_ids is not None:
            ids = list(project_ids)
            conditions.append(f"project_id IN ({','.join('?' * len(ids))})")
            params.extend(ids)
        if week_key:
            conditions.append("week_key = ?")
            params.append(week_key)
        else:
            if date_from:
                conditions.append("week_start_date >= ?")
                params.append(date_from.isoformat())
            if date_to:
                conditions.append("week_start_date <= ?")
                params.append(date_to.isoformat())

        where = " AND ".join(conditions) if conditions else "1=1"
        columns = ", ".join(_REPORT_SUMMARY_COLUMNS) if summary else "*"
        direction = "ASC" if ascending else "DESC"
        cursor = await self.db.execute(
            f"""SELECT {columns} FROM weekly_reports WHERE {where}
                ORDER BY week_start_date {direction}, project_id""",
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    async def delete_reports_before(self, cutoff: date) -> int:
        cursor = await self.db.execute(
            "DELETE FROM weekly_reports WHERE week_start_date < ?", (cutoff.isoformat(),)
        )
        await self.db.commit()
        return cursor.rowcount

    # --- Stats ---

    async def get_stats(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for table in ("users", "projects", "weekly_reports"):
            cursor = await self.db.execute(f"SELECT COUNT(*) FROM {table}")
            row = await cursor.fetchone()
            counts[table] = row[0] if row else 0

        cursor = await self.db.execute(
            "SELECT MIN(week_start_date), MAX(week_start_date) FROM weekly_reports"
        )
        row = await cursor.fetchone()

        return {
            "users": counts["users"],
            "projects": counts["projects"],
            "reports": counts["weekly_reports"],
            "oldest_week": row[0] if row else None,
            "newest_week": row[1] if row else None,
            "db_path": str(self.db_path),
        }


# --- Helpers ---


def _load_sql(filename: str) -> str:
    """Load SQL file from the schema package."""
    schema_dir = Path(__file__).parent.parent / "schema"
    return (schema_dir / filename).read_text()


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    """Convert an aiosqlite Row to a dict, deserializing JSON fields."""
    d = dict(row)
    for key in _REPORT_JSON_FIELDS:
        if key in d and isinstance(d[key], str):
            try:
                d[key] = json.loads(d[key])
            except (json.JSONDecodeError, TypeError):
                logger.warning("Unreadable %s payload on report %s", key, d.get("id"))
                d[key] = []
    if "is_active" in d:
        d["is_active"] = bool(d["is_active"])
    return d


def _serialize_json_fields(data: dict[str, Any], fields: list[str]) -> dict[str, Any]:
    """Serialize dict/list fields to JSON strings for SQLite storage."""
    result = dict(data)
    for field in fields:
        if field in result and not isinstance(result[field], str) and result[field] is not None:
            result[field] = json.dumps(result[field])
    return result
