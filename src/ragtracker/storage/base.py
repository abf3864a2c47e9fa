"""Abstract storage interface for RAG Tracker."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import date
from typing import Any


class StorageBackend(ABC):
    """Abstract interface for RAG Tracker storage backends.

    Implementations must make ``upsert_report`` a single atomic write keyed on
    ``(project_id, week_key)``.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize database schema and connections."""

    @abstractmethod
    async def close(self) -> None:
        """Close all connections."""

    # --- User operations ---

    @abstractmethod
    async def insert_user(self, user: dict[str, Any]) -> dict[str, Any]:
        """Insert a user. Raises Conflict if the email is taken."""

    @abstractmethod
    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Get a user by ID."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        """Get a user by case-insensitive email."""

    @abstractmethod
    async def update_user(self, user_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Update a user. Returns updated user or None."""

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        """Hard-delete a user and unassign their projects."""

    @abstractmethod
    async def list_users(
        self, *, role: str | None = None, active_only: bool = False
    ) -> list[dict[str, Any]]:
        """List users, optionally by role."""

    # --- Project operations ---

    @abstractmethod
    async def insert_project(self, project: dict[str, Any]) -> dict[str, Any]:
        """Insert a project."""

    @abstractmethod
    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        """Get a project by ID."""

    @abstractmethod
    async def update_project(
        self, project_id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Update a project. Returns updated project or None."""

    @abstractmethod
    async def delete_project(self, project_id: str) -> bool:
        """Hard-delete a project and its reports."""

    @abstractmethod
    async def list_projects(
        self, *, status: str | None = None, pm_id: str | None = None
    ) -> list[dict[str, Any]]:
        """List projects ordered by name."""

    # --- Report operations ---

    @abstractmethod
    async def upsert_report(self, report: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace the report for (project_id, week_key).

        On replace, ``id``, ``submitted_at`` and ``prev_rag`` keep their stored values.
        """

    @abstractmethod
    async def get_report(self, project_id: str, week_key: str) -> dict[str, Any] | None:
        """Exact lookup by project and week."""

    @abstractmethod
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
        """Conjunctive report query ordered by week start."""

    @abstractmethod
    async def delete_reports_before(self, cutoff: date) -> int:
        """Delete reports starting before ``cutoff``. Returns the number deleted."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Row counts and database location."""
