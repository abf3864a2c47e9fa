"""Role-aware read API over the report store.

Every query re-reads storage; nothing is cached between calls. No query
reaches further back than the retention cutoff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from ragtracker.auth.permissions import Caller, ProjectScope, resolve_scope
from ragtracker.core import weeks
from ragtracker.core.reports import ReportFilter, ReportStore
from ragtracker.errors import AccessDenied, NotFound
from ragtracker.models.project import Project
from ragtracker.models.report import NOT_AVAILABLE, WeeklyReport
from ragtracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)

MONTHS_BACK_MIN = 1
MONTHS_BACK_MAX = 6


@dataclass
class CurrentWeekSnapshot:
    week_key: str
    reports: list[WeeklyReport]
    active_projects: list[Project]
    pending: list[Project] = field(default_factory=list)
    # Every visible project, closed ones included
    project_names: dict[str, str] = field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        names = self.project_names or {p.id: p.name for p in self.active_projects}
        return {
            "_v": "1.0",
            "week_key": self.week_key,
            "submitted": len(self.reports),
            "reports": [
                {**r.to_response(), "project_name": names.get(r.project_id)}
                for r in self.reports
            ],
            "pending": [p.to_response() for p in self.pending],
        }


@dataclass(frozen=True)
class HeatmapRow:
    project_id: str
    project_name: str
    # (week_key, rag) oldest first; rag is NotAvailable for missing weeks
    cells: tuple[tuple[str, str], ...]


class ReportQueryService:
    """Serves dashboards, trend history and heatmaps under role-based visibility."""

    def __init__(
        self,
        store: StorageBackend,
        reports: ReportStore,
        *,
        history_weeks: int = 26,
    ) -> None:
        self._store = store
        self._reports = reports
        self.history_weeks = history_weeks

    async def _projects(self) -> list[Project]:
        return [Project(**row) for row in await self._store.list_projects()]

    async def _scope(self, caller: Caller) -> tuple[ProjectScope, list[Project]]:
        projects = await self._projects()
        return resolve_scope(caller, projects), projects

    async def list_reports(
        self,
        caller: Caller,
        *,
        project_id: str | None = None,
        week_key: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        months_back: int | None = None,
        summary_only: bool = False,
        today: date | None = None,
    ) -> list[WeeklyReport]:
        """List reports visible to the caller, newest first.

        Args:
            caller: Authenticated caller
            project_id: Restrict to one project; must be in the caller's scope
            week_key: Exact week; takes precedence over any date range
            date_from: Range start, clamped to the retention cutoff
            date_to: Range end, defaults to today
            months_back: Shortcut for ``date_from`` (clamped to 1..6 months)
            summary_only: Omit deliverables, attrition and escalations
            today: Reference date

        Raises:
            AccessDenied: If ``project_id`` is outside the caller's scope
            ValidationFailed: If ``week_key`` is malformed
        """
        today = today or weeks.utc_today()
        scope, _ = await self._scope(caller)

        if project_id:
            if not scope.allows(project_id):
                raise AccessDenied(f"Access denied to project {project_id}")
            project_ids: frozenset[str] | None = frozenset({project_id})
        else:
            project_ids = scope.project_ids

        cutoff = self._reports.retention_cutoff(today=today)

        if week_key:
            if weeks.week_start_of_key(week_key) < cutoff:
                return []
            report_filter = ReportFilter(
                project_ids=project_ids, week_key=week_key, summary=summary_only
            )
        else:
            start = max(date_from or cutoff, cutoff)
            if months_back is not None:
                n = min(MONTHS_BACK_MAX, max(MONTHS_BACK_MIN, months_back))
                start = max(weeks.subtract_months(today, n), cutoff)
            report_filter = ReportFilter(
                project_ids=project_ids,
                date_from=start,
                date_to=date_to or today,
                summary=summary_only,
            )

        return await self._reports.query_by_filter(report_filter)

    async def current_week_snapshot(
        self, caller: Caller, *, today: date | None = None
    ) -> CurrentWeekSnapshot:
        """This week's reports plus the visible active projects still pending."""
        today = today or weeks.utc_today()
        week_key = weeks.week_key_of(today)
        scope, projects = await self._scope(caller)

        reports = await self.list_reports(caller, week_key=week_key, today=today)
        active = [p for p in projects if p.is_active and scope.allows(p.id)]
        submitted = {r.project_id for r in reports}
        pending = [p for p in active if p.id not in submitted]

        names = {p.id: p.name for p in projects}
        reports.sort(key=lambda r: names.get(r.project_id, ""))
        return CurrentWeekSnapshot(
            week_key=week_key,
            reports=reports,
            active_projects=active,
            pending=pending,
            project_names=names,
        )

    async def project_history(
        self, caller: Caller, project_id: str, *, today: date | None = None
    ) -> list[WeeklyReport]:
        """Summary reports for one project within the retention window, oldest first."""
        project = await self._store.get_project(project_id)
        if project is None:
            raise NotFound(f"Project not found: {project_id}")
        scope, _ = await self._scope(caller)
        if not scope.allows(project_id):
            raise AccessDenied(f"Access denied to project {project_id}")

        return await self._reports.query_by_filter(
            ReportFilter(
                project_ids=frozenset({project_id}),
                date_from=self._reports.retention_cutoff(today=today),
                ascending=True,
                summary=True,
            )
        )

    async def portfolio_heatmap(
        self,
        caller: Caller,
        *,
        week_count: int | None = None,
        today: date | None = None,
    ) -> tuple[list[weeks.WeekSlot], list[HeatmapRow]]:
        """One row per visible project, one cell per week column."""
        today = today or weeks.utc_today()
        columns = weeks.week_columns(week_count or self.history_weeks, today=today)
        scope, projects = await self._scope(caller)
        visible = [p for p in projects if scope.allows(p.id)]

        start = max(columns[0].week_start_date, self._reports.retention_cutoff(today=today))
        reports = await self._reports.query_by_filter(
            ReportFilter(
                project_ids=frozenset(p.id for p in visible),
                date_from=start,
                date_to=today,
                summary=True,
            )
        )
        by_project: dict[str, dict[str, str]] = {}
        for r in reports:
            by_project.setdefault(r.project_id, {})[r.week_key] = r.rag

        rows = [
            HeatmapRow(
                project_id=p.id,
                project_name=p.name,
                cells=tuple(
                    (c.week_key, by_project.get(p.id, {}).get(c.week_key, NOT_AVAILABLE))
                    for c in columns
                ),
            )
            for p in visible
        ]
        logger.debug("Built heatmap: %d project(s) x %d week(s)", len(rows), len(columns))
        return columns, rows
