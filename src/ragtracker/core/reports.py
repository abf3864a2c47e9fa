"""Report store: one weekly report per project per ISO week.

Every write goes through ``upsert_weekly_report`` and every deletion through
``purge_expired``. Concurrent upserts for the same (project, week) resolve to a
single row, last write wins.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from pydantic import ValidationError

from ragtracker.auth.permissions import Caller, require_role
from ragtracker.core import weeks
from ragtracker.errors import AccessDenied, NotFound, ValidationFailed
from ragtracker.events.bus import EventBus
from ragtracker.events.types import EventType
from ragtracker.models.project import Project
from ragtracker.models.report import NOT_AVAILABLE, SubmissionFields, WeeklyReport
from ragtracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportFilter:
    """Conjunction of optional report predicates.

    ``week_key`` takes precedence over the date range when both are set.
    """

    project_ids: frozenset[str] | None = None
    week_key: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    ascending: bool = False
    summary: bool = False


def parse_submission(fields: SubmissionFields | dict[str, Any]) -> SubmissionFields:
    """Validate raw submission fields, raising ValidationFailed with the offending paths."""
    if isinstance(fields, SubmissionFields):
        return fields
    try:
        return SubmissionFields.model_validate(fields)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationFailed(f"Invalid report fields: {problems}") from e


class ReportStore:
    """Owns the weekly report lifecycle on top of a storage backend."""

    def __init__(
        self, store: StorageBackend, event_bus: EventBus, *, retention_months: int = 6
    ) -> None:
        """Initialize ReportStore.

        Args:
            store: Storage backend for persistence
            event_bus: Event bus for emitting report events
            retention_months: Rolling retention window used by purge_expired
        """
        if retention_months < 1:
            raise ValueError(f"retention_months must be at least 1, got {retention_months}")
        self._store = store
        self._event_bus = event_bus
        self.retention_months = retention_months

    def retention_cutoff(self, *, today: date | None = None) -> date:
        return weeks.retention_cutoff(self.retention_months, today=today)

    async def upsert_weekly_report(
        self,
        project_id: str,
        submitting_pm_id: str,
        week_key: str,
        week_start_date: date,
        fields: SubmissionFields | dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> WeeklyReport:
        """Create or wholesale-replace the report for (project_id, week_key).

        Args:
            project_id: Project the report belongs to
            submitting_pm_id: User id of the submitter; must be the project's PM
            week_key: Canonical ``YYYY-WW`` key
            week_start_date: Monday of ``week_key``
            fields: Submission payload
            now: Write timestamp, defaults to the current UTC time

        Returns:
            The stored report

        Raises:
            NotFound: If the project does not exist
            AccessDenied: If the project is closed or not assigned to the submitter
            ValidationFailed: If the week identity or fields are invalid
        """
        if weeks.week_start_of_key(week_key) != week_start_date:
            raise ValidationFailed(
                f"week_start_date {week_start_date} is not the Monday of week {week_key}"
            )
        submission = parse_submission(fields)

        project_data = await self._store.get_project(project_id)
        if project_data is None:
            raise NotFound(f"Project not found: {project_id}")
        project = Project(**project_data)
        if not project.is_active:
            raise AccessDenied(f"Project {project.name} is closed")
        if project.pm_id != submitting_pm_id:
            raise AccessDenied(f"Project {project.name} is not assigned to this PM")

        existing = await self._store.get_report(project_id, week_key)
        prev_rag = existing["prev_rag"] if existing else await self._previous_rag(
            project_id, week_start_date
        )

        stamp = (now or datetime.now(UTC)).isoformat()
        report = WeeklyReport(
            project_id=project_id,
            pm_id=submitting_pm_id,
            week_key=week_key,
            week_start_date=week_start_date,
            prev_rag=prev_rag,
            yet_to_bill=submission.yet_to_bill,
            submitted_at=stamp,
            last_edited_at=stamp,
            **submission.model_dump(),
        )
        stored = WeeklyReport(**await self._store.upsert_report(report.to_storage()))

        created = stored.id == report.id
        await self._event_bus.emit(
            EventType.REPORT_SUBMITTED if created else EventType.REPORT_UPDATED,
            {
                "report_id": stored.id,
                "project_id": project_id,
                "week_key": week_key,
                "rag": stored.rag,
            },
        )
        logger.info(
            "%s report %s for project %s week %s (rag=%s, prev=%s)",
            "Created" if created else "Replaced",
            stored.id,
            project_id,
            week_key,
            stored.rag,
            stored.prev_rag,
        )
        return stored

    async def submit(
        self,
        caller: Caller,
        project_id: str,
        fields: SubmissionFields | dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> WeeklyReport:
        """Submit the caller's report for the current ISO week."""
        require_role(caller, "pm")
        now = now or datetime.now(UTC)
        today = now.date()
        return await self.upsert_weekly_report(
            project_id,
            caller.id,
            weeks.week_key_of(today),
            weeks.week_start_of(today),
            fields,
            now=now,
        )

    async def _previous_rag(self, project_id: str, week_start_date: date) -> str:
        prev = await self._store.get_report(
            project_id, weeks.previous_week_key(week_start_date)
        )
        return prev["rag"] if prev else NOT_AVAILABLE

    async def find_by_project_and_week(
        self, project_id: str, week_key: str
    ) -> WeeklyReport | None:
        data = await self._store.get_report(project_id, week_key)
        return WeeklyReport(**data) if data else None

    async def query_by_filter(self, report_filter: ReportFilter) -> list[WeeklyReport]:
        """Run a filtered query. Summary mode leaves the detail sequences empty."""
        if report_filter.week_key:
            weeks.week_start_of_key(report_filter.week_key)
        rows = await self._store.query_reports(
            project_ids=report_filter.project_ids,
            week_key=report_filter.week_key,
            date_from=report_filter.date_from,
            date_to=report_filter.date_to,
            ascending=report_filter.ascending,
            summary=report_filter.summary,
        )
        return [WeeklyReport(**row) for row in rows]

    async def purge_expired(
        self, cutoff: date | None = None, *, today: date | None = None
    ) -> int:
        """Delete every report whose week starts before the cutoff.

        Args:
            cutoff: Explicit cutoff; defaults to the retention cutoff for ``today``
            today: Reference date for the default cutoff

        Returns:
            Number of reports deleted (0 on a repeated run)
        """
        cutoff = cutoff or self.retention_cutoff(today=today)
        deleted = await self._store.delete_reports_before(cutoff)
        if deleted:
            await self._event_bus.emit(
                EventType.REPORTS_PURGED, {"cutoff": cutoff.isoformat(), "count": deleted}
            )
        logger.info("Purged %d report(s) older than %s", deleted, cutoff)
        return deleted
