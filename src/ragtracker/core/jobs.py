"""Scheduled operations: weekly reminders, weekly dashboard, retention purge.

Each job is parameterless apart from an optional reference date, safe to
trigger on demand, and reads the organisation-wide (unscoped) state.
"""

import logging
from collections.abc import Iterable
from datetime import date

from ragtracker.core import weeks
from ragtracker.core.digest import build_dashboard_digest, build_reminder_digest
from ragtracker.core.directory import Directory
from ragtracker.core.reports import ReportFilter, ReportStore
from ragtracker.errors import ValidationFailed
from ragtracker.models.project import Project
from ragtracker.models.report import WeeklyReport
from ragtracker.models.user import User
from ragtracker.notify.dispatcher import DispatchReport, NotificationDispatcher
from ragtracker.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class NotificationJobs:
    def __init__(
        self,
        store: StorageBackend,
        reports: ReportStore,
        directory: Directory,
        dispatcher: NotificationDispatcher,
    ) -> None:
        self._store = store
        self._reports = reports
        self._directory = directory
        self._dispatcher = dispatcher

    async def _current_week(
        self, today: date | None
    ) -> tuple[str, list[WeeklyReport], list[Project], dict[str, User]]:
        week_key = weeks.week_key_of(today or weeks.utc_today())
        reports = await self._reports.query_by_filter(
            ReportFilter(week_key=week_key, summary=True)
        )
        active = await self._directory.active_projects()
        users = {row["id"]: User(**row) for row in await self._store.list_users()}
        return week_key, reports, active, users

    async def send_reminders(self, *, today: date | None = None) -> DispatchReport:
        """Remind every PM with pending active projects this week."""
        week_key, reports, active, users = await self._current_week(today)
        entries = build_reminder_digest(reports, active, users)
        logger.info("Reminder run for %s: %d PM(s) pending", week_key, len(entries))
        return await self._dispatcher.dispatch_reminders(week_key, entries)

    async def send_dashboard(
        self,
        recipients: Iterable[str] | None = None,
        *,
        today: date | None = None,
    ) -> DispatchReport:
        """Send this week's dashboard, by default to every active exec.

        Raises:
            ValidationFailed: If there are no recipients
        """
        if recipients is None:
            recipients = [u.email for u in await self._directory.exec_recipients()]
        recipients = list(recipients)
        if not recipients:
            raise ValidationFailed(
                "No executive recipients found. Add executives in Users & Access."
            )

        week_key, reports, active, users = await self._current_week(today)
        names = {row["id"]: row["name"] for row in await self._store.list_projects()}
        digest = build_dashboard_digest(
            week_key, reports, active, users, project_names=names
        )
        return await self._dispatcher.dispatch_dashboard(digest, recipients)

    async def purge(self, *, today: date | None = None) -> int:
        """Apply the retention window."""
        return await self._reports.purge_expired(today=today)
