"""Digest builder: organisation-wide summaries of the current week.

Pure aggregation, no I/O. Empty inputs produce empty digests.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, Field

from ragtracker.models.project import Project
from ragtracker.models.report import WeeklyReport
from ragtracker.models.user import User

ON_TRACK = "On track"


class DigestLine(BaseModel):
    project_id: str
    project_name: str
    pm_name: str | None
    reason: str


class DashboardDigest(BaseModel):
    week_key: str
    red: list[DigestLine] = Field(default_factory=list)
    amber: list[DigestLine] = Field(default_factory=list)
    green: list[DigestLine] = Field(default_factory=list)
    pending: list[str] = Field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        return {
            "Red": len(self.red),
            "Amber": len(self.amber),
            "Green": len(self.green),
            "Pending": len(self.pending),
        }


class ReminderEntry(BaseModel):
    pm_id: str
    pm_name: str
    pm_email: str
    project_names: list[str]


def _pending_projects(
    reports: Iterable[WeeklyReport], active_projects: Iterable[Project]
) -> list[Project]:
    submitted = {r.project_id for r in reports}
    return [p for p in active_projects if p.is_active and p.id not in submitted]


def build_dashboard_digest(
    week_key: str,
    reports: Iterable[WeeklyReport],
    active_projects: Iterable[Project],
    users: Mapping[str, User],
    *,
    project_names: Mapping[str, str] | None = None,
) -> DashboardDigest:
    """Bucket this week's reports by RAG and list the active projects still pending.

    Args:
        week_key: Week the digest describes
        reports: All reports for ``week_key``
        active_projects: Every active project, unscoped
        users: Users by id, used for PM names
        project_names: Names by project id, including closed projects that
            still have a report this week
    """
    reports = list(reports)
    active_projects = list(active_projects)
    names = {p.id: p.name for p in active_projects}
    names.update(project_names or {})
    digest = DashboardDigest(week_key=week_key)
    buckets = {"Red": digest.red, "Amber": digest.amber, "Green": digest.green}

    for report in sorted(reports, key=lambda r: names.get(r.project_id, r.project_id)):
        submitter = users.get(report.pm_id) if report.pm_id else None
        buckets[report.rag].append(
            DigestLine(
                project_id=report.project_id,
                project_name=names.get(report.project_id, report.project_id),
                pm_name=submitter.name if submitter else None,
                reason=report.reason_for_rag or ON_TRACK,
            )
        )

    digest.pending = [p.name for p in _pending_projects(reports, active_projects)]
    return digest


def build_reminder_digest(
    reports: Iterable[WeeklyReport],
    active_projects: Iterable[Project],
    users: Mapping[str, User],
) -> list[ReminderEntry]:
    """Group pending active projects by their PM. PMs with nothing pending get no entry."""
    grouped: dict[str, list[str]] = {}
    for project in _pending_projects(reports, active_projects):
        if project.pm_id is None or project.pm_id not in users:
            continue
        grouped.setdefault(project.pm_id, []).append(project.name)

    entries = []
    for pm_id, project_names in grouped.items():
        pm = users[pm_id]
        entries.append(
            ReminderEntry(
                pm_id=pm.id,
                pm_name=pm.name,
                pm_email=pm.email,
                project_names=project_names,
            )
        )
    return entries
