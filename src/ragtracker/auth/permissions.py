"""Role-based project visibility for RAG Tracker callers.

admin sees every project, a pm sees the projects assigned to them (active or
closed) and an exec sees active projects only. Writing a report additionally
requires the project to be active and owned by the submitting pm.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ragtracker.errors import AccessDenied
from ragtracker.models.project import Project
from ragtracker.models.user import Role


@dataclass(frozen=True)
class Caller:
    """An authenticated identity. Authentication happens before the core is called."""

    id: str
    role: Role


@dataclass(frozen=True)
class ProjectScope:
    """The set of projects a caller may read. ``project_ids`` is None when unrestricted."""

    project_ids: frozenset[str] | None

    @property
    def unrestricted(self) -> bool:
        return self.project_ids is None

    def allows(self, project_id: str) -> bool:
        return self.project_ids is None or project_id in self.project_ids

    def restrict(self, project_ids: Iterable[str]) -> frozenset[str]:
        ids = frozenset(project_ids)
        return ids if self.project_ids is None else ids & self.project_ids


def can_view(caller: Caller, project: Project) -> bool:
    """Check whether a caller may read a project's reports."""
    if caller.role == "admin":
        return True
    if caller.role == "pm":
        return project.pm_id == caller.id
    if caller.role == "exec":
        return project.is_active
    return False


def can_submit(caller: Caller, project: Project) -> bool:
    """Check whether a caller may write this week's report for a project."""
    return caller.role == "pm" and project.is_active and project.pm_id == caller.id


def resolve_scope(caller: Caller, projects: Iterable[Project]) -> ProjectScope:
    """Compute the visible project set from the full project list."""
    if caller.role == "admin":
        return ProjectScope(project_ids=None)
    return ProjectScope(
        project_ids=frozenset(p.id for p in projects if can_view(caller, p))
    )


def require_role(caller: Caller, *roles: str) -> None:
    """Raise AccessDenied unless the caller holds one of ``roles``."""
    if caller.role not in roles:
        raise AccessDenied(f"Role '{caller.role}' cannot perform this action")
