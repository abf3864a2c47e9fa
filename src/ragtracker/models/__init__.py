"""RAG Tracker data models."""

from ragtracker.models.project import Project
from ragtracker.models.report import (
    Attrition,
    Deliverable,
    Escalation,
    SubmissionFields,
    WeeklyReport,
)
from ragtracker.models.user import User

__all__ = [
    "Attrition",
    "Deliverable",
    "Escalation",
    "Project",
    "SubmissionFields",
    "User",
    "WeeklyReport",
]
