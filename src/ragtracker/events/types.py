"""Event type constants for RAG Tracker."""

from enum import StrEnum


class EventType(StrEnum):
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_REMOVED = "user.removed"

    PROJECT_CREATED = "project.created"
    PROJECT_UPDATED = "project.updated"
    PROJECT_DELETED = "project.deleted"

    REPORT_SUBMITTED = "report.submitted"
    REPORT_UPDATED = "report.updated"
    REPORTS_PURGED = "reports.purged"

    DIGEST_DISPATCHED = "digest.dispatched"
