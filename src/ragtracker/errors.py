"""Error kinds raised by the RAG Tracker core."""

from __future__ import annotations


class RagTrackerError(Exception):
    """Base class for all core errors."""

    kind = "error"


class AccessDenied(RagTrackerError):
    """Caller's role or ownership does not permit the project or action."""

    kind = "access_denied"


class NotFound(RagTrackerError):
    """Referenced project, user or report does not exist."""

    kind = "not_found"


class ValidationFailed(RagTrackerError, ValueError):
    """Structurally invalid input."""

    kind = "validation_failed"


class Conflict(RagTrackerError):
    """A uniqueness constraint was violated."""

    kind = "conflict"


class TransportFailure(RagTrackerError):
    """A notification could not be delivered to one recipient."""

    kind = "transport_failure"

    def __init__(self, recipient: str, reason: str) -> None:
        super().__init__(f"Delivery to {recipient} failed: {reason}")
        self.recipient = recipient
        self.reason = reason
