"""Caller identity and role-scoped access."""

from ragtracker.auth.permissions import Caller, ProjectScope, can_submit, can_view, resolve_scope

__all__ = ["Caller", "ProjectScope", "can_submit", "can_view", "resolve_scope"]
