"""FastMCP server — 3 tools: rt_report, rt_admin, rt_notify."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import date
from pathlib import Path
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from ragtracker import __version__
from ragtracker.auth.jwt import TokenExpiredError, TokenInvalidError, caller_from_token
from ragtracker.auth.permissions import Caller, require_role
from ragtracker.config import Config
from ragtracker.core import weeks
from ragtracker.core.reports import parse_submission
from ragtracker.core.scoring import score_report
from ragtracker.errors import RagTrackerError, ValidationFailed
from ragtracker.notify.transport import Transport
from ragtracker.runtime import Tracker, open_tracker

logger = logging.getLogger(__name__)


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


def _ok(data: dict[str, Any]) -> str:
    """Return a versioned JSON success response."""
    return _json({**data, "_v": "1.0"})


def _err(msg: str, kind: str = "error") -> str:
    """Return a versioned JSON error response."""
    return _json({"_v": "1.0", "error": msg, "kind": kind})


def _parse_date(value: str | None, label: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValidationFailed(f"{label} must be an ISO date (YYYY-MM-DD): {value}") from e


def create_server(
    db_path: str,
    *,
    config: Config | None = None,
    transport: Transport | None = None,
) -> FastMCP:
    """Create the FastMCP server over the database at ``db_path``."""
    mcp = FastMCP("ragtracker", version=__version__)
    config = config or Config.load()

    state: dict[str, Any] = {}
    _lock = asyncio.Lock()

    async def _init() -> Tracker:
        async with _lock:
            if "init_failed" in state:
                raise RuntimeError(f"RAG Tracker init previously failed for {db_path}")
            if "tracker" not in state:
                try:
                    state["tracker"] = await open_tracker(
                        config, db_path=Path(db_path), transport=transport
                    )
                except Exception as e:
                    state["init_failed"] = True
                    logger.error("Failed to initialize database: %s", e)
                    raise RuntimeError(f"RAG Tracker init failed: {db_path}") from e
        return state["tracker"]

    async def _caller(t: Tracker, token: str) -> Caller:
        claimed = caller_from_token(token, config.jwt_secret)
        user = await t.directory.get_user(claimed.id)
        if user is None or not user.is_active:
            raise TokenInvalidError("Account not found or deactivated")
        return Caller(id=user.id, role=user.role)

    # ── rt_report ─────────────────────────────────────────────

    @mcp.tool()
    async def rt_report(
        token: Annotated[str, Field(description="Bearer token of the caller")],
        action: Annotated[
            Literal["submit", "get", "list", "history", "snapshot", "heatmap", "weeks"],
            Field(description="submit | get | list | history | snapshot | heatmap | weeks"),
        ],
        project_id: Annotated[
            str | None, Field(description="Project ID (submit, get, list, history)")
        ] = None,
        rag: Annotated[
            str | None, Field(description="Red | Amber | Green (submit)")
        ] = None,
        reason_for_rag: Annotated[str, Field(description="Why this RAG (submit)")] = "",
        path_to_green: Annotated[str, Field(description="Recovery plan (submit)")] = "",
        overall_summary: Annotated[str, Field(description="Summary (submit)")] = "",
        team_size: Annotated[str, Field(description="Legacy combined team size (submit)")] = "",
        planned_team_size: Annotated[str, Field(description="Planned team (submit)")] = "",
        actual_team_size: Annotated[str, Field(description="Actual team (submit)")] = "",
        billing_count: Annotated[int, Field(description="Billing count (submit)", ge=0)] = 0,
        current_billable_count: Annotated[
            int, Field(description="Currently billable (submit)", ge=0)
        ] = 0,
        buffer: Annotated[int, Field(description="Buffer headcount (submit)", ge=0)] = 0,
        deliverables: Annotated[
            list[dict[str, Any]] | None, Field(description="Deliverable records (submit)")
        ] = None,
        attrition: Annotated[
            list[dict[str, Any]] | None, Field(description="Attrition records (submit)")
        ] = None,
        escalations: Annotated[
            list[dict[str, Any]] | None, Field(description="Escalation records (submit)")
        ] = None,
        week_key: Annotated[
            str | None, Field(description="YYYY-WW week (get, list; get defaults to current)")
        ] = None,
        date_from: Annotated[str | None, Field(description="YYYY-MM-DD (list)")] = None,
        date_to: Annotated[str | None, Field(description="YYYY-MM-DD (list)")] = None,
        months_back: Annotated[
            int | None, Field(description="Last N months, 1-6 (list)")
        ] = None,
        detail: Annotated[
            str, Field(description="summary or full (get, list)")
        ] = "summary",
    ) -> str:
        """Submit and read weekly RAG reports. PMs submit for the current ISO week; admins, PMs and executives read within their visibility.

Actions: submit (upsert this week's report), get (one project-week), list (filtered reports, newest first), history (trend for one project), snapshot (this week + pending projects), heatmap (portfolio grid), weeks (selectable weeks in the retention window)."""  # noqa: E501
        try:
            t = await _init()
            caller = await _caller(t, token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e), "unauthenticated")

        try:
            if action == "submit":
                if not project_id:
                    return _err("project_id is required for submit")
                fields = parse_submission(
                    {
                        "rag": rag,
                        "reason_for_rag": reason_for_rag,
                        "path_to_green": path_to_green,
                        "overall_summary": overall_summary,
                        "team_size": team_size,
                        "planned_team_size": planned_team_size,
                        "actual_team_size": actual_team_size,
                        "billing_count": billing_count,
                        "current_billable_count": current_billable_count,
                        "buffer": buffer,
                        "deliverables": deliverables or [],
                        "attrition": attrition or [],
                        "escalations": escalations or [],
                    }
                )
                report = await t.reports.submit(caller, project_id, fields)
                suggestion = score_report(fields)
                return _ok(
                    {
                        **report.to_response(detail="full"),
                        "suggested_rag": suggestion.rag,
                        "suggested_score": suggestion.score,
                    }
                )

            if action == "get":
                if not project_id:
                    return _err("project_id is required for get")
                key = week_key or weeks.week_key_of(weeks.utc_today())
                found = await t.queries.list_reports(
                    caller, project_id=project_id, week_key=key
                )
                if not found:
                    return _err(f"No report for project {project_id} in week {key}", "not_found")
                return _ok(found[0].to_response(detail=detail))

            if action == "list":
                reports = await t.queries.list_reports(
                    caller,
                    project_id=project_id,
                    week_key=week_key,
                    date_from=_parse_date(date_from, "date_from"),
                    date_to=_parse_date(date_to, "date_to"),
                    months_back=months_back,
                    summary_only=detail == "summary",
                )
                items = [r.to_response(detail=detail) for r in reports]
                return _ok({"count": len(items), "reports": items})

            if action == "history":
                if not project_id:
                    return _err("project_id is required for history")
                history = await t.queries.project_history(caller, project_id)
                items = [r.to_response() for r in history]
                return _ok({"project_id": project_id, "count": len(items), "reports": items})

            if action == "snapshot":
                snapshot = await t.queries.current_week_snapshot(caller)
                return _ok(snapshot.to_response())

            if action == "heatmap":
                columns, rows = await t.queries.portfolio_heatmap(caller)
                return _ok(
                    {
                        "weeks": [c.week_key for c in columns],
                        "rows": [
                            {
                                "project_id": row.project_id,
                                "project_name": row.project_name,
                                "cells": [rag_value for _, rag_value in row.cells],
                            }
                            for row in rows
                        ],
                    }
                )

            if action == "weeks":
                slots = weeks.week_range(t.config.retention_months)
                return _ok(
                    {
                        "weeks": [
                            {
                                "week_key": s.week_key,
                                "week_start_date": s.week_start_date.isoformat(),
                                "label": s.label,
                            }
                            for s in slots
                        ]
                    }
                )
        except RagTrackerError as e:
            return _err(str(e), e.kind)

        return _err(f"Unknown action: {action}")

    # ── rt_admin ──────────────────────────────────────────────

    @mcp.tool()
    async def rt_admin(
        token: Annotated[str, Field(description="Bearer token of the caller")],
        action: Annotated[
            Literal[
                "create_user",
                "update_user",
                "remove_user",
                "list_users",
                "create_project",
                "update_project",
                "delete_project",
                "list_projects",
                "status",
            ],
            Field(description="User and project administration"),
        ],
        user_id: Annotated[str | None, Field(description="User ID (update/remove_user)")] = None,
        name: Annotated[str | None, Field(description="User or project name")] = None,
        email: Annotated[str | None, Field(description="User email")] = None,
        role: Annotated[
            str | None, Field(description="admin | pm | exec (user actions, list filter)")
        ] = None,
        is_active: Annotated[bool | None, Field(description="Active flag (update_user)")] = None,
        project_id: Annotated[
            str | None, Field(description="Project ID (update/delete_project)")
        ] = None,
        client: Annotated[str | None, Field(description="Client name (projects)")] = None,
        contract_type: Annotated[
            str | None, Field(description="T & Material | Fixed Price | Retainer")
        ] = None,
        pm_id: Annotated[str | None, Field(description="Assigned PM user ID")] = None,
        unassign_pm: Annotated[
            bool, Field(description="Clear the project's PM (update_project)")
        ] = False,
        status: Annotated[
            str | None, Field(description="active | closed (update_project)")
        ] = None,
    ) -> str:
        """Administer users and projects. Listing projects is open to every role and scoped by it; everything else requires admin.

Actions: create_user, update_user, remove_user, list_users, create_project, update_project (closing stamps closed_at), delete_project, list_projects, status."""  # noqa: E501
        try:
            t = await _init()
            caller = await _caller(t, token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e), "unauthenticated")

        d = t.directory
        try:
            if action == "create_user":
                user = await d.create_user(
                    caller, name=name or "", email=email or "", role=role or ""
                )
                return _ok(user.to_response())

            if action == "update_user":
                if not user_id:
                    return _err("user_id is required for update_user")
                user = await d.update_user(
                    caller, user_id, name=name, email=email, role=role, is_active=is_active
                )
                return _ok(user.to_response())

            if action == "remove_user":
                if not user_id:
                    return _err("user_id is required for remove_user")
                await d.remove_user(caller, user_id)
                return _ok({"removed": "user", "id": user_id})

            if action == "list_users":
                users = await d.list_users(caller, role=role)
                return _ok({"count": len(users), "users": [u.to_response() for u in users]})

            if action == "create_project":
                project = await d.create_project(
                    caller,
                    name=name or "",
                    client=client or "",
                    contract_type=contract_type or "T & Material",
                    pm_id=pm_id,
                )
                return _ok(project.to_response(detail="full"))

            if action == "update_project":
                if not project_id:
                    return _err("project_id is required for update_project")
                given = {
                    "name": name,
                    "client": client,
                    "contract_type": contract_type,
                    "pm_id": pm_id,
                    "status": status,
                }
                updates: dict[str, Any] = {k: v for k, v in given.items() if v is not None}
                if unassign_pm:
                    updates["pm_id"] = None
                project = await d.update_project(caller, project_id, **updates)
                return _ok(project.to_response(detail="full"))

            if action == "delete_project":
                if not project_id:
                    return _err("project_id is required for delete_project")
                await d.delete_project(caller, project_id)
                return _ok({"removed": "project", "id": project_id})

            if action == "list_projects":
                projects = await d.list_projects(caller)
                return _ok(
                    {"count": len(projects), "projects": [p.to_response() for p in projects]}
                )

            if action == "status":
                require_role(caller, "admin")
                stats = await t.store.get_stats()
                stats["retention_months"] = t.config.retention_months
                stats["recent_events"] = [
                    {"type": str(e.type), "at": e.at} for e in t.bus.recent(10)
                ]
                return _ok(stats)
        except RagTrackerError as e:
            return _err(str(e), e.kind)

        return _err(f"Unknown action: {action}")

    # ── rt_notify ─────────────────────────────────────────────

    @mcp.tool()
    async def rt_notify(
        token: Annotated[str, Field(description="Bearer token of an admin")],
        action: Annotated[
            Literal["reminders", "dashboard", "purge"],
            Field(description="reminders | dashboard | purge"),
        ],
        recipients: Annotated[
            list[str] | None,
            Field(description="Override dashboard recipients (default: active executives)"),
        ] = None,
    ) -> str:
        """Trigger the weekly jobs on demand: PM reminders for pending projects, the executive dashboard e-mail, or the retention purge. Delivery failures are reported per recipient."""  # noqa: E501
        try:
            t = await _init()
            caller = await _caller(t, token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e), "unauthenticated")

        try:
            require_role(caller, "admin")
            if action == "reminders":
                result = await t.jobs.send_reminders()
                return _ok(result.to_response())
            if action == "dashboard":
                result = await t.jobs.send_dashboard(recipients)
                return _ok(result.to_response())
            if action == "purge":
                deleted = await t.jobs.purge()
                return _ok({"purged": deleted})
        except RagTrackerError as e:
            return _err(str(e), e.kind)

        return _err(f"Unknown action: {action}")

    return mcp
