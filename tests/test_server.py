"""Tests for the FastMCP server (3 tools)."""

from __future__ import annotations

import json
from dataclasses import dataclass

import pytest
from fastmcp import Client

from conftest import FakeTransport
from ragtracker.auth.jwt import create_token
from ragtracker.config import Config
from ragtracker.core import weeks
from ragtracker.runtime import open_tracker
from ragtracker.server import create_server


def _data(result) -> dict:
    """Extract parsed JSON from CallToolResult."""
    return json.loads(result.content[0].text)


@dataclass
class Session:
    client: Client
    config: Config
    transport: FakeTransport
    admin: str

    def token(self, user_id: str, role: str) -> str:
        return create_token(user_id, role, self.config.jwt_secret)

    async def call(self, tool: str, args: dict) -> dict:
        return _data(await self.client.call_tool(tool, args))


@pytest.fixture
async def session(config: Config, transport: FakeTransport):
    tracker = await open_tracker(config)
    admin = await tracker.directory.bootstrap_admin(name="Root", email="root@example.com")
    await tracker.close()

    server = create_server(str(config.db_path), config=config, transport=transport)
    async with Client(server) as c:
        yield Session(
            client=c,
            config=config,
            transport=transport,
            admin=create_token(admin.id, "admin", config.jwt_secret),
        )


async def _seed(s: Session) -> dict:
    pm = await s.call(
        "rt_admin",
        {"token": s.admin, "action": "create_user", "name": "Alice",
         "email": "alice@example.com", "role": "pm"},
    )
    ex = await s.call(
        "rt_admin",
        {"token": s.admin, "action": "create_user", "name": "Carol",
         "email": "carol@example.com", "role": "exec"},
    )
    project = await s.call(
        "rt_admin",
        {"token": s.admin, "action": "create_project", "name": "Apollo", "client": "Acme",
         "contract_type": "Fixed Price", "pm_id": pm["id"]},
    )
    other = await s.call(
        "rt_admin",
        {"token": s.admin, "action": "create_project", "name": "Borealis", "client": "Globex"},
    )
    return {
        "pm": s.token(pm["id"], "pm"),
        "pm_id": pm["id"],
        "exec": s.token(ex["id"], "exec"),
        "project": project["id"],
        "other": other["id"],
    }


async def test_list_tools(session: Session):
    tools = await session.client.list_tools()
    assert {t.name for t in tools} == {"rt_report", "rt_admin", "rt_notify"}


async def test_invalid_token(session: Session):
    data = await session.call("rt_report", {"token": "garbage", "action": "snapshot"})
    assert data["kind"] == "unauthenticated"
    assert data["_v"] == "1.0"


async def test_token_for_removed_user(session: Session):
    ids = await _seed(session)
    await session.call(
        "rt_admin", {"token": session.admin, "action": "remove_user", "user_id": ids["pm_id"]}
    )
    data = await session.call("rt_report", {"token": ids["pm"], "action": "snapshot"})
    assert data["kind"] == "unauthenticated"


async def test_role_comes_from_user_record(session: Session):
    ids = await _seed(session)
    forged = session.token(ids["pm_id"], "admin")
    data = await session.call("rt_admin", {"token": forged, "action": "list_users"})
    assert data["kind"] == "access_denied"


async def test_submit_and_read_back(session: Session):
    ids = await _seed(session)
    submitted = await session.call(
        "rt_report",
        {
            "token": ids["pm"],
            "action": "submit",
            "project_id": ids["project"],
            "rag": "Amber",
            "reason_for_rag": "Two engineers out",
            "billing_count": 5,
            "current_billable_count": 7,
            "deliverables": [{"task": "Checkout", "status": "Delayed"}],
        },
    )
    assert submitted["rag"] == "Amber"
    assert submitted["prev_rag"] == "NotAvailable"
    assert submitted["yet_to_bill"] == 0
    assert submitted["week_key"] == weeks.week_key_of(weeks.utc_today())
    assert submitted["suggested_rag"] in {"Red", "Amber", "Green"}

    got = await session.call(
        "rt_report", {"token": ids["exec"], "action": "get", "project_id": ids["project"]}
    )
    assert got["id"] == submitted["id"]

    listed = await session.call(
        "rt_report", {"token": ids["exec"], "action": "list", "detail": "full"}
    )
    assert listed["count"] == 1
    assert listed["reports"][0]["deliverables"][0]["task"] == "Checkout"

    snapshot = await session.call("rt_report", {"token": ids["exec"], "action": "snapshot"})
    assert snapshot["submitted"] == 1
    assert [p["name"] for p in snapshot["pending"]] == ["Borealis"]


async def test_resubmit_same_week(session: Session):
    ids = await _seed(session)
    args = {"token": ids["pm"], "action": "submit", "project_id": ids["project"]}
    first = await session.call("rt_report", {**args, "rag": "Green"})
    second = await session.call("rt_report", {**args, "rag": "Red"})
    assert second["id"] == first["id"]
    assert second["rag"] == "Red"


async def test_submit_errors(session: Session):
    ids = await _seed(session)
    other = await session.call(
        "rt_report",
        {"token": ids["pm"], "action": "submit", "project_id": ids["other"], "rag": "Green"},
    )
    assert other["kind"] == "access_denied"

    by_exec = await session.call(
        "rt_report",
        {"token": ids["exec"], "action": "submit", "project_id": ids["project"], "rag": "Green"},
    )
    assert by_exec["kind"] == "access_denied"

    bad_rag = await session.call(
        "rt_report",
        {"token": ids["pm"], "action": "submit", "project_id": ids["project"], "rag": "Blue"},
    )
    assert bad_rag["kind"] == "validation_failed"

    missing = await session.call(
        "rt_report",
        {"token": ids["pm"], "action": "submit", "project_id": "nope", "rag": "Green"},
    )
    assert missing["kind"] == "not_found"


async def test_closed_project_blocks_submission(session: Session):
    ids = await _seed(session)
    closed = await session.call(
        "rt_admin",
        {"token": session.admin, "action": "update_project", "project_id": ids["project"],
         "status": "closed"},
    )
    assert closed["status"] == "closed"
    assert closed["closed_at"]
    assert closed["pm_id"] == ids["pm_id"]

    data = await session.call(
        "rt_report",
        {"token": ids["pm"], "action": "submit", "project_id": ids["project"], "rag": "Green"},
    )
    assert data["kind"] == "access_denied"


async def test_get_missing_report(session: Session):
    ids = await _seed(session)
    data = await session.call(
        "rt_report", {"token": ids["pm"], "action": "get", "project_id": ids["project"]}
    )
    assert data["kind"] == "not_found"


async def test_list_bad_inputs(session: Session):
    ids = await _seed(session)
    bad_week = await session.call(
        "rt_report", {"token": ids["exec"], "action": "list", "week_key": "2026-7"}
    )
    assert bad_week["kind"] == "validation_failed"
    bad_date = await session.call(
        "rt_report", {"token": ids["exec"], "action": "list", "date_from": "yesterday"}
    )
    assert bad_date["kind"] == "validation_failed"


async def test_history_heatmap_weeks(session: Session):
    ids = await _seed(session)
    await session.call(
        "rt_report",
        {"token": ids["pm"], "action": "submit", "project_id": ids["project"], "rag": "Green"},
    )

    history = await session.call(
        "rt_report", {"token": ids["pm"], "action": "history", "project_id": ids["project"]}
    )
    assert [r["rag"] for r in history["reports"]] == ["Green"]

    heatmap = await session.call("rt_report", {"token": ids["exec"], "action": "heatmap"})
    assert len(heatmap["weeks"]) == 26
    apollo = next(r for r in heatmap["rows"] if r["project_name"] == "Apollo")
    assert apollo["cells"][-1] == "Green"
    assert apollo["cells"][0] == "NotAvailable"

    listed = await session.call("rt_report", {"token": ids["exec"], "action": "weeks"})
    assert listed["weeks"][0]["week_key"] == weeks.week_key_of(weeks.utc_today())


async def test_list_projects_per_role(session: Session):
    ids = await _seed(session)
    as_pm = await session.call("rt_admin", {"token": ids["pm"], "action": "list_projects"})
    assert [p["name"] for p in as_pm["projects"]] == ["Apollo"]
    as_exec = await session.call("rt_admin", {"token": ids["exec"], "action": "list_projects"})
    assert as_exec["count"] == 2


async def test_admin_requires_admin(session: Session):
    ids = await _seed(session)
    data = await session.call(
        "rt_admin",
        {"token": ids["pm"], "action": "create_project", "name": "X", "client": "Y"},
    )
    assert data["kind"] == "access_denied"


async def test_unassign_pm_and_status(session: Session):
    ids = await _seed(session)
    project = await session.call(
        "rt_admin",
        {"token": session.admin, "action": "update_project", "project_id": ids["project"],
         "unassign_pm": True},
    )
    assert project["pm_id"] is None

    status = await session.call("rt_admin", {"token": session.admin, "action": "status"})
    assert status["users"] == 3
    assert status["projects"] == 2
    assert status["recent_events"][0]["type"] == "project.updated"


async def test_notify_dashboard_and_reminders(session: Session):
    ids = await _seed(session)
    dashboard = await session.call("rt_notify", {"token": session.admin, "action": "dashboard"})
    assert dashboard["summary"] == "sent to 1 of 1 recipients"
    assert session.transport.sent[0].to == "carol@example.com"

    reminders = await session.call("rt_notify", {"token": session.admin, "action": "reminders"})
    assert reminders["summary"] == "sent to 1 of 1 recipients"
    assert session.transport.sent[-1].to == "alice@example.com"

    purge = await session.call("rt_notify", {"token": session.admin, "action": "purge"})
    assert purge["purged"] == 0

    denied = await session.call("rt_notify", {"token": ids["exec"], "action": "dashboard"})
    assert denied["kind"] == "access_denied"


async def test_notify_dashboard_without_execs(session: Session):
    data = await session.call("rt_notify", {"token": session.admin, "action": "dashboard"})
    assert data["kind"] == "validation_failed"
