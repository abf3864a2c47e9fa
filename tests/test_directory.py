"""Tests for user and project administration."""

from __future__ import annotations

import pytest

from conftest import ADMIN, Org
from ragtracker.auth.permissions import Caller
from ragtracker.errors import AccessDenied, Conflict, NotFound, ValidationFailed
from ragtracker.events.types import EventType
from ragtracker.runtime import Tracker

# --- Users ---


async def test_create_user_normalises_email(tracker: Tracker):
    user = await tracker.directory.create_user(
        ADMIN, name=" Dana ", email="Dana@Example.COM", role="pm"
    )
    assert user.name == "Dana"
    assert user.email == "dana@example.com"
    assert tracker.bus.recent(1)[0].type == EventType.USER_CREATED


async def test_create_user_requires_admin(tracker: Tracker, org: Org):
    with pytest.raises(AccessDenied):
        await tracker.directory.create_user(
            org.caller(org.alice), name="X", email="x@example.com", role="pm"
        )


@pytest.mark.parametrize(
    "name,email,role",
    [
        ("", "x@example.com", "pm"),
        ("X", "not-an-email", "pm"),
        ("X", "x@example.com", "superuser"),
    ],
)
async def test_create_user_validation(tracker: Tracker, name: str, email: str, role: str):
    with pytest.raises(ValidationFailed):
        await tracker.directory.create_user(ADMIN, name=name, email=email, role=role)


async def test_duplicate_email(tracker: Tracker, org: Org):
    with pytest.raises(Conflict):
        await tracker.directory.create_user(
            ADMIN, name="Alice Two", email="ALICE@example.com", role="exec"
        )


async def test_bootstrap_admin_once(tracker: Tracker):
    admin = await tracker.directory.bootstrap_admin(name="Root", email="root@example.com")
    assert admin.role == "admin"
    with pytest.raises(ValidationFailed):
        await tracker.directory.bootstrap_admin(name="Other", email="other@example.com")


async def test_update_user(tracker: Tracker, org: Org):
    updated = await tracker.directory.update_user(ADMIN, org.bob.id, name="Robert", role="exec")
    assert updated.name == "Robert"
    assert updated.role == "exec"


async def test_update_missing_user(tracker: Tracker):
    with pytest.raises(NotFound):
        await tracker.directory.update_user(ADMIN, "missing", name="Nobody")


async def test_admin_cannot_demote_or_deactivate_self(tracker: Tracker):
    admin = await tracker.directory.bootstrap_admin(name="Root", email="root@example.com")
    me = Caller(id=admin.id, role="admin")
    with pytest.raises(ValidationFailed):
        await tracker.directory.update_user(me, admin.id, role="pm")
    with pytest.raises(ValidationFailed):
        await tracker.directory.update_user(me, admin.id, is_active=False)
    with pytest.raises(ValidationFailed):
        await tracker.directory.remove_user(me, admin.id)


async def test_remove_user_unassigns_projects(tracker: Tracker, org: Org):
    await tracker.directory.remove_user(ADMIN, org.bob.id)
    project = await tracker.directory.get_project(org.borealis.id)
    assert project.pm_id is None
    with pytest.raises(NotFound):
        await tracker.directory.remove_user(ADMIN, org.bob.id)


async def test_list_users_admin_only(tracker: Tracker, org: Org):
    pms = await tracker.directory.list_users(ADMIN, role="pm")
    assert [u.name for u in pms] == ["Alice", "Bob"]
    with pytest.raises(AccessDenied):
        await tracker.directory.list_users(org.caller(org.carol))


async def test_exec_recipients(tracker: Tracker, org: Org):
    assert [u.email for u in await tracker.directory.exec_recipients()] == ["carol@example.com"]
    assert len(await tracker.directory.list_pms()) == 2


# --- Projects ---


async def test_create_project_requires_known_pm(tracker: Tracker, org: Org):
    with pytest.raises(NotFound):
        await tracker.directory.create_project(ADMIN, name="X", client="Y", pm_id=org.carol.id)


async def test_create_project_invalid_contract(tracker: Tracker):
    with pytest.raises(ValidationFailed):
        await tracker.directory.create_project(
            ADMIN, name="X", client="Y", contract_type="Barter"
        )


async def test_close_and_reopen_project(tracker: Tracker, org: Org):
    assert org.legacy.status == "closed"
    assert org.legacy.closed_at is not None

    reopened = await tracker.directory.update_project(ADMIN, org.legacy.id, status="active")
    assert reopened.is_active
    assert reopened.closed_at is None


async def test_unassign_pm(tracker: Tracker, org: Org):
    project = await tracker.directory.update_project(ADMIN, org.apollo.id, pm_id=None)
    assert project.pm_id is None


async def test_update_project_validation(tracker: Tracker, org: Org):
    with pytest.raises(ValidationFailed):
        await tracker.directory.update_project(ADMIN, org.apollo.id, status="archived")
    with pytest.raises(NotFound):
        await tracker.directory.update_project(ADMIN, "missing", name="X")


async def test_delete_project(tracker: Tracker, org: Org):
    await tracker.directory.delete_project(ADMIN, org.borealis.id)
    assert await tracker.directory.get_project(org.borealis.id) is None
    assert tracker.bus.recent(1)[0].type == EventType.PROJECT_DELETED


async def test_list_projects_scoped_by_role(tracker: Tracker, org: Org):
    d = tracker.directory
    assert [p.name for p in await d.list_projects(ADMIN)] == ["Apollo", "Borealis", "Legacy"]
    assert [p.name for p in await d.list_projects(org.caller(org.alice))] == ["Apollo"]
    assert [p.name for p in await d.list_projects(org.caller(org.carol))] == [
        "Apollo",
        "Borealis",
    ]
