"""Shared test fixtures for RAG Tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path

import pytest

from ragtracker.auth.permissions import Caller
from ragtracker.config import Config
from ragtracker.errors import TransportFailure
from ragtracker.models.project import Project
from ragtracker.models.user import User
from ragtracker.notify.transport import OutboundEmail, Transport
from ragtracker.runtime import Tracker, open_tracker
from ragtracker.storage.sqlite_store import SQLiteStore

# Thursday of ISO week 2026-07 (Monday 2026-02-09)
TODAY = date(2026, 2, 12)
NOW = datetime(2026, 2, 12, 10, 30, tzinfo=UTC)
WEEK = "2026-07"
MONDAY = date(2026, 2, 9)

ADMIN = Caller(id="admin-1", role="admin")


class FakeTransport(Transport):
    """Records every message; raises TransportFailure for addresses in ``fail_for``."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.sent: list[OutboundEmail] = []

    async def send(self, message: OutboundEmail) -> str:
        if message.to in self.fail_for:
            raise TransportFailure(message.to, "mailbox unavailable")
        self.sent.append(message)
        return f"<fake-{len(self.sent)}@test>"


@dataclass
class Org:
    """A small seeded organisation."""

    alice: User
    bob: User
    carol: User
    apollo: Project
    borealis: Project
    legacy: Project

    def caller(self, user: User) -> Caller:
        return Caller(id=user.id, role=user.role)


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
async def store(tmp_db: Path) -> SQLiteStore:
    s = SQLiteStore(tmp_db)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(workspace_path=tmp_path)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
async def tracker(config: Config, transport: FakeTransport) -> Tracker:
    t = await open_tracker(config, transport=transport)
    yield t
    await t.close()


@pytest.fixture
async def org(tracker: Tracker) -> Org:
    """Two PMs, one exec; Alice owns Apollo and the closed Legacy project, Bob owns Borealis."""
    d = tracker.directory
    alice = await d.create_user(ADMIN, name="Alice", email="alice@example.com", role="pm")
    bob = await d.create_user(ADMIN, name="Bob", email="bob@example.com", role="pm")
    carol = await d.create_user(ADMIN, name="Carol", email="carol@example.com", role="exec")

    apollo = await d.create_project(
        ADMIN, name="Apollo", client="Acme", contract_type="Fixed Price", pm_id=alice.id
    )
    borealis = await d.create_project(ADMIN, name="Borealis", client="Globex", pm_id=bob.id)
    legacy = await d.create_project(ADMIN, name="Legacy", client="Initech", pm_id=alice.id)
    legacy = await d.update_project(ADMIN, legacy.id, status="closed")
    return Org(
        alice=alice, bob=bob, carol=carol, apollo=apollo, borealis=borealis, legacy=legacy
    )
