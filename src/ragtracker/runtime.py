"""Wires storage, core services and notifications from a Config."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ragtracker.config import Config
from ragtracker.core.directory import Directory
from ragtracker.core.jobs import NotificationJobs
from ragtracker.core.queries import ReportQueryService
from ragtracker.core.reports import ReportStore
from ragtracker.events.bus import EventBus
from ragtracker.notify.dispatcher import NotificationDispatcher
from ragtracker.notify.transport import SmtpTransport, Transport
from ragtracker.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


@dataclass
class Tracker:
    config: Config
    store: SQLiteStore
    bus: EventBus
    directory: Directory
    reports: ReportStore
    queries: ReportQueryService
    jobs: NotificationJobs

    async def close(self) -> None:
        await self.store.close()


async def open_tracker(
    config: Config,
    *,
    db_path: Path | None = None,
    transport: Transport | None = None,
) -> Tracker:
    """Initialize the store and build every service around it."""
    store = SQLiteStore(db_path or config.db_path, wal_mode=config.wal_mode)
    await store.initialize()

    bus = EventBus()
    directory = Directory(store, bus)
    reports = ReportStore(store, bus, retention_months=config.retention_months)
    queries = ReportQueryService(store, reports, history_weeks=config.history_weeks)
    dispatcher = NotificationDispatcher(
        transport or SmtpTransport(config), bus, frontend_url=config.frontend_url
    )
    jobs = NotificationJobs(store, reports, directory, dispatcher)
    logger.debug("Tracker ready (retention=%d months)", config.retention_months)
    return Tracker(
        config=config,
        store=store,
        bus=bus,
        directory=directory,
        reports=reports,
        queries=queries,
        jobs=jobs,
    )
