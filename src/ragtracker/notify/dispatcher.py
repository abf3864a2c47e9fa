"""Notification dispatcher: renders digests and delivers them per recipient.

A failed delivery is recorded against its recipient and never stops the batch.
Failed sends are not retried.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from ragtracker.core.digest import DashboardDigest, ReminderEntry
from ragtracker.errors import TransportFailure
from ragtracker.events.bus import EventBus
from ragtracker.events.types import EventType
from ragtracker.notify import templates
from ragtracker.notify.transport import OutboundEmail, Transport

logger = logging.getLogger(__name__)


class DeliveryResult(BaseModel):
    recipient: str
    status: Literal["sent", "failed"]
    message_id: str | None = None
    error: str | None = None


class DispatchReport(BaseModel):
    kind: Literal["dashboard", "reminder"]
    week_key: str
    results: list[DeliveryResult] = Field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for r in self.results if r.status == "sent")

    @property
    def failed(self) -> int:
        return len(self.results) - self.sent

    def summary(self) -> str:
        return f"sent to {self.sent} of {len(self.results)} recipients"

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "kind": self.kind,
            "week_key": self.week_key,
            "summary": self.summary(),
            "sent": self.sent,
            "failed": self.failed,
            "results": [r.model_dump() for r in self.results],
        }


class NotificationDispatcher:
    def __init__(
        self, transport: Transport, event_bus: EventBus, *, frontend_url: str
    ) -> None:
        self._transport = transport
        self._event_bus = event_bus
        self.frontend_url = frontend_url

    async def _deliver(self, message: OutboundEmail) -> DeliveryResult:
        try:
            message_id = await self._transport.send(message)
        except TransportFailure as e:
            logger.warning("Delivery to %s failed: %s", message.to, e.reason)
            return DeliveryResult(recipient=message.to, status="failed", error=e.reason)
        return DeliveryResult(recipient=message.to, status="sent", message_id=message_id)

    async def _finish(self, report: DispatchReport) -> DispatchReport:
        logger.info("%s digest for %s %s", report.kind, report.week_key, report.summary())
        await self._event_bus.emit(
            EventType.DIGEST_DISPATCHED,
            {
                "kind": report.kind,
                "week_key": report.week_key,
                "sent": report.sent,
                "failed": report.failed,
            },
        )
        return report

    async def dispatch_dashboard(
        self, digest: DashboardDigest, recipients: Iterable[str]
    ) -> DispatchReport:
        """Send the dashboard digest to each address separately."""
        subject = templates.dashboard_subject(digest)
        html = templates.render_dashboard(
            digest, sent_on=datetime.now(UTC).strftime("%A, %d %B %Y")
        )
        report = DispatchReport(kind="dashboard", week_key=digest.week_key)
        for address in dict.fromkeys(recipients):
            report.results.append(
                await self._deliver(OutboundEmail(to=address, subject=subject, html=html))
            )
        return await self._finish(report)

    async def dispatch_reminders(
        self, week_key: str, entries: Iterable[ReminderEntry]
    ) -> DispatchReport:
        """Send one reminder per PM listing their pending projects."""
        subject = templates.reminder_subject(week_key)
        report = DispatchReport(kind="reminder", week_key=week_key)
        for entry in entries:
            html = templates.render_reminder(entry, frontend_url=self.frontend_url)
            report.results.append(
                await self._deliver(OutboundEmail(to=entry.pm_email, subject=subject, html=html))
            )
        return await self._finish(report)
