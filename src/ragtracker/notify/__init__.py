"""Notification rendering and delivery."""

from ragtracker.notify.dispatcher import DeliveryResult, DispatchReport, NotificationDispatcher
from ragtracker.notify.transport import OutboundEmail, SmtpTransport, Transport

__all__ = [
    "DeliveryResult",
    "DispatchReport",
    "NotificationDispatcher",
    "OutboundEmail",
    "SmtpTransport",
    "Transport",
]
