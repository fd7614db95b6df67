"""Notifications - Student emails and the inactivity reminder check."""

from cfroster.notifications.dispatcher import NotificationDispatcher
from cfroster.notifications.exceptions import (
    EmailDeliveryError,
    InactivityCheckRunningError,
    InvalidNotificationError,
    NotificationError,
    RecipientUnavailableError,
)
from cfroster.notifications.inactivity import InactivityNotifier
from cfroster.notifications.models import DispatchResult, EmailMessage, InactivityReport
from cfroster.notifications.transport import EmailTransport, SMTPTransport

__all__ = [
    "DispatchResult",
    "EmailDeliveryError",
    "EmailMessage",
    "EmailTransport",
    "InactivityCheckRunningError",
    "InactivityNotifier",
    "InactivityReport",
    "InvalidNotificationError",
    "NotificationDispatcher",
    "NotificationError",
    "RecipientUnavailableError",
    "SMTPTransport",
]
