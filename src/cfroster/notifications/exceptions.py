"""Custom exceptions for notifications."""


class NotificationError(Exception):
    """Base exception for notification errors."""


class RecipientUnavailableError(NotificationError):
    """Student has no email address or opted out of this kind of email."""


class InvalidNotificationError(NotificationError):
    """Notification request is incomplete (e.g. a custom email without a message)."""


class EmailDeliveryError(NotificationError):
    """The email transport could not hand the message off."""


class InactivityCheckRunningError(NotificationError):
    """An inactivity check is already in progress."""
