"""NotificationDispatcher - Renders, sends and logs student emails."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from cfroster.notifications.exceptions import (
    EmailDeliveryError,
    InvalidNotificationError,
    RecipientUnavailableError,
)
from cfroster.notifications.models import DispatchResult, EmailMessage
from cfroster.state_store import EmailStatus, EmailType
from cfroster.state_store.models import utcnow

if TYPE_CHECKING:
    from cfroster.notifications.transport import EmailTransport
    from cfroster.state_store import StateStore, Student

logger = logging.getLogger(__name__)

DEFAULT_TEAM_NAME = "CF Roster Team"
PROFILE_URL = "https://codeforces.com/profile/{handle}"
PROBLEMSET_URL = "https://codeforces.com/problemset"


def days_since(moment: datetime | None, now: datetime) -> int | None:
    """Whole days between moment and now, None if moment is unknown."""
    if moment is None:
        return None
    return (now - moment).days


def render_inactivity_reminder(
    student: Student,
    threshold_days: int,
    now: datetime,
    team_name: str = DEFAULT_TEAM_NAME,
) -> tuple[str, str]:
    """Return (subject, body) of an inactivity reminder."""
    greeting = student.first_name or student.handle
    subject = f"Time to get back to coding, {greeting}!"

    days = days_since(student.last_submission_date, now)
    if days is None:
        last_seen = "We could not find any recent submissions on your account."
    else:
        last_seen = f"Your last submission was {days} days ago."

    lines = [
        f"Hi {student.display_name},",
        "",
        "We noticed you haven't made any submissions on Codeforces in the last "
        f"{threshold_days} days. {last_seen}",
        "",
        f"Current rating: {student.rating} ({student.rank})",
        f"Your profile: {PROFILE_URL.format(handle=student.handle)}",
        f"Practice problems: {PROBLEMSET_URL}",
    ]
    reminder_number = student.reminder_count + 1
    if reminder_number > 1:
        lines += [
            "",
            f"This is reminder #{reminder_number}. "
            "Ask your coordinator to turn these reminders off.",
        ]
    lines += ["", "Best regards,", team_name]
    return subject, "\n".join(lines)


def render_custom_message(
    student: Student,
    message: str,
    subject: str | None = None,
    team_name: str = DEFAULT_TEAM_NAME,
) -> tuple[str, str]:
    """Return (subject, body) of a free-form message."""
    body = "\n".join(
        [
            f"Hi {student.display_name},",
            "",
            message.strip(),
            "",
            f"Your profile: {PROFILE_URL.format(handle=student.handle)}",
            "",
            "Best regards,",
            team_name,
        ]
    )
    return subject or f"Message from {team_name}", body


class NotificationDispatcher:
    """Sends templated emails to students and keeps the Email Log."""

    def __init__(
        self,
        state_store: StateStore,
        transport: EmailTransport,
        team_name: str = DEFAULT_TEAM_NAME,
        threshold_days: int = 7,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            state_store: StateStore for students and email logs.
            transport: Transport that delivers rendered messages.
            team_name: Signature used in every email.
            threshold_days: Inactivity threshold quoted in reminders.
        """
        self.state_store = state_store
        self.transport = transport
        self.team_name = team_name
        self.threshold_days = threshold_days

    def send_to_student(
        self,
        student_id: str,
        email_type: EmailType = EmailType.CUSTOM,
        subject: str | None = None,
        message: str | None = None,
    ) -> DispatchResult:
        """Render and send an email to one student.

        A delivered inactivity reminder is also recorded on the student.

        Args:
            student_id: Recipient student ID.
            email_type: Inactivity reminder or custom message.
            subject: Subject override for custom messages.
            message: Body text, required for custom messages.

        Returns:
            DispatchResult; delivery failures come back with success=False.

        Raises:
            StudentNotFoundError: If the student doesn't exist.
            RecipientUnavailableError: If the student cannot receive this email.
            InvalidNotificationError: If a custom email has no message.
        """
        email_type = EmailType(email_type)
        if email_type == EmailType.CUSTOM and not (message and message.strip()):
            raise InvalidNotificationError("Custom emails require a message")

        student = self.state_store.get_student(student_id)
        if not student.email:
            raise RecipientUnavailableError(f"Student {student.handle} has no email address")
        if email_type == EmailType.INACTIVITY_REMINDER and not student.inactivity_reminders:
            raise RecipientUnavailableError(
                f"Student {student.handle} has disabled inactivity reminders"
            )

        now = utcnow()
        if email_type == EmailType.INACTIVITY_REMINDER:
            subject, body = render_inactivity_reminder(
                student, self.threshold_days, now, self.team_name
            )
        else:
            subject, body = render_custom_message(student, message or "", subject, self.team_name)

        log = self.state_store.create_email_log(
            student_id=student.id,
            student_handle=student.handle,
            email_type=email_type.value,
            subject=subject,
        )

        try:
            self.transport.send(EmailMessage(to=student.email, subject=subject, body=body))
        except EmailDeliveryError as e:
            self.state_store.update_email_log(log.id, EmailStatus.FAILED, error=str(e))
            logger.warning("Failed to send %s to %s: %s", email_type.value, student.handle, e)
            return DispatchResult(
                success=False,
                student_id=student.id,
                handle=student.handle,
                log_id=log.id,
                error=str(e),
            )

        sent_at = utcnow()
        self.state_store.update_email_log(log.id, EmailStatus.SENT, sent_at=sent_at)
        if email_type == EmailType.INACTIVITY_REMINDER:
            self.state_store.record_reminder_sent(student.id, sent_at)

        logger.info("Sent %s to %s", email_type.value, student.handle)
        return DispatchResult(
            success=True,
            student_id=student.id,
            handle=student.handle,
            log_id=log.id,
        )

    def send_by_handle(
        self,
        handle: str,
        email_type: EmailType = EmailType.CUSTOM,
        subject: str | None = None,
        message: str | None = None,
    ) -> DispatchResult:
        """Same as send_to_student, addressing the student by handle.

        Raises:
            StudentNotFoundError: If no student has this handle.
        """
        student = self.state_store.get_student_by_handle(handle)
        return self.send_to_student(student.id, email_type, subject, message)
