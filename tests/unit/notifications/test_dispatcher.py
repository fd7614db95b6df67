"""Unit tests for NotificationDispatcher."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest

from cfroster.notifications import (
    EmailDeliveryError,
    EmailMessage,
    InvalidNotificationError,
    NotificationDispatcher,
    RecipientUnavailableError,
)
from cfroster.notifications.dispatcher import (
    days_since,
    render_custom_message,
    render_inactivity_reminder,
)
from cfroster.state_store import (
    EmailStatus,
    EmailType,
    StateStore,
    Student,
    StudentNotFoundError,
)


@pytest.fixture
def transport() -> MagicMock:
    """Transport that accepts every message."""
    return MagicMock()


@pytest.fixture
def dispatcher(store: StateStore, transport: MagicMock) -> NotificationDispatcher:
    return NotificationDispatcher(store, transport, team_name="Olympiad Team")


@pytest.fixture
def alice(store: StateStore) -> Student:
    """A student who can receive every kind of email."""
    return store.create_student(name="Alice", handle="alice_cf", email="alice@uni.edu")


@pytest.mark.unit
class TestRendering:
    """Tests for the email templates."""

    def test_days_since(self) -> None:
        now = datetime(2024, 3, 10, 12, 0)
        assert days_since(datetime(2024, 3, 1, 13, 0), now) == 8
        assert days_since(None, now) is None

    def test_reminder_greets_by_first_name(self) -> None:
        student = Student(name="Alice A", handle="alice_cf", first_name="Alice", rating=1400)
        student.last_submission_date = datetime(2024, 3, 1)

        subject, body = render_inactivity_reminder(student, 7, datetime(2024, 3, 11), "Team X")

        assert subject == "Time to get back to coding, Alice!"
        assert "last 7 days" in body
        assert "Your last submission was 10 days ago." in body
        assert "Current rating: 1400 (newbie)" in body
        assert "https://codeforces.com/profile/alice_cf" in body
        assert body.endswith("Team X")
        assert "reminder #" not in body

    def test_reminder_without_history_mentions_repeat(self) -> None:
        student = Student(name="Bob", handle="bob_cf")
        student.reminder_count = 2

        subject, body = render_inactivity_reminder(student, 7, datetime(2024, 3, 11))

        assert subject == "Time to get back to coding, bob_cf!"
        assert "could not find any recent submissions" in body
        assert "This is reminder #3." in body

    def test_custom_message_default_subject(self) -> None:
        student = Student(name="Bob", handle="bob_cf")

        subject, body = render_custom_message(student, "  Contest on Friday!  ", None, "Team X")

        assert subject == "Message from Team X"
        assert body.startswith("Hi Bob,\n\nContest on Friday!\n")


@pytest.mark.unit
class TestSendToStudent:
    """Tests for send_to_student."""

    def test_custom_message_sent_and_logged(
        self,
        store: StateStore,
        dispatcher: NotificationDispatcher,
        transport: MagicMock,
        alice: Student,
    ) -> None:
        result = dispatcher.send_to_student(
            alice.id, EmailType.CUSTOM, subject="Training", message="See you at 6pm"
        )

        assert result.success
        assert result.handle == "alice_cf"
        sent: EmailMessage = transport.send.call_args.args[0]
        assert sent.to == "alice@uni.edu"
        assert sent.subject == "Training"
        assert "See you at 6pm" in sent.body

        (log,) = store.list_email_logs()
        assert log.id == result.log_id
        assert log.status == EmailStatus.SENT
        assert log.email_type == EmailType.CUSTOM
        assert log.sent_at is not None
        assert store.get_student(alice.id).reminder_count == 0

    def test_reminder_recorded_on_student(
        self, store: StateStore, dispatcher: NotificationDispatcher, alice: Student
    ) -> None:
        result = dispatcher.send_to_student(alice.id, EmailType.INACTIVITY_REMINDER)

        assert result.success
        student = store.get_student(alice.id)
        assert student.reminder_count == 1
        assert student.last_reminder_sent is not None

    def test_delivery_failure_logged(
        self,
        store: StateStore,
        dispatcher: NotificationDispatcher,
        transport: MagicMock,
        alice: Student,
    ) -> None:
        transport.send.side_effect = EmailDeliveryError("Connection refused")

        result = dispatcher.send_to_student(alice.id, EmailType.INACTIVITY_REMINDER)

        assert not result.success
        assert result.error == "Connection refused"
        (log,) = store.list_email_logs()
        assert log.status == EmailStatus.FAILED
        assert log.error == "Connection refused"
        assert store.get_student(alice.id).reminder_count == 0

    def test_custom_message_required(
        self, dispatcher: NotificationDispatcher, transport: MagicMock, alice: Student
    ) -> None:
        with pytest.raises(InvalidNotificationError):
            dispatcher.send_to_student(alice.id, EmailType.CUSTOM, message="   ")
        transport.send.assert_not_called()

    def test_student_without_email(
        self, store: StateStore, dispatcher: NotificationDispatcher
    ) -> None:
        student = store.create_student(name="Bob", handle="bob_cf")

        with pytest.raises(RecipientUnavailableError, match="no email"):
            dispatcher.send_to_student(student.id, EmailType.CUSTOM, message="hi")
        assert store.list_email_logs() == []

    def test_opted_out_student_gets_custom_but_not_reminders(
        self, store: StateStore, dispatcher: NotificationDispatcher
    ) -> None:
        student = store.create_student(
            name="Bob", handle="bob_cf", email="bob@uni.edu", inactivity_reminders=False
        )

        with pytest.raises(RecipientUnavailableError, match="disabled"):
            dispatcher.send_to_student(student.id, EmailType.INACTIVITY_REMINDER)
        assert dispatcher.send_to_student(student.id, message="hi").success

    def test_unknown_student(self, dispatcher: NotificationDispatcher) -> None:
        with pytest.raises(StudentNotFoundError):
            dispatcher.send_to_student("missing", message="hi")

    def test_accepts_plain_string_type(
        self, dispatcher: NotificationDispatcher, alice: Student
    ) -> None:
        assert dispatcher.send_to_student(alice.id, "inactivity_reminder").success


@pytest.mark.unit
class TestSendByHandle:
    """Tests for send_by_handle."""

    def test_resolves_handle_case_insensitively(
        self, dispatcher: NotificationDispatcher, transport: MagicMock, alice: Student
    ) -> None:
        result = dispatcher.send_by_handle("ALICE_CF", message="hello")

        assert result.student_id == alice.id
        transport.send.assert_called_once()

    def test_unknown_handle(self, dispatcher: NotificationDispatcher) -> None:
        with pytest.raises(StudentNotFoundError):
            dispatcher.send_by_handle("ghost", message="hello")
