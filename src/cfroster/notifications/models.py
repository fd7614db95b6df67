"""Data models for notifications."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class EmailMessage:
    """A rendered plain-text email."""

    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one dispatch attempt.

    Attributes:
        success: Whether the transport accepted the message.
        student_id: Recipient student ID.
        handle: Recipient handle.
        log_id: Email Log entry recording the attempt.
        error: Delivery error message when success is False.
    """

    success: bool
    student_id: str
    handle: str
    log_id: str
    error: str | None = None


@dataclass
class InactivityReport:
    """Result of one inactivity check.

    Attributes:
        checked: Candidates examined.
        inactive: Candidates with no submission within the threshold.
        reminded: Reminders actually delivered.
        cooldown_skipped: Inactive students reminded too recently.
        lookup_failures: Candidates whose submission lookup failed.
        errors: Per-student error messages.
    """

    checked: int = 0
    inactive: int = 0
    reminded: int = 0
    cooldown_skipped: int = 0
    lookup_failures: int = 0
    errors: list[str] = field(default_factory=list)
