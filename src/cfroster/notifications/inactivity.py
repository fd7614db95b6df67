"""InactivityNotifier - Reminds students who stopped submitting."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cfroster.codeforces import CodeforcesError
from cfroster.notifications.exceptions import InactivityCheckRunningError, NotificationError
from cfroster.notifications.models import InactivityReport
from cfroster.state_store import EmailType, StateStoreError
from cfroster.state_store.models import utcnow

if TYPE_CHECKING:
    from cfroster.codeforces import CodeforcesClient
    from cfroster.notifications.dispatcher import NotificationDispatcher
    from cfroster.state_store import StateStore, Student

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_DAYS = 7
DEFAULT_COOLDOWN_HOURS = 24
DEFAULT_LOOKUP_DELAY = 0.5  # seconds between user.status calls


class InactivityNotifier:
    """Finds students without recent submissions and sends them a reminder."""

    def __init__(
        self,
        state_store: StateStore,
        client: CodeforcesClient,
        dispatcher: NotificationDispatcher,
        threshold_days: int = DEFAULT_THRESHOLD_DAYS,
        cooldown_hours: int = DEFAULT_COOLDOWN_HOURS,
        lookup_delay: float = DEFAULT_LOOKUP_DELAY,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.state_store = state_store
        self.client = client
        self.dispatcher = dispatcher
        self.threshold_days = threshold_days
        self.cooldown = timedelta(hours=cooldown_hours)
        self.lookup_delay = lookup_delay
        self._sleep = sleep
        self._now = now
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def is_inactive(self, last_submission: datetime | None, now: datetime) -> bool:
        """Unknown activity counts as inactive."""
        if last_submission is None:
            return True
        return (now - last_submission).days > self.threshold_days

    def reminder_due(self, student: Student, now: datetime) -> bool:
        return student.last_reminder_sent is None or (
            now - student.last_reminder_sent >= self.cooldown
        )

    def run_check(self) -> InactivityReport:
        """Check every reminder candidate once.

        Returns:
            InactivityReport with counts and per-student errors.

        Raises:
            InactivityCheckRunningError: If a check is already in progress.
        """
        if not self._lock.acquire(blocking=False):
            raise InactivityCheckRunningError("An inactivity check is already in progress")
        try:
            return self._run()
        finally:
            self._lock.release()

    def _run(self) -> InactivityReport:
        report = InactivityReport()
        candidates = self.state_store.list_reminder_candidates()
        logger.info("Starting inactivity check for %d students", len(candidates))

        for index, student in enumerate(candidates):
            if index > 0:
                self._sleep(self.lookup_delay)
            report.checked += 1
            try:
                self._check_student(student, report)
            except (NotificationError, StateStoreError) as e:
                logger.error("Inactivity check failed for %s: %s", student.handle, e)
                report.errors.append(f"{student.handle}: {e}")

        logger.info(
            "Inactivity check complete: %d checked, %d inactive, %d reminded",
            report.checked,
            report.inactive,
            report.reminded,
        )
        return report

    def _check_student(self, student: Student, report: InactivityReport) -> None:
        last_submission = student.last_submission_date
        try:
            last_submission = self.client.last_submission_time(student.handle)
        except CodeforcesError as e:
            report.lookup_failures += 1
            logger.warning("Submission lookup failed for %s: %s", student.handle, e)
        else:
            student = self.state_store.update_activity(student.id, last_submission)

        now = self._now()
        if not self.is_inactive(last_submission, now):
            return

        report.inactive += 1
        if not self.reminder_due(student, now):
            report.cooldown_skipped += 1
            logger.debug("Reminder for %s is still cooling down", student.handle)
            return

        result = self.dispatcher.send_to_student(student.id, EmailType.INACTIVITY_REMINDER)
        if result.success:
            report.reminded += 1
        else:
            report.errors.append(f"{student.handle}: {result.error}")
