"""BatchSynchronizer - Mirrors Codeforces profiles into the Record Store in batches."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from cfroster.codeforces import CodeforcesAPIError, CodeforcesTransportError, Profile
from cfroster.handles import HandleContext, normalize_handle, validate_handle
from cfroster.state_store import (
    StateStoreError,
    StudentIdentity,
    StudentNotFoundError,
    SyncStatus,
)
from cfroster.synchronizer.exceptions import SyncAlreadyRunningError
from cfroster.synchronizer.models import FailedStudent, HandleCheck, SyncOutcome, SyncTrigger

if TYPE_CHECKING:
    from cfroster.codeforces import CodeforcesClient
    from cfroster.state_store import StateStore, Student, SyncSettings

logger = logging.getLogger(__name__)

MAX_FAILURE_DETAILS = 50


def match_profile(handle: str, profiles: Sequence[Profile]) -> Profile | None:
    """Find the profile for a handle: exact case first, then case-insensitive."""
    for profile in profiles:
        if profile.handle == handle:
            return profile
    key = handle.lower()
    for profile in profiles:
        if profile.handle.lower() == key:
            return profile
    return None


class BatchSynchronizer:
    """Refreshes every student's mirrored profile from Codeforces.

    Students are fetched in consecutive batches of ``batch_size`` handles,
    one ``user.info`` call per batch, with ``delay_between_batches`` between
    calls. Only one run can be in flight at a time; scheduled and manual
    triggers share the same lock.
    """

    def __init__(
        self,
        state_store: StateStore,
        client: CodeforcesClient,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        max_failure_details: int = MAX_FAILURE_DETAILS,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            state_store: StateStore holding students and the sync settings.
            client: Codeforces API client.
            sleep: Sleep function used between batches and retries.
            clock: Monotonic clock in seconds, used for run duration.
            max_failure_details: Cap on per-student failures kept in the outcome.
        """
        self.state_store = state_store
        self.client = client
        self._sleep = sleep
        self._clock = clock
        self.max_failure_details = max_failure_details
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def try_acquire(self) -> bool:
        """Reserve the run lock without blocking.

        A caller that gets True must hand the reservation to run_reserved().
        """
        return self._run_lock.acquire(blocking=False)

    def run_sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncOutcome:
        """Run a full sync pass.

        Args:
            trigger: What started the run.

        Returns:
            SyncOutcome with counts and errors. Run-level failures are
            reported through the outcome, not raised.

        Raises:
            SyncAlreadyRunningError: If a run is already in progress.
        """
        if not self.try_acquire():
            raise SyncAlreadyRunningError("A sync run is already in progress")
        return self.run_reserved(trigger)

    def run_reserved(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> SyncOutcome:
        """Run a sync pass under a lock reserved with try_acquire(); releases it."""
        outcome = SyncOutcome(trigger=trigger)
        started = self._clock()
        logger.info("Sync run started (%s)", trigger.value)
        try:
            self._run(outcome, started)
        except Exception as e:
            logger.exception("Sync run failed")
            outcome.status = SyncStatus.FAILED
            outcome.errors.append(str(e))
            outcome.duration_ms = self._elapsed_ms(started)
            self._record_failure(str(e))
        finally:
            self._run_lock.release()

        logger.info(
            "Sync run finished (%s): status=%s synced=%d skipped=%d failed=%d in %.0fms",
            trigger.value,
            outcome.status.value,
            outcome.synced,
            outcome.skipped,
            outcome.failed,
            outcome.duration_ms,
        )
        return outcome

    def _elapsed_ms(self, started: float) -> float:
        return (self._clock() - started) * 1000

    def _record_failure(self, message: str) -> None:
        try:
            self.state_store.finish_sync(SyncStatus.FAILED, error=message)
        except (StateStoreError, SQLAlchemyError):
            logger.exception("Could not record failed sync run")

    def _add_failure(self, outcome: SyncOutcome, handle: str, error: str) -> None:
        if len(outcome.failures) < self.max_failure_details:
            outcome.failures.append(FailedStudent(handle=handle, error=error))

    def _run(self, outcome: SyncOutcome, started: float) -> None:
        settings = self.state_store.mark_sync_started()
        students = self.state_store.list_student_identities()

        valid: list[StudentIdentity] = []
        invalid: list[tuple[StudentIdentity, str]] = []
        for student in students:
            result = validate_handle(student.handle, HandleContext.SYNC)
            if result.rejection is None:
                valid.append(StudentIdentity(id=student.id, handle=result.handle))
            else:
                invalid.append((student, result.rejection.value))

        logger.info("Validation results: %d valid, %d invalid handles", len(valid), len(invalid))

        if invalid:
            outcome.skipped += len(invalid)
            outcome.errors.append(
                "Invalid handles: "
                + ", ".join(f"{student.handle} ({reason})" for student, reason in invalid)
            )
            for student, reason in invalid:
                self._add_failure(outcome, student.handle, f"Invalid handle: {reason}")
            self._stamp([student.id for student, _ in invalid])

        batch_size = settings.batch_size
        batches = [valid[i : i + batch_size] for i in range(0, len(valid), batch_size)]
        for number, batch in enumerate(batches, start=1):
            if number > 1:
                self._sleep(settings.delay_between_batches / 1000)
            logger.info(
                "Processing batch %d/%d: %s",
                number,
                len(batches),
                ", ".join(student.handle for student in batch),
            )
            self._sync_batch(number, batch, settings, outcome)

        outcome.status = SyncStatus.PARTIAL if outcome.failed > 0 else SyncStatus.SUCCESS
        outcome.duration_ms = self._elapsed_ms(started)
        self.state_store.finish_sync(
            outcome.status,
            synced=outcome.synced,
            skipped=outcome.skipped,
            failed=outcome.failed,
            duration_ms=outcome.duration_ms,
            error=outcome.error_summary,
        )

    def _stamp(self, student_ids: list[str]) -> None:
        try:
            self.state_store.touch_synced(student_ids)
        except (StateStoreError, SQLAlchemyError):
            logger.exception("Failed to stamp %d students as synced", len(student_ids))

    def _fetch_with_retry(self, handles: list[str], settings: SyncSettings) -> list[Profile]:
        attempt = 0
        while True:
            try:
                return self.client.user_info(handles)
            except CodeforcesTransportError:
                if attempt >= settings.max_retries:
                    raise
                attempt += 1
                logger.warning(
                    "user.info request failed, retrying (%d/%d)", attempt, settings.max_retries
                )
                self._sleep(settings.delay_between_batches / 1000)

    def _sync_batch(
        self,
        number: int,
        batch: list[StudentIdentity],
        settings: SyncSettings,
        outcome: SyncOutcome,
    ) -> None:
        handles = [student.handle for student in batch]
        try:
            profiles = self._fetch_with_retry(handles, settings)
        except CodeforcesAPIError as e:
            message = f"API Error: {e.comment or e}"
            self._fail_batch(batch, message, outcome)
            return
        except CodeforcesTransportError as e:
            message = f"Batch {number} failed: {e}"
            self._fail_batch(batch, message, outcome)
            return

        logger.info("Codeforces returned data for %d/%d users", len(profiles), len(batch))

        not_found: list[str] = []
        for student in batch:
            profile = match_profile(student.handle, profiles)
            if profile is None:
                logger.warning("User not found on Codeforces: %s", student.handle)
                outcome.skipped += 1
                not_found.append(student.id)
                continue
            try:
                self.state_store.apply_profile(student.id, profile)
            except (StateStoreError, SQLAlchemyError) as e:
                logger.error("Update failed for %s: %s", student.handle, e)
                outcome.failed += 1
                message = f"Update failed for {student.handle}: {e}"
                outcome.errors.append(message)
                self._add_failure(outcome, student.handle, str(e))
                continue
            outcome.synced += 1
            if profile.handle != student.handle:
                logger.info("Updated: %s -> %s", student.handle, profile.handle)

        self._stamp(not_found)

    def _fail_batch(self, batch: list[StudentIdentity], message: str, outcome: SyncOutcome) -> None:
        logger.error(message)
        outcome.failed += len(batch)
        outcome.errors.append(message)
        for student in batch:
            self._add_failure(outcome, student.handle, message)
        self._stamp([student.id for student in batch])

    def sync_student(self, handle: str) -> Student:
        """Fetch and store the profile of a single student.

        Args:
            handle: The student's handle (any casing).

        Returns:
            The updated Student.

        Raises:
            StudentNotFoundError: If no student has this handle.
            InvalidHandleError: If the stored handle cannot be queried.
            CodeforcesError: If the lookup fails or the user is unknown.
        """
        student = self.state_store.get_student_by_handle(handle)
        query = normalize_handle(student.handle, HandleContext.SYNC)
        profile = match_profile(query, self.client.user_info([query]))
        if profile is None:
            raise CodeforcesAPIError(f"User {query} not found on Codeforces")

        updated = self.state_store.apply_profile(student.id, profile)
        logger.info("Synced single student %s (rating %d)", updated.handle, updated.rating)
        return updated

    def check_handle(self, handle: str) -> HandleCheck:
        """Report whether a handle is well-formed, on the roster and on Codeforces."""
        result = validate_handle(handle, HandleContext.SYNC)
        if result.rejection is not None:
            return HandleCheck(handle=result.handle, rejection=result.rejection)

        try:
            student_id: str | None = self.state_store.get_student_by_handle(result.handle).id
        except StudentNotFoundError:
            student_id = None

        try:
            profile = match_profile(result.handle, self.client.user_info([result.handle]))
        except CodeforcesAPIError as e:
            return HandleCheck(
                handle=result.handle,
                student_id=student_id,
                on_codeforces=False,
                error=e.comment or str(e),
            )
        except CodeforcesTransportError as e:
            return HandleCheck(handle=result.handle, student_id=student_id, error=str(e))

        return HandleCheck(
            handle=result.handle,
            student_id=student_id,
            on_codeforces=profile is not None,
            profile=profile,
        )
