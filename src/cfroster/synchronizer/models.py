"""Data models for the Batch Synchronizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from cfroster.codeforces import Profile
from cfroster.handles import HandleRejection
from cfroster.state_store import SyncStatus

# last_sync_error keeps this many messages
ERROR_SUMMARY_COUNT = 3
ERROR_SEPARATOR = " | "


class SyncTrigger(StrEnum):
    """What started a sync run."""

    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class FailedStudent:
    """A student the run could not update."""

    handle: str
    error: str


@dataclass
class SyncOutcome:
    """Result of one sync run.

    Attributes:
        trigger: What started the run.
        status: Final status; RUNNING only while the run is in flight.
        synced: Students updated from Codeforces.
        skipped: Students not found on Codeforces or with invalid handles.
        failed: Students whose batch or update failed.
        duration_ms: Wall-clock run time in milliseconds.
        failures: Per-student failures, capped by the synchronizer.
        errors: Run-level error messages in the order they happened.
    """

    trigger: SyncTrigger
    status: SyncStatus = SyncStatus.RUNNING
    synced: int = 0
    skipped: int = 0
    failed: int = 0
    duration_ms: float = 0.0
    failures: list[FailedStudent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """False only when the run itself failed."""
        return self.status != SyncStatus.FAILED

    @property
    def error_summary(self) -> str | None:
        if not self.errors:
            return None
        return ERROR_SEPARATOR.join(self.errors[:ERROR_SUMMARY_COUNT])


@dataclass(frozen=True)
class HandleCheck:
    """Where a handle is known.

    Attributes:
        handle: The trimmed handle that was checked.
        rejection: Why the handle is malformed, None if well-formed.
        student_id: ID of the student with this handle, if any.
        on_codeforces: Whether Codeforces knows the handle; None if the
            lookup was skipped or did not complete.
        profile: The Codeforces profile when found.
        error: Lookup error message, if any.
    """

    handle: str
    rejection: HandleRejection | None = None
    student_id: str | None = None
    on_codeforces: bool | None = None
    profile: Profile | None = None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.rejection is None

    @property
    def in_store(self) -> bool:
        return self.student_id is not None
