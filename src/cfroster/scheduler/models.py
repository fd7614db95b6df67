"""Data models for the Scheduler module."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from cfroster.state_store.models import generate_uuid, utcnow
from cfroster.synchronizer import SyncOutcome, SyncTrigger


class SchedulerState(StrEnum):
    """What the scheduler is doing right now."""

    STOPPED = "stopped"
    SCHEDULED = "scheduled"
    RUNNING_ONE_SHOT = "running_one_shot"


class RunStatus(StrEnum):
    """Lifecycle of a tracked sync run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SyncRun:
    """Handle for a sync run started by the scheduler.

    Attributes:
        trigger: What started the run.
        id: In-memory run ID.
        status: Current lifecycle state.
        requested_at: When the run was accepted.
        started_at: When the synchronizer started working.
        finished_at: When the run ended.
        outcome: Sync result once the run has ended.
    """

    trigger: SyncTrigger
    id: str = ""
    status: RunStatus = RunStatus.PENDING
    requested_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    outcome: SyncOutcome | None = None

    def __post_init__(self) -> None:
        if not self.id:
            self.id = generate_uuid()
        if self.requested_at is None:
            self.requested_at = utcnow()

    @property
    def is_finished(self) -> bool:
        return self.status in (RunStatus.COMPLETED, RunStatus.FAILED)
