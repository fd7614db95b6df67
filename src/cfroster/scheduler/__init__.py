"""Scheduler - Recurring and manual sync runs, plus the daily inactivity check."""

from cfroster.scheduler.exceptions import InvalidScheduleError, RunNotFoundError, SchedulerError
from cfroster.scheduler.models import RunStatus, SchedulerState, SyncRun
from cfroster.scheduler.scheduler import SyncScheduler, build_cron_trigger

__all__ = [
    "InvalidScheduleError",
    "RunNotFoundError",
    "RunStatus",
    "SchedulerError",
    "SchedulerState",
    "SyncRun",
    "SyncScheduler",
    "build_cron_trigger",
]
