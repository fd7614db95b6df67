"""SyncScheduler - Drives sync runs from a cron schedule or on demand."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from cfroster.notifications.exceptions import InactivityCheckRunningError
from cfroster.scheduler.exceptions import InvalidScheduleError, RunNotFoundError
from cfroster.scheduler.models import RunStatus, SchedulerState, SyncRun
from cfroster.state_store.models import utcnow
from cfroster.synchronizer import SyncAlreadyRunningError, SyncTrigger

if TYPE_CHECKING:
    from apscheduler.job import Job
    from apscheduler.schedulers.base import BaseScheduler

    from cfroster.notifications import InactivityNotifier
    from cfroster.state_store import StateStore, SyncSettings
    from cfroster.synchronizer import BatchSynchronizer

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "cf-sync"
INACTIVITY_JOB_ID = "inactivity-check"

DEFAULT_INACTIVITY_CRON = "0 10 * * *"

# Finished runs beyond this count are forgotten, oldest first
MAX_TRACKED_RUNS = 20

# Crontab numbers days from Sunday; APScheduler numbers them from Monday
_CRONTAB_DAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _crontab_day_of_week(field: str) -> str:
    if not any(char.isdigit() for char in field):
        return field

    names: list[str] = []
    for part in field.split(","):
        base, _, step = part.partition("/")
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            low, high = base.split("-", 1)
            start, end = int(low), int(high)
        else:
            start = int(base)
            end = 6 if step else start
        for day in range(start, end + 1, int(step) if step else 1):
            names.append(_CRONTAB_DAYS[day])
    return ",".join(dict.fromkeys(names))


def build_cron_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """Build an APScheduler trigger from a crontab expression.

    Args:
        expression: Five fields (minute hour day month weekday) or six
            fields with a leading seconds field. Weekdays use crontab
            numbering, 0 and 7 both being Sunday.
        timezone: IANA timezone name the expression is evaluated in.

    Returns:
        The CronTrigger.

    Raises:
        InvalidScheduleError: If the expression or timezone is invalid.
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidScheduleError(f"Unknown timezone '{timezone}'") from e

    fields = expression.split()
    if len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    elif len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    else:
        raise InvalidScheduleError(
            f"Cron expression must have 5 or 6 fields, got {len(fields)}: '{expression}'"
        )

    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_crontab_day_of_week(day_of_week),
            timezone=tz,
        )
    except (ValueError, IndexError) as e:
        raise InvalidScheduleError(f"Invalid cron expression '{expression}': {e}") from e


class SyncScheduler:
    """Owns the recurring sync timer and manual one-shot runs.

    At most one sync job is installed at any time. Scheduled fires and
    manual triggers go through the synchronizer's run lock, so a fire that
    lands while a run is in flight is dropped.
    """

    def __init__(
        self,
        state_store: StateStore,
        synchronizer: BatchSynchronizer,
        inactivity_notifier: InactivityNotifier | None = None,
        inactivity_cron: str = DEFAULT_INACTIVITY_CRON,
        inactivity_timezone: str = "UTC",
        scheduler: BaseScheduler | None = None,
        max_tracked_runs: int = MAX_TRACKED_RUNS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            state_store: StateStore holding the Sync Configuration.
            synchronizer: BatchSynchronizer that performs the runs.
            inactivity_notifier: Installs the daily inactivity job when given.
            inactivity_cron: Cron expression for the inactivity job.
            inactivity_timezone: Timezone for the inactivity job.
            scheduler: APScheduler instance (a BackgroundScheduler by default).
            max_tracked_runs: Size of the in-memory run registry.
        """
        self.state_store = state_store
        self.synchronizer = synchronizer
        self.inactivity_notifier = inactivity_notifier
        self.inactivity_cron = inactivity_cron
        self.inactivity_timezone = inactivity_timezone
        self.max_tracked_runs = max_tracked_runs
        self._scheduler = scheduler if scheduler is not None else BackgroundScheduler()
        self._lock = threading.Lock()
        self._runs: OrderedDict[str, SyncRun] = OrderedDict()
        self._runs_lock = threading.Lock()
        self._one_shot: threading.Thread | None = None

    # --- Lifecycle ---

    def initialize(self) -> SyncSettings:
        """Start the background scheduler and install the configured jobs.

        Returns:
            The Sync Configuration the sync job was built from.
        """
        settings = self.state_store.get_current_settings()
        if not self._scheduler.running:
            self._scheduler.start()

        try:
            self.reconfigure(settings)
        except InvalidScheduleError:
            logger.exception("Stored sync schedule is invalid; sync timer not installed")

        if self.inactivity_notifier is not None:
            self._install_inactivity_job()

        return settings

    def reconfigure(self, settings: SyncSettings) -> Job | None:
        """Replace the sync job with one built from the given settings.

        Args:
            settings: Sync Configuration to apply.

        Returns:
            The installed job, or None when syncing is disabled.

        Raises:
            InvalidScheduleError: If the cron expression or timezone is invalid.
                The previous job is left in place.
        """
        with self._lock:
            trigger = (
                build_cron_trigger(settings.cron_time, settings.timezone)
                if settings.enabled
                else None
            )

            if self._scheduler.get_job(SYNC_JOB_ID) is not None:
                self._scheduler.remove_job(SYNC_JOB_ID)
                logger.info("Removed existing sync job")

            if trigger is None:
                logger.info("Automatic sync is disabled")
                return None

            job = self._scheduler.add_job(
                self._run_scheduled,
                trigger=trigger,
                id=SYNC_JOB_ID,
                name="Codeforces sync",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
            logger.info(
                "Scheduled sync with cron '%s' (%s)", settings.cron_time, settings.timezone
            )
            return job

    def _install_inactivity_job(self) -> None:
        try:
            trigger = build_cron_trigger(self.inactivity_cron, self.inactivity_timezone)
        except InvalidScheduleError:
            logger.exception("Inactivity schedule is invalid; inactivity check not installed")
            return

        self._scheduler.add_job(
            self._run_inactivity_check,
            trigger=trigger,
            id=INACTIVITY_JOB_ID,
            name="Inactivity check",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info("Scheduled inactivity check with cron '%s'", self.inactivity_cron)

    def stop(self) -> None:
        """Remove all jobs and shut the background scheduler down."""
        with self._lock:
            for job_id in (SYNC_JOB_ID, INACTIVITY_JOB_ID):
                if self._scheduler.get_job(job_id) is not None:
                    self._scheduler.remove_job(job_id)
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
                logger.info("Scheduler stopped")

    # --- Status ---

    @property
    def state(self) -> SchedulerState:
        if self._one_shot is not None and self._one_shot.is_alive():
            return SchedulerState.RUNNING_ONE_SHOT
        if self._scheduler.running and self._scheduler.get_job(SYNC_JOB_ID) is not None:
            return SchedulerState.SCHEDULED
        return SchedulerState.STOPPED

    @property
    def next_run_time(self) -> datetime | None:
        """Next fire time of the sync job, None when no job is installed."""
        job = self._scheduler.get_job(SYNC_JOB_ID)
        if job is None:
            return None
        return getattr(job, "next_run_time", None)

    # --- Runs ---

    def trigger_manual(self, background: bool = True) -> SyncRun:
        """Start a sync run now.

        Args:
            background: Return immediately and run on a worker thread.
                With False the run completes before this returns.

        Returns:
            SyncRun handle to poll with get_run().

        Raises:
            SyncAlreadyRunningError: If a run is already in progress.
        """
        if not self.synchronizer.try_acquire():
            raise SyncAlreadyRunningError("A sync run is already in progress")

        run = self._track(SyncRun(trigger=SyncTrigger.MANUAL))
        if not background:
            self._execute(run)
            return run

        thread = threading.Thread(
            target=self._execute,
            args=(run,),
            name=f"sync-run-{run.id[:8]}",
            daemon=True,
        )
        self._one_shot = thread
        thread.start()
        logger.info("Manual sync run %s started in background", run.id)
        return run

    def get_run(self, run_id: str) -> SyncRun:
        """Look up a tracked run.

        Raises:
            RunNotFoundError: If the run is unknown or was evicted.
        """
        with self._runs_lock:
            run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(f"Sync run with id '{run_id}' not found")
        return run

    def list_runs(self) -> list[SyncRun]:
        """Tracked runs, most recent first."""
        with self._runs_lock:
            return list(reversed(self._runs.values()))

    def _track(self, run: SyncRun) -> SyncRun:
        with self._runs_lock:
            self._runs[run.id] = run
            finished = [r.id for r in self._runs.values() if r.is_finished]
            for run_id in finished[: max(0, len(self._runs) - self.max_tracked_runs)]:
                del self._runs[run_id]
        return run

    def _execute(self, run: SyncRun) -> None:
        # The synchronizer lock is already held for this run
        run.status = RunStatus.RUNNING
        run.started_at = utcnow()
        outcome = self.synchronizer.run_reserved(run.trigger)
        run.outcome = outcome
        run.finished_at = utcnow()
        run.status = RunStatus.COMPLETED if outcome.success else RunStatus.FAILED

    def _run_scheduled(self) -> None:
        if not self.synchronizer.try_acquire():
            logger.warning("Scheduled sync skipped: a sync run is already in progress")
            return
        self._execute(self._track(SyncRun(trigger=SyncTrigger.SCHEDULED)))

    def _run_inactivity_check(self) -> None:
        if self.inactivity_notifier is None:
            return
        try:
            report = self.inactivity_notifier.run_check()
        except InactivityCheckRunningError:
            logger.warning("Inactivity check skipped: a check is already in progress")
            return
        logger.info(
            "Inactivity check: %d checked, %d inactive, %d reminded, %d errors",
            report.checked,
            report.inactive,
            report.reminded,
            len(report.errors),
        )
