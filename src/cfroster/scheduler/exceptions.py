"""Custom exceptions for the Scheduler."""


class SchedulerError(Exception):
    """Base exception for scheduler errors."""


class InvalidScheduleError(SchedulerError):
    """Cron expression or timezone cannot be turned into a trigger."""


class RunNotFoundError(SchedulerError):
    """No tracked sync run has the given ID."""
