"""Custom exceptions for the Batch Synchronizer."""


class SynchronizerError(Exception):
    """Base exception for synchronizer errors."""


class SyncAlreadyRunningError(SynchronizerError):
    """A sync run is already in progress."""
