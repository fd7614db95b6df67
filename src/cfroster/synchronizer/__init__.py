"""Batch Synchronizer - Mirrors Codeforces profiles into the roster."""

from cfroster.synchronizer.exceptions import SyncAlreadyRunningError, SynchronizerError
from cfroster.synchronizer.models import FailedStudent, HandleCheck, SyncOutcome, SyncTrigger
from cfroster.synchronizer.synchronizer import BatchSynchronizer, match_profile

__all__ = [
    "BatchSynchronizer",
    "FailedStudent",
    "HandleCheck",
    "SyncAlreadyRunningError",
    "SyncOutcome",
    "SyncTrigger",
    "SynchronizerError",
    "match_profile",
]
