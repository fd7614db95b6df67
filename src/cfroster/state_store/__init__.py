"""State Store - Persistent storage for students, sync settings and email logs."""

from cfroster.state_store.exceptions import (
    EmailLogNotFoundError,
    InvalidSettingsError,
    StateStoreError,
    StudentExistsError,
    StudentNotFoundError,
)
from cfroster.state_store.models import (
    BulkCreateError,
    BulkCreateResult,
    EmailLog,
    EmailStatus,
    EmailType,
    Student,
    StudentIdentity,
    StudentPage,
    StudentStats,
    StudentSyncState,
    SyncFrequency,
    SyncSettings,
    SyncStatistics,
    SyncStatus,
)
from cfroster.state_store.store import StateStore

__all__ = [
    "BulkCreateError",
    "BulkCreateResult",
    "EmailLog",
    "EmailLogNotFoundError",
    "EmailStatus",
    "EmailType",
    "InvalidSettingsError",
    "StateStore",
    "StateStoreError",
    "Student",
    "StudentExistsError",
    "StudentIdentity",
    "StudentNotFoundError",
    "StudentPage",
    "StudentStats",
    "StudentSyncState",
    "SyncFrequency",
    "SyncSettings",
    "SyncStatistics",
    "SyncStatus",
]
