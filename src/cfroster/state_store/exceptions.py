"""Custom exceptions for State Store."""


class StateStoreError(Exception):
    """Base exception for State Store errors."""


class StudentNotFoundError(StateStoreError):
    """Student with given ID or handle does not exist."""


class StudentExistsError(StateStoreError):
    """Student with the same handle or email already exists."""


class InvalidSettingsError(StateStoreError):
    """Sync Configuration update is out of bounds or malformed."""


class EmailLogNotFoundError(StateStoreError):
    """Email log entry with given ID does not exist."""
