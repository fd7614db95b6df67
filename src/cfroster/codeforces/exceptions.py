"""Custom exceptions for the Codeforces client."""


class CodeforcesError(Exception):
    """Base exception for Codeforces client errors."""


class CodeforcesAPIError(CodeforcesError):
    """Codeforces answered, but with a FAILED status or an unreadable body."""

    def __init__(self, message: str, comment: str | None = None) -> None:
        super().__init__(message)
        self.comment = comment


class CodeforcesTransportError(CodeforcesError):
    """Request never completed (timeout, refused connection, DNS failure)."""
