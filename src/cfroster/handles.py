"""Codeforces handle validation.

A single malformed handle in a batched ``user.info`` query fails the whole
batch, so every handle is checked here before it is sent out.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Rejected before the character-class check.
DISALLOWED_SYMBOLS = ("*", " ", ".")

MAX_HANDLE_LENGTH = 24


class HandleContext(StrEnum):
    """Where a handle is being validated; selects the length bounds."""

    SYNC = "sync"
    CREATE = "create"


_MIN_LENGTH = {
    HandleContext.SYNC: 3,
    HandleContext.CREATE: 1,
}


class HandleRejection(StrEnum):
    """Closed set of reasons a handle can be rejected."""

    EMPTY = "empty"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"
    DISALLOWED_SYMBOL = "disallowed_symbol"
    INVALID_CHARACTERS = "invalid_characters"


class InvalidHandleError(ValueError):
    """Handle failed validation."""

    def __init__(self, handle: str, rejection: HandleRejection) -> None:
        super().__init__(f"Invalid handle {handle!r}: {rejection.value}")
        self.handle = handle
        self.rejection = rejection


@dataclass(frozen=True)
class HandleValidation:
    """Result of validating a raw handle.

    Attributes:
        handle: The trimmed handle (case preserved).
        rejection: Why the handle was rejected, or None if it is valid.
    """

    handle: str
    rejection: HandleRejection | None = None

    @property
    def is_valid(self) -> bool:
        return self.rejection is None


def handle_key(handle: str) -> str:
    """Return the case-insensitive comparison key for a handle."""
    return handle.strip().lower()


def validate_handle(
    raw: str | None,
    context: HandleContext = HandleContext.SYNC,
) -> HandleValidation:
    """Validate and normalize a raw handle string.

    Args:
        raw: The handle as entered or stored.
        context: SYNC allows 3-24 characters, CREATE allows 1-24.

    Returns:
        HandleValidation with the trimmed handle and the rejection reason, if any.
    """
    handle = (raw or "").strip()

    if not handle:
        return HandleValidation(handle, HandleRejection.EMPTY)
    if len(handle) < _MIN_LENGTH[context]:
        return HandleValidation(handle, HandleRejection.TOO_SHORT)
    if len(handle) > MAX_HANDLE_LENGTH:
        return HandleValidation(handle, HandleRejection.TOO_LONG)
    if any(symbol in handle for symbol in DISALLOWED_SYMBOLS):
        return HandleValidation(handle, HandleRejection.DISALLOWED_SYMBOL)
    if not HANDLE_PATTERN.match(handle):
        return HandleValidation(handle, HandleRejection.INVALID_CHARACTERS)

    return HandleValidation(handle)


def normalize_handle(raw: str | None, context: HandleContext = HandleContext.CREATE) -> str:
    """Return the normalized handle or raise InvalidHandleError.

    Args:
        raw: The handle to normalize.
        context: Validation context, CREATE by default.

    Returns:
        The trimmed, case-preserved handle.

    Raises:
        InvalidHandleError: If the handle is rejected.
    """
    result = validate_handle(raw, context)
    if result.rejection is not None:
        raise InvalidHandleError(result.handle, result.rejection)
    return result.handle
