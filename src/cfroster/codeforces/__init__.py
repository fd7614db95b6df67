"""Codeforces client - Fetches public profile, submission and rating data."""

from cfroster.codeforces.client import DEFAULT_BASE_URL, HANDLE_SEPARATOR, CodeforcesClient
from cfroster.codeforces.exceptions import (
    CodeforcesAPIError,
    CodeforcesError,
    CodeforcesTransportError,
)
from cfroster.codeforces.models import (
    DEFAULT_AVATAR,
    DEFAULT_RANK,
    Problem,
    Profile,
    RatingChange,
    Submission,
)

__all__ = [
    "DEFAULT_AVATAR",
    "DEFAULT_BASE_URL",
    "DEFAULT_RANK",
    "HANDLE_SEPARATOR",
    "CodeforcesAPIError",
    "CodeforcesClient",
    "CodeforcesError",
    "CodeforcesTransportError",
    "Problem",
    "Profile",
    "RatingChange",
    "Submission",
]
