"""Student analytics - Contest history and problem-solving reports."""

from cfroster.analytics.analytics import (
    DEFAULT_CONTEST_DAYS,
    DEFAULT_PROBLEM_DAYS,
    StudentAnalytics,
    first_solves,
    rating_bucket,
)
from cfroster.analytics.models import (
    RATING_BUCKETS,
    UNRATED_BUCKET,
    ContestHistory,
    ContestProblem,
    ContestResult,
    DayActivity,
    ProblemSolvingSummary,
    SolvedProblem,
)

__all__ = [
    "DEFAULT_CONTEST_DAYS",
    "DEFAULT_PROBLEM_DAYS",
    "RATING_BUCKETS",
    "UNRATED_BUCKET",
    "ContestHistory",
    "ContestProblem",
    "ContestResult",
    "DayActivity",
    "ProblemSolvingSummary",
    "SolvedProblem",
    "StudentAnalytics",
    "first_solves",
    "rating_bucket",
]
