"""Data models for student analytics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from cfroster.codeforces import Problem

# (label, lowest rating in the bucket); a problem lands in the last bucket it reaches
RATING_BUCKETS: list[tuple[str, int]] = [
    ("800-999", 0),
    ("1000-1199", 1000),
    ("1200-1399", 1200),
    ("1400-1599", 1400),
    ("1600-1799", 1600),
    ("1800-1999", 1800),
    ("2000-2199", 2000),
    ("2200-2399", 2200),
    ("2400+", 2400),
]
UNRATED_BUCKET = "Unrated"


@dataclass(frozen=True)
class ContestProblem:
    """A problem of a contest and whether the student ever solved it."""

    problem: Problem
    solved: bool


@dataclass
class ContestResult:
    """One rated contest of a student."""

    contest_id: int
    contest_name: str
    date: datetime
    rank: int
    old_rating: int
    new_rating: int
    problems: list[ContestProblem] = field(default_factory=list)

    @property
    def rating_change(self) -> int:
        return self.new_rating - self.old_rating

    @property
    def total_problems(self) -> int:
        return len(self.problems)

    @property
    def solved_problems(self) -> int:
        return sum(1 for p in self.problems if p.solved)

    @property
    def unsolved_problems(self) -> int:
        return self.total_problems - self.solved_problems


@dataclass
class ContestHistory:
    """Rated contests of a student inside a window of days.

    Attributes:
        student_id: Roster ID of the student.
        handle: Handle the history was fetched for.
        days: Window size in days, today included.
        contests: Contests in the window, most recent first.
    """

    student_id: str
    handle: str
    days: int
    contests: list[ContestResult] = field(default_factory=list)

    @property
    def total_contests(self) -> int:
        return len(self.contests)

    @property
    def average_rank(self) -> int:
        if not self.contests:
            return 0
        return round(sum(c.rank for c in self.contests) / len(self.contests))

    @property
    def rating_change(self) -> int:
        """Rating after the latest contest minus rating before the earliest."""
        if not self.contests:
            return 0
        return self.contests[0].new_rating - self.contests[-1].old_rating

    @property
    def best_rank(self) -> int:
        return min((c.rank for c in self.contests), default=0)

    @property
    def worst_rank(self) -> int:
        return max((c.rank for c in self.contests), default=0)

    @property
    def total_solved(self) -> int:
        return sum(c.solved_problems for c in self.contests)

    @property
    def total_unsolved(self) -> int:
        return sum(c.unsolved_problems for c in self.contests)

    @property
    def average_problems_per_contest(self) -> int:
        if not self.contests:
            return 0
        return round(sum(c.total_problems for c in self.contests) / len(self.contests))


@dataclass(frozen=True)
class SolvedProblem:
    """A distinct problem and the first accepted submission for it in the window."""

    problem: Problem
    solved_at: datetime


@dataclass(frozen=True)
class DayActivity:
    day: date
    count: int


@dataclass
class ProblemSolvingSummary:
    """Problems a student solved inside a window of days.

    Attributes:
        student_id: Roster ID of the student.
        handle: Handle the submissions were fetched for.
        days: Window size in days, today included.
        solved: Distinct solved problems, most recent first.
        rating_buckets: Solved counts per difficulty bucket, easiest first.
        daily_activity: One entry per day of the window, oldest first.
    """

    student_id: str
    handle: str
    days: int
    solved: list[SolvedProblem] = field(default_factory=list)
    rating_buckets: dict[str, int] = field(default_factory=dict)
    daily_activity: list[DayActivity] = field(default_factory=list)

    @property
    def total_solved(self) -> int:
        return len(self.solved)

    @property
    def hardest(self) -> SolvedProblem | None:
        rated = [s for s in self.solved if s.problem.rating]
        if not rated:
            return None
        return max(rated, key=lambda s: s.problem.rating or 0)

    @property
    def average_rating(self) -> int:
        ratings = [s.problem.rating for s in self.solved if s.problem.rating]
        if not ratings:
            return 0
        return round(sum(ratings) / len(ratings))

    @property
    def average_per_day(self) -> float:
        return round(self.total_solved / self.days, 2) if self.days else 0.0

    @property
    def max_daily(self) -> int:
        return max((d.count for d in self.daily_activity), default=0)
