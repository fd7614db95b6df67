"""StudentAnalytics - Contest history and problem-solving summaries.

Both reports are computed on demand from live Codeforces data; nothing here is
persisted. Windows are whole UTC days ending today, so ``days=1`` means
"today so far".
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

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

if TYPE_CHECKING:
    from cfroster.codeforces import CodeforcesClient, Problem, Submission
    from cfroster.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_CONTEST_DAYS = 365
DEFAULT_PROBLEM_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def rating_bucket(rating: int | None) -> str:
    """Return the difficulty bucket label for a problem rating."""
    if not rating:
        return UNRATED_BUCKET
    label = RATING_BUCKETS[0][0]
    for name, lowest in RATING_BUCKETS:
        if rating >= lowest:
            label = name
    return label


def first_solves(submissions: Iterable[Submission]) -> dict[str, SolvedProblem]:
    """Map each accepted problem to its earliest accepted submission."""
    solves: dict[str, SolvedProblem] = {}
    for submission in submissions:
        if not submission.accepted:
            continue
        key = submission.problem.key
        current = solves.get(key)
        if current is None or submission.created_at < current.solved_at:
            solves[key] = SolvedProblem(problem=submission.problem, solved_at=submission.created_at)
    return solves


class StudentAnalytics:
    """Builds per-student reports from Codeforces rating and submission history."""

    def __init__(
        self,
        state_store: StateStore,
        client: CodeforcesClient,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the analytics service.

        Args:
            state_store: StateStore to look students up in.
            client: Codeforces API client.
            clock: Returns the current naive UTC time.
        """
        self.state_store = state_store
        self.client = client
        self._clock = clock

    def _window_start(self, days: int) -> datetime:
        if days < 1:
            raise ValueError("days must be at least 1")
        today = self._clock().date()
        return datetime.combine(today - timedelta(days=days - 1), datetime.min.time())

    def contest_history(self, student_id: str, days: int = DEFAULT_CONTEST_DAYS) -> ContestHistory:
        """Rated contests of a student in the last ``days`` days.

        Each contest lists the problems the student submitted to, marked
        solved when any submission to them was ever accepted.

        Raises:
            StudentNotFoundError: If the student doesn't exist.
            CodeforcesError: If either lookup fails.
        """
        start = self._window_start(days)
        student = self.state_store.get_student(student_id)
        changes = self.client.user_rating(student.handle)
        submissions = self.client.user_status(student.handle, count=None)

        solved_keys = {s.problem.key for s in submissions if s.accepted}
        attempted: dict[int, dict[str, Problem]] = {}
        for submission in submissions:
            problem = submission.problem
            if problem.contest_id is not None:
                attempted.setdefault(problem.contest_id, {}).setdefault(problem.index, problem)

        contests = [
            ContestResult(
                contest_id=change.contest_id,
                contest_name=change.contest_name,
                date=change.updated_at,
                rank=change.rank,
                old_rating=change.old_rating,
                new_rating=change.new_rating,
                problems=[
                    ContestProblem(problem=problem, solved=problem.key in solved_keys)
                    for _, problem in sorted(attempted.get(change.contest_id, {}).items())
                ],
            )
            for change in changes
            if change.updated_at >= start
        ]
        contests.sort(key=lambda c: c.date, reverse=True)

        logger.info(
            "Contest history for %s: %d contests in %d days", student.handle, len(contests), days
        )
        return ContestHistory(
            student_id=student.id, handle=student.handle, days=days, contests=contests
        )

    def problem_solving(
        self, student_id: str, days: int = DEFAULT_PROBLEM_DAYS
    ) -> ProblemSolvingSummary:
        """Distinct problems a student solved in the last ``days`` days.

        Raises:
            StudentNotFoundError: If the student doesn't exist.
            CodeforcesError: If the lookup fails.
        """
        start = self._window_start(days)
        student = self.state_store.get_student(student_id)
        submissions = self.client.user_status(student.handle, count=None)

        in_window = (s for s in submissions if s.created_at >= start)
        solved = sorted(first_solves(in_window).values(), key=lambda s: s.solved_at, reverse=True)

        buckets = dict.fromkeys([name for name, _ in RATING_BUCKETS] + [UNRATED_BUCKET], 0)
        for item in solved:
            buckets[rating_bucket(item.problem.rating)] += 1

        per_day = Counter(item.solved_at.date() for item in solved)
        first_day: date = start.date()
        activity = [
            DayActivity(day=day, count=per_day.get(day, 0))
            for day in (first_day + timedelta(days=offset) for offset in range(days))
        ]

        logger.info(
            "Problem solving for %s: %d problems in %d days", student.handle, len(solved), days
        )
        return ProblemSolvingSummary(
            student_id=student.id,
            handle=student.handle,
            days=days,
            solved=solved,
            rating_buckets=buckets,
            daily_activity=activity,
        )
