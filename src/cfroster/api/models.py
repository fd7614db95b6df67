"""Pydantic models for REST API."""

from datetime import date, datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    data: T | None = None
    error: str | None = None


class HealthResponse(BaseModel):
    """Response model for the health check."""

    status: str
    version: str


# Student models


class StudentCreate(BaseModel):
    """Request model for creating a student."""

    name: str = Field(..., min_length=1, max_length=100)
    handle: str = Field(..., min_length=1, max_length=24)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    inactivity_reminders: bool = True


class StudentUpdate(BaseModel):
    """Request model for updating a student (partial update).

    An empty string for email or phone clears the field.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    handle: str | None = Field(default=None, min_length=1, max_length=24)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    inactivity_reminders: bool | None = None
    first_name: str | None = Field(default=None, max_length=50)
    last_name: str | None = Field(default=None, max_length=50)
    country: str | None = Field(default=None, max_length=100)
    city: str | None = Field(default=None, max_length=100)
    organization: str | None = Field(default=None, max_length=200)
    rating: int | None = Field(default=None, ge=0)
    max_rating: int | None = Field(default=None, ge=0)


class StudentResponse(BaseModel):
    """Response model for a student."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str | None
    phone: str | None
    handle: str
    first_name: str
    last_name: str
    country: str
    city: str
    organization: str
    contribution: int
    rank: str
    rating: int
    max_rank: str
    max_rating: int
    last_online_time_seconds: int
    registration_time_seconds: int
    friend_of_count: int
    avatar: str
    title_photo: str
    last_synced_at: datetime | None
    last_submission_date: datetime | None
    reminder_count: int
    last_reminder_sent: datetime | None
    inactivity_reminders: bool
    created_at: datetime
    updated_at: datetime


def student_to_response(student: Any) -> StudentResponse:
    """Convert a Student model to StudentResponse."""
    return StudentResponse.model_validate(student)


class StudentPageResponse(BaseModel):
    """Response model for a page of students."""

    items: list[StudentResponse]
    total: int
    page: int
    limit: int
    total_pages: int


def student_page_to_response(page: Any) -> StudentPageResponse:
    """Convert a StudentPage to StudentPageResponse."""
    return StudentPageResponse(
        items=[student_to_response(s) for s in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
    )


class BulkStudentEntry(BaseModel):
    """One roster entry of a bulk creation request; validated per entry."""

    name: str | None = None
    handle: str | None = None
    email: str | None = None
    phone: str | None = None


class BulkCreateRequest(BaseModel):
    """Request model for bulk student creation."""

    students: list[BulkStudentEntry] = Field(..., min_length=1)


class StudentIdentityResponse(BaseModel):
    """Response model for a student reference."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    handle: str


class BulkCreateErrorResponse(BaseModel):
    """A rejected bulk creation entry."""

    model_config = ConfigDict(from_attributes=True)

    handle: str
    error: str


class BulkCreateResponse(BaseModel):
    """Response model for bulk student creation."""

    model_config = ConfigDict(from_attributes=True)

    created: list[StudentIdentityResponse]
    errors: list[BulkCreateErrorResponse]
    total: int


class StudentStatsResponse(BaseModel):
    """Response model for roster statistics."""

    model_config = ConfigDict(from_attributes=True)

    total_students: int
    rated_students: int
    unrated_students: int
    average_rating: int
    highest_rating: int
    top_rated_handle: str | None
    rank_distribution: dict[str, int]
    top_countries: dict[str, int]
    recently_added: list[StudentIdentityResponse]


# Sync models


class SyncSettingsResponse(BaseModel):
    """Response model for the Sync Configuration."""

    model_config = ConfigDict(from_attributes=True)

    cron_time: str
    frequency: str
    timezone: str
    enabled: bool
    batch_size: int
    delay_between_batches: int
    max_retries: int
    last_sync_start: datetime | None
    last_sync_end: datetime | None
    last_sync_status: str
    last_sync_error: str | None
    users_synced: int
    users_skipped: int
    users_failed: int
    total_syncs: int
    avg_sync_duration: float
    updated_by: str
    updated_at: datetime


class SyncSettingsUpdate(BaseModel):
    """Request model for updating the Sync Configuration (partial update)."""

    cron_time: str | None = Field(default=None, min_length=9, max_length=100)
    frequency: Literal["daily", "weekly", "monthly"] | None = None
    timezone: str | None = Field(default=None, min_length=1, max_length=64)
    enabled: bool | None = None
    batch_size: int | None = Field(default=None, ge=1, le=100)
    delay_between_batches: int | None = Field(default=None, ge=100, le=30000)
    max_retries: int | None = Field(default=None, ge=0, le=10)


class SyncStatisticsResponse(BaseModel):
    """Response model for roster sync coverage."""

    model_config = ConfigDict(from_attributes=True)

    total_students: int
    synced_students: int
    unsynced_students: int
    recently_synced: int


class SyncStatusResponse(BaseModel):
    """Response model for the overall sync status."""

    is_running: bool
    scheduler_state: str
    next_run_time: datetime | None
    settings: SyncSettingsResponse
    statistics: SyncStatisticsResponse


class FailedStudentResponse(BaseModel):
    """A student a sync run could not update."""

    model_config = ConfigDict(from_attributes=True)

    handle: str
    error: str


class SyncOutcomeResponse(BaseModel):
    """Response model for a finished sync run."""

    model_config = ConfigDict(from_attributes=True)

    trigger: str
    status: str
    success: bool
    synced: int
    skipped: int
    failed: int
    duration_ms: float
    failures: list[FailedStudentResponse]
    errors: list[str]


class SyncRunResponse(BaseModel):
    """Response model for a tracked sync run."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    trigger: str
    status: str
    requested_at: datetime
    started_at: datetime | None
    finished_at: datetime | None
    outcome: SyncOutcomeResponse | None


def sync_run_to_response(run: Any) -> SyncRunResponse:
    """Convert a SyncRun to SyncRunResponse."""
    return SyncRunResponse.model_validate(run)


class StudentSyncStateResponse(BaseModel):
    """Response model for one student's sync staleness."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    handle: str
    rating: int
    rank: str
    last_synced_at: datetime | None
    sync_age_hours: int | None
    needs_sync: bool


class HandleCheckResponse(BaseModel):
    """Response model for a handle check."""

    handle: str
    valid: bool
    rejection: str | None
    in_store: bool
    student_id: str | None
    on_codeforces: bool | None
    profile: dict[str, Any] | None
    error: str | None


def handle_check_to_response(check: Any) -> HandleCheckResponse:
    """Convert a HandleCheck to HandleCheckResponse."""
    return HandleCheckResponse(
        handle=check.handle,
        valid=check.is_valid,
        rejection=check.rejection.value if check.rejection else None,
        in_store=check.in_store,
        student_id=check.student_id,
        on_codeforces=check.on_codeforces,
        profile=check.profile.to_fields() if check.profile else None,
        error=check.error,
    )


# Notification models


EmailTypeLiteral = Literal["inactivity_reminder", "custom"]


class SendToStudentRequest(BaseModel):
    """Request model for emailing a student by ID."""

    student_id: str
    email_type: EmailTypeLiteral = "custom"
    subject: str | None = Field(default=None, max_length=255)
    message: str | None = Field(default=None, max_length=10000)


class SendByHandleRequest(BaseModel):
    """Request model for emailing a student by handle."""

    handle: str = Field(..., min_length=1, max_length=24)
    email_type: EmailTypeLiteral = "custom"
    subject: str | None = Field(default=None, max_length=255)
    message: str | None = Field(default=None, max_length=10000)


class DispatchResponse(BaseModel):
    """Response model for a dispatch attempt."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    student_id: str
    handle: str
    log_id: str
    error: str | None


class InactivityReportResponse(BaseModel):
    """Response model for an inactivity check."""

    model_config = ConfigDict(from_attributes=True)

    checked: int
    inactive: int
    reminded: int
    cooldown_skipped: int
    lookup_failures: int
    errors: list[str]


class EmailLogResponse(BaseModel):
    """Response model for an email log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    student_handle: str
    email_type: str
    status: str
    subject: str
    error: str | None
    sent_at: datetime | None
    created_at: datetime


# Analytics models


class ProblemResponse(BaseModel):
    """Response model for a Codeforces problem."""

    contest_id: int | None
    index: str
    name: str
    rating: int | None
    tags: list[str]
    url: str | None


def problem_to_response(problem: Any) -> ProblemResponse:
    """Convert a Problem to ProblemResponse."""
    return ProblemResponse(
        contest_id=problem.contest_id,
        index=problem.index,
        name=problem.name,
        rating=problem.rating,
        tags=list(problem.tags),
        url=problem.url,
    )


class ContestProblemResponse(ProblemResponse):
    """Response model for a contest problem and whether it was solved."""

    solved: bool


class ContestResultResponse(BaseModel):
    """Response model for one rated contest."""

    contest_id: int
    contest_name: str
    date: datetime
    rank: int
    old_rating: int
    new_rating: int
    rating_change: int
    total_problems: int
    solved_problems: int
    unsolved_problems: int
    problems: list[ContestProblemResponse]


class ContestHistoryStatsResponse(BaseModel):
    """Response model for contest history totals."""

    model_config = ConfigDict(from_attributes=True)

    total_contests: int
    average_rank: int
    rating_change: int
    best_rank: int
    worst_rank: int
    total_solved: int
    total_unsolved: int
    average_problems_per_contest: int


class ContestHistoryResponse(BaseModel):
    """Response model for a student's contest history."""

    student_id: str
    handle: str
    days: int
    contests: list[ContestResultResponse]
    stats: ContestHistoryStatsResponse


def contest_history_to_response(history: Any) -> ContestHistoryResponse:
    """Convert a ContestHistory to ContestHistoryResponse."""
    contests = [
        ContestResultResponse(
            contest_id=contest.contest_id,
            contest_name=contest.contest_name,
            date=contest.date,
            rank=contest.rank,
            old_rating=contest.old_rating,
            new_rating=contest.new_rating,
            rating_change=contest.rating_change,
            total_problems=contest.total_problems,
            solved_problems=contest.solved_problems,
            unsolved_problems=contest.unsolved_problems,
            problems=[
                ContestProblemResponse(
                    **problem_to_response(item.problem).model_dump(), solved=item.solved
                )
                for item in contest.problems
            ],
        )
        for contest in history.contests
    ]
    return ContestHistoryResponse(
        student_id=history.student_id,
        handle=history.handle,
        days=history.days,
        contests=contests,
        stats=ContestHistoryStatsResponse.model_validate(history),
    )


class SolvedProblemResponse(ProblemResponse):
    """Response model for a solved problem."""

    solved_at: datetime


def solved_problem_to_response(item: Any) -> SolvedProblemResponse:
    """Convert a SolvedProblem to SolvedProblemResponse."""
    return SolvedProblemResponse(
        **problem_to_response(item.problem).model_dump(), solved_at=item.solved_at
    )


class DayActivityResponse(BaseModel):
    """Response model for one day of solving activity."""

    model_config = ConfigDict(from_attributes=True)

    day: date
    count: int


class ProblemSolvingResponse(BaseModel):
    """Response model for a student's problem-solving summary."""

    student_id: str
    handle: str
    days: int
    total_solved: int
    average_rating: int
    average_per_day: float
    max_daily: int
    hardest: SolvedProblemResponse | None
    rating_buckets: dict[str, int]
    daily_activity: list[DayActivityResponse]
    recent: list[SolvedProblemResponse]


RECENT_PROBLEMS_COUNT = 10


def problem_solving_to_response(summary: Any) -> ProblemSolvingResponse:
    """Convert a ProblemSolvingSummary to ProblemSolvingResponse."""
    hardest = summary.hardest
    return ProblemSolvingResponse(
        student_id=summary.student_id,
        handle=summary.handle,
        days=summary.days,
        total_solved=summary.total_solved,
        average_rating=summary.average_rating,
        average_per_day=summary.average_per_day,
        max_daily=summary.max_daily,
        hardest=solved_problem_to_response(hardest) if hardest else None,
        rating_buckets=summary.rating_buckets,
        daily_activity=[DayActivityResponse.model_validate(d) for d in summary.daily_activity],
        recent=[
            solved_problem_to_response(item) for item in summary.solved[:RECENT_PROBLEMS_COUNT]
        ],
    )
