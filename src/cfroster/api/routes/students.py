"""Student CRUD and analytics endpoints."""

import logging
from typing import Literal

from fastapi import APIRouter, Query, status

from cfroster.analytics import DEFAULT_CONTEST_DAYS, DEFAULT_PROBLEM_DAYS
from cfroster.api.dependencies import AnalyticsDep, StateStoreDep, SynchronizerDep
from cfroster.api.models import (
    APIResponse,
    BulkCreateRequest,
    BulkCreateResponse,
    ContestHistoryResponse,
    ProblemSolvingResponse,
    StudentCreate,
    StudentPageResponse,
    StudentResponse,
    StudentStatsResponse,
    StudentUpdate,
    contest_history_to_response,
    problem_solving_to_response,
    student_page_to_response,
    student_to_response,
)
from cfroster.codeforces import CodeforcesError
from cfroster.handles import InvalidHandleError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/students", tags=["students"])


@router.get("", response_model=APIResponse[StudentPageResponse])
def list_students(
    store: StateStoreDep,
    search: str | None = Query(default=None, description="Match name, handle or email"),
    sort_by: Literal[
        "name", "handle", "rating", "max_rating", "created_at", "last_synced_at"
    ] = Query(default="created_at", description="Sort field"),
    order: Literal["asc", "desc"] = Query(default="asc", description="Sort direction"),
    page: int = Query(default=1, ge=1, description="1-based page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Page size"),
) -> APIResponse[StudentPageResponse]:
    """List students with search, sorting and pagination."""
    result = store.list_students(
        search=search,
        sort_by=sort_by,
        descending=order == "desc",
        page=page,
        limit=limit,
    )
    return APIResponse(data=student_page_to_response(result))


@router.post(
    "",
    response_model=APIResponse[StudentResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_student(
    student: StudentCreate,
    store: StateStoreDep,
    synchronizer: SynchronizerDep,
    fetch_profile: bool = Query(default=False, description="Mirror the Codeforces profile now"),
) -> APIResponse[StudentResponse]:
    """Create a new student."""
    created = store.create_student(
        name=student.name,
        handle=student.handle,
        email=student.email,
        phone=student.phone,
        inactivity_reminders=student.inactivity_reminders,
    )
    if fetch_profile:
        try:
            created = synchronizer.sync_student(created.handle)
        except (CodeforcesError, InvalidHandleError) as e:
            # The student stays; the next sync run fills in the profile
            logger.warning("Could not fetch profile for %s: %s", created.handle, e)
    return APIResponse(data=student_to_response(created))


@router.post(
    "/bulk",
    response_model=APIResponse[BulkCreateResponse],
    status_code=status.HTTP_201_CREATED,
)
def bulk_create_students(
    request: BulkCreateRequest, store: StateStoreDep
) -> APIResponse[BulkCreateResponse]:
    """Create many students; rejected entries are reported, not fatal."""
    result = store.bulk_create_students(entry.model_dump() for entry in request.students)
    return APIResponse(data=BulkCreateResponse.model_validate(result))


@router.get("/stats", response_model=APIResponse[StudentStatsResponse])
def get_student_stats(store: StateStoreDep) -> APIResponse[StudentStatsResponse]:
    """Get roster statistics."""
    stats = store.get_student_stats()
    return APIResponse(data=StudentStatsResponse.model_validate(stats))


@router.get("/{student_id}", response_model=APIResponse[StudentResponse])
def get_student(student_id: str, store: StateStoreDep) -> APIResponse[StudentResponse]:
    """Get a student by ID."""
    student = store.get_student(student_id)
    return APIResponse(data=student_to_response(student))


@router.patch("/{student_id}", response_model=APIResponse[StudentResponse])
def update_student(
    student_id: str, student: StudentUpdate, store: StateStoreDep
) -> APIResponse[StudentResponse]:
    """Update a student (partial update)."""
    fields = student.model_dump(exclude_unset=True, exclude_none=True)
    updated = store.update_student(student_id, **fields)
    return APIResponse(data=student_to_response(updated))


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_student(student_id: str, store: StateStoreDep) -> None:
    """Delete a student."""
    store.delete_student(student_id)


@router.get(
    "/{student_id}/contest-history", response_model=APIResponse[ContestHistoryResponse]
)
def get_contest_history(
    student_id: str,
    analytics: AnalyticsDep,
    days: int = Query(
        default=DEFAULT_CONTEST_DAYS, ge=1, le=3650, description="Window size in days"
    ),
) -> APIResponse[ContestHistoryResponse]:
    """Rated contests of a student with the problems they attempted."""
    history = analytics.contest_history(student_id, days=days)
    return APIResponse(data=contest_history_to_response(history))


@router.get(
    "/{student_id}/problem-solving", response_model=APIResponse[ProblemSolvingResponse]
)
def get_problem_solving(
    student_id: str,
    analytics: AnalyticsDep,
    days: int = Query(
        default=DEFAULT_PROBLEM_DAYS, ge=1, le=365, description="Window size in days"
    ),
) -> APIResponse[ProblemSolvingResponse]:
    """Distinct problems a student solved, by difficulty and by day."""
    summary = analytics.problem_solving(student_id, days=days)
    return APIResponse(data=problem_solving_to_response(summary))
