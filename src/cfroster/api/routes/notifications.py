"""Notification endpoints."""

from typing import Literal

from fastapi import APIRouter, Query

from cfroster.api.dependencies import DispatcherDep, InactivityNotifierDep, StateStoreDep
from cfroster.api.models import (
    APIResponse,
    DispatchResponse,
    EmailLogResponse,
    InactivityReportResponse,
    SendByHandleRequest,
    SendToStudentRequest,
)
from cfroster.state_store import EmailStatus, EmailType

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/send-to-student", response_model=APIResponse[DispatchResponse])
def send_to_student(
    request: SendToStudentRequest, dispatcher: DispatcherDep
) -> APIResponse[DispatchResponse]:
    """Email a student by ID."""
    result = dispatcher.send_to_student(
        request.student_id,
        EmailType(request.email_type),
        subject=request.subject,
        message=request.message,
    )
    return APIResponse(data=DispatchResponse.model_validate(result), error=result.error)


@router.post("/send-by-handle", response_model=APIResponse[DispatchResponse])
def send_by_handle(
    request: SendByHandleRequest, dispatcher: DispatcherDep
) -> APIResponse[DispatchResponse]:
    """Email a student by Codeforces handle."""
    result = dispatcher.send_by_handle(
        request.handle,
        EmailType(request.email_type),
        subject=request.subject,
        message=request.message,
    )
    return APIResponse(data=DispatchResponse.model_validate(result), error=result.error)


@router.post("/inactivity/run", response_model=APIResponse[InactivityReportResponse])
def run_inactivity_check(
    notifier: InactivityNotifierDep,
) -> APIResponse[InactivityReportResponse]:
    """Run the inactivity check now and wait for the report."""
    report = notifier.run_check()
    return APIResponse(data=InactivityReportResponse.model_validate(report))


@router.get("/logs", response_model=APIResponse[list[EmailLogResponse]])
def list_email_logs(
    store: StateStoreDep,
    student_id: str | None = Query(default=None, description="Filter by student ID"),
    email_type: Literal["inactivity_reminder", "custom"] | None = Query(
        default=None, description="Filter by email type"
    ),
    status: Literal["pending", "sent", "failed"] | None = Query(
        default=None, description="Filter by delivery status"
    ),
    limit: int = Query(default=100, ge=1, le=1000, description="Max results"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
) -> APIResponse[list[EmailLogResponse]]:
    """List email logs, most recent first."""
    logs = store.list_email_logs(
        student_id=student_id,
        email_type=email_type,
        status=EmailStatus(status) if status else None,
        limit=limit,
        offset=offset,
    )
    return APIResponse(data=[EmailLogResponse.model_validate(log) for log in logs])
