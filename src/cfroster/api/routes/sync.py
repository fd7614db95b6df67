"""Sync endpoints: manual runs, status, settings and single-handle operations."""

from fastapi import APIRouter, status

from cfroster.api.dependencies import SchedulerDep, StateStoreDep, SynchronizerDep
from cfroster.api.models import (
    APIResponse,
    HandleCheckResponse,
    StudentResponse,
    StudentSyncStateResponse,
    SyncRunResponse,
    SyncSettingsResponse,
    SyncSettingsUpdate,
    SyncStatisticsResponse,
    SyncStatusResponse,
    handle_check_to_response,
    student_to_response,
    sync_run_to_response,
)
from cfroster.scheduler import build_cron_trigger

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post(
    "/run",
    response_model=APIResponse[SyncRunResponse],
    status_code=status.HTTP_202_ACCEPTED,
)
def run_sync(scheduler: SchedulerDep) -> APIResponse[SyncRunResponse]:
    """Start a sync run in the background and return its handle."""
    run = scheduler.trigger_manual(background=True)
    return APIResponse(data=sync_run_to_response(run))


@router.get("/runs", response_model=APIResponse[list[SyncRunResponse]])
def list_runs(scheduler: SchedulerDep) -> APIResponse[list[SyncRunResponse]]:
    """List tracked sync runs, most recent first."""
    return APIResponse(data=[sync_run_to_response(r) for r in scheduler.list_runs()])


@router.get("/runs/{run_id}", response_model=APIResponse[SyncRunResponse])
def get_run(run_id: str, scheduler: SchedulerDep) -> APIResponse[SyncRunResponse]:
    """Poll a sync run."""
    return APIResponse(data=sync_run_to_response(scheduler.get_run(run_id)))


@router.get("/status", response_model=APIResponse[SyncStatusResponse])
def get_sync_status(
    store: StateStoreDep, scheduler: SchedulerDep, synchronizer: SynchronizerDep
) -> APIResponse[SyncStatusResponse]:
    """Get scheduler state, last run summary and roster coverage."""
    settings = store.get_current_settings()
    statistics = store.get_sync_statistics()
    return APIResponse(
        data=SyncStatusResponse(
            is_running=synchronizer.is_running,
            scheduler_state=scheduler.state.value,
            next_run_time=scheduler.next_run_time,
            settings=SyncSettingsResponse.model_validate(settings),
            statistics=SyncStatisticsResponse.model_validate(statistics),
        )
    )


@router.get("/students", response_model=APIResponse[list[StudentSyncStateResponse]])
def list_student_sync_states(
    store: StateStoreDep,
) -> APIResponse[list[StudentSyncStateResponse]]:
    """Per-student sync staleness, never-synced and oldest first."""
    states = store.list_sync_states()
    return APIResponse(data=[StudentSyncStateResponse.model_validate(s) for s in states])


@router.get("/settings", response_model=APIResponse[SyncSettingsResponse])
def get_settings(store: StateStoreDep) -> APIResponse[SyncSettingsResponse]:
    """Get the Sync Configuration."""
    return APIResponse(data=SyncSettingsResponse.model_validate(store.get_current_settings()))


@router.put("/settings", response_model=APIResponse[SyncSettingsResponse])
def update_settings(
    update: SyncSettingsUpdate, store: StateStoreDep, scheduler: SchedulerDep
) -> APIResponse[SyncSettingsResponse]:
    """Update the Sync Configuration and reinstall the sync timer."""
    current = store.get_current_settings()
    # Reject schedules the scheduler cannot run before anything is persisted
    build_cron_trigger(update.cron_time or current.cron_time, update.timezone or current.timezone)

    settings = store.update_settings(**update.model_dump(exclude_none=True))
    scheduler.reconfigure(settings)
    return APIResponse(data=SyncSettingsResponse.model_validate(settings))


@router.post("/students/{handle}", response_model=APIResponse[StudentResponse])
def sync_student(handle: str, synchronizer: SynchronizerDep) -> APIResponse[StudentResponse]:
    """Fetch and store one student's profile now."""
    student = synchronizer.sync_student(handle)
    return APIResponse(data=student_to_response(student))


@router.get("/check/{handle}", response_model=APIResponse[HandleCheckResponse])
def check_handle(handle: str, synchronizer: SynchronizerDep) -> APIResponse[HandleCheckResponse]:
    """Check a handle against the validator, the roster and Codeforces."""
    return APIResponse(data=handle_check_to_response(synchronizer.check_handle(handle)))
