"""Unit tests for sync routes."""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from cfroster.api.app import register_exception_handlers
from cfroster.api.dependencies import get_scheduler, get_state_store, get_synchronizer
from cfroster.api.routes import sync
from cfroster.codeforces import CodeforcesAPIError, Profile
from cfroster.handles import HandleRejection
from cfroster.scheduler import RunNotFoundError, RunStatus, SchedulerState, SyncRun
from cfroster.state_store import StateStore, StudentNotFoundError, SyncStatus
from cfroster.synchronizer import (
    FailedStudent,
    HandleCheck,
    SyncAlreadyRunningError,
    SyncOutcome,
    SyncTrigger,
)


@pytest.fixture
def synchronizer() -> MagicMock:
    """Create a mock BatchSynchronizer."""
    mock = MagicMock()
    mock.is_running = False
    return mock


@pytest.fixture
def scheduler() -> MagicMock:
    """Create a mock SyncScheduler."""
    mock = MagicMock()
    mock.state = SchedulerState.SCHEDULED
    mock.next_run_time = None
    return mock


@pytest.fixture
def app(store: StateStore, synchronizer: MagicMock, scheduler: MagicMock):
    """Create a test FastAPI app with mocked dependencies."""
    app = FastAPI()

    def override_get_state_store():
        yield store

    def override_get_synchronizer():
        yield synchronizer

    def override_get_scheduler():
        yield scheduler

    app.dependency_overrides[get_state_store] = override_get_state_store
    app.dependency_overrides[get_synchronizer] = override_get_synchronizer
    app.dependency_overrides[get_scheduler] = override_get_scheduler

    register_exception_handlers(app)
    app.include_router(sync.router, prefix="/api/v1")

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(app, raise_server_exceptions=False)


def finished_run() -> SyncRun:
    outcome = SyncOutcome(
        trigger=SyncTrigger.MANUAL,
        status=SyncStatus.PARTIAL,
        synced=4,
        failed=1,
        duration_ms=1234.5,
        failures=[FailedStudent(handle="bad", error="API Error: boom")],
        errors=["API Error: boom"],
    )
    return SyncRun(trigger=SyncTrigger.MANUAL, status=RunStatus.COMPLETED, outcome=outcome)


@pytest.mark.unit
class TestRuns:
    """Tests for manual runs and run polling."""

    def test_start_run_accepted(self, client: TestClient, scheduler: MagicMock) -> None:
        scheduler.trigger_manual.return_value = SyncRun(trigger=SyncTrigger.MANUAL)

        response = client.post("/api/v1/sync/run")

        assert response.status_code == status.HTTP_202_ACCEPTED
        scheduler.trigger_manual.assert_called_once_with(background=True)
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["trigger"] == "manual"
        assert data["outcome"] is None

    def test_start_run_conflict(self, client: TestClient, scheduler: MagicMock) -> None:
        scheduler.trigger_manual.side_effect = SyncAlreadyRunningError(
            "A sync run is already in progress"
        )

        response = client.post("/api/v1/sync/run")

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "A sync run is already in progress"

    def test_get_finished_run(self, client: TestClient, scheduler: MagicMock) -> None:
        run = finished_run()
        scheduler.get_run.return_value = run

        response = client.get(f"/api/v1/sync/runs/{run.id}")

        assert response.status_code == status.HTTP_200_OK
        outcome = response.json()["data"]["outcome"]
        assert outcome["status"] == "partial"
        assert outcome["success"] is True
        assert outcome["synced"] == 4
        assert outcome["failures"] == [{"handle": "bad", "error": "API Error: boom"}]

    def test_get_unknown_run(self, client: TestClient, scheduler: MagicMock) -> None:
        scheduler.get_run.side_effect = RunNotFoundError("Sync run with id 'x' not found")

        assert client.get("/api/v1/sync/runs/x").status_code == status.HTTP_404_NOT_FOUND

    def test_list_runs(self, client: TestClient, scheduler: MagicMock) -> None:
        scheduler.list_runs.return_value = [finished_run(), SyncRun(trigger=SyncTrigger.SCHEDULED)]

        response = client.get("/api/v1/sync/runs")

        assert [r["trigger"] for r in response.json()["data"]] == ["manual", "scheduled"]


@pytest.mark.unit
class TestStatus:
    """Tests for GET /api/v1/sync/status and /sync/students."""

    def test_status(self, client: TestClient, store: StateStore) -> None:
        store.create_student(name="A", handle="aaa")
        store.finish_sync(SyncStatus.SUCCESS, synced=1, duration_ms=10.0)

        response = client.get("/api/v1/sync/status")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["is_running"] is False
        assert data["scheduler_state"] == "scheduled"
        assert data["settings"]["last_sync_status"] == "success"
        assert data["settings"]["total_syncs"] == 1
        assert data["statistics"]["total_students"] == 1
        assert data["statistics"]["unsynced_students"] == 1

    def test_student_sync_states(self, client: TestClient, store: StateStore) -> None:
        synced = store.create_student(name="A", handle="aaa")
        store.create_student(name="B", handle="bbb")
        store.touch_synced([synced.id])

        response = client.get("/api/v1/sync/students")

        data = response.json()["data"]
        assert [s["handle"] for s in data] == ["bbb", "aaa"]
        assert data[0]["needs_sync"] is True
        assert data[1]["needs_sync"] is False
        assert data[1]["sync_age_hours"] == 0


@pytest.mark.unit
class TestSettings:
    """Tests for GET and PUT /api/v1/sync/settings."""

    def test_get_defaults(self, client: TestClient) -> None:
        data = client.get("/api/v1/sync/settings").json()["data"]

        assert data["cron_time"] == "0 2 * * *"
        assert data["enabled"] is True
        assert data["batch_size"] == 10

    def test_update_reconfigures_scheduler(
        self, client: TestClient, scheduler: MagicMock
    ) -> None:
        response = client.put(
            "/api/v1/sync/settings",
            json={"cron_time": "0 3 * * 1", "frequency": "weekly", "timezone": "Europe/Berlin"},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["cron_time"] == "0 3 * * 1"
        assert data["timezone"] == "Europe/Berlin"
        assert data["updated_by"] == "admin"
        settings = scheduler.reconfigure.call_args.args[0]
        assert settings.cron_time == "0 3 * * 1"

    def test_unschedulable_cron_not_saved(
        self, client: TestClient, store: StateStore, scheduler: MagicMock
    ) -> None:
        response = client.put("/api/v1/sync/settings", json={"cron_time": "75 2 * * *"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert store.get_current_settings().cron_time == "0 2 * * *"
        scheduler.reconfigure.assert_not_called()

    def test_unknown_timezone(self, client: TestClient) -> None:
        response = client.put("/api/v1/sync/settings", json={"timezone": "Atlantis/City"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "timezone" in response.json()["error"]

    @pytest.mark.parametrize(
        "payload",
        [{"batch_size": 0}, {"delay_between_batches": 50}, {"max_retries": 11}, {"frequency": "x"}],
    )
    def test_out_of_bounds(self, client: TestClient, payload: dict) -> None:
        response = client.put("/api/v1/sync/settings", json=payload)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.unit
class TestSingleHandle:
    """Tests for /sync/students/{handle} and /sync/check/{handle}."""

    def test_sync_student(
        self, client: TestClient, store: StateStore, synchronizer: MagicMock
    ) -> None:
        student = store.create_student(name="A", handle="tourist")
        synchronizer.sync_student.return_value = store.apply_profile(
            student.id, Profile(handle="tourist", rating=3800)
        )

        response = client.post("/api/v1/sync/students/tourist")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["rating"] == 3800

    def test_sync_unknown_student(self, client: TestClient, synchronizer: MagicMock) -> None:
        synchronizer.sync_student.side_effect = StudentNotFoundError("no such student")

        assert client.post("/api/v1/sync/students/ghost").status_code == 404

    def test_sync_student_missing_on_codeforces(
        self, client: TestClient, synchronizer: MagicMock
    ) -> None:
        synchronizer.sync_student.side_effect = CodeforcesAPIError(
            "User ghost not found on Codeforces"
        )

        response = client.post("/api/v1/sync/students/ghost")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["error"] == "User ghost not found on Codeforces"

    def test_check_handle(self, client: TestClient, synchronizer: MagicMock) -> None:
        synchronizer.check_handle.return_value = HandleCheck(
            handle="tourist", on_codeforces=True, profile=Profile(handle="tourist", rating=3800)
        )

        data = client.get("/api/v1/sync/check/tourist").json()["data"]

        assert data["valid"] is True
        assert data["in_store"] is False
        assert data["on_codeforces"] is True
        assert data["profile"]["rating"] == 3800

    def test_check_malformed_handle(self, client: TestClient, synchronizer: MagicMock) -> None:
        synchronizer.check_handle.return_value = HandleCheck(
            handle="ab", rejection=HandleRejection.TOO_SHORT
        )

        data = client.get("/api/v1/sync/check/ab").json()["data"]

        assert data["valid"] is False
        assert data["rejection"] == "too_short"
        assert data["profile"] is None
