"""Unit tests for student routes."""

from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from cfroster.api.app import register_exception_handlers
from cfroster.api.dependencies import get_state_store, get_synchronizer
from cfroster.api.routes import students
from cfroster.codeforces import CodeforcesTransportError, Profile
from cfroster.state_store import StateStore


@pytest.fixture
def synchronizer(store: StateStore) -> MagicMock:
    """Synchronizer whose single-student sync applies a fixed profile."""
    mock = MagicMock()
    mock.sync_student.side_effect = lambda handle: store.apply_profile(
        store.get_student_by_handle(handle).id, Profile(handle=handle, rating=1750)
    )
    return mock


@pytest.fixture
def app(store: StateStore, synchronizer: MagicMock):
    """Create a test FastAPI app with mocked dependencies."""
    app = FastAPI()

    def override_get_state_store():
        yield store

    def override_get_synchronizer():
        yield synchronizer

    app.dependency_overrides[get_state_store] = override_get_state_store
    app.dependency_overrides[get_synchronizer] = override_get_synchronizer

    register_exception_handlers(app)
    app.include_router(students.router, prefix="/api/v1")

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client."""
    return TestClient(app, raise_server_exceptions=False)


def create(client: TestClient, handle: str, **fields) -> dict:
    payload = {"name": handle.title(), "handle": handle, **fields}
    response = client.post("/api/v1/students", json=payload)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()["data"]


@pytest.mark.unit
class TestCreateStudent:
    """Tests for POST /api/v1/students."""

    def test_create_student(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/students",
            json={"name": "Alice", "handle": " Alice_CF ", "email": "Alice@Uni.edu"},
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["error"] is None
        assert body["data"]["handle"] == "Alice_CF"
        assert body["data"]["email"] == "alice@uni.edu"
        assert body["data"]["rank"] == "newbie"
        assert body["data"]["last_synced_at"] is None

    def test_create_with_profile_fetch(self, client: TestClient, synchronizer: MagicMock) -> None:
        response = client.post(
            "/api/v1/students?fetch_profile=true", json={"name": "Petr", "handle": "Petr"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        synchronizer.sync_student.assert_called_once_with("Petr")
        assert response.json()["data"]["rating"] == 1750
        assert response.json()["data"]["last_synced_at"] is not None

    def test_profile_fetch_failure_keeps_student(
        self, client: TestClient, synchronizer: MagicMock
    ) -> None:
        synchronizer.sync_student.side_effect = CodeforcesTransportError("timed out")

        response = client.post(
            "/api/v1/students?fetch_profile=true", json={"name": "Petr", "handle": "Petr"}
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["data"]["rating"] == 0

    def test_duplicate_handle_conflict(self, client: TestClient) -> None:
        create(client, "tourist")

        response = client.post("/api/v1/students", json={"name": "T", "handle": "TOURIST"})

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["data"] is None
        assert "already exists" in response.json()["error"]

    def test_invalid_handle(self, client: TestClient) -> None:
        response = client.post("/api/v1/students", json={"name": "Bad", "handle": "no spaces"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "disallowed_symbol" in response.json()["error"]

    def test_missing_name_rejected_by_schema(self, client: TestClient) -> None:
        response = client.post("/api/v1/students", json={"handle": "tourist"})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.unit
class TestBulkCreate:
    """Tests for POST /api/v1/students/bulk."""

    def test_partial_success(self, client: TestClient) -> None:
        create(client, "taken")

        response = client.post(
            "/api/v1/students/bulk",
            json={
                "students": [
                    {"name": "Alice", "handle": "alice"},
                    {"name": "Dup", "handle": "taken"},
                    {"handle": "nameless"},
                ]
            },
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()["data"]
        assert [s["handle"] for s in data["created"]] == ["alice"]
        assert data["total"] == 3
        assert {e["handle"] for e in data["errors"]} == {"taken", "nameless"}

    def test_empty_list_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/students/bulk", json={"students": []})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.unit
class TestListStudents:
    """Tests for GET /api/v1/students."""

    def test_paginated_search(self, client: TestClient) -> None:
        for handle in ["amy", "bob", "bella", "carl"]:
            create(client, handle)

        response = client.get("/api/v1/students?search=b&sort_by=handle&order=desc&limit=1")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["total"] == 2
        assert data["total_pages"] == 2
        assert [s["handle"] for s in data["items"]] == ["bob"]

    def test_unknown_sort_field(self, client: TestClient) -> None:
        response = client.get("/api/v1/students?sort_by=phone")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_limit_capped(self, client: TestClient) -> None:
        response = client.get("/api/v1/students?limit=500")

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.unit
class TestStudentByID:
    """Tests for GET, PATCH and DELETE /api/v1/students/{id}."""

    def test_get_student(self, client: TestClient) -> None:
        created = create(client, "alice")

        response = client.get(f"/api/v1/students/{created['id']}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["handle"] == "alice"

    def test_get_missing(self, client: TestClient) -> None:
        response = client.get("/api/v1/students/missing")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Student with id 'missing' not found"

    def test_patch_partial(self, client: TestClient) -> None:
        created = create(client, "alice", email="a@uni.edu", phone="555")

        response = client.patch(
            f"/api/v1/students/{created['id']}",
            json={"phone": "", "country": "Chile", "rating": 1600},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["phone"] is None
        assert data["email"] == "a@uni.edu"
        assert data["country"] == "Chile"
        assert data["rating"] == 1600
        assert data["max_rating"] == 1600

    def test_patch_handle_conflict(self, client: TestClient) -> None:
        create(client, "alice")
        bob = create(client, "bob")

        response = client.patch(f"/api/v1/students/{bob['id']}", json={"handle": "Alice"})

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_patch_negative_rating_rejected(self, client: TestClient) -> None:
        created = create(client, "alice")

        response = client.patch(f"/api/v1/students/{created['id']}", json={"rating": -5})

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_delete(self, client: TestClient) -> None:
        created = create(client, "alice")

        response = client.delete(f"/api/v1/students/{created['id']}")

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(f"/api/v1/students/{created['id']}").status_code == 404

    def test_delete_missing(self, client: TestClient) -> None:
        assert client.delete("/api/v1/students/missing").status_code == 404


@pytest.mark.unit
class TestStats:
    """Tests for GET /api/v1/students/stats."""

    def test_stats(self, client: TestClient, store: StateStore) -> None:
        alice = create(client, "alice")
        create(client, "bob")
        store.apply_profile(alice["id"], Profile(handle="alice", rating=1900, rank="expert"))

        response = client.get("/api/v1/students/stats")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["total_students"] == 2
        assert data["rated_students"] == 1
        assert data["top_rated_handle"] == "alice"
        assert data["rank_distribution"] == {"expert": 1, "newbie": 1}
        assert [s["handle"] for s in data["recently_added"]] == ["bob", "alice"]
