"""Unit tests for StateStore student operations."""

from datetime import datetime

import pytest

from cfroster.codeforces import Profile
from cfroster.handles import InvalidHandleError
from cfroster.state_store import (
    StateStore,
    StudentExistsError,
    StudentNotFoundError,
)


@pytest.mark.unit
class TestCreateStudent:
    """Tests for create_student."""

    def test_create_student_minimal(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice_cf")

        assert student.id is not None
        assert student.name == "Alice"
        assert student.handle == "alice_cf"
        assert student.email is None
        assert student.rating == 0
        assert student.created_at is not None
        assert student.updated_at is not None

    def test_create_student_normalizes_input(self, store: StateStore) -> None:
        """Handle is trimmed with case kept; email is lowercased."""
        student = store.create_student(
            name="  Alice ", handle=" Alice_CF ", email=" Alice@Example.COM ", phone=" "
        )

        assert student.name == "Alice"
        assert student.handle == "Alice_CF"
        assert student.email == "alice@example.com"
        assert student.phone is None

    def test_single_character_handle_allowed(self, store: StateStore) -> None:
        assert store.create_student(name="X", handle="x").handle == "x"

    def test_invalid_handle_rejected(self, store: StateStore) -> None:
        with pytest.raises(InvalidHandleError):
            store.create_student(name="Bad", handle="has space")

    def test_duplicate_handle_ignores_case(self, store: StateStore) -> None:
        store.create_student(name="Alice", handle="tourist")

        with pytest.raises(StudentExistsError, match="handle"):
            store.create_student(name="Other", handle="TOURIST")

    def test_duplicate_email_rejected(self, store: StateStore) -> None:
        store.create_student(name="Alice", handle="alice", email="a@example.com")

        with pytest.raises(StudentExistsError, match="email"):
            store.create_student(name="Bob", handle="bob", email="A@example.com")


@pytest.mark.unit
class TestBulkCreateStudents:
    """Tests for bulk_create_students."""

    def test_collects_per_entry_errors(self, store: StateStore) -> None:
        store.create_student(name="Existing", handle="taken")

        result = store.bulk_create_students(
            [
                {"name": "Alice", "handle": "alice"},
                {"name": "", "handle": "nameless"},
                {"name": "NoHandle"},
                {"name": "Dup", "handle": "TAKEN"},
                {"name": "Bad", "handle": "bad.handle"},
                {"name": "Bob", "handle": "bob", "email": "bob@example.com"},
            ]
        )

        assert [s.handle for s in result.created] == ["alice", "bob"]
        assert result.total == 6
        errors = {e.handle: e.error for e in result.errors}
        assert errors["nameless"] == "Name and handle are required"
        assert errors["unknown"] == "Name and handle are required"
        assert "already exists" in errors["TAKEN"]
        assert "disallowed_symbol" in errors["bad.handle"]

    def test_duplicates_within_request(self, store: StateStore) -> None:
        result = store.bulk_create_students(
            [{"name": "A", "handle": "same"}, {"name": "B", "handle": "Same"}]
        )

        assert len(result.created) == 1
        assert len(result.errors) == 1


@pytest.mark.unit
class TestGetStudent:
    """Tests for get_student and get_student_by_handle."""

    def test_get_student(self, store: StateStore) -> None:
        created = store.create_student(name="Alice", handle="alice")

        assert store.get_student(created.id).handle == "alice"

    def test_get_student_not_found(self, store: StateStore) -> None:
        with pytest.raises(StudentNotFoundError):
            store.get_student("missing")

    def test_get_by_handle_ignores_case(self, store: StateStore) -> None:
        created = store.create_student(name="Alice", handle="Tourist")

        assert store.get_student_by_handle(" tOURIST ").id == created.id

    def test_get_by_handle_not_found(self, store: StateStore) -> None:
        with pytest.raises(StudentNotFoundError):
            store.get_student_by_handle("nobody")


@pytest.mark.unit
class TestListStudents:
    """Tests for list_students."""

    @pytest.fixture
    def roster(self, store: StateStore) -> StateStore:
        """Store with five students of increasing rating."""
        for i, handle in enumerate(["echo", "Delta", "charlie", "Bravo", "alpha"]):
            student = store.create_student(
                name=f"Student {handle}", handle=handle, email=f"{handle.lower()}@uni.edu"
            )
            store.update_student(student.id, rating=1000 + i * 100)
        return store

    def test_pagination(self, roster: StateStore) -> None:
        page = roster.list_students(page=2, limit=2)

        assert page.total == 5
        assert page.total_pages == 3
        assert [s.handle for s in page.items] == ["charlie", "Bravo"]

    def test_sort_by_handle_ignores_case(self, roster: StateStore) -> None:
        page = roster.list_students(sort_by="handle", limit=10)

        assert [s.handle for s in page.items] == ["alpha", "Bravo", "charlie", "Delta", "echo"]

    def test_sort_by_rating_descending(self, roster: StateStore) -> None:
        page = roster.list_students(sort_by="rating", descending=True, limit=2)

        assert [s.rating for s in page.items] == [1400, 1300]

    def test_search_matches_name_handle_or_email(self, roster: StateStore) -> None:
        assert roster.list_students(search="BRAVO").total == 1
        assert roster.list_students(search="uni.edu").total == 5
        assert roster.list_students(search="student d").items[0].handle == "Delta"

    def test_unknown_sort_field(self, roster: StateStore) -> None:
        with pytest.raises(ValueError, match="Cannot sort"):
            roster.list_students(sort_by="email")


@pytest.mark.unit
class TestUpdateStudent:
    """Tests for update_student."""

    def test_update_contact_fields(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice", phone="123")

        updated = store.update_student(
            student.id, name="Alice B", email="ALICE@x.org", phone="", inactivity_reminders=False
        )

        assert updated.name == "Alice B"
        assert updated.email == "alice@x.org"
        assert updated.phone is None
        assert updated.inactivity_reminders is False

    def test_empty_email_clears(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice", email="a@x.org")

        assert store.update_student(student.id, email="").email is None

    def test_handle_change_resets_sync_stamp(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice")
        store.touch_synced([student.id])

        updated = store.update_student(student.id, handle="alice2")

        assert updated.handle == "alice2"
        assert updated.handle_key == "alice2"
        assert updated.last_synced_at is None

    def test_recasing_handle_keeps_sync_stamp(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice")
        store.touch_synced([student.id])

        updated = store.update_student(student.id, handle="Alice")

        assert updated.handle == "Alice"
        assert updated.last_synced_at is not None

    def test_handle_taken_by_other_student(self, store: StateStore) -> None:
        store.create_student(name="Alice", handle="alice")
        bob = store.create_student(name="Bob", handle="bob")

        with pytest.raises(StudentExistsError):
            store.update_student(bob.id, handle="ALICE")

    def test_rating_update_keeps_invariant(self, store: StateStore) -> None:
        """Raising rating above max_rating lifts max_rating on write."""
        student = store.create_student(name="Alice", handle="alice")

        updated = store.update_student(student.id, rating=2100)

        assert updated.rating == 2100
        assert updated.max_rating == 2100

    def test_unknown_profile_field(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice")

        with pytest.raises(ValueError, match="avatar"):
            store.update_student(student.id, avatar="x.png")

    def test_no_changes_returns_student(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice")

        assert store.update_student(student.id, name="Alice").updated_at == student.updated_at

    def test_update_not_found(self, store: StateStore) -> None:
        with pytest.raises(StudentNotFoundError):
            store.update_student("missing", name="X")


@pytest.mark.unit
class TestDeleteStudent:
    """Tests for delete_student."""

    def test_delete_student(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="alice")

        store.delete_student(student.id)

        with pytest.raises(StudentNotFoundError):
            store.get_student(student.id)

    def test_delete_not_found(self, store: StateStore) -> None:
        with pytest.raises(StudentNotFoundError):
            store.delete_student("missing")


@pytest.mark.unit
class TestStudentStats:
    """Tests for get_student_stats."""

    def test_empty_roster(self, store: StateStore) -> None:
        stats = store.get_student_stats()

        assert stats.total_students == 0
        assert stats.average_rating == 0
        assert stats.top_rated_handle is None
        assert stats.recently_added == []

    def test_aggregates(self, store: StateStore) -> None:
        a = store.create_student(name="A", handle="aaa")
        b = store.create_student(name="B", handle="bbb")
        store.create_student(name="C", handle="ccc")
        store.apply_profile(a.id, Profile(handle="aaa", rating=2000, rank="master", country="Japan"))
        store.apply_profile(b.id, Profile(handle="BBB", rating=1000, rank="pupil", country="Japan"))

        stats = store.get_student_stats()

        assert stats.total_students == 3
        assert stats.rated_students == 2
        assert stats.unrated_students == 1
        assert stats.average_rating == 1500
        assert stats.highest_rating == 2000
        assert stats.top_rated_handle == "aaa"
        assert stats.rank_distribution == {"master": 1, "newbie": 1, "pupil": 1}
        assert stats.top_countries == {"Japan": 2}
        assert [s.handle for s in stats.recently_added] == ["ccc", "BBB", "aaa"]


@pytest.mark.unit
class TestApplyProfile:
    """Tests for apply_profile."""

    def test_overwrites_mirrored_fields(self, store: StateStore) -> None:
        student = store.create_student(name="Alice", handle="tourist", email="t@x.org")
        synced_at = datetime(2024, 5, 1, 12, 0)

        updated = store.apply_profile(
            student.id,
            Profile(handle="Tourist", first_name="Gennady", rating=3500, max_rating=3900),
            synced_at=synced_at,
        )

        assert updated.handle == "Tourist"
        assert updated.handle_key == "tourist"
        assert updated.first_name == "Gennady"
        assert updated.rating == 3500
        assert updated.max_rating == 3900
        assert updated.last_synced_at == synced_at
        assert updated.name == "Alice"
        assert updated.email == "t@x.org"

    def test_apply_profile_not_found(self, store: StateStore) -> None:
        with pytest.raises(StudentNotFoundError):
            store.apply_profile("missing", Profile(handle="x"))
