"""StateStore - Main API for State Store operations."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cfroster.codeforces.models import Profile
from cfroster.handles import HandleContext, InvalidHandleError, handle_key, normalize_handle
from cfroster.logging import truncate_output
from cfroster.state_store.database import Database
from cfroster.state_store.exceptions import (
    EmailLogNotFoundError,
    InvalidSettingsError,
    StudentExistsError,
    StudentNotFoundError,
)
from cfroster.state_store.models import (
    BATCH_SIZE_RANGE,
    DELAY_RANGE,
    MAX_RETRIES_RANGE,
    BulkCreateError,
    BulkCreateResult,
    EmailLog,
    EmailStatus,
    Student,
    StudentIdentity,
    StudentPage,
    StudentStats,
    StudentSyncState,
    SyncFrequency,
    SyncSettings,
    SyncStatistics,
    SyncStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# A student synced longer ago than this needs a fresh sync
STALE_AFTER = timedelta(hours=24)

MAX_SYNC_ERROR_LENGTH = 1000

SORT_FIELDS = {
    "name": Student.name,
    "handle": Student.handle_key,
    "rating": Student.rating,
    "max_rating": Student.max_rating,
    "created_at": Student.created_at,
    "last_synced_at": Student.last_synced_at,
}

# Admin-editable profile fields; the rest are only written by sync
_EDITABLE_PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "country",
    "city",
    "organization",
    "rating",
    "max_rating",
)


def _normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


class StateStore:
    """Main API for State Store operations.

    Provides CRUD operations for Students, sync bookkeeping, the Sync
    Configuration singleton and Email Logs.
    """

    def __init__(self, db_path: str = "cfroster.db") -> None:
        """Initialize State Store with SQLite database.

        Creates database and tables if they don't exist.

        Args:
            db_path: Path to SQLite database file
        """
        self._db = Database(db_path)
        self._db.create_tables()
        self._settings_lock = threading.Lock()

    def close(self) -> None:
        """Close the database connection."""
        self._db.close()

    # --- Student Operations ---

    def _ensure_unique(
        self,
        session: Session,
        key: str | None,
        email: str | None,
        exclude_id: str | None = None,
    ) -> None:
        if key is not None:
            stmt = select(Student.id).where(Student.handle_key == key)
            if exclude_id is not None:
                stmt = stmt.where(Student.id != exclude_id)
            if session.execute(stmt).first() is not None:
                raise StudentExistsError(f"Student with handle '{key}' already exists")
        if email is not None:
            stmt = select(Student.id).where(Student.email == email)
            if exclude_id is not None:
                stmt = stmt.where(Student.id != exclude_id)
            if session.execute(stmt).first() is not None:
                raise StudentExistsError(f"Student with email '{email}' already exists")

    def _get_student(self, session: Session, student_id: str) -> Student:
        student = session.get(Student, student_id)
        if student is None:
            raise StudentNotFoundError(f"Student with id '{student_id}' not found")
        return student

    def create_student(
        self,
        name: str,
        handle: str,
        email: str | None = None,
        phone: str | None = None,
        inactivity_reminders: bool = True,
    ) -> Student:
        """Create a new student with default profile values.

        Args:
            name: Display name
            handle: Codeforces handle (1-24 characters)
            email: Contact email; empty means none
            phone: Contact phone; empty means none
            inactivity_reminders: Whether the student receives reminders

        Returns:
            Created Student object with generated ID

        Raises:
            InvalidHandleError: If the handle is malformed
            StudentExistsError: If the handle or email is already taken
        """
        handle = normalize_handle(handle, HandleContext.CREATE)
        email = _normalize_email(email)

        session = self._db.get_session()
        try:
            self._ensure_unique(session, handle_key(handle), email)
            student = Student(
                name=name.strip(),
                handle=handle,
                email=email,
                phone=(phone or "").strip() or None,
                inactivity_reminders=inactivity_reminders,
            )
            session.add(student)
            session.commit()
            session.refresh(student)
            logger.info("Created student %s (%s)", student.handle, student.id)
            return student
        except IntegrityError as e:
            session.rollback()
            raise StudentExistsError(f"Student with handle '{handle}' already exists") from e
        finally:
            session.close()

    def bulk_create_students(self, entries: Iterable[Mapping[str, Any]]) -> BulkCreateResult:
        """Create many students, collecting per-entry failures.

        Args:
            entries: Mappings with "name", "handle" and optional "email"/"phone"

        Returns:
            BulkCreateResult with the created students and rejected entries
        """
        result = BulkCreateResult()
        for entry in entries:
            name = (entry.get("name") or "").strip()
            handle = (entry.get("handle") or "").strip()
            if not name or not handle:
                result.errors.append(
                    BulkCreateError(handle or "unknown", "Name and handle are required")
                )
                continue
            try:
                student = self.create_student(
                    name=name,
                    handle=handle,
                    email=entry.get("email"),
                    phone=entry.get("phone"),
                )
            except (InvalidHandleError, StudentExistsError) as e:
                result.errors.append(BulkCreateError(handle, str(e)))
                continue
            result.created.append(student)

        logger.info(
            "Bulk creation completed: %d created, %d errors",
            len(result.created),
            len(result.errors),
        )
        return result

    def get_student(self, student_id: str) -> Student:
        """Get student by ID.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            return self._get_student(session, student_id)
        finally:
            session.close()

    def get_student_by_handle(self, handle: str) -> Student:
        """Get student by handle, ignoring case.

        Raises:
            StudentNotFoundError: If no student has this handle
        """
        session = self._db.get_session()
        try:
            stmt = select(Student).where(Student.handle_key == handle_key(handle))
            student = session.execute(stmt).scalar_one_or_none()
            if student is None:
                raise StudentNotFoundError(f"Student with handle '{handle}' not found")
            return student
        finally:
            session.close()

    def list_students(
        self,
        search: str | None = None,
        sort_by: str = "created_at",
        descending: bool = False,
        page: int = 1,
        limit: int = 10,
    ) -> StudentPage:
        """List students, one page at a time.

        Args:
            search: Case-insensitive substring of name, handle or email
            sort_by: One of SORT_FIELDS
            descending: Sort direction
            page: 1-based page number
            limit: Page size

        Returns:
            StudentPage with the page items and total match count

        Raises:
            ValueError: If sort_by is not a sortable field
        """
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"Cannot sort students by '{sort_by}'")
        page = max(1, page)
        limit = max(1, limit)

        session = self._db.get_session()
        try:
            stmt = select(Student)
            if search:
                pattern = f"%{search.strip().lower()}%"
                stmt = stmt.where(
                    or_(
                        func.lower(Student.name).like(pattern),
                        Student.handle_key.like(pattern),
                        Student.email.like(pattern),
                    )
                )

            total = session.execute(
                select(func.count()).select_from(stmt.subquery())
            ).scalar_one()

            column = SORT_FIELDS[sort_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc(), Student.id)
            stmt = stmt.limit(limit).offset((page - 1) * limit)
            items = list(session.execute(stmt).scalars().all())
            return StudentPage(items=items, total=total, page=page, limit=limit)
        finally:
            session.close()

    def update_student(
        self,
        student_id: str,
        name: str | None = None,
        handle: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        inactivity_reminders: bool | None = None,
        **profile: Any,
    ) -> Student:
        """Update student fields. Only provided fields are updated.

        An empty string for email or phone clears it. Changing the handle
        resets last_synced_at so the next sync picks the student up.

        Args:
            student_id: The student's unique ID
            name: New display name (optional)
            handle: New Codeforces handle (optional)
            email: New email, "" to clear (optional)
            phone: New phone, "" to clear (optional)
            inactivity_reminders: New opt-in flag (optional)
            **profile: Admin-editable profile fields (first_name, last_name,
                country, city, organization, rating, max_rating)

        Returns:
            The updated Student object

        Raises:
            StudentNotFoundError: If student doesn't exist
            StudentExistsError: If the new handle or email is taken
            InvalidHandleError: If the new handle is malformed
            ValueError: If an unknown profile field is given
        """
        unknown = set(profile) - set(_EDITABLE_PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if handle is not None:
            handle = normalize_handle(handle, HandleContext.CREATE)

        session = self._db.get_session()
        try:
            student = self._get_student(session, student_id)

            changes: dict[str, Any] = {}
            if name is not None and name.strip() != student.name:
                changes["name"] = name.strip()
            if handle is not None and handle != student.handle:
                changes["handle"] = handle
            if email is not None and _normalize_email(email) != student.email:
                changes["email"] = _normalize_email(email)
            if phone is not None and ((phone.strip() or None) != student.phone):
                changes["phone"] = phone.strip() or None
            if inactivity_reminders is not None and (
                inactivity_reminders != student.inactivity_reminders
            ):
                changes["inactivity_reminders"] = inactivity_reminders
            for field_name, value in profile.items():
                if value is not None and getattr(student, field_name) != value:
                    changes[field_name] = value

            if not changes:
                logger.debug("No changes detected for student %s", student.handle)
                return student

            new_key = handle_key(changes["handle"]) if "handle" in changes else None
            if new_key == student.handle_key:
                new_key = None
            self._ensure_unique(session, new_key, changes.get("email"), exclude_id=student.id)

            for field_name, value in changes.items():
                setattr(student, field_name, value)
            if new_key is not None:
                student.last_synced_at = None

            session.commit()
            session.refresh(student)
            logger.info("Updated student %s: %s", student.handle, ", ".join(sorted(changes)))
            return student
        except IntegrityError as e:
            session.rollback()
            raise StudentExistsError("Another student already uses this handle or email") from e
        finally:
            session.close()

    def delete_student(self, student_id: str) -> None:
        """Delete a student.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            student = self._get_student(session, student_id)
            session.delete(student)
            session.commit()
            logger.info("Deleted student %s (%s)", student.handle, student_id)
        finally:
            session.close()

    def get_student_stats(self) -> StudentStats:
        """Compute roster-wide statistics.

        Returns:
            StudentStats with rating aggregates, rank and country breakdowns
            and the five most recently added students
        """
        session = self._db.get_session()
        try:
            total = session.execute(select(func.count(Student.id))).scalar_one()
            rated, avg_rating = session.execute(
                select(func.count(Student.id), func.avg(Student.rating)).where(Student.rating > 0)
            ).one()
            top = session.execute(
                select(Student.handle, Student.rating)
                .order_by(Student.rating.desc(), Student.created_at)
                .limit(1)
            ).first()

            ranks = session.execute(
                select(Student.rank, func.count(Student.id))
                .group_by(Student.rank)
                .order_by(func.count(Student.id).desc(), Student.rank)
            ).all()
            countries = session.execute(
                select(Student.country, func.count(Student.id))
                .where(Student.country != "")
                .group_by(Student.country)
                .order_by(func.count(Student.id).desc(), Student.country)
                .limit(10)
            ).all()
            recent = session.execute(
                select(Student.id, Student.handle)
                .order_by(Student.created_at.desc(), Student.id)
                .limit(5)
            ).all()

            return StudentStats(
                total_students=total,
                rated_students=rated,
                unrated_students=total - rated,
                average_rating=round(avg_rating) if avg_rating else 0,
                highest_rating=top.rating if top else 0,
                top_rated_handle=top.handle if top else None,
                rank_distribution={rank: count for rank, count in ranks},
                top_countries={country: count for country, count in countries},
                recently_added=[StudentIdentity(id=row.id, handle=row.handle) for row in recent],
            )
        finally:
            session.close()

    # --- Sync Bookkeeping ---

    def list_student_identities(self) -> list[StudentIdentity]:
        """Return id and handle of every student in creation order."""
        session = self._db.get_session()
        try:
            stmt = select(Student.id, Student.handle).order_by(Student.created_at, Student.id)
            return [StudentIdentity(id=row.id, handle=row.handle) for row in session.execute(stmt)]
        finally:
            session.close()

    def touch_synced(self, student_ids: Sequence[str], synced_at: datetime | None = None) -> int:
        """Stamp last_synced_at without touching profile fields.

        Args:
            student_ids: Students to stamp
            synced_at: Timestamp to record (defaults to now)

        Returns:
            Number of rows stamped
        """
        if not student_ids:
            return 0
        session = self._db.get_session()
        try:
            result = session.execute(
                update(Student)
                .where(Student.id.in_(list(student_ids)))
                .values(last_synced_at=synced_at or utcnow())
            )
            session.commit()
            return result.rowcount
        finally:
            session.close()

    def apply_profile(
        self,
        student_id: str,
        profile: Profile,
        synced_at: datetime | None = None,
    ) -> Student:
        """Overwrite mirrored fields from a fetched profile and stamp the sync.

        The stored handle takes the profile's canonical casing.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            student = self._get_student(session, student_id)
            for field_name, value in profile.to_fields().items():
                setattr(student, field_name, value)
            student.last_synced_at = synced_at or utcnow()
            session.commit()
            session.refresh(student)
            return student
        finally:
            session.close()

    def mark_sync_started(self, started_at: datetime | None = None) -> SyncSettings:
        """Persist status "running" and the run start time."""
        settings = self.get_current_settings()
        session = self._db.get_session()
        try:
            settings = session.merge(settings)
            settings.last_sync_status = SyncStatus.RUNNING.value
            settings.last_sync_start = started_at or utcnow()
            session.commit()
            session.refresh(settings)
            return settings
        finally:
            session.close()

    def finish_sync(
        self,
        status: SyncStatus,
        synced: int = 0,
        skipped: int = 0,
        failed: int = 0,
        duration_ms: float = 0.0,
        error: str | None = None,
        finished_at: datetime | None = None,
    ) -> SyncSettings:
        """Persist the run summary.

        A FAILED run only records its status, end time and error; the counts
        and running statistics are left as they were.

        Args:
            status: Final run status
            synced: Students updated from Codeforces
            skipped: Students not found or with invalid handles
            failed: Students whose batch or update failed
            duration_ms: Run duration in milliseconds
            error: Error summary, None to clear
            finished_at: End timestamp (defaults to now)

        Returns:
            The updated SyncSettings
        """
        settings = self.get_current_settings()
        session = self._db.get_session()
        try:
            settings = session.merge(settings)
            settings.last_sync_status = SyncStatus(status).value
            settings.last_sync_end = finished_at or utcnow()
            settings.last_sync_error = (
                truncate_output(error, MAX_SYNC_ERROR_LENGTH) if error else None
            )

            if status != SyncStatus.FAILED:
                settings.users_synced = synced
                settings.users_skipped = skipped
                settings.users_failed = failed
                n = settings.total_syncs
                settings.avg_sync_duration = (settings.avg_sync_duration * n + duration_ms) / (
                    n + 1
                )
                settings.total_syncs = n + 1

            session.commit()
            session.refresh(settings)
            return settings
        finally:
            session.close()

    def list_sync_states(self, now: datetime | None = None) -> list[StudentSyncState]:
        """Report how stale each student's mirrored data is.

        Returns:
            One entry per student, never-synced and oldest first
        """
        now = now or utcnow()
        session = self._db.get_session()
        try:
            stmt = select(Student).order_by(
                Student.last_synced_at.is_not(None), Student.last_synced_at, Student.handle_key
            )
            states = []
            for student in session.execute(stmt).scalars():
                synced_at = student.last_synced_at
                age = now - synced_at if synced_at is not None else None
                states.append(
                    StudentSyncState(
                        id=student.id,
                        name=student.name,
                        handle=student.handle,
                        rating=student.rating,
                        rank=student.rank,
                        last_synced_at=synced_at,
                        sync_age_hours=int(age.total_seconds() // 3600) if age is not None else None,
                        needs_sync=age is None or age > STALE_AFTER,
                    )
                )
            return states
        finally:
            session.close()

    def get_sync_statistics(self, now: datetime | None = None) -> SyncStatistics:
        """Count synced, never-synced and recently synced students."""
        now = now or utcnow()
        session = self._db.get_session()
        try:
            total = session.execute(select(func.count(Student.id))).scalar_one()
            synced = session.execute(
                select(func.count(Student.id)).where(Student.last_synced_at.is_not(None))
            ).scalar_one()
            recent = session.execute(
                select(func.count(Student.id)).where(Student.last_synced_at >= now - STALE_AFTER)
            ).scalar_one()
            return SyncStatistics(
                total_students=total,
                synced_students=synced,
                unsynced_students=total - synced,
                recently_synced=recent,
            )
        finally:
            session.close()

    # --- Sync Configuration ---

    def get_current_settings(self) -> SyncSettings:
        """Return the Sync Configuration, creating the defaults if none exists.

        If several rows exist the most recently created one wins.
        """
        with self._settings_lock:
            session = self._db.get_session()
            try:
                stmt = (
                    select(SyncSettings)
                    .order_by(SyncSettings.created_at.desc(), SyncSettings.id.desc())
                    .limit(1)
                )
                settings = session.execute(stmt).scalar_one_or_none()
                if settings is None:
                    settings = SyncSettings()
                    session.add(settings)
                    session.commit()
                    session.refresh(settings)
                    logger.info("Created default sync settings (%s)", settings.cron_time)
                return settings
            finally:
                session.close()

    def update_settings(
        self,
        cron_time: str | None = None,
        frequency: str | None = None,
        timezone: str | None = None,
        enabled: bool | None = None,
        batch_size: int | None = None,
        delay_between_batches: int | None = None,
        max_retries: int | None = None,
        updated_by: str = "admin",
    ) -> SyncSettings:
        """Update Sync Configuration fields. Only provided fields are updated.

        Cron values are only checked for shape here; the scheduler rejects
        expressions it cannot build a trigger from.

        Raises:
            InvalidSettingsError: If a value is out of bounds or malformed
        """
        if cron_time is not None:
            cron_time = " ".join(cron_time.split())
            if len(cron_time.split(" ")) not in (5, 6):
                raise InvalidSettingsError(
                    f"Cron expression must have 5 or 6 fields, got '{cron_time}'"
                )
        if frequency is not None and frequency not in SyncFrequency._value2member_map_:
            raise InvalidSettingsError(f"Unknown frequency '{frequency}'")
        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise InvalidSettingsError(f"Unknown timezone '{timezone}'") from e
        for field_name, value, (low, high) in (
            ("batch_size", batch_size, BATCH_SIZE_RANGE),
            ("delay_between_batches", delay_between_batches, DELAY_RANGE),
            ("max_retries", max_retries, MAX_RETRIES_RANGE),
        ):
            if value is not None and not low <= value <= high:
                raise InvalidSettingsError(
                    f"{field_name} must be between {low} and {high}, got {value}"
                )

        settings = self.get_current_settings()
        session = self._db.get_session()
        try:
            settings = session.merge(settings)
            if cron_time is not None:
                settings.cron_time = cron_time
            if frequency is not None:
                settings.frequency = frequency
            if timezone is not None:
                settings.timezone = timezone
            if enabled is not None:
                settings.enabled = enabled
            if batch_size is not None:
                settings.batch_size = batch_size
            if delay_between_batches is not None:
                settings.delay_between_batches = delay_between_batches
            if max_retries is not None:
                settings.max_retries = max_retries
            settings.updated_by = updated_by

            session.commit()
            session.refresh(settings)
            logger.info(
                "Sync settings updated by %s: cron=%s tz=%s enabled=%s",
                updated_by,
                settings.cron_time,
                settings.timezone,
                settings.enabled,
            )
            return settings
        finally:
            session.close()

    # --- Inactivity Tracking ---

    def list_reminder_candidates(self) -> list[Student]:
        """Students with an email who have not opted out of reminders."""
        session = self._db.get_session()
        try:
            stmt = (
                select(Student)
                .where(Student.email.is_not(None), Student.inactivity_reminders.is_(True))
                .order_by(Student.created_at, Student.id)
            )
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()

    def update_activity(self, student_id: str, last_submission_date: datetime | None) -> Student:
        """Record the student's most recent submission time.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            student = self._get_student(session, student_id)
            student.last_submission_date = last_submission_date
            session.commit()
            session.refresh(student)
            return student
        finally:
            session.close()

    def record_reminder_sent(self, student_id: str, sent_at: datetime | None = None) -> Student:
        """Increment the reminder counter and stamp the send time.

        Raises:
            StudentNotFoundError: If student doesn't exist
        """
        session = self._db.get_session()
        try:
            student = self._get_student(session, student_id)
            student.reminder_count += 1
            student.last_reminder_sent = sent_at or utcnow()
            session.commit()
            session.refresh(student)
            return student
        finally:
            session.close()

    # --- Email Logs ---

    def create_email_log(
        self,
        student_id: str,
        student_handle: str,
        email_type: str,
        subject: str,
    ) -> EmailLog:
        """Create a pending email log entry."""
        session = self._db.get_session()
        try:
            log = EmailLog(
                student_id=student_id,
                student_handle=student_handle,
                email_type=email_type,
                subject=subject,
            )
            session.add(log)
            session.commit()
            session.refresh(log)
            return log
        finally:
            session.close()

    def update_email_log(
        self,
        log_id: str,
        status: EmailStatus,
        error: str | None = None,
        sent_at: datetime | None = None,
    ) -> EmailLog:
        """Set the delivery status of an email log entry.

        Raises:
            EmailLogNotFoundError: If the entry doesn't exist
        """
        session = self._db.get_session()
        try:
            log = session.get(EmailLog, log_id)
            if log is None:
                raise EmailLogNotFoundError(f"Email log with id '{log_id}' not found")
            log.status = EmailStatus(status).value
            log.error = error
            if sent_at is not None:
                log.sent_at = sent_at
            session.commit()
            session.refresh(log)
            return log
        finally:
            session.close()

    def list_email_logs(
        self,
        student_id: str | None = None,
        email_type: str | None = None,
        status: EmailStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[EmailLog]:
        """Query email logs, most recent first."""
        session = self._db.get_session()
        try:
            stmt = select(EmailLog)
            if student_id is not None:
                stmt = stmt.where(EmailLog.student_id == student_id)
            if email_type is not None:
                stmt = stmt.where(EmailLog.email_type == email_type)
            if status is not None:
                stmt = stmt.where(EmailLog.status == EmailStatus(status).value)
            stmt = stmt.order_by(EmailLog.created_at.desc()).limit(limit).offset(offset)
            return list(session.execute(stmt).scalars().all())
        finally:
            session.close()
