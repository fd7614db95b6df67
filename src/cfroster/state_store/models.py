"""SQLAlchemy models for State Store."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
)

from cfroster.codeforces.models import DEFAULT_AVATAR, DEFAULT_RANK


class SyncStatus(StrEnum):
    """Outcome of the most recent sync run."""

    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
    RUNNING = "running"


class SyncFrequency(StrEnum):
    """Human-readable cadence label stored alongside the cron expression."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class EmailType(StrEnum):
    """Kinds of notification email."""

    INACTIVITY_REMINDER = "inactivity_reminder"
    CUSTOM = "custom"


class EmailStatus(StrEnum):
    """Delivery state of an email log entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# Sync Configuration defaults and bounds
DEFAULT_CRON_TIME = "0 2 * * *"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_BATCH_SIZE = 10
DEFAULT_DELAY_BETWEEN_BATCHES = 2000  # ms
DEFAULT_MAX_RETRIES = 3
BATCH_SIZE_RANGE = (1, 100)
DELAY_RANGE = (100, 30000)
MAX_RETRIES_RANGE = (0, 10)


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as naive UTC, the form SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# Student fields mirrored from the Codeforces profile
PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "country",
    "city",
    "organization",
    "contribution",
    "rank",
    "rating",
    "max_rank",
    "max_rating",
    "last_online_time_seconds",
    "registration_time_seconds",
    "friend_of_count",
    "avatar",
    "title_photo",
)


class Student(Base):
    """Student model - one roster entry, keyed by Codeforces handle."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    handle: Mapped[str] = mapped_column(String(24), nullable=False)
    handle_key: Mapped[str] = mapped_column(String(24), nullable=False, unique=True, index=True)

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    organization: Mapped[str] = mapped_column(String(200), nullable=False)
    contribution: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[str] = mapped_column(String(50), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    max_rank: Mapped[str] = mapped_column(String(50), nullable=False)
    max_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    last_online_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    registration_time_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    friend_of_count: Mapped[int] = mapped_column(Integer, nullable=False)
    avatar: Mapped[str] = mapped_column(String(500), nullable=False)
    title_photo: Mapped[str] = mapped_column(String(500), nullable=False)

    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)

    # Inactivity tracking
    last_submission_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    reminder_count: Mapped[int] = mapped_column(Integer, nullable=False)
    last_reminder_sent: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    inactivity_reminders: Mapped[bool] = mapped_column(Boolean, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        name: str,
        handle: str,
        id: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        first_name: str = "",
        last_name: str = "",
        country: str = "",
        city: str = "",
        organization: str = "",
        contribution: int = 0,
        rank: str = DEFAULT_RANK,
        rating: int = 0,
        max_rank: str | None = None,
        max_rating: int = 0,
        last_online_time_seconds: int = 0,
        registration_time_seconds: int = 0,
        friend_of_count: int = 0,
        avatar: str = DEFAULT_AVATAR,
        title_photo: str = "",
        inactivity_reminders: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.name = name
        self.handle = handle
        self.handle_key = handle.lower()
        self.email = email or None
        self.phone = phone or None
        self.first_name = first_name
        self.last_name = last_name
        self.country = country
        self.city = city
        self.organization = organization
        self.contribution = contribution
        self.rank = rank
        self.rating = rating
        self.max_rank = max_rank if max_rank is not None else rank
        self.max_rating = max_rating
        self.last_online_time_seconds = last_online_time_seconds
        self.registration_time_seconds = registration_time_seconds
        self.friend_of_count = friend_of_count
        self.avatar = avatar
        self.title_photo = title_photo
        self.reminder_count = 0
        self.inactivity_reminders = inactivity_reminders
        self.created_at = utcnow()
        self.enforce_rating_invariant()

    def enforce_rating_invariant(self) -> None:
        """Raise max_rating to the current rating if it lags behind."""
        if self.rating is not None and (self.max_rating is None or self.rating > self.max_rating):
            self.max_rating = self.rating

    @property
    def display_name(self) -> str:
        """First + last name when both are known, otherwise the roster name."""
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.name

    def __repr__(self) -> str:
        return f"<Student(id={self.id!r}, handle={self.handle!r}, rating={self.rating!r})>"


@event.listens_for(Student, "before_insert")
@event.listens_for(Student, "before_update")
def _student_before_write(_mapper: object, _connection: object, target: Student) -> None:
    target.enforce_rating_invariant()
    target.handle_key = target.handle.lower()


class SyncSettings(Base):
    """Sync Configuration - schedule, tunables and last-run summary (singleton)."""

    __tablename__ = "sync_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    cron_time: Mapped[str] = mapped_column(String(100), nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)

    batch_size: Mapped[int] = mapped_column(Integer, nullable=False)
    delay_between_batches: Mapped[int] = mapped_column(Integer, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False)

    last_sync_start: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_sync_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_sync_status: Mapped[str] = mapped_column(String(20), nullable=False)
    last_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    users_synced: Mapped[int] = mapped_column(Integer, nullable=False)
    users_skipped: Mapped[int] = mapped_column(Integer, nullable=False)
    users_failed: Mapped[int] = mapped_column(Integer, nullable=False)

    total_syncs: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_sync_duration: Mapped[float] = mapped_column(Float, nullable=False)  # ms

    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __init__(
        self,
        id: str | None = None,
        cron_time: str = DEFAULT_CRON_TIME,
        frequency: str = SyncFrequency.DAILY.value,
        timezone: str = DEFAULT_TIMEZONE,
        enabled: bool = True,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_between_batches: int = DEFAULT_DELAY_BETWEEN_BATCHES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        created_by: str = "system",
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.cron_time = cron_time
        self.frequency = frequency
        self.timezone = timezone
        self.enabled = enabled
        self.batch_size = batch_size
        self.delay_between_batches = delay_between_batches
        self.max_retries = max_retries
        self.last_sync_status = SyncStatus.SUCCESS.value
        self.users_synced = 0
        self.users_skipped = 0
        self.users_failed = 0
        self.total_syncs = 0
        self.avg_sync_duration = 0.0
        self.created_by = created_by
        self.updated_by = created_by
        # Set client-side so "latest created wins" ordering has sub-second resolution
        self.created_at = utcnow()

    @property
    def sync_status(self) -> SyncStatus:
        """Get last_sync_status as SyncStatus enum."""
        return SyncStatus(self.last_sync_status)

    def __repr__(self) -> str:
        return (
            f"<SyncSettings(id={self.id!r}, cron_time={self.cron_time!r}, "
            f"enabled={self.enabled!r}, last_sync_status={self.last_sync_status!r})>"
        )


class EmailLog(Base):
    """Email log model - one row per dispatch attempt."""

    __tablename__ = "email_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    student_handle: Mapped[str] = mapped_column(String(24), nullable=False)
    email_type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __init__(
        self,
        student_id: str,
        student_handle: str,
        email_type: str,
        subject: str,
        id: str | None = None,
        status: str = EmailStatus.PENDING.value,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.id = id if id is not None else generate_uuid()
        self.student_id = student_id
        self.student_handle = student_handle
        self.email_type = email_type
        self.subject = subject
        self.status = status
        self.created_at = utcnow()

    def __repr__(self) -> str:
        return (
            f"<EmailLog(id={self.id!r}, student_handle={self.student_handle!r}, "
            f"email_type={self.email_type!r}, status={self.status!r})>"
        )


@dataclass(frozen=True)
class StudentIdentity:
    """Minimal student view loaded at the start of a sync pass."""

    id: str
    handle: str


@dataclass(frozen=True)
class StudentSyncState:
    """Per-student sync staleness."""

    id: str
    name: str
    handle: str
    rating: int
    rank: str
    last_synced_at: datetime | None
    sync_age_hours: int | None
    needs_sync: bool


@dataclass
class SyncStatistics:
    """Roster-wide sync coverage counts."""

    total_students: int
    synced_students: int
    unsynced_students: int
    recently_synced: int


@dataclass
class StudentStats:
    """Aggregated roster statistics."""

    total_students: int
    rated_students: int
    unrated_students: int
    average_rating: int
    highest_rating: int
    top_rated_handle: str | None
    rank_distribution: dict[str, int] = field(default_factory=dict)
    top_countries: dict[str, int] = field(default_factory=dict)
    recently_added: list[StudentIdentity] = field(default_factory=list)


@dataclass
class StudentPage:
    """One page of a student listing."""

    items: list[Student]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class BulkCreateError:
    """A roster entry that bulk creation rejected."""

    handle: str
    error: str


@dataclass
class BulkCreateResult:
    """Outcome of a bulk creation request."""

    created: list[Student] = field(default_factory=list)
    errors: list[BulkCreateError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.created) + len(self.errors)
