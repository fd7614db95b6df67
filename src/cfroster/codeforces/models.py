"""Data models for the Codeforces client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_RANK = "newbie"
DEFAULT_AVATAR = "https://userpic.codeforces.org/no-avatar.jpg"
ACCEPTED_VERDICT = "OK"
PROBLEM_URL_BASE = "https://codeforces.com/contest"


@dataclass(frozen=True)
class Profile:
    """Public profile of a Codeforces user (``user.info`` result item).

    Unrated accounts come back without rank or rating; those fall back to
    ``newbie`` and 0, and the max values fall back to the current ones.
    """

    handle: str
    first_name: str = ""
    last_name: str = ""
    country: str = ""
    city: str = ""
    organization: str = ""
    contribution: int = 0
    rank: str = DEFAULT_RANK
    rating: int = 0
    max_rank: str = DEFAULT_RANK
    max_rating: int = 0
    last_online_time_seconds: int = 0
    registration_time_seconds: int = 0
    friend_of_count: int = 0
    avatar: str = DEFAULT_AVATAR
    title_photo: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Profile:
        """Build a Profile from a raw API result object."""
        rank = data.get("rank") or DEFAULT_RANK
        rating = data.get("rating") or 0
        return cls(
            handle=data["handle"],
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            country=data.get("country") or "",
            city=data.get("city") or "",
            organization=data.get("organization") or "",
            contribution=data.get("contribution") or 0,
            rank=rank,
            rating=rating,
            max_rank=data.get("maxRank") or rank,
            max_rating=data.get("maxRating") or rating,
            last_online_time_seconds=data.get("lastOnlineTimeSeconds") or 0,
            registration_time_seconds=data.get("registrationTimeSeconds") or 0,
            friend_of_count=data.get("friendOfCount") or 0,
            avatar=data.get("avatar") or DEFAULT_AVATAR,
            title_photo=data.get("titlePhoto") or "",
        )

    def to_fields(self) -> dict[str, Any]:
        """Return the mirrored student fields, canonical handle included."""
        return {
            "handle": self.handle,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "country": self.country,
            "city": self.city,
            "organization": self.organization,
            "contribution": self.contribution,
            "rank": self.rank,
            "rating": self.rating,
            "max_rank": self.max_rank,
            "max_rating": self.max_rating,
            "last_online_time_seconds": self.last_online_time_seconds,
            "registration_time_seconds": self.registration_time_seconds,
            "friend_of_count": self.friend_of_count,
            "avatar": self.avatar,
            "title_photo": self.title_photo,
        }


@dataclass(frozen=True)
class Problem:
    """A problem as it appears inside a submission.

    Gym and acmsguru problems can come without a contest id.
    """

    contest_id: int | None
    index: str
    name: str = ""
    rating: int | None = None
    tags: tuple[str, ...] = ()

    @property
    def key(self) -> str:
        """Identity used to count a problem once."""
        return f"{self.contest_id or 'gym'}-{self.index}"

    @property
    def url(self) -> str | None:
        if self.contest_id is None:
            return None
        return f"{PROBLEM_URL_BASE}/{self.contest_id}/problem/{self.index}"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Problem:
        return cls(
            contest_id=data.get("contestId"),
            index=data.get("index") or "",
            name=data.get("name") or "",
            rating=data.get("rating"),
            tags=tuple(data.get("tags") or ()),
        )


@dataclass(frozen=True)
class Submission:
    """A single submission (``user.status`` result item)."""

    id: int
    creation_time_seconds: int
    problem: Problem = field(default_factory=lambda: Problem(contest_id=None, index=""))
    verdict: str | None = None

    @property
    def created_at(self) -> datetime:
        """Submission time as a naive UTC datetime."""
        return datetime.fromtimestamp(self.creation_time_seconds, UTC).replace(tzinfo=None)

    @property
    def accepted(self) -> bool:
        return self.verdict == ACCEPTED_VERDICT

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Submission:
        return cls(
            id=data["id"],
            creation_time_seconds=data["creationTimeSeconds"],
            problem=Problem.from_api(data.get("problem") or {}),
            verdict=data.get("verdict"),
        )


@dataclass(frozen=True)
class RatingChange:
    """One rated contest of a user (``user.rating`` result item)."""

    contest_id: int
    contest_name: str
    rank: int
    old_rating: int
    new_rating: int
    rating_update_time_seconds: int

    @property
    def delta(self) -> int:
        return self.new_rating - self.old_rating

    @property
    def updated_at(self) -> datetime:
        """Rating update time as a naive UTC datetime."""
        return datetime.fromtimestamp(self.rating_update_time_seconds, UTC).replace(tzinfo=None)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RatingChange:
        return cls(
            contest_id=data["contestId"],
            contest_name=data.get("contestName") or "",
            rank=data["rank"],
            old_rating=data["oldRating"],
            new_rating=data["newRating"],
            rating_update_time_seconds=data["ratingUpdateTimeSeconds"],
        )
