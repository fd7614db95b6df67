"""Shared pytest fixtures and configuration."""

from collections.abc import Callable
from typing import Any

import pytest

from cfroster.state_store import StateStore


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


@pytest.fixture
def store():
    """Create an in-memory StateStore."""
    s = StateStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def cf_user() -> Callable[..., dict[str, Any]]:
    """Factory for raw ``user.info`` result objects."""

    def make(handle: str, rating: int | None = 1500, **overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "handle": handle,
            "firstName": "Test",
            "lastName": "User",
            "country": "Poland",
            "city": "Warsaw",
            "organization": "University",
            "contribution": 5,
            "lastOnlineTimeSeconds": 1_700_000_000,
            "registrationTimeSeconds": 1_500_000_000,
            "friendOfCount": 10,
            "avatar": f"https://userpic.codeforces.org/{handle}/avatar.jpg",
            "titlePhoto": f"https://userpic.codeforces.org/{handle}/title.jpg",
        }
        if rating is not None:
            data.update(rank="specialist", rating=rating, maxRank="expert", maxRating=rating + 100)
        data.update(overrides)
        return data

    return make
