"""CodeforcesClient - Talks to the public Codeforces API."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

import httpx

from cfroster.codeforces.exceptions import CodeforcesAPIError, CodeforcesTransportError
from cfroster.codeforces.models import Profile, RatingChange, Submission

logger = logging.getLogger("cfroster.codeforces")

DEFAULT_BASE_URL = "https://codeforces.com/api"
HANDLE_SEPARATOR = ";"
USER_AGENT = "cfroster-sync/0.1"

T = TypeVar("T")


class CodeforcesClient:
    """Client for the Codeforces REST API.

    The API is rate limited (roughly one call per two seconds), so callers are
    expected to batch handles into ``user_info`` and pace their requests.
    One instance is shared by the sync, inactivity and analytics threads.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the Codeforces client.

        Args:
            base_url: Codeforces API base URL (for testing/mirrors)
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    @property
    def client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        with self._client_lock:
            if self._client is None:
                self._client = httpx.Client(
                    base_url=self.base_url,
                    headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                    timeout=self.timeout,
                )
            return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def _call(self, method: str, params: dict[str, Any]) -> Any:
        """Call an API method and unwrap the response envelope.

        Args:
            method: API method name, e.g. "user.info"
            params: Query parameters

        Returns:
            The ``result`` member of an OK response

        Raises:
            CodeforcesTransportError: If the request did not complete
            CodeforcesAPIError: If the API answered with FAILED or garbage
        """
        try:
            response = self.client.get(f"/{method}", params=params)
        except httpx.HTTPError as e:
            raise CodeforcesTransportError(f"{method} request failed: {e}") from e

        # Codeforces reports FAILED with HTTP 400 and a JSON body, so parse first
        try:
            payload = response.json()
        except ValueError as e:
            raise CodeforcesAPIError(
                f"{method} returned non-JSON response: {response.status_code}"
            ) from e

        if not isinstance(payload, dict):
            raise CodeforcesAPIError(
                f"{method} returned malformed response: {type(payload).__name__} body"
            )

        status = payload.get("status")
        if status != "OK":
            comment = payload.get("comment")
            raise CodeforcesAPIError(
                f"{method} returned {status or response.status_code}: {comment}",
                comment=comment,
            )

        return payload.get("result")

    def _parse(self, method: str, result: Any, parse: Callable[[dict[str, Any]], T]) -> list[T]:
        """Parse a list result item by item.

        Raises:
            CodeforcesAPIError: If the result is not a list of well-formed objects
        """
        if result is None:
            return []
        if not isinstance(result, list):
            raise CodeforcesAPIError(f"{method} returned malformed result: expected a list")
        try:
            return [parse(item) for item in result]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise CodeforcesAPIError(f"{method} returned malformed result: {e!r}") from e

    def user_info(self, handles: Sequence[str]) -> list[Profile]:
        """Fetch profiles for one or many handles in a single call.

        Args:
            handles: Handles to look up

        Returns:
            Profiles in the order Codeforces returns them. Handles are in
            Codeforces' canonical casing.
        """
        if not handles:
            return []
        joined = HANDLE_SEPARATOR.join(handles)
        logger.debug("Fetching user.info for %d handles", len(handles))
        result = self._call("user.info", {"handles": joined})
        return self._parse("user.info", result, Profile.from_api)

    def user_status(self, handle: str, count: int | None = 50) -> list[Submission]:
        """Fetch the submissions of a user, newest first.

        Args:
            handle: Codeforces handle
            count: Maximum number of submissions to return; None for all

        Returns:
            List of submissions
        """
        params: dict[str, Any] = {"handle": handle}
        if count is not None:
            params.update({"from": 1, "count": count})
        result = self._call("user.status", params)
        return self._parse("user.status", result, Submission.from_api)

    def user_rating(self, handle: str) -> list[RatingChange]:
        """Fetch the rated contests of a user, oldest first."""
        result = self._call("user.rating", {"handle": handle})
        return self._parse("user.rating", result, RatingChange.from_api)

    def last_submission_time(self, handle: str) -> datetime | None:
        """Return when the user last submitted anything, or None if never."""
        submissions = self.user_status(handle, count=1)
        if not submissions:
            return None
        return submissions[0].created_at
