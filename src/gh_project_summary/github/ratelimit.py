"""API quota accounting for a collection run.

One QuotaTracker is shared by every client of a run. All mutation happens
synchronously between awaits, so no lock is needed.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class APIType(str, Enum):
    """GitHub API type for separate quota tracking."""

    REST = "rest"
    GRAPHQL = "graphql"


@dataclass
class QuotaState:
    """Last seen quota for one API type plus call counters."""

    api_type: APIType
    calls_made: int = 0
    retries: int = 0
    limit: int | None = None
    remaining: int | None = None
    reset_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `metadata.api_usage` entry shape."""
        return {
            "calls_made": self.calls_made,
            "retries": self.retries,
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_at.isoformat() if self.reset_at else None,
        }


def _api_type_for(headers: httpx.Headers, path: str) -> APIType:
    resource = headers.get("x-ratelimit-resource")
    if resource == "graphql" or path.rstrip("/").endswith("/graphql"):
        return APIType.GRAPHQL
    return APIType.REST


@dataclass
class QuotaTracker:
    """Accumulates request counts and quota headers per API type."""

    states: dict[APIType, QuotaState] = field(
        default_factory=lambda: {api: QuotaState(api) for api in APIType}
    )

    def record_response(self, path: str, headers: httpx.Headers) -> None:
        """Count one request that reached GitHub and store its quota headers.

        Args:
            path: Request path, used to tell GraphQL from REST.
            headers: Response headers.
        """
        state = self.states[_api_type_for(headers, path)]
        state.calls_made += 1

        if "x-ratelimit-limit" not in headers:
            return
        state.limit = int(headers["x-ratelimit-limit"])
        state.remaining = int(headers.get("x-ratelimit-remaining", "0"))
        reset = int(headers.get("x-ratelimit-reset", "0"))
        state.reset_at = datetime.fromtimestamp(reset, tz=UTC) if reset else None

        if state.remaining == 0:
            logger.warning(
                "%s quota exhausted, resets at %s",
                state.api_type.value,
                state.reset_at.isoformat() if state.reset_at else "unknown",
            )

    def record_failure(self, path: str) -> None:
        """Count a request that never produced a response (timeout, network)."""
        self.states[_api_type_for(httpx.Headers(), path)].calls_made += 1

    def record_retry(self, path: str) -> None:
        """Count a retry for the API type of path."""
        self.states[_api_type_for(httpx.Headers(), path)].retries += 1

    def seed_from_rate_limit(self, payload: dict[str, Any]) -> None:
        """Store quota from a `GET /rate_limit` body.

        Args:
            payload: JSON body with a `resources` mapping.
        """
        resources = payload.get("resources", {})
        for api_type, key in ((APIType.REST, "core"), (APIType.GRAPHQL, "graphql")):
            resource = resources.get(key)
            if not resource:
                continue
            state = self.states[api_type]
            state.limit = resource.get("limit")
            state.remaining = resource.get("remaining")
            reset = resource.get("reset")
            state.reset_at = datetime.fromtimestamp(reset, tz=UTC) if reset else None

    @property
    def total_calls(self) -> int:
        """Requests made across every API type."""
        return sum(state.calls_made for state in self.states.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `metadata.api_usage` shape."""
        return {
            "total_calls": self.total_calls,
            **{api.value: state.to_dict() for api, state in self.states.items()},
        }
