"""Configuration loading and validation."""

import re
from datetime import UTC, date, datetime, time, timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

RELATIVE_SPAN_PATTERN = re.compile(r"^(\d+)\s*([hdwm])$", re.IGNORECASE)
REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_SPAN_UNITS = {
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "m": timedelta(days=30),
}


def parse_when(value: str, reference: datetime, end_of_day: bool = False) -> datetime:
    """Parse a time window bound.

    Accepts an ISO date (``2024-01-01``), an ISO datetime, or a relative span
    counted back from ``reference`` (``12h``, ``30d``, ``4w``, ``3m``).

    Args:
        value: Bound as given on the command line or in YAML.
        reference: Timestamp relative spans are measured from.
        end_of_day: Resolve a date-only value to the last microsecond of that
            day instead of its midnight. Used for ``until`` bounds.

    Returns:
        Timezone-aware datetime (UTC when no offset was given).

    Raises:
        ValueError: If the value cannot be parsed.
    """
    text = value.strip()
    match = RELATIVE_SPAN_PATTERN.match(text)
    if match:
        amount, unit = match.groups()
        return reference - int(amount) * _SPAN_UNITS[unit.lower()]

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        msg = f"Invalid time value '{value}': expected ISO date/datetime or span like 30d"
        raise ValueError(msg) from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    if end_of_day and DATE_ONLY_PATTERN.match(text):
        parsed = _end_of_day(parsed.date())
    return parsed


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=UTC)


class TimeFilter(BaseModel):
    """Inclusive time window applied to every collected entity."""

    model_config = ConfigDict(frozen=True)

    since: datetime | None = None
    until: datetime | None = None

    @field_validator("since", "until", mode="before")
    @classmethod
    def expand_dates(cls, v: Any, info: ValidationInfo) -> Any:
        """Read date-only bounds as whole days.

        ``since`` starts at midnight; ``until`` ends at 23:59:59.999999 UTC.
        """
        if isinstance(v, datetime):
            return v
        if isinstance(v, date):
            if info.field_name == "until":
                return _end_of_day(v)
            return datetime.combine(v, time.min, tzinfo=UTC)
        if info.field_name == "until" and isinstance(v, str):
            text = v.strip()
            if DATE_ONLY_PATTERN.match(text):
                return _end_of_day(date.fromisoformat(text))
        return v

    @field_validator("since", "until")
    @classmethod
    def ensure_timezone(cls, v: datetime | None) -> datetime | None:
        """Treat naive datetimes as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode="after")
    def validate_order(self) -> "TimeFilter":
        """Validate that since is not after until."""
        if self.since and self.until and self.since > self.until:
            msg = (
                f"since ({self.since.isoformat()}) must not be after "
                f"until ({self.until.isoformat()})"
            )
            raise ValueError(msg)
        return self

    def contains(self, timestamp: datetime | None) -> bool:
        """Check whether a timestamp falls inside the window.

        Entities without a timestamp are only accepted by an open window.
        """
        if timestamp is None:
            return self.since is None and self.until is None
        if self.since and timestamp < self.since:
            return False
        return not (self.until and timestamp > self.until)


class CollectionLimits(BaseModel):
    """Per-kind caps bounding API cost and output size."""

    model_config = ConfigDict(frozen=True)

    max_issues_per_repo: int = Field(default=500, ge=0)
    max_prs_per_repo: int = Field(default=200, ge=0)
    max_commits_per_repo: int = Field(default=1000, ge=0)
    max_comments_per_issue: int = Field(default=50, ge=0)
    max_reviews_per_pr: int = Field(default=20, ge=0)


class CollectionOptions(BaseModel):
    """Which entity kinds to fetch, how many, and from which time window.

    Created once per collection run and read-only afterwards.
    """

    model_config = ConfigDict(frozen=True)

    include_issues: bool = True
    include_pull_requests: bool = True
    include_commits: bool = True
    include_comments: bool = True
    include_reviews: bool = True
    limits: CollectionLimits = Field(default_factory=CollectionLimits)
    time_filter: TimeFilter = Field(default_factory=TimeFilter)


class TargetConfig(BaseModel):
    """What to collect: a Projects-v2 board or explicit repositories."""

    project: str | None = None
    repositories: list[str] = Field(default_factory=list)

    @field_validator("repositories")
    @classmethod
    def validate_repositories(cls, v: list[str]) -> list[str]:
        """Validate owner/name repository references."""
        for repo in v:
            if not REPOSITORY_PATTERN.match(repo):
                msg = f"Invalid repository '{repo}': expected owner/name"
                raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def validate_target(self) -> "TargetConfig":
        """Require a project or at least one repository."""
        if not self.project and not self.repositories:
            msg = "target needs a project reference or a list of repositories"
            raise ValueError(msg)
        return self


class AuthConfig(BaseModel):
    """GitHub authentication configuration."""

    token_env: str = "GITHUB_TOKEN"


class GitHubConfig(BaseModel):
    """GitHub configuration section."""

    target: TargetConfig
    auth: AuthConfig = Field(default_factory=AuthConfig)


class CollectionConfig(BaseModel):
    """Collection run configuration section."""

    options: CollectionOptions = Field(default_factory=CollectionOptions)
    max_concurrency: int = Field(default=4, ge=1, le=10)
    timeout_seconds: float = Field(default=600.0, gt=0, description="Overall run deadline")


class HTTPConfig(BaseModel):
    """HTTP client configuration."""

    timeout: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    initial_backoff: float = Field(default=1.0, ge=0)
    max_backoff: float = Field(default=60.0, ge=0)


class StorageConfig(BaseModel):
    """Result file configuration section."""

    root: Path = Field(default=Path("."))
    compress: bool = True


class Config(BaseModel):
    """Root configuration model."""

    github: GitHubConfig
    collection: CollectionConfig = Field(default_factory=CollectionConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def load_config(path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated Config object.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValidationError: If the config is invalid.
    """
    if not path.exists():
        msg = f"Config file not found: {path}"
        raise FileNotFoundError(msg)

    with path.open() as f:
        raw_config: dict[str, Any] = yaml.safe_load(f) or {}

    return Config.model_validate(raw_config)


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge nested override values into a copy of base."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def build_config(path: Path | None, overrides: dict[str, Any]) -> Config:
    """Build configuration from an optional YAML file plus overrides.

    Command-line values arrive as a nested dict shaped like the YAML file;
    they win over values read from the file.

    Args:
        path: Optional path to a YAML configuration file.
        overrides: Nested overrides, e.g. ``{"collection": {"max_concurrency": 2}}``.

    Returns:
        Validated Config object.
    """
    raw_config: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        with path.open() as f:
            raw_config = yaml.safe_load(f) or {}

    return Config.model_validate(_deep_merge(raw_config, overrides))
