"""Records for collected GitHub entities.

Each record maps one REST payload via ``from_api``. Declared fields are the
stable query contract; the remaining scalar fields of the payload travel in
``extra_fields`` so nothing useful is lost, minus ``*_url`` link noise.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ItemType = Literal["issue", "pull_request", "commit", "comment", "review", "review_comment"]


def parse_timestamp(ts: str | None) -> datetime | None:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime.

    Args:
        ts: Timestamp such as ``2025-01-15T10:30:00Z``, or None.

    Returns:
        UTC datetime, or None if the input is missing or malformed.
    """
    if not ts:
        return None
    try:
        dt = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    except (ValueError, AttributeError) as e:
        logger.warning("Failed to parse timestamp '%s': %s", ts, e)
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def _login(user: dict[str, Any] | None) -> str | None:
    return user.get("login") if user else None


def _logins(users: list[dict[str, Any]] | None) -> list[str]:
    return [user["login"] for user in users or [] if user and user.get("login")]


def _label_names(labels: list[Any] | None) -> list[str]:
    names = []
    for label in labels or []:
        name = label.get("name") if isinstance(label, dict) else label
        if name:
            names.append(str(name))
    return names


def _is_scalar(value: Any) -> bool:
    if isinstance(value, list):
        return all(item is None or isinstance(item, (str, int, float, bool)) for item in value)
    return value is None or isinstance(value, (str, int, float, bool))


def extra_fields(payload: dict[str, Any], consumed: set[str]) -> dict[str, Any]:
    """Collect the payload fields not mapped onto declared record fields.

    Keys ending in ``url`` and nested objects are dropped.
    """
    return {
        key: value
        for key, value in payload.items()
        if key not in consumed and not key.endswith("url") and _is_scalar(value)
    }


class Record(BaseModel):
    """Base for collected entity records."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    extra_fields: dict[str, Any] = Field(default_factory=dict)


class RepositoryRecord(Record):
    """Repository metadata."""

    owner: str
    name: str
    full_name: str
    description: str | None = None
    language: str | None = None
    topics: list[str] = Field(default_factory=list)
    visibility: str | None = None
    private: bool = False
    fork: bool = False
    archived: bool = False
    default_branch: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    open_issues: int = 0
    html_url: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "RepositoryRecord":
        """Map a ``GET /repos/{owner}/{repo}`` payload."""
        owner = _login(payload.get("owner")) or payload["full_name"].split("/")[0]
        consumed = {
            "owner", "name", "full_name", "description", "language", "topics", "visibility",
            "private", "fork", "archived", "default_branch", "created_at", "updated_at",
            "pushed_at", "stargazers_count", "forks_count", "watchers_count",
            "subscribers_count", "open_issues_count", "html_url", "id", "node_id",
            "forks", "open_issues", "watchers",
        }  # fmt: skip
        return cls(
            owner=owner,
            name=payload["name"],
            full_name=payload["full_name"],
            description=payload.get("description"),
            language=payload.get("language"),
            topics=payload.get("topics") or [],
            visibility=payload.get("visibility"),
            private=bool(payload.get("private", False)),
            fork=bool(payload.get("fork", False)),
            archived=bool(payload.get("archived", False)),
            default_branch=payload.get("default_branch"),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            pushed_at=parse_timestamp(payload.get("pushed_at")),
            stars=payload.get("stargazers_count") or 0,
            forks=payload.get("forks_count") or 0,
            watchers=payload.get("subscribers_count") or payload.get("watchers_count") or 0,
            open_issues=payload.get("open_issues_count") or 0,
            html_url=payload.get("html_url"),
            extra_fields=extra_fields(payload, consumed),
        )

    @classmethod
    def minimal(cls, owner: str, name: str) -> "RepositoryRecord":
        """Placeholder used when repository metadata could not be fetched."""
        return cls(owner=owner, name=name, full_name=f"{owner}/{name}")


class IssueRecord(Record):
    """Issue (pull requests excluded)."""

    id: int
    number: int
    repository_name: str
    title: str
    state: Literal["open", "closed"]
    state_reason: str | None = None
    author: str | None = None
    assignees: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    comments: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any], repository_name: str) -> "IssueRecord":
        """Map one item of ``GET /repos/{owner}/{repo}/issues``."""
        consumed = {
            "id", "number", "title", "state", "state_reason", "user", "assignee",
            "assignees", "labels", "comments", "created_at", "updated_at", "closed_at",
            "node_id",
        }  # fmt: skip
        return cls(
            id=payload["id"],
            number=payload["number"],
            repository_name=repository_name,
            title=payload.get("title") or "",
            state="closed" if payload.get("state") == "closed" else "open",
            state_reason=payload.get("state_reason"),
            author=_login(payload.get("user")),
            assignees=_logins(payload.get("assignees")),
            labels=_label_names(payload.get("labels")),
            comments=payload.get("comments") or 0,
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            closed_at=parse_timestamp(payload.get("closed_at")),
            extra_fields=extra_fields(payload, consumed),
        )


class PullRequestRecord(Record):
    """Pull request."""

    id: int
    number: int
    repository_name: str
    title: str
    state: Literal["open", "closed", "merged"]
    draft: bool = False
    author: str | None = None
    assignees: list[str] = Field(default_factory=list)
    requested_reviewers: list[str] = Field(default_factory=list)
    labels: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    additions: int | None = None
    deletions: int | None = None
    changed_files: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any], repository_name: str) -> "PullRequestRecord":
        """Map one item of ``GET /repos/{owner}/{repo}/pulls``."""
        consumed = {
            "id", "number", "title", "state", "draft", "user", "assignee", "assignees",
            "requested_reviewers", "labels", "created_at", "updated_at", "closed_at",
            "merged_at", "additions", "deletions", "changed_files", "node_id", "merged",
        }  # fmt: skip
        merged_at = parse_timestamp(payload.get("merged_at"))
        if merged_at is not None:
            state: Literal["open", "closed", "merged"] = "merged"
        elif payload.get("state") == "closed":
            state = "closed"
        else:
            state = "open"

        return cls(
            id=payload["id"],
            number=payload["number"],
            repository_name=repository_name,
            title=payload.get("title") or "",
            state=state,
            draft=bool(payload.get("draft", False)),
            author=_login(payload.get("user")),
            assignees=_logins(payload.get("assignees")),
            requested_reviewers=_logins(payload.get("requested_reviewers")),
            labels=_label_names(payload.get("labels")),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            closed_at=parse_timestamp(payload.get("closed_at")),
            merged_at=merged_at,
            additions=payload.get("additions"),
            deletions=payload.get("deletions"),
            changed_files=payload.get("changed_files"),
            extra_fields=extra_fields(payload, consumed),
        )


class CommitRecord(Record):
    """Commit on the default branch."""

    sha: str
    repository_name: str
    author: str | None = None
    author_name: str | None = None
    date: datetime | None = None
    message: str = ""
    additions: int | None = None
    deletions: int | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any], repository_name: str) -> "CommitRecord":
        """Map one item of ``GET /repos/{owner}/{repo}/commits``.

        ``author`` is the GitHub login when the commit is linked to an
        account, otherwise the git author name.
        """
        commit = payload.get("commit") or {}
        git_author = commit.get("author") or {}
        git_committer = commit.get("committer") or {}
        stats = payload.get("stats") or {}
        author_name = git_author.get("name")

        return cls(
            sha=payload["sha"],
            repository_name=repository_name,
            author=_login(payload.get("author")) or author_name,
            author_name=author_name,
            date=parse_timestamp(git_author.get("date") or git_committer.get("date")),
            message=commit.get("message") or "",
            additions=stats.get("additions"),
            deletions=stats.get("deletions"),
            extra_fields=extra_fields(payload, {"sha", "node_id"}),
        )


class CommentRecord(Record):
    """Issue comment or pull request review (diff) comment."""

    id: int
    repository_name: str
    parent_id: int
    parent_number: int
    parent_type: Literal["issue", "pull_request"]
    author: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    body: str = ""

    @classmethod
    def from_api(
        cls,
        payload: dict[str, Any],
        parent: "IssueRecord | PullRequestRecord",
    ) -> "CommentRecord":
        """Map a comment payload onto its parent issue or pull request."""
        consumed = {"id", "user", "created_at", "updated_at", "body", "node_id"}
        return cls(
            id=payload["id"],
            repository_name=parent.repository_name,
            parent_id=parent.id,
            parent_number=parent.number,
            parent_type="issue" if isinstance(parent, IssueRecord) else "pull_request",
            author=_login(payload.get("user")),
            created_at=parse_timestamp(payload.get("created_at")),
            updated_at=parse_timestamp(payload.get("updated_at")),
            body=payload.get("body") or "",
            extra_fields=extra_fields(payload, consumed),
        )


class ReviewRecord(Record):
    """Pull request review."""

    id: int
    repository_name: str
    parent_id: int
    parent_number: int
    author: str | None = None
    state: str
    submitted_at: datetime | None = None
    body: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any], parent: PullRequestRecord) -> "ReviewRecord":
        """Map one item of ``GET .../pulls/{number}/reviews``."""
        consumed = {"id", "user", "state", "submitted_at", "body", "node_id"}
        return cls(
            id=payload["id"],
            repository_name=parent.repository_name,
            parent_id=parent.id,
            parent_number=parent.number,
            author=_login(payload.get("user")),
            state=payload.get("state") or "COMMENTED",
            submitted_at=parse_timestamp(payload.get("submitted_at")),
            body=payload.get("body") or "",
            extra_fields=extra_fields(payload, consumed),
        )


class ProjectInfo(BaseModel):
    """Projects-v2 board metadata and the repositories it references."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    number: int | None = None
    url: str | None = None
    owner: str | None = None
    owner_type: str | None = None
    description: str | None = None
    public: bool | None = None
    closed: bool | None = None
    item_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    repositories: list[str] = Field(default_factory=list)


class ItemReference(BaseModel):
    """Position of an entity in one of the flat raw arrays."""

    model_config = ConfigDict(frozen=True)

    index: int
    repository_name: str
    type: ItemType


class Indexes(BaseModel):
    """Lookup tables over the raw arrays.

    Keys are strings so the in-memory and JSON forms are identical.
    """

    issues_by_repo: dict[str, list[int]] = Field(default_factory=dict)
    prs_by_repo: dict[str, list[int]] = Field(default_factory=dict)
    commits_by_repo: dict[str, list[int]] = Field(default_factory=dict)
    items_by_author: dict[str, list[ItemReference]] = Field(default_factory=dict)
    items_by_label: dict[str, list[ItemReference]] = Field(default_factory=dict)
    comments_by_issue: dict[str, list[int]] = Field(default_factory=dict)
    reviews_by_pr: dict[str, list[int]] = Field(default_factory=dict)
    review_comments_by_pr: dict[str, list[int]] = Field(default_factory=dict)


class RawData(BaseModel):
    """Flat arrays of every collected entity, in collection order."""

    project: ProjectInfo | None = None
    repositories: list[RepositoryRecord] = Field(default_factory=list)
    issues: list[IssueRecord] = Field(default_factory=list)
    pull_requests: list[PullRequestRecord] = Field(default_factory=list)
    commits: list[CommitRecord] = Field(default_factory=list)
    issue_comments: list[CommentRecord] = Field(default_factory=list)
    pr_reviews: list[ReviewRecord] = Field(default_factory=list)
    pr_review_comments: list[CommentRecord] = Field(default_factory=list)

    def item_counts(self) -> dict[str, int]:
        """Number of records per raw array."""
        return {
            "repositories": len(self.repositories),
            "issues": len(self.issues),
            "pull_requests": len(self.pull_requests),
            "commits": len(self.commits),
            "issue_comments": len(self.issue_comments),
            "pr_reviews": len(self.pr_reviews),
            "pr_review_comments": len(self.pr_review_comments),
        }


class AggregatedData(BaseModel):
    """Raw arrays plus the indexes built over them."""

    raw: RawData
    indexes: Indexes
