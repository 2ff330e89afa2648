"""Test fixtures for gh-project-summary.

Provides fixtures for:
- REST payload builders shaped like GitHub API responses
- A small two-repository RawData set with known metrics
- A token-free environment for authentication tests
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from gh_project_summary.models import (
    CommentRecord,
    CommitRecord,
    IssueRecord,
    PullRequestRecord,
    RawData,
    RepositoryRecord,
    ReviewRecord,
)

PayloadBuilder = Callable[..., dict[str, Any]]


@pytest.fixture
def no_token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove GitHub tokens from the environment."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GH_PROJECT_TOKEN", raising=False)


@pytest.fixture
def repo_payload() -> PayloadBuilder:
    """Build a `GET /repos/{owner}/{repo}` payload."""

    def build(full_name: str = "acme/widgets", **overrides: Any) -> dict[str, Any]:
        owner, name = full_name.split("/")
        payload: dict[str, Any] = {
            "id": 1001,
            "node_id": "R_1001",
            "name": name,
            "full_name": full_name,
            "owner": {"login": owner, "type": "Organization"},
            "description": "Widgets for everyone",
            "language": "Python",
            "topics": ["widgets"],
            "visibility": "public",
            "private": False,
            "fork": False,
            "archived": False,
            "default_branch": "main",
            "created_at": "2020-01-01T00:00:00Z",
            "updated_at": "2024-01-20T00:00:00Z",
            "pushed_at": "2024-01-20T00:00:00Z",
            "stargazers_count": 42,
            "forks_count": 7,
            "subscribers_count": 5,
            "open_issues_count": 3,
            "html_url": f"https://github.com/{full_name}",
            "issues_url": f"https://api.github.com/repos/{full_name}/issues{{/number}}",
            "has_wiki": True,
            "license": {"key": "mit"},
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def issue_payload() -> PayloadBuilder:
    """Build one item of `GET /repos/{owner}/{repo}/issues`."""

    def build(number: int = 1, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": 5000 + number,
            "node_id": f"I_{number}",
            "number": number,
            "title": f"Issue {number}",
            "state": "open",
            "state_reason": None,
            "user": {"login": "alice"},
            "assignees": [{"login": "bob"}],
            "labels": [{"name": "bug"}],
            "comments": 0,
            "created_at": "2024-01-10T00:00:00Z",
            "updated_at": "2024-01-12T00:00:00Z",
            "closed_at": None,
            "author_association": "MEMBER",
            "html_url": f"https://github.com/acme/widgets/issues/{number}",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def pull_payload() -> PayloadBuilder:
    """Build one item of `GET /repos/{owner}/{repo}/pulls`."""

    def build(number: int = 10, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": 7000 + number,
            "node_id": f"PR_{number}",
            "number": number,
            "title": f"Pull {number}",
            "state": "open",
            "draft": False,
            "user": {"login": "carol"},
            "assignees": [],
            "requested_reviewers": [{"login": "alice"}],
            "labels": [{"name": "enhancement"}],
            "created_at": "2024-01-10T00:00:00Z",
            "updated_at": "2024-01-12T00:00:00Z",
            "closed_at": None,
            "merged_at": None,
            "base": {"ref": "main"},
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def commit_payload() -> PayloadBuilder:
    """Build one item of `GET /repos/{owner}/{repo}/commits`."""

    def build(sha: str = "abc123", **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sha": sha,
            "node_id": f"C_{sha}",
            "author": {"login": "alice"},
            "commit": {
                "author": {"name": "Alice", "date": "2024-01-15T00:00:00Z"},
                "committer": {"name": "Alice", "date": "2024-01-15T00:00:00Z"},
                "message": "Fix widget alignment",
            },
            "html_url": f"https://github.com/acme/widgets/commit/{sha}",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def comment_payload() -> PayloadBuilder:
    """Build an issue comment or review comment payload."""

    def build(comment_id: int = 9001, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": comment_id,
            "node_id": f"IC_{comment_id}",
            "user": {"login": "bob"},
            "body": "Looks good to me",
            "created_at": "2024-01-11T00:00:00Z",
            "updated_at": "2024-01-11T00:00:00Z",
            "author_association": "MEMBER",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def review_payload() -> PayloadBuilder:
    """Build one item of `GET .../pulls/{number}/reviews`."""

    def build(review_id: int = 8001, **overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": review_id,
            "node_id": f"PRR_{review_id}",
            "user": {"login": "alice"},
            "state": "APPROVED",
            "body": "",
            "submitted_at": "2024-01-11T12:00:00Z",
            "commit_id": "abc123",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def reference_time() -> datetime:
    """Reference time used by metric tests."""
    return datetime(2024, 2, 1, tzinfo=UTC)


@pytest.fixture
def two_repo_raw() -> RawData:
    """Raw data for org/a (3 issues, 1 closed) and org/b (no issues).

    The closed issue was open from 2024-01-01 to 2024-01-05.
    """
    repo_a = RepositoryRecord(
        owner="org", name="a", full_name="org/a", language="Python", stars=10, forks=2
    )
    repo_b = RepositoryRecord(
        owner="org", name="b", full_name="org/b", language="Go", stars=5, forks=1
    )
    issues = [
        IssueRecord(
            id=1,
            number=1,
            repository_name="org/a",
            title="Closed issue",
            state="closed",
            author="alice",
            labels=["bug"],
            comments=1,
            created_at=datetime(2024, 1, 1, tzinfo=UTC),
            updated_at=datetime(2024, 1, 5, tzinfo=UTC),
            closed_at=datetime(2024, 1, 5, tzinfo=UTC),
        ),
        IssueRecord(
            id=2,
            number=2,
            repository_name="org/a",
            title="Open issue",
            state="open",
            author="bob",
            created_at=datetime(2024, 1, 10, tzinfo=UTC),
            updated_at=datetime(2024, 1, 10, tzinfo=UTC),
        ),
        IssueRecord(
            id=3,
            number=3,
            repository_name="org/a",
            title="Another open issue",
            state="open",
            author="alice",
            labels=["bug", "help wanted"],
            created_at=datetime(2024, 1, 20, tzinfo=UTC),
            updated_at=datetime(2024, 1, 20, tzinfo=UTC),
        ),
    ]
    pulls = [
        PullRequestRecord(
            id=11,
            number=11,
            repository_name="org/a",
            title="Merged",
            state="merged",
            author="carol",
            created_at=datetime(2024, 1, 2, tzinfo=UTC),
            updated_at=datetime(2024, 1, 4, tzinfo=UTC),
            closed_at=datetime(2024, 1, 4, tzinfo=UTC),
            merged_at=datetime(2024, 1, 4, tzinfo=UTC),
        ),
        PullRequestRecord(
            id=12,
            number=12,
            repository_name="org/b",
            title="Open",
            state="open",
            author="dave",
            created_at=datetime(2024, 1, 15, tzinfo=UTC),
            updated_at=datetime(2024, 1, 15, tzinfo=UTC),
        ),
    ]
    commits = [
        CommitRecord(
            sha="c1",
            repository_name="org/a",
            author="alice",
            date=datetime(2024, 1, 3, tzinfo=UTC),
        ),
        CommitRecord(
            sha="c2",
            repository_name="org/b",
            author="dave",
            date=datetime(2024, 1, 16, tzinfo=UTC),
        ),
    ]
    comments = [
        CommentRecord(
            id=101,
            repository_name="org/a",
            parent_id=1,
            parent_number=1,
            parent_type="issue",
            author="bob",
            created_at=datetime(2024, 1, 2, tzinfo=UTC),
        )
    ]
    reviews = [
        ReviewRecord(
            id=201,
            repository_name="org/a",
            parent_id=11,
            parent_number=11,
            author="alice",
            state="APPROVED",
            submitted_at=datetime(2024, 1, 3, tzinfo=UTC),
        )
    ]
    return RawData(
        repositories=[repo_a, repo_b],
        issues=issues,
        pull_requests=pulls,
        commits=commits,
        issue_comments=comments,
        pr_reviews=reviews,
    )
