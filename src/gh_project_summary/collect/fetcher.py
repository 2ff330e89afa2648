"""Per-repository entity fetching.

Fetches one repository's metadata, issues, pull requests, commits and their
comments and reviews, applying the caps and time window of the run. Every
entity kind runs in its own error boundary: a failure empties that kind for
the repository, is recorded as a FetchError, and the next kind proceeds.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from gh_project_summary.config import CollectionOptions
from gh_project_summary.github.http import GitHubHTTPError
from gh_project_summary.github.rest import RestClient, page_size_for
from gh_project_summary.models import (
    CommentRecord,
    CommitRecord,
    IssueRecord,
    PullRequestRecord,
    RepositoryRecord,
    ReviewRecord,
)

logger = logging.getLogger(__name__)


def _api_time(dt: datetime | None) -> str | None:
    """Format a bound the way GitHub query parameters expect."""
    if dt is None:
        return None
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class FetchError:
    """A recovered failure for one entity kind of one repository."""

    repository: str
    kind: str
    message: str
    status_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the `metadata.collection.errors` entry shape."""
        return {
            "repository": self.repository,
            "kind": self.kind,
            "message": self.message,
            "status_code": self.status_code,
        }


@dataclass
class FetchResult:
    """Everything collected for one repository."""

    repository: RepositoryRecord
    issues: list[IssueRecord] = field(default_factory=list)
    pull_requests: list[PullRequestRecord] = field(default_factory=list)
    commits: list[CommitRecord] = field(default_factory=list)
    issue_comments: list[CommentRecord] = field(default_factory=list)
    pr_reviews: list[ReviewRecord] = field(default_factory=list)
    pr_review_comments: list[CommentRecord] = field(default_factory=list)
    errors: list[FetchError] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        """Repository ``owner/name``."""
        return self.repository.full_name


class RepositoryFetcher:
    """Fetches the entities of single repositories through the REST client."""

    def __init__(self, rest_client: RestClient) -> None:
        """Initialize fetcher.

        Args:
            rest_client: REST client shared by every repository of the run.
        """
        self._rest = rest_client

    async def fetch(self, owner: str, name: str, options: CollectionOptions) -> FetchResult:
        """Fetch one repository.

        Kinds are fetched in order: metadata, issues and their comments,
        pull requests and their reviews and review comments, commits.
        Children are only fetched for parents that were collected.

        Args:
            owner: Repository owner.
            name: Repository name.
            options: Kinds to include, caps and time window.

        Returns:
            FetchResult with records and recovered errors. Never raises for
            GitHubHTTPError; other exceptions propagate.
        """
        full_name = f"{owner}/{name}"
        errors: list[FetchError] = []

        async def guarded(kind: str, default: Any, call: Callable[[], Awaitable[Any]]) -> Any:
            try:
                return await call()
            except GitHubHTTPError as e:
                logger.warning("Failed to fetch %s for %s: %s", kind, full_name, e)
                errors.append(FetchError(full_name, kind, str(e), e.status_code))
                return default

        payload = await guarded("repository", None, lambda: self._rest.get_repo(owner, name))
        repository = (
            RepositoryRecord.from_api(payload)
            if payload
            else RepositoryRecord.minimal(owner, name)
        )
        # GitHub may return a differently cased canonical name
        repo_name = repository.full_name
        result = FetchResult(repository=repository)

        if options.include_issues and options.limits.max_issues_per_repo > 0:
            result.issues = await guarded(
                "issues", [], lambda: self._fetch_issues(owner, name, repo_name, options)
            )
            if options.include_comments and options.limits.max_comments_per_issue > 0:
                result.issue_comments = await guarded(
                    "issue_comments",
                    [],
                    lambda: self._fetch_issue_comments(owner, name, result.issues, options),
                )

        if options.include_pull_requests and options.limits.max_prs_per_repo > 0:
            result.pull_requests = await guarded(
                "pull_requests", [], lambda: self._fetch_pulls(owner, name, repo_name, options)
            )
            if options.include_reviews and options.limits.max_reviews_per_pr > 0:
                result.pr_reviews = await guarded(
                    "pr_reviews",
                    [],
                    lambda: self._fetch_reviews(owner, name, result.pull_requests, options),
                )
            if options.include_comments and options.limits.max_comments_per_issue > 0:
                result.pr_review_comments = await guarded(
                    "pr_review_comments",
                    [],
                    lambda: self._fetch_review_comments(
                        owner, name, result.pull_requests, options
                    ),
                )

        if options.include_commits and options.limits.max_commits_per_repo > 0:
            result.commits = await guarded(
                "commits", [], lambda: self._fetch_commits(owner, name, repo_name, options)
            )

        result.errors = errors
        logger.info(
            "Fetched %s: %d issues, %d PRs, %d commits, %d comments, %d reviews (%d errors)",
            full_name,
            len(result.issues),
            len(result.pull_requests),
            len(result.commits),
            len(result.issue_comments) + len(result.pr_review_comments),
            len(result.pr_reviews),
            len(errors),
        )
        return result

    async def _fetch_issues(
        self, owner: str, name: str, repo_name: str, options: CollectionOptions
    ) -> list[IssueRecord]:
        window = options.time_filter
        cap = options.limits.max_issues_per_repo
        issues: list[IssueRecord] = []
        skipped_pulls = 0

        pages = self._rest.list_issues(
            owner, name, since=_api_time(window.since), per_page=page_size_for(cap)
        )
        async with aclosing(pages):
            async for items, _ in pages:
                for item in items:
                    # The issues endpoint also lists pull requests
                    if "pull_request" in item:
                        skipped_pulls += 1
                        continue
                    issue = IssueRecord.from_api(item, repo_name)
                    if not window.contains(issue.updated_at):
                        continue
                    issues.append(issue)
                    if len(issues) >= cap:
                        logger.debug("Issue cap %d reached for %s", cap, repo_name)
                        return issues

        logger.debug("Skipped %d pull requests in issue listing of %s", skipped_pulls, repo_name)
        return issues

    async def _fetch_pulls(
        self, owner: str, name: str, repo_name: str, options: CollectionOptions
    ) -> list[PullRequestRecord]:
        window = options.time_filter
        cap = options.limits.max_prs_per_repo
        pulls: list[PullRequestRecord] = []

        pages = self._rest.list_pulls(owner, name, per_page=page_size_for(cap))
        async with aclosing(pages):
            async for items, _ in pages:
                for item in items:
                    pull = PullRequestRecord.from_api(item, repo_name)
                    updated = pull.updated_at
                    # Listing is sorted by updated desc: everything after is older
                    if window.since and updated is not None and updated < window.since:
                        return pulls
                    if not window.contains(updated):
                        continue
                    pulls.append(pull)
                    if len(pulls) >= cap:
                        logger.debug("Pull request cap %d reached for %s", cap, repo_name)
                        return pulls
        return pulls

    async def _fetch_commits(
        self, owner: str, name: str, repo_name: str, options: CollectionOptions
    ) -> list[CommitRecord]:
        window = options.time_filter
        commits: list[CommitRecord] = []
        pages = self._rest.list_commits(
            owner,
            name,
            since=_api_time(window.since),
            until=_api_time(window.until),
            max_items=options.limits.max_commits_per_repo,
        )
        async for items, _ in pages:
            for item in items:
                commit = CommitRecord.from_api(item, repo_name)
                if window.contains(commit.date):
                    commits.append(commit)
        return commits

    async def _fetch_issue_comments(
        self,
        owner: str,
        name: str,
        issues: list[IssueRecord],
        options: CollectionOptions,
    ) -> list[CommentRecord]:
        comments: list[CommentRecord] = []
        for issue in issues:
            if issue.comments <= 0:
                continue
            pages = self._rest.list_issue_comments(
                owner, name, issue.number, max_items=options.limits.max_comments_per_issue
            )
            comments.extend(await self._collect_comments(pages, issue, options))
        return comments

    async def _fetch_review_comments(
        self,
        owner: str,
        name: str,
        pulls: list[PullRequestRecord],
        options: CollectionOptions,
    ) -> list[CommentRecord]:
        comments: list[CommentRecord] = []
        for pull in pulls:
            pages = self._rest.list_review_comments(
                owner, name, pull.number, max_items=options.limits.max_comments_per_issue
            )
            comments.extend(await self._collect_comments(pages, pull, options))
        return comments

    @staticmethod
    async def _collect_comments(
        pages: AsyncIterator[tuple[list[Any], dict[str, Any]]],
        parent: IssueRecord | PullRequestRecord,
        options: CollectionOptions,
    ) -> list[CommentRecord]:
        comments = []
        async for items, _ in pages:
            for item in items:
                comment = CommentRecord.from_api(item, parent)
                if options.time_filter.contains(comment.created_at):
                    comments.append(comment)
        return comments

    async def _fetch_reviews(
        self,
        owner: str,
        name: str,
        pulls: list[PullRequestRecord],
        options: CollectionOptions,
    ) -> list[ReviewRecord]:
        reviews: list[ReviewRecord] = []
        for pull in pulls:
            pages = self._rest.list_reviews(
                owner, name, pull.number, max_items=options.limits.max_reviews_per_pr
            )
            async for items, _ in pages:
                for item in items:
                    review = ReviewRecord.from_api(item, pull)
                    if options.time_filter.contains(review.submitted_at):
                        reviews.append(review)
        return reviews
