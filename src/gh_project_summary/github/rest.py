"""GitHub REST API client with Link-header pagination.

Provides the list/get endpoints the fetcher needs. Every list method is an
async iterator over pages so callers can stop as soon as a cap is reached.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any, cast

from gh_project_summary.github.http import GitHubClient

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


def page_size_for(cap: int | None) -> int:
    """Page size to request for a cap: ``min(100, cap)``."""
    if cap is None:
        return MAX_PER_PAGE
    return max(1, min(MAX_PER_PAGE, cap))


class RestClient:
    """GitHub REST API client.

    Pagination follows the ``next`` link of each response and stops on an
    empty page, a partial page, a missing ``next`` link, or once
    ``max_items`` items were yielded.
    """

    def __init__(self, http_client: GitHubClient) -> None:
        """Initialize REST API client.

        Args:
            http_client: GitHubClient instance for HTTP requests.
        """
        self._http = http_client

    async def _paginate(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        max_items: int | None = None,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """Paginate through API results following Link headers.

        Args:
            path: API endpoint path.
            params: Query parameters for the first page. ``per_page`` is
                derived from ``max_items`` when not given.
            max_items: Stop after this many items; the last page is truncated.

        Yields:
            Tuple of (items list, metadata dict) for each page.
        """
        if max_items is not None and max_items <= 0:
            return

        query = dict(params or {})
        per_page = int(query.setdefault("per_page", page_size_for(max_items)))
        url: str | None = path
        page_num = 1
        yielded = 0

        while url:
            # The next link already carries the full query string
            response = await self._http.get(url, params=query if page_num == 1 else None)

            data = response.data
            if not isinstance(data, list):
                data = [data] if data else []
            if not data:
                return
            page_len = len(data)

            if max_items is not None and yielded + len(data) > max_items:
                data = data[: max_items - yielded]
            yielded += len(data)

            metadata = {"endpoint": path, "page": page_num, "url": response.url}
            yield data, metadata

            if max_items is not None and yielded >= max_items:
                return
            if page_len < per_page:
                return

            url = response.next_url
            page_num += 1
            if url:
                logger.debug("Following pagination to page %d of %s", page_num, path)

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        """Get single repository details.

        Raises:
            GitHubHTTPError: If the repository cannot be fetched.
        """
        response = await self._http.get(f"/repos/{owner}/{repo}")
        return cast("dict[str, Any]", response.data)

    async def list_issues(
        self,
        owner: str,
        repo: str,
        since: str | None = None,
        per_page: int = MAX_PER_PAGE,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List issues (and PRs, which GitHub mixes in) updated since a time.

        Args:
            owner: Repository owner.
            repo: Repository name.
            since: ISO 8601 lower bound on ``updated_at``.
            per_page: Page size.

        Yields:
            Tuple of (issues list, metadata dict) for each page.
        """
        params: dict[str, Any] = {
            "state": "all",
            "per_page": per_page,
            "sort": "updated",
            "direction": "desc",
        }
        if since:
            params["since"] = since

        logger.debug("Fetching issues for %s/%s (since=%s)", owner, repo, since or "none")
        async for items, metadata in self._paginate(f"/repos/{owner}/{repo}/issues", params):
            yield items, metadata

    async def list_pulls(
        self,
        owner: str,
        repo: str,
        per_page: int = MAX_PER_PAGE,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List pull requests, most recently updated first.

        The endpoint has no ``since`` parameter; callers stop paginating once
        items fall out of their window.
        """
        params: dict[str, Any] = {
            "state": "all",
            "per_page": per_page,
            "sort": "updated",
            "direction": "desc",
        }

        logger.debug("Fetching pull requests for %s/%s", owner, repo)
        async for items, metadata in self._paginate(f"/repos/{owner}/{repo}/pulls", params):
            yield items, metadata

    async def list_commits(
        self,
        owner: str,
        repo: str,
        since: str | None = None,
        until: str | None = None,
        max_items: int | None = None,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List commits on the default branch.

        Args:
            owner: Repository owner.
            repo: Repository name.
            since: ISO 8601 lower bound on commit date.
            until: ISO 8601 upper bound on commit date.
            max_items: Cap on commits returned.

        Yields:
            Tuple of (commits list, metadata dict) for each page.
        """
        params: dict[str, Any] = {}
        if since:
            params["since"] = since
        if until:
            params["until"] = until

        logger.debug(
            "Fetching commits for %s/%s (since=%s, until=%s)",
            owner,
            repo,
            since or "none",
            until or "none",
        )
        async for items, metadata in self._paginate(
            f"/repos/{owner}/{repo}/commits", params, max_items=max_items
        ):
            yield items, metadata

    async def list_issue_comments(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        max_items: int | None = None,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List comments on an issue, oldest first."""
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"
        logger.debug("Fetching comments for issue %s/%s#%d", owner, repo, issue_number)
        async for items, metadata in self._paginate(path, max_items=max_items):
            yield items, metadata

    async def list_reviews(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        max_items: int | None = None,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List reviews for a pull request."""
        path = f"/repos/{owner}/{repo}/pulls/{pull_number}/reviews"
        logger.debug("Fetching reviews for %s/%s#%d", owner, repo, pull_number)
        async for items, metadata in self._paginate(path, max_items=max_items):
            yield items, metadata

    async def list_review_comments(
        self,
        owner: str,
        repo: str,
        pull_number: int,
        max_items: int | None = None,
    ) -> AsyncIterator[tuple[list[Any], dict[str, Any]]]:
        """List diff (review) comments on a pull request."""
        path = f"/repos/{owner}/{repo}/pulls/{pull_number}/comments"
        logger.debug("Fetching review comments for %s/%s#%d", owner, repo, pull_number)
        async for items, metadata in self._paginate(path, max_items=max_items):
            yield items, metadata

    async def get_rate_limit(self) -> dict[str, Any]:
        """Get current rate limit status.

        Raises:
            GitHubAuthError: If the token is rejected.
            GitHubHTTPError: On any other failure.
        """
        response = await self._http.get("/rate_limit")
        return cast("dict[str, Any]", response.data)
