"""GitHub HTTP client with bounded retries.

Async client shared by the REST and GraphQL wrappers. It owns authentication
headers, retry/backoff for transient failures and quota accounting.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from gh_project_summary import __version__
from gh_project_summary.github.auth import GitHubAuth
from gh_project_summary.github.ratelimit import QuotaTracker

logger = logging.getLogger(__name__)

SECONDARY_RATE_LIMIT_MARKER = "secondary rate limit"


class GitHubHTTPError(Exception):
    """Raised when a request fails for good (after retries where allowed)."""

    def __init__(self, message: str, status_code: int | None = None, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class GitHubAuthError(GitHubHTTPError):
    """Raised on 401: the token was rejected."""


class RateLimitExceeded(GitHubHTTPError):
    """Raised when rate limit retries are exhausted."""

    def __init__(self, url: str, reset_at: datetime | None = None, status_code: int = 429) -> None:
        self.reset_at = reset_at
        when = reset_at.isoformat() if reset_at else "unknown"
        super().__init__(f"Rate limit exceeded for {url}. Resets at {when}", status_code, url)


@dataclass
class GitHubResponse:
    """Successful GitHub API response."""

    status_code: int
    data: Any
    headers: httpx.Headers
    url: str = ""
    links: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def next_url(self) -> str | None:
        """URL of the next page from the Link header, if any."""
        return self.links.get("next", {}).get("url")


class GitHubClient:
    """Async HTTP client for the GitHub API.

    Retries 5xx responses, 429 and secondary-rate-limit 403 responses,
    timeouts and network errors up to ``max_retries`` times with exponential
    backoff. A 401 is never retried. Every response that reaches GitHub is
    counted in the shared QuotaTracker.
    """

    BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30.0
    DEFAULT_MAX_RETRIES = 3
    INITIAL_BACKOFF = 1.0
    BACKOFF_MULTIPLIER = 2.0
    MAX_BACKOFF = 60.0

    def __init__(
        self,
        auth: GitHubAuth,
        quota: QuotaTracker | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        max_backoff: float = MAX_BACKOFF,
        base_url: str = BASE_URL,
    ) -> None:
        """Initialize GitHub HTTP client.

        Args:
            auth: Validated credential.
            quota: Tracker shared with the rest of the run. A private one is
                created when omitted.
            timeout: Per-request timeout in seconds.
            max_retries: Retries after the first attempt for transient failures.
            initial_backoff: First backoff delay in seconds.
            max_backoff: Upper bound for any single wait, including retry-after.
            base_url: Base URL for the GitHub API.
        """
        self._auth = auth
        self.quota = quota or QuotaTracker()
        self._timeout = timeout
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._max_backoff = max_backoff
        self._base_url = base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": f"gh-project-summary/{__version__}",
        }
        headers.update(self._auth.get_authorization_header())
        return headers

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._get_headers(),
                follow_redirects=True,
            )
        return self._client

    def _backoff(self, attempt: int) -> float:
        delay = self._initial_backoff * (self.BACKOFF_MULTIPLIER**attempt)
        return min(delay, self._max_backoff)

    def _rate_limit_wait(self, response: httpx.Response, attempt: int) -> float | None:
        """Seconds to wait before retrying a throttled response.

        Returns:
            Wait in seconds, or None if the response is not a rate limit.
        """
        if response.status_code not in (403, 429):
            return None

        retry_after = response.headers.get("retry-after")
        if retry_after and retry_after.isdigit():
            logger.warning("Secondary rate limit hit. Retry after %s seconds", retry_after)
            return min(float(retry_after), self._max_backoff)

        if response.headers.get("x-ratelimit-remaining") == "0":
            reset = int(response.headers.get("x-ratelimit-reset", "0"))
            wait = reset - datetime.now(UTC).timestamp() + 1
            logger.warning("Primary rate limit exhausted. Waiting %.0f seconds", wait)
            return min(max(wait, 0.0), self._max_backoff)

        if response.status_code == 429 or SECONDARY_RATE_LIMIT_MARKER in response.text.lower():
            return self._backoff(attempt)

        return None

    async def request(self, method: str, path: str, **kwargs: Any) -> GitHubResponse:
        """Make an HTTP request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.).
            path: API path (``/repos/o/r``) or an absolute URL from a Link header.
            **kwargs: Additional arguments passed to httpx (params, json, etc.).

        Returns:
            GitHubResponse with parsed JSON data.

        Raises:
            GitHubAuthError: On 401.
            RateLimitExceeded: If throttling persists past the retry budget.
            GitHubHTTPError: On any other failure after retries.
        """
        client = await self._ensure_client()
        attempt = 0

        while True:
            logger.debug("%s %s (attempt %d)", method, path, attempt + 1)
            try:
                response = await client.request(method, path, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                self.quota.record_failure(path)
                if attempt >= self._max_retries:
                    msg = f"{type(e).__name__} for {method} {path}: {e}"
                    raise GitHubHTTPError(msg, url=path) from e
                logger.warning("%s for %s %s, retrying", type(e).__name__, method, path)
                await self._sleep_before_retry(path, self._backoff(attempt))
                attempt += 1
                continue

            self.quota.record_response(path, response.headers)
            status = response.status_code

            if status == 401:
                msg = f"GitHub rejected the token (401) for {method} {path}"
                raise GitHubAuthError(msg, status, path)

            wait = self._rate_limit_wait(response, attempt)
            if wait is not None:
                if attempt >= self._max_retries:
                    reset = response.headers.get("x-ratelimit-reset")
                    reset_at = datetime.fromtimestamp(int(reset), tz=UTC) if reset else None
                    raise RateLimitExceeded(path, reset_at, status)
                await self._sleep_before_retry(path, wait)
                attempt += 1
                continue

            if 500 <= status < 600:
                if attempt >= self._max_retries:
                    msg = f"Server error {status} for {method} {path} after {attempt} retries"
                    raise GitHubHTTPError(msg, status, path)
                logger.warning("Server error %d for %s %s", status, method, path)
                await self._sleep_before_retry(path, self._backoff(attempt))
                attempt += 1
                continue

            if status >= 400:
                msg = f"Client error {status} for {method} {path}: {response.text[:200]}"
                raise GitHubHTTPError(msg, status, path)

            return self._to_response(response)

    async def _sleep_before_retry(self, path: str, seconds: float) -> None:
        self.quota.record_retry(path)
        logger.debug("Sleeping %.1fs before retrying %s", seconds, path)
        await asyncio.sleep(seconds)

    @staticmethod
    def _to_response(response: httpx.Response) -> GitHubResponse:
        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                msg = f"Invalid JSON from {response.url}: {e}"
                raise GitHubHTTPError(msg, response.status_code, str(response.url)) from e

        return GitHubResponse(
            status_code=response.status_code,
            data=data,
            headers=response.headers,
            url=str(response.url),
            links={key or "": value for key, value in response.links.items()},
        )

    async def get(self, path: str, **kwargs: Any) -> GitHubResponse:
        """Make a GET request."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> GitHubResponse:
        """Make a POST request."""
        return await self.request("POST", path, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
