"""Collection run: sequencing, concurrency and the overall deadline.

Steps:
1. Authenticate with a ``GET /rate_limit`` call (401/403 aborts the run).
2. Discover repositories from the board or the explicit list.
3. Fetch repositories concurrently under a semaphore and a deadline.
4. Aggregate in discovery order, verify, compute metrics, write the result.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from gh_project_summary.collect.aggregator import aggregate, verify_indexes, verify_references
from gh_project_summary.collect.discovery import ProjectResolver, discover_repositories
from gh_project_summary.collect.fetcher import FetchResult, RepositoryFetcher
from gh_project_summary.config import CollectionOptions, Config
from gh_project_summary.github.auth import AuthenticationError, GitHubAuth
from gh_project_summary.github.graphql import GraphQLClient, GraphQLError
from gh_project_summary.github.http import (
    GitHubAuthError,
    GitHubClient,
    GitHubHTTPError,
    RateLimitExceeded,
)
from gh_project_summary.github.ratelimit import QuotaTracker
from gh_project_summary.github.rest import RestClient
from gh_project_summary.metrics import calculate_metrics
from gh_project_summary.models import ProjectInfo
from gh_project_summary.result import JQ_HINTS, RunInfo, assemble_result, format_jq_command
from gh_project_summary.storage.paths import PathManager
from gh_project_summary.storage.writer import write_result

logger = logging.getLogger(__name__)


class CollectionError(Exception):
    """Raised when a collection run cannot produce a result."""


@dataclass
class CollectionOutcome:
    """What a finished run reports back to its caller."""

    success: bool
    output_path: Path | None
    summary: str
    repositories_total: int
    repositories_collected: int
    errors_encountered: int
    items_collected: dict[str, int] = field(default_factory=dict)
    jq_commands: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True if every repository was fetched without any kind-level error."""
        return (
            self.repositories_collected == self.repositories_total
            and self.errors_encountered == 0
        )


def summarize(collected: int, total: int, errors: int) -> str:
    """One-line completeness summary, e.g. ``collected 8/10 repositories, 2 entity-kind errors``."""
    noun = "error" if errors == 1 else "errors"
    return f"collected {collected}/{total} repositories, {errors} entity-kind {noun}"


def result_label(project: ProjectInfo | None, repositories: list[str]) -> str:
    """Human label for the result file name."""
    if project is not None:
        return project.title or f"project-{project.number or project.id}"
    if len(repositories) == 1:
        return repositories[0]
    return f"{repositories[0]}-and-{len(repositories) - 1}-more"


async def fetch_repositories(
    fetcher: RepositoryFetcher,
    repositories: list[str],
    options: CollectionOptions,
    max_concurrency: int,
    timeout: float | None,
) -> tuple[list[FetchResult | None], list[str]]:
    """Fetch repositories concurrently, bounded by a semaphore and a deadline.

    Results are buffered by repository position, so the output order never
    depends on completion order.

    Args:
        fetcher: Fetcher shared by all repositories.
        repositories: ``owner/name`` list in discovery order.
        options: Collection options.
        max_concurrency: Repositories fetched at the same time.
        timeout: Seconds before unfinished repositories are cancelled.

    Returns:
        Tuple of (results by position, None where cancelled; names of the
        cancelled repositories in discovery order).
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def fetch_one(full_name: str) -> FetchResult:
        owner, name = full_name.split("/", 1)
        async with semaphore:
            return await fetcher.fetch(owner, name, options)

    tasks = [asyncio.create_task(fetch_one(repo)) for repo in repositories]
    if not tasks:
        return [], []

    _, pending = await asyncio.wait(tasks, timeout=timeout)
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "Deadline reached: %d of %d repositories did not finish",
            len(pending),
            len(tasks),
        )

    results: list[FetchResult | None] = []
    incomplete: list[str] = []
    for repo, task in zip(repositories, tasks, strict=True):
        if task in pending:
            results.append(None)
            incomplete.append(repo)
        else:
            # Unexpected exceptions (bugs) propagate here
            results.append(task.result())
    return results, incomplete


def _drop_duplicate_repositories(results: Iterable[FetchResult]) -> list[FetchResult]:
    """Keep the first result per canonical repository name.

    Distinct targets can resolve to one repository (renames, transfers).
    """
    seen: set[str] = set()
    unique = []
    for result in results:
        key = result.full_name.lower()
        if key in seen:
            logger.warning("Dropping duplicate result for %s", result.full_name)
            continue
        seen.add(key)
        unique.append(result)
    return unique


async def _check_authentication(rest: RestClient, quota: QuotaTracker) -> None:
    try:
        rate_limit = await rest.get_rate_limit()
    except GitHubAuthError as e:
        msg = f"GitHub rejected the token: {e}"
        raise AuthenticationError(msg) from e
    except RateLimitExceeded as e:
        msg = f"GitHub rate limit exhausted before the run could start: {e}"
        raise CollectionError(msg) from e
    except GitHubHTTPError as e:
        if e.status_code == 403:
            msg = f"GitHub refused access with this token: {e}"
            raise AuthenticationError(msg) from e
        msg = f"Could not reach GitHub: {e}"
        raise CollectionError(msg) from e

    quota.seed_from_rate_limit(rate_limit)
    core = rate_limit.get("resources", {}).get("core", {})
    logger.info(
        "Authenticated. REST quota remaining: %s/%s",
        core.get("remaining", "?"),
        core.get("limit", "?"),
    )


async def run_collection(
    config: Config,
    *,
    reference_time: datetime | None = None,
    command_line: str = "",
    token: str | None = None,
) -> CollectionOutcome:
    """Run a full collection and write the result file.

    Args:
        config: Validated configuration.
        reference_time: End of the recent metrics window. Defaults to the
            run start time.
        command_line: Arguments recorded in ``metadata.execution``.
        token: Explicit GitHub token; otherwise looked up per config.

    Returns:
        CollectionOutcome describing the written file.

    Raises:
        AuthenticationError: If no token is usable or GitHub rejects it.
        DiscoveryError: If the board cannot be resolved.
        CollectionError: If no repositories are found or GitHub is unreachable.
        InvariantViolation: If aggregated data is inconsistent.
        ResultWriteError: If the result cannot be written.
    """
    started_at = datetime.now(UTC)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + config.collection.timeout_seconds
    reference_time = reference_time or started_at
    options = config.collection.options

    auth = GitHubAuth(token=token, token_env=config.github.auth.token_env)
    quota = QuotaTracker()
    http = GitHubClient(
        auth,
        quota,
        timeout=config.http.timeout,
        max_retries=config.http.max_retries,
        initial_backoff=config.http.initial_backoff,
        max_backoff=config.http.max_backoff,
    )

    async with http:
        rest = RestClient(http)
        graphql = GraphQLClient(http)

        try:
            async with asyncio.timeout_at(deadline):
                await _check_authentication(rest, quota)
                project, repositories = await discover_repositories(
                    config.github.target, ProjectResolver(graphql)
                )
        except TimeoutError as e:
            msg = (
                f"Deadline of {config.collection.timeout_seconds:g}s reached "
                "before any repository was fetched"
            )
            raise CollectionError(msg) from e
        except (GitHubHTTPError, GraphQLError) as e:
            msg = f"Repository discovery failed: {e}"
            raise CollectionError(msg) from e
        if not repositories:
            msg = "No repositories found for the collection target"
            raise CollectionError(msg)

        logger.info(
            "Collecting %d repositories (concurrency=%d)",
            len(repositories),
            config.collection.max_concurrency,
        )
        results, incomplete = await fetch_repositories(
            RepositoryFetcher(rest),
            repositories,
            options,
            config.collection.max_concurrency,
            max(0.0, deadline - loop.time()),
        )

    run = RunInfo(
        started_at=started_at,
        reference_time=reference_time,
        options=options,
        arguments=command_line,
        repositories_discovered=list(repositories),
        repositories_incomplete=incomplete,
    )
    completed = _drop_duplicate_repositories(result for result in results if result is not None)
    for result in completed:
        run.add_repo(result.full_name)
        run.errors.extend(result.errors)

    data = aggregate(completed, project)
    verify_indexes(data.raw, data.indexes)
    verify_references(data.raw)
    metrics = calculate_metrics(data, reference_time)

    run.api_usage = quota.to_dict()
    run.finish()
    result_doc = assemble_result(data, metrics, run)

    paths = PathManager(config.storage.root)
    output_path = paths.result_path(
        result_label(project, repositories), started_at, compress=config.storage.compress
    )
    write_result(result_doc.to_payload(), output_path)

    # Targets that resolved to an already collected repository still count as fetched
    fetched = len(repositories) - len(incomplete)
    summary = summarize(fetched, len(repositories), len(run.errors))
    logger.info("Collection finished: %s", summary)
    return CollectionOutcome(
        success=True,
        output_path=output_path,
        summary=summary,
        repositories_total=len(repositories),
        repositories_collected=fetched,
        errors_encountered=len(run.errors),
        items_collected=data.raw.item_counts(),
        jq_commands=[format_jq_command(output_path, hint) for hint in JQ_HINTS[:5]],
    )
