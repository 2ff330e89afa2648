"""CLI entry point for gh-project-summary.

Commands:
- collect: Collect a project's GitHub activity into one result file
- clean: Prune old result files
"""

import asyncio
import json
import shlex
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console

from gh_project_summary import __version__
from gh_project_summary.collect.aggregator import InvariantViolation
from gh_project_summary.collect.discovery import DiscoveryError
from gh_project_summary.collect.orchestrator import CollectionError, run_collection
from gh_project_summary.config import build_config, parse_when
from gh_project_summary.github.auth import AuthenticationError
from gh_project_summary.logging import setup_logging
from gh_project_summary.storage.paths import PathManager
from gh_project_summary.storage.writer import ResultWriteError, clean_old_results

console = Console()
err_console = Console(stderr=True)

FATAL_ERRORS = (
    AuthenticationError,
    DiscoveryError,
    CollectionError,
    InvariantViolation,
    ResultWriteError,
)


@click.group()
@click.version_option(version=__version__, prog_name="gh-project-summary")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose output")
@click.option("--log-json", is_flag=True, default=False, help="Emit logs as JSON lines")
@click.pass_context
def main(ctx: click.Context, verbose: bool, log_json: bool) -> None:
    """Collect GitHub project activity into a single queryable result file.

    \b
    Quick Start:
        gh-project-summary collect https://github.com/orgs/acme/projects/3
        gh-project-summary collect --repo acme/widgets --since 30d
        xzcat var/results/<file>.json.xz | jq '.metrics.summary'
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose, json_format=log_json)


def _parse_window_bound(value: str | None, reference: datetime, name: str) -> str | None:
    if value is None:
        return None
    try:
        return parse_when(value, reference, end_of_day=name == "--until").isoformat()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=name) from e


def _collect_overrides(
    project: str | None,
    repos: tuple[str, ...],
    since: str | None,
    until: str | None,
    limits: dict[str, int | None],
    include: dict[str, bool],
    timeout: float | None,
    concurrency: int | None,
    output_dir: Path | None,
    compress: bool | None,
    reference: datetime,
) -> dict[str, Any]:
    """Translate command-line options into nested config overrides."""
    overrides: dict[str, Any] = {}

    if project or repos:
        overrides["github"] = {
            "target": {"project": project, "repositories": list(repos)},
        }

    options: dict[str, Any] = {key: value for key, value in include.items() if not value}
    set_limits = {key: value for key, value in limits.items() if value is not None}
    if set_limits:
        options["limits"] = set_limits
    window = {
        "since": _parse_window_bound(since, reference, "--since"),
        "until": _parse_window_bound(until, reference, "--until"),
    }
    window = {key: value for key, value in window.items() if value is not None}
    if window:
        options["time_filter"] = window

    collection: dict[str, Any] = {}
    if options:
        collection["options"] = options
    if timeout is not None:
        collection["timeout_seconds"] = timeout
    if concurrency is not None:
        collection["max_concurrency"] = concurrency
    if collection:
        overrides["collection"] = collection

    storage: dict[str, Any] = {}
    if output_dir is not None:
        storage["root"] = str(output_dir)
    if compress is not None:
        storage["compress"] = compress
    if storage:
        overrides["storage"] = storage

    return overrides


@main.command()
@click.argument("project", required=False)
@click.option(
    "--repo",
    "repos",
    multiple=True,
    metavar="OWNER/NAME",
    help="Collect this repository instead of a project (repeatable)",
)
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.yaml file",
)
@click.option(
    "--since", metavar="WHEN", help="Window start: ISO date/datetime or span (30d, 4w, 12h)"
)
@click.option(
    "--until", metavar="WHEN", help="Window end: ISO date (whole day), datetime or span"
)
@click.option("--max-issues", type=click.IntRange(min=0), help="Issue cap per repository")
@click.option("--max-prs", type=click.IntRange(min=0), help="Pull request cap per repository")
@click.option("--max-commits", type=click.IntRange(min=0), help="Commit cap per repository")
@click.option("--no-comments", is_flag=True, default=False, help="Skip issue and review comments")
@click.option("--no-reviews", is_flag=True, default=False, help="Skip pull request reviews")
@click.option("--no-commits", is_flag=True, default=False, help="Skip commits")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Overall deadline in seconds",
)
@click.option("--concurrency", type=click.IntRange(1, 10), help="Repositories fetched in parallel")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Storage root; results go to <dir>/var/results",
)
@click.option(
    "--no-compress", is_flag=True, default=False, help="Write plain JSON instead of .json.xz"
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the outcome as JSON")
@click.pass_context
def collect(
    ctx: click.Context,
    project: str | None,
    repos: tuple[str, ...],
    config: Path | None,
    since: str | None,
    until: str | None,
    max_issues: int | None,
    max_prs: int | None,
    max_commits: int | None,
    no_comments: bool,
    no_reviews: bool,
    no_commits: bool,
    timeout: float | None,
    concurrency: int | None,
    output_dir: Path | None,
    no_compress: bool,
    as_json: bool,
) -> None:
    """Collect activity for PROJECT (URL, OWNER/NUMBER or PVT_ id) or --repo targets.

    Writes one result file with raw records, indexes, metrics and metadata,
    then prints its path, a completeness summary and example jq queries.
    """
    reference = datetime.now(UTC)
    overrides = _collect_overrides(
        project=project,
        repos=repos,
        since=since,
        until=until,
        limits={
            "max_issues_per_repo": max_issues,
            "max_prs_per_repo": max_prs,
            "max_commits_per_repo": max_commits,
        },
        include={
            "include_comments": not no_comments,
            "include_reviews": not no_reviews,
            "include_commits": not no_commits,
        },
        timeout=timeout,
        concurrency=concurrency,
        output_dir=output_dir,
        compress=False if no_compress else None,
        reference=reference,
    )

    try:
        cfg = build_config(config, overrides)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        err_console.print(
            f"[bold red]Error:[/bold red] invalid configuration at {location}: {first['msg']}"
        )
        ctx.exit(2)

    if not as_json:
        target = cfg.github.target.project or ", ".join(cfg.github.target.repositories)
        console.print(f"[bold]Collecting {target}[/bold]")

    try:
        outcome = asyncio.run(
            run_collection(cfg, reference_time=reference, command_line=shlex.join(sys.argv[1:]))
        )
    except KeyboardInterrupt:
        err_console.print("[yellow]Collection interrupted by user[/yellow]")
        raise click.Abort() from None
    except FATAL_ERRORS as e:
        err_console.print(f"[bold red]Error:[/bold red] {e}")
        ctx.exit(1)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "success": outcome.success,
                    "complete": outcome.complete,
                    "output_path": str(outcome.output_path),
                    "summary": outcome.summary,
                    "repositories_total": outcome.repositories_total,
                    "repositories_collected": outcome.repositories_collected,
                    "errors_encountered": outcome.errors_encountered,
                    "items_collected": outcome.items_collected,
                }
            )
        )
        return

    style = "green" if outcome.complete else "yellow"
    console.print(f"[bold {style}]Done:[/bold {style}] {outcome.summary}")
    console.print(f"  Result file: {outcome.output_path}")
    console.print()
    console.print("[bold cyan]Example queries:[/bold cyan]")
    for command in outcome.jq_commands:
        console.print(f"  {command}", markup=False, highlight=False)


@main.command()
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Storage root holding var/results",
)
@click.option("--max-age-hours", type=click.FloatRange(min=0), default=168, show_default=True)
@click.option("--max-files", type=click.IntRange(min=0), default=50, show_default=True)
def clean(output_dir: Path, max_age_hours: float, max_files: int) -> None:
    """Delete result files older than --max-age-hours or beyond the newest --max-files."""
    removed = clean_old_results(PathManager(output_dir), max_age_hours, max_files)
    console.print(f"Removed {len(removed)} result file(s)")
    for path in removed:
        console.print(f"  [dim]{path}[/dim]")


if __name__ == "__main__":
    main()
