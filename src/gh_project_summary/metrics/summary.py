"""Project-wide summary metrics."""

from collections import Counter

from gh_project_summary.metrics.constants import (
    ACTIVITY_LEVEL_THRESHOLDS,
    MOST_ACTIVE_LIMIT,
    RATIO_SENTINEL,
    SCORE_PRECISION,
)
from gh_project_summary.metrics.contributors import contribution_events
from gh_project_summary.metrics.models import (
    ActivityLevel,
    ActivitySummary,
    HealthMetrics,
    ProjectSummaryMetrics,
    RepositoryMetrics,
)
from gh_project_summary.metrics.repository import answered_issue_ids
from gh_project_summary.metrics.stats import (
    Windows,
    days_between,
    mean,
    median,
    ratio,
    round_days,
)
from gh_project_summary.models import RawData


def _health_metrics(raw: RawData) -> HealthMetrics:
    # Never-closed issues have no resolution time and are left out
    resolution_days = [
        days
        for issue in raw.issues
        if issue.state == "closed"
        and (days := days_between(issue.created_at, issue.closed_at)) is not None
    ]
    merge_days = [
        days
        for pull in raw.pull_requests
        if (days := days_between(pull.created_at, pull.merged_at)) is not None
    ]
    answered = answered_issue_ids(raw)
    reviewed = {review.parent_id for review in raw.pr_reviews}

    return HealthMetrics(
        avg_issue_resolution_days=round_days(mean(resolution_days)),
        median_issue_resolution_days=round_days(median(resolution_days)),
        avg_pr_merge_days=round_days(mean(merge_days)),
        median_pr_merge_days=round_days(median(merge_days)),
        issue_response_rate=ratio(sum(1 for i in raw.issues if i.id in answered), len(raw.issues)),
        pr_review_coverage=ratio(
            sum(1 for p in raw.pull_requests if p.id in reviewed), len(raw.pull_requests)
        ),
    )


def _primary_language(languages: Counter[str]) -> str | None:
    if not languages:
        return None
    # Most repositories wins; ties break alphabetically
    return min(languages.items(), key=lambda item: (-item[1], item[0]))[0]


def activity_level(total_activity: float) -> ActivityLevel:
    """Bucket the summed recent repository activity into high, medium or low."""
    if total_activity >= ACTIVITY_LEVEL_THRESHOLDS["high"]:
        return "high"
    if total_activity >= ACTIVITY_LEVEL_THRESHOLDS["medium"]:
        return "medium"
    return "low"


def most_active_repositories(repositories: list[RepositoryMetrics]) -> list[str]:
    """Names of repositories with recent activity, busiest first, ties by name."""
    active = [repo for repo in repositories if repo.activity_score > 0]
    active.sort(key=lambda repo: (-repo.activity_score, repo.full_name))
    return [repo.full_name for repo in active[:MOST_ACTIVE_LIMIT]]


def calculate_summary_metrics(
    raw: RawData, windows: Windows, repositories: list[RepositoryMetrics]
) -> ProjectSummaryMetrics:
    """Compute totals, language mix, health and recent activity.

    Args:
        raw: Aggregated raw arrays.
        windows: Activity windows around the reference time.
        repositories: Per-repository metrics of the same records.
    """
    languages = Counter(repo.language for repo in raw.repositories if repo.language)
    events = contribution_events(raw)

    activity = ActivitySummary(
        commits_last_30_days=windows.count_recent(c.date for c in raw.commits),
        issues_last_30_days=windows.count_recent(i.created_at for i in raw.issues),
        prs_last_30_days=windows.count_recent(p.created_at for p in raw.pull_requests),
        active_contributors_last_30_days=len(
            {login for login, _, _, ts in events if windows.is_recent(ts)}
        ),
    )

    open_issues = sum(1 for issue in raw.issues if issue.state == "open")
    open_pulls = sum(1 for pull in raw.pull_requests if pull.state == "open")
    merged_pulls = sum(1 for pull in raw.pull_requests if pull.merged_at is not None)
    health_scores = [repo.health_score for repo in repositories]
    project_health = mean(health_scores)

    return ProjectSummaryMetrics(
        total_repositories=len(raw.repositories),
        total_stars=sum(repo.stars for repo in raw.repositories),
        total_forks=sum(repo.forks for repo in raw.repositories),
        total_contributors=len({login for login, _, _, _ in events}),
        total_issues=len(raw.issues),
        issues_open_count=open_issues,
        issues_closed_ratio=ratio(len(raw.issues) - open_issues, len(raw.issues)),
        total_pull_requests=len(raw.pull_requests),
        prs_open_count=open_pulls,
        prs_merged_ratio=ratio(merged_pulls, len(raw.pull_requests)),
        total_commits=len(raw.commits),
        languages=dict(sorted(languages.items())),
        primary_language=_primary_language(languages),
        health_metrics=_health_metrics(raw),
        activity_summary=activity,
        health_score=(
            RATIO_SENTINEL if project_health is None else round(project_health, SCORE_PRECISION)
        ),
        recent_activity_level=activity_level(sum(repo.activity_score for repo in repositories)),
        active_repositories=sum(1 for repo in repositories if repo.activity_score > 0),
        most_active_repositories=most_active_repositories(repositories),
    )
