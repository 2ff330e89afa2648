"""Per-repository metrics."""

import logging
from collections import defaultdict

from gh_project_summary.metrics.constants import (
    ACTIVITY_WEIGHTS,
    HEALTH_WEIGHTS,
    RATIO_SENTINEL,
    SCORE_PRECISION,
)
from gh_project_summary.metrics.models import RepositoryMetrics
from gh_project_summary.metrics.stats import Windows, days_between, median, ratio, round_days
from gh_project_summary.models import IssueRecord, RawData

logger = logging.getLogger(__name__)


def answered_issue_ids(raw: RawData) -> set[int]:
    """Ids of issues that received at least one comment.

    An issue counts as answered when GitHub reports a non-zero comment count
    or a collected comment references it.
    """
    answered = {issue.id for issue in raw.issues if issue.comments > 0}
    answered.update(comment.parent_id for comment in raw.issue_comments)
    return answered


def health_score(
    issues: list[IssueRecord], issue_response_rate: float, pr_merge_rate: float
) -> float:
    """Weighted health in [0, 100]; RATIO_SENTINEL for a repository without issues."""
    if not issues:
        return RATIO_SENTINEL
    score = 100 * (
        HEALTH_WEIGHTS["issue_response_rate"] * issue_response_rate
        + HEALTH_WEIGHTS["pr_merge_rate"] * pr_merge_rate
    )
    return round(score, SCORE_PRECISION)


def calculate_repository_metrics(raw: RawData, windows: Windows) -> list[RepositoryMetrics]:
    """Compute metrics for every repository, in repository order.

    Args:
        raw: Aggregated raw arrays.
        windows: Activity windows around the reference time.

    Returns:
        One RepositoryMetrics per collected repository.
    """
    issues_by_repo = defaultdict(list)
    for issue in raw.issues:
        issues_by_repo[issue.repository_name].append(issue)
    pulls_by_repo = defaultdict(list)
    for pull in raw.pull_requests:
        pulls_by_repo[pull.repository_name].append(pull)
    commits_by_repo = defaultdict(list)
    for commit in raw.commits:
        commits_by_repo[commit.repository_name].append(commit)

    authors_by_repo: defaultdict[str, set[str]] = defaultdict(set)
    for records in (
        raw.issues,
        raw.pull_requests,
        raw.commits,
        raw.issue_comments,
        raw.pr_reviews,
        raw.pr_review_comments,
    ):
        for record in records:
            if record.author:
                authors_by_repo[record.repository_name].add(record.author)

    answered = answered_issue_ids(raw)
    results = []

    for repo in raw.repositories:
        issues = issues_by_repo[repo.full_name]
        pulls = pulls_by_repo[repo.full_name]
        commits = commits_by_repo[repo.full_name]

        merged = [pull for pull in pulls if pull.merged_at is not None]
        merge_days = [
            days
            for pull in merged
            if (days := days_between(pull.created_at, pull.merged_at)) is not None
        ]

        activity = (
            ACTIVITY_WEIGHTS["commits"] * windows.count_recent(c.date for c in commits)
            + ACTIVITY_WEIGHTS["issues"] * windows.count_recent(i.created_at for i in issues)
            + ACTIVITY_WEIGHTS["pull_requests"] * windows.count_recent(p.created_at for p in pulls)
        )
        issue_response_rate = ratio(sum(1 for i in issues if i.id in answered), len(issues))
        pr_merge_rate = ratio(len(merged), len(pulls))

        results.append(
            RepositoryMetrics(
                full_name=repo.full_name,
                name=repo.name,
                language=repo.language,
                stars=repo.stars,
                forks=repo.forks,
                open_issues=repo.open_issues,
                last_push=repo.pushed_at,
                issue_count=len(issues),
                pull_request_count=len(pulls),
                commit_count=len(commits),
                activity_score=round(activity, SCORE_PRECISION),
                issue_response_rate=issue_response_rate,
                pr_merge_rate=pr_merge_rate,
                health_score=health_score(issues, issue_response_rate, pr_merge_rate),
                contributor_count=len(authors_by_repo[repo.full_name]),
                median_pr_merge_days=round_days(median(merge_days)),
            )
        )

    logger.debug("Computed metrics for %d repositories", len(results))
    return results
