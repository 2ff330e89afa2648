"""Derived metric records.

All metric models are frozen and computed only from collected records plus
the run's reference time.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Trend = Literal["increasing", "decreasing", "stable"]
ActivityLevel = Literal["high", "medium", "low"]


class MetricModel(BaseModel):
    """Base for immutable metric records."""

    model_config = ConfigDict(frozen=True)


class RepositoryMetrics(MetricModel):
    """Per-repository metrics."""

    full_name: str
    name: str
    language: str | None = None
    stars: int = 0
    forks: int = 0
    open_issues: int = 0
    last_push: datetime | None = None
    issue_count: int = 0
    pull_request_count: int = 0
    commit_count: int = 0
    activity_score: float = 0.0
    issue_response_rate: float = 0.0
    pr_merge_rate: float = 0.0
    health_score: float = 0.0
    contributor_count: int = 0
    median_pr_merge_days: float | None = None


class ContributionCounts(MetricModel):
    """Contributions of one author by kind."""

    commits_authored: int = 0
    issues_created: int = 0
    prs_created: int = 0
    comments_posted: int = 0
    reviews_submitted: int = 0


class ContributorMetrics(MetricModel):
    """Per-author metrics across the whole project."""

    login: str
    contributions: ContributionCounts
    total_contributions: int
    first_contribution: datetime | None = None
    last_contribution: datetime | None = None
    activity_timeline: dict[str, int] = Field(default_factory=dict)
    repositories: list[str] = Field(default_factory=list)


class HealthMetrics(MetricModel):
    """Project-wide resolution and review health."""

    avg_issue_resolution_days: float | None = None
    median_issue_resolution_days: float | None = None
    avg_pr_merge_days: float | None = None
    median_pr_merge_days: float | None = None
    issue_response_rate: float = 0.0
    pr_review_coverage: float = 0.0


class ActivitySummary(MetricModel):
    """Counts inside the recent window."""

    commits_last_30_days: int = 0
    issues_last_30_days: int = 0
    prs_last_30_days: int = 0
    active_contributors_last_30_days: int = 0


class ProjectSummaryMetrics(MetricModel):
    """Totals and health across every repository."""

    total_repositories: int = 0
    total_stars: int = 0
    total_forks: int = 0
    total_contributors: int = 0
    total_issues: int = 0
    issues_open_count: int = 0
    issues_closed_ratio: float = 0.0
    total_pull_requests: int = 0
    prs_open_count: int = 0
    prs_merged_ratio: float = 0.0
    total_commits: int = 0
    languages: dict[str, int] = Field(default_factory=dict)
    primary_language: str | None = None
    health_metrics: HealthMetrics = Field(default_factory=HealthMetrics)
    activity_summary: ActivitySummary = Field(default_factory=ActivitySummary)
    health_score: float = 0.0
    recent_activity_level: ActivityLevel = "low"
    active_repositories: int = 0
    most_active_repositories: list[str] = Field(default_factory=list)


class PeriodActivity(MetricModel):
    """Items created in one week or month."""

    commits: int = 0
    issues: int = 0
    pull_requests: int = 0


class MonthlyActivity(PeriodActivity):
    """Items created in one month plus distinct active authors."""

    contributors: int = 0


class ActivityTrends(MetricModel):
    """Recent-versus-previous window direction per kind."""

    commits_trend: Trend = "stable"
    issues_trend: Trend = "stable"
    prs_trend: Trend = "stable"


class GrowthRates(MetricModel):
    """Relative change from the previous to the recent window per kind."""

    commits: float = 0.0
    issues: float = 0.0
    pull_requests: float = 0.0


class TimelineMetrics(MetricModel):
    """Activity over time."""

    weekly_activity: dict[str, PeriodActivity] = Field(default_factory=dict)
    monthly_activity: dict[str, MonthlyActivity] = Field(default_factory=dict)
    activity_trends: ActivityTrends = Field(default_factory=ActivityTrends)
    growth_rates: GrowthRates = Field(default_factory=GrowthRates)


class ProjectMetrics(MetricModel):
    """Every derived metric of a collection run."""

    reference_time: datetime
    summary: ProjectSummaryMetrics
    repositories: list[RepositoryMetrics] = Field(default_factory=list)
    contributors: list[ContributorMetrics] = Field(default_factory=list)
    timeline: TimelineMetrics = Field(default_factory=TimelineMetrics)
