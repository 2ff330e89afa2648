"""Activity over time: weekly and monthly buckets, trends, growth."""

from collections import defaultdict
from datetime import datetime

from gh_project_summary.metrics.constants import TREND_THRESHOLD
from gh_project_summary.metrics.contributors import contribution_events
from gh_project_summary.metrics.models import (
    ActivityTrends,
    GrowthRates,
    MonthlyActivity,
    PeriodActivity,
    TimelineMetrics,
    Trend,
)
from gh_project_summary.metrics.stats import Windows, month_key, ratio, week_key
from gh_project_summary.models import RawData


def classify_trend(recent: int, previous: int) -> Trend:
    """Direction of change between two window counts.

    With no previous activity, any recent activity counts as increasing.
    """
    if previous == 0:
        return "increasing" if recent > 0 else "stable"
    change = (recent - previous) / previous
    if change > TREND_THRESHOLD:
        return "increasing"
    if change < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def calculate_timeline_metrics(raw: RawData, windows: Windows) -> TimelineMetrics:
    """Bucket created items by ISO week and month and derive trends.

    Items created after the reference time are ignored.
    """
    series: dict[str, list[datetime]] = {
        "commits": [c.date for c in raw.commits if c.date],
        "issues": [i.created_at for i in raw.issues if i.created_at],
        "pull_requests": [p.created_at for p in raw.pull_requests if p.created_at],
    }
    for kind, timestamps in series.items():
        series[kind] = [ts for ts in timestamps if ts <= windows.reference_time]

    weekly: defaultdict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    monthly: defaultdict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for kind, timestamps in series.items():
        for ts in timestamps:
            weekly[week_key(ts)][kind] += 1
            monthly[month_key(ts)][kind] += 1

    monthly_authors: defaultdict[str, set[str]] = defaultdict(set)
    for login, _, _, ts in contribution_events(raw):
        if ts is not None and ts <= windows.reference_time:
            monthly_authors[month_key(ts)].add(login)

    recent = {kind: windows.count_recent(ts) for kind, ts in series.items()}
    previous = {kind: windows.count_previous(ts) for kind, ts in series.items()}

    return TimelineMetrics(
        weekly_activity={key: PeriodActivity(**weekly[key]) for key in sorted(weekly)},
        monthly_activity={
            key: MonthlyActivity(**monthly[key], contributors=len(monthly_authors[key]))
            for key in sorted(monthly)
        },
        activity_trends=ActivityTrends(
            commits_trend=classify_trend(recent["commits"], previous["commits"]),
            issues_trend=classify_trend(recent["issues"], previous["issues"]),
            prs_trend=classify_trend(recent["pull_requests"], previous["pull_requests"]),
        ),
        growth_rates=GrowthRates(
            **{
                kind: ratio(recent[kind] - previous[kind], previous[kind])
                for kind in ("commits", "issues", "pull_requests")
            }
        ),
    )
