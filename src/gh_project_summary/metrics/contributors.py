"""Per-author contribution metrics."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from gh_project_summary.metrics.models import ContributionCounts, ContributorMetrics
from gh_project_summary.metrics.stats import month_key
from gh_project_summary.models import RawData

_KIND_FIELDS = (
    "commits_authored",
    "issues_created",
    "prs_created",
    "comments_posted",
    "reviews_submitted",
)


@dataclass
class _Tally:
    counts: dict[str, int] = field(default_factory=lambda: dict.fromkeys(_KIND_FIELDS, 0))
    timestamps: list[datetime] = field(default_factory=list)
    repositories: set[str] = field(default_factory=set)

    def add(self, kind: str, repository: str, ts: datetime | None) -> None:
        self.counts[kind] += 1
        self.repositories.add(repository)
        if ts is not None:
            self.timestamps.append(ts)


def contribution_events(raw: RawData) -> list[tuple[str, str, str, datetime | None]]:
    """Flatten every authored record into ``(login, kind, repository, timestamp)``.

    Records without an author are skipped.
    """
    events: list[tuple[str, str, str, datetime | None]] = []
    events.extend(
        (c.author, "commits_authored", c.repository_name, c.date) for c in raw.commits if c.author
    )
    events.extend(
        (i.author, "issues_created", i.repository_name, i.created_at)
        for i in raw.issues
        if i.author
    )
    events.extend(
        (p.author, "prs_created", p.repository_name, p.created_at)
        for p in raw.pull_requests
        if p.author
    )
    for comments in (raw.issue_comments, raw.pr_review_comments):
        events.extend(
            (c.author, "comments_posted", c.repository_name, c.created_at)
            for c in comments
            if c.author
        )
    events.extend(
        (r.author, "reviews_submitted", r.repository_name, r.submitted_at)
        for r in raw.pr_reviews
        if r.author
    )
    return events


def calculate_contributor_metrics(raw: RawData) -> list[ContributorMetrics]:
    """Compute one entry per distinct author.

    Returns:
        Contributors ordered by total contributions descending, then login.
    """
    tallies: defaultdict[str, _Tally] = defaultdict(_Tally)
    for login, kind, repository, ts in contribution_events(raw):
        tallies[login].add(kind, repository, ts)

    contributors = []
    for login, tally in tallies.items():
        timeline: defaultdict[str, int] = defaultdict(int)
        for ts in tally.timestamps:
            timeline[month_key(ts)] += 1

        contributors.append(
            ContributorMetrics(
                login=login,
                contributions=ContributionCounts(**tally.counts),
                total_contributions=sum(tally.counts.values()),
                first_contribution=min(tally.timestamps, default=None),
                last_contribution=max(tally.timestamps, default=None),
                activity_timeline=dict(sorted(timeline.items())),
                repositories=sorted(tally.repositories),
            )
        )

    contributors.sort(key=lambda c: (-c.total_contributions, c.login))
    return contributors
