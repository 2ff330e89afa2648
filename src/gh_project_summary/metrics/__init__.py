"""Deterministic metrics derived from collected records."""

from gh_project_summary.metrics.models import (
    ContributorMetrics,
    ProjectMetrics,
    ProjectSummaryMetrics,
    RepositoryMetrics,
    TimelineMetrics,
)
from gh_project_summary.metrics.orchestrator import calculate_metrics

__all__ = [
    "ContributorMetrics",
    "ProjectMetrics",
    "ProjectSummaryMetrics",
    "RepositoryMetrics",
    "TimelineMetrics",
    "calculate_metrics",
]
