"""Entry point computing every derived metric of a run."""

import logging
from datetime import UTC, datetime

from gh_project_summary.metrics.contributors import calculate_contributor_metrics
from gh_project_summary.metrics.models import ProjectMetrics
from gh_project_summary.metrics.repository import calculate_repository_metrics
from gh_project_summary.metrics.stats import Windows
from gh_project_summary.metrics.summary import calculate_summary_metrics
from gh_project_summary.metrics.timeline import calculate_timeline_metrics
from gh_project_summary.models import AggregatedData, RawData

logger = logging.getLogger(__name__)


def calculate_metrics(data: AggregatedData | RawData, reference_time: datetime) -> ProjectMetrics:
    """Compute summary, repository, contributor and timeline metrics.

    Pure function: identical records and reference time always give an
    identical result.

    Args:
        data: Aggregated data or its raw arrays.
        reference_time: End of the recent activity window. Naive values are
            taken as UTC.

    Returns:
        ProjectMetrics for the whole run.
    """
    raw = data.raw if isinstance(data, AggregatedData) else data
    if reference_time.tzinfo is None:
        reference_time = reference_time.replace(tzinfo=UTC)
    windows = Windows(reference_time)

    repositories = calculate_repository_metrics(raw, windows)
    metrics = ProjectMetrics(
        reference_time=reference_time,
        summary=calculate_summary_metrics(raw, windows, repositories),
        repositories=repositories,
        contributors=calculate_contributor_metrics(raw),
        timeline=calculate_timeline_metrics(raw, windows),
    )
    logger.info(
        "Computed metrics: %d repositories, %d contributors",
        len(metrics.repositories),
        len(metrics.contributors),
    )
    return metrics
