"""Assembly of the single result document.

The four top-level keys ``raw``, ``metrics``, ``indexes`` and ``metadata``
are the stable contract that jq queries are written against.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from pydantic import BaseModel, Field

from gh_project_summary import __version__
from gh_project_summary.config import CollectionOptions
from gh_project_summary.metrics.models import ProjectMetrics
from gh_project_summary.models import AggregatedData, Indexes, RawData

if TYPE_CHECKING:
    from gh_project_summary.collect.fetcher import FetchError

logger = logging.getLogger(__name__)


class JqHint(BaseModel):
    """Ready-made jq query over a result file."""

    query: str
    description: str


JQ_HINTS = [
    JqHint(query=".metrics.summary", description="Project totals, health and recent activity"),
    JqHint(
        query=".metrics.repositories | sort_by(.activity_score) | reverse",
        description="Repositories by recent activity",
    ),
    JqHint(
        query=".metrics.contributors[:10] | map({login, total_contributions})",
        description="Top ten contributors",
    ),
    JqHint(query=".metrics.timeline.activity_trends", description="Activity trends"),
    JqHint(
        query='.raw.issues | map(select(.state == "open")) | length',
        description="Count open issues",
    ),
    JqHint(
        query=".raw.pull_requests | map(select(.merged_at != null)) | length",
        description="Count merged pull requests",
    ),
    JqHint(
        query='. as $root | .indexes.issues_by_repo["OWNER/NAME"] | map($root.raw.issues[.])',
        description="Issues of one repository through the index",
    ),
    JqHint(query=".indexes.items_by_author | keys", description="Every author"),
    JqHint(query=".indexes.items_by_label | map_values(length)", description="Items per label"),
    JqHint(
        query=".metadata.collection | {repositories_incomplete, errors}",
        description="What is missing from this result",
    ),
]


def format_jq_command(path: Path, hint: JqHint) -> str:
    """Render a hint as a shell command for the given result file."""
    if path.name.endswith(".xz"):
        return f"xzcat {path} | jq '{hint.query}'  # {hint.description}"
    return f"jq '{hint.query}' {path}  # {hint.description}"


@dataclass
class RunInfo:
    """Bookkeeping of a collection run, turned into ``metadata``."""

    started_at: datetime
    reference_time: datetime
    options: CollectionOptions
    command: str = "collect"
    arguments: str = ""
    run_id: str = field(default_factory=lambda: str(uuid4()))
    completed_at: datetime | None = None
    repositories_discovered: list[str] = field(default_factory=list)
    repositories_processed: list[str] = field(default_factory=list)
    repositories_incomplete: list[str] = field(default_factory=list)
    errors: list[FetchError] = field(default_factory=list)
    api_usage: dict[str, Any] = field(default_factory=dict)

    def add_repo(self, repo_full_name: str) -> None:
        """Record a fully fetched repository."""
        if repo_full_name not in self.repositories_processed:
            self.repositories_processed.append(repo_full_name)

    def finish(self) -> None:
        """Mark the run as completed now."""
        self.completed_at = datetime.now(UTC)


class CollectionMetadata(BaseModel):
    """``metadata.collection``: completeness of the run."""

    run_id: str
    collection_started_at: datetime
    collection_completed_at: datetime
    reference_time: datetime
    collection_options: dict[str, Any]
    repositories_discovered: list[str]
    repositories_processed: list[str]
    repositories_incomplete: list[str]
    items_collected: dict[str, int]
    errors_encountered: int
    errors: list[dict[str, Any]]


class ExecutionMetadata(BaseModel):
    """``metadata.execution``: how the result was produced."""

    command: str
    arguments: str
    execution_time_ms: int
    generated_at: datetime
    version: str = __version__


class ResultMetadata(BaseModel):
    """Top-level ``metadata`` key."""

    collection: CollectionMetadata
    execution: ExecutionMetadata
    api_usage: dict[str, Any] = Field(default_factory=dict)
    jq_hints: list[JqHint] = Field(default_factory=list)


class CollectionResult(BaseModel):
    """The complete result document."""

    raw: RawData
    metrics: ProjectMetrics
    indexes: Indexes
    metadata: ResultMetadata

    def to_payload(self) -> dict[str, Any]:
        """JSON-compatible dictionary with the contract's key order."""
        return self.model_dump(mode="json")


def assemble_result(
    data: AggregatedData,
    metrics: ProjectMetrics,
    run: RunInfo,
) -> CollectionResult:
    """Combine records, indexes, metrics and run bookkeeping.

    Args:
        data: Aggregated raw arrays and indexes.
        metrics: Metrics computed from ``data``.
        run: Bookkeeping of the run; ``completed_at`` defaults to now.

    Returns:
        CollectionResult ready to serialize.
    """
    completed_at = run.completed_at or datetime.now(UTC)
    elapsed_ms = int((completed_at - run.started_at).total_seconds() * 1000)

    collection = CollectionMetadata(
        run_id=run.run_id,
        collection_started_at=run.started_at,
        collection_completed_at=completed_at,
        reference_time=run.reference_time,
        collection_options=run.options.model_dump(mode="json"),
        repositories_discovered=run.repositories_discovered,
        repositories_processed=run.repositories_processed,
        repositories_incomplete=run.repositories_incomplete,
        items_collected=data.raw.item_counts(),
        errors_encountered=len(run.errors),
        errors=[error.to_dict() for error in run.errors],
    )
    execution = ExecutionMetadata(
        command=run.command,
        arguments=run.arguments,
        execution_time_ms=max(0, elapsed_ms),
        generated_at=completed_at,
    )

    logger.debug("Assembled result with %d errors", len(run.errors))
    return CollectionResult(
        raw=data.raw,
        metrics=metrics,
        indexes=data.indexes,
        metadata=ResultMetadata(
            collection=collection,
            execution=execution,
            api_usage=run.api_usage,
            jq_hints=list(JQ_HINTS),
        ),
    )
