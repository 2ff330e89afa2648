"""Collection pipeline: discovery, fetching, aggregation and the run itself."""

from gh_project_summary.collect.aggregator import (
    InvariantViolation,
    aggregate,
    build_indexes,
    verify_indexes,
    verify_references,
)
from gh_project_summary.collect.discovery import (
    DiscoveryError,
    ProjectNotFoundError,
    ProjectResolver,
    parse_project_reference,
)
from gh_project_summary.collect.fetcher import FetchError, FetchResult, RepositoryFetcher
from gh_project_summary.collect.orchestrator import (
    CollectionError,
    CollectionOutcome,
    run_collection,
)

__all__ = [
    "CollectionError",
    "CollectionOutcome",
    "DiscoveryError",
    "FetchError",
    "FetchResult",
    "InvariantViolation",
    "ProjectNotFoundError",
    "ProjectResolver",
    "RepositoryFetcher",
    "aggregate",
    "build_indexes",
    "parse_project_reference",
    "run_collection",
    "verify_indexes",
    "verify_references",
]
