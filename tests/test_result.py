"""Tests for result document assembly."""

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

from gh_project_summary.collect.aggregator import build_indexes
from gh_project_summary.collect.fetcher import FetchError
from gh_project_summary.config import CollectionOptions
from gh_project_summary.metrics import calculate_metrics
from gh_project_summary.models import AggregatedData, ProjectInfo, RawData
from gh_project_summary.result import JQ_HINTS, RunInfo, assemble_result, format_jq_command

STARTED = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)


def make_run(**overrides: object) -> RunInfo:
    run = RunInfo(
        started_at=STARTED,
        reference_time=STARTED,
        options=CollectionOptions(),
        arguments="collect acme/3",
        repositories_discovered=["org/a", "org/b"],
    )
    for key, value in overrides.items():
        setattr(run, key, value)
    return run


class TestFormatJqCommand:
    """Tests for format_jq_command."""

    def test_compressed(self) -> None:
        """Test compressed results are piped through xzcat."""
        command = format_jq_command(Path("out/r.json.xz"), JQ_HINTS[0])
        expected = "xzcat out/r.json.xz | jq '.metrics.summary'  # " + JQ_HINTS[0].description
        assert command == expected

    def test_plain(self) -> None:
        """Test plain results are passed to jq directly."""
        command = format_jq_command(Path("out/r.json"), JQ_HINTS[0])
        assert command.startswith("jq '.metrics.summary' out/r.json  # ")

    def test_hints_avoid_single_quotes(self) -> None:
        """Test every hint can be wrapped in single quotes."""
        assert all("'" not in hint.query for hint in JQ_HINTS)


class TestRunInfo:
    """Tests for RunInfo."""

    def test_add_repo_is_idempotent(self) -> None:
        """Test a repository is recorded once."""
        run = make_run()
        run.add_repo("org/a")
        run.add_repo("org/a")
        assert run.repositories_processed == ["org/a"]

    def test_run_ids_unique(self) -> None:
        """Test each run gets its own id."""
        assert make_run().run_id != make_run().run_id


class TestAssembleResult:
    """Tests for assemble_result."""

    def test_top_level_contract(self, two_repo_raw: RawData) -> None:
        """Test the four top-level keys in order."""
        data = AggregatedData(raw=two_repo_raw, indexes=build_indexes(two_repo_raw))
        metrics = calculate_metrics(data, STARTED)

        payload = assemble_result(data, metrics, make_run()).to_payload()

        assert list(payload) == ["raw", "metrics", "indexes", "metadata"]
        assert list(payload["metadata"]) == ["collection", "execution", "api_usage", "jq_hints"]
        json.dumps(payload, allow_nan=False)

    def test_collection_metadata(self, two_repo_raw: RawData) -> None:
        """Test completeness fields reflect the run."""
        data = AggregatedData(raw=two_repo_raw, indexes=build_indexes(two_repo_raw))
        error = FetchError("org/b", "commits", "Server error 502", 502)
        run = make_run(
            repositories_processed=["org/a", "org/b"],
            repositories_incomplete=["org/c"],
            errors=[error],
            completed_at=STARTED + timedelta(seconds=3),
            api_usage={"total_calls": 12},
        )

        payload = assemble_result(data, calculate_metrics(data, STARTED), run).to_payload()
        collection = payload["metadata"]["collection"]

        assert collection["repositories_processed"] == ["org/a", "org/b"]
        assert collection["repositories_incomplete"] == ["org/c"]
        assert collection["errors_encountered"] == 1
        assert collection["errors"] == [
            {
                "repository": "org/b",
                "kind": "commits",
                "message": "Server error 502",
                "status_code": 502,
            }
        ]
        assert collection["items_collected"]["issues"] == 3
        assert collection["collection_options"]["limits"]["max_issues_per_repo"] == 500
        assert payload["metadata"]["execution"]["execution_time_ms"] == 3000
        assert payload["metadata"]["execution"]["arguments"] == "collect acme/3"
        assert payload["metadata"]["api_usage"] == {"total_calls": 12}
        assert len(payload["metadata"]["jq_hints"]) == len(JQ_HINTS)

    def test_project_in_raw(self) -> None:
        """Test the board travels under raw.project."""
        raw = RawData(project=ProjectInfo(id="PVT_1", title="Roadmap", number=3))
        data = AggregatedData(raw=raw, indexes=build_indexes(raw))

        payload = assemble_result(data, calculate_metrics(data, STARTED), make_run()).to_payload()

        assert payload["raw"]["project"]["title"] == "Roadmap"
        assert payload["raw"]["project"]["number"] == 3
