import json
from datetime import datetime

import pytest

from axe_reporter.errors import NavigationError
from axe_reporter.workflows.aggregate import RUN_SUMMARY_FILENAME, aggregate, write_run_summary
from axe_reporter.workflows.outcome import ProcessingOutcome


def _outcomes():
    return [
        ProcessingOutcome(url="https://a.example/", success=True, violation_count=3),
        ProcessingOutcome(url="https://b.example/", success=True, warnings=["screenshot_failed"]),
        ProcessingOutcome.failure("https://c.example/", NavigationError("timed out")),
        ProcessingOutcome.failure("https://d.example/", ValueError("odd"), kind="internal"),
    ]


def test_aggregate_counts_and_kinds():
    summary = aggregate(_outcomes(), 4)
    assert (summary.total, summary.succeeded, summary.failed) == (4, 2, 2)
    assert summary.succeeded + summary.failed == summary.total
    assert summary.failures_by_kind == {"navigation": 1, "internal": 1}
    assert summary.violations == 3


def test_aggregate_rejects_missing_outcomes():
    with pytest.raises(RuntimeError):
        aggregate(_outcomes()[:3], 4)


def test_format_tally_lists_failed_urls():
    text = aggregate(_outcomes(), 4).format_tally()
    assert text.splitlines()[0] == "Processed 4 URLs: 2 succeeded, 2 failed"
    assert "  - https://c.example/: timed out" in text
    assert "https://a.example/" not in text


def test_failure_outcome_carries_error_details():
    outcome = ProcessingOutcome.failure("https://c.example/", NavigationError(""))
    assert outcome.success is False
    assert outcome.error.kind == "navigation"
    assert outcome.error.message == "NavigationError"
    assert outcome.error.timestamp.endswith("Z")


def test_write_run_summary(tmp_path):
    summary = aggregate(_outcomes(), 4)
    path = write_run_summary(
        summary,
        tmp_path,
        started_at=datetime(2024, 5, 1, 9, 30, 0),
        finished_at=datetime(2024, 5, 1, 9, 30, 12),
        intake={"accepted": 4, "invalid": 0, "blocked": 1, "duplicates": 0},
        config={"locale": "en"},
    )
    assert path == tmp_path / RUN_SUMMARY_FILENAME
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["counts"] == {"total": 4, "succeeded": 2, "failed": 2, "violations": 3}
    assert data["duration_ms"] == 12000
    assert data["intake"]["blocked"] == 1
    assert [item["url"] for item in data["items"]] == [o.url for o in summary.outcomes]
    assert data["items"][2]["error"]["kind"] == "navigation"
    assert data["items"][1]["warnings"] == ["screenshot_failed"]
