"""Batch tally over per-URL outcomes and the run summary file."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .outcome import ProcessingOutcome

logger = logging.getLogger(__name__)

RUN_SUMMARY_FILENAME = "run_summary.json"


@dataclass
class BatchSummary:
    total: int
    succeeded: int
    failed: int
    outcomes: List[ProcessingOutcome] = field(default_factory=list)
    failures_by_kind: Dict[str, int] = field(default_factory=dict)

    @property
    def violations(self) -> int:
        return sum(outcome.violation_count for outcome in self.outcomes if outcome.success)

    def format_tally(self) -> str:
        lines = [f"Processed {self.total} URLs: {self.succeeded} succeeded, {self.failed} failed"]
        for kind, count in sorted(self.failures_by_kind.items()):
            lines.append(f"  {kind}: {count}")
        failed = [outcome for outcome in self.outcomes if not outcome.success]
        if failed:
            lines.append("Failed URLs:")
            for outcome in failed:
                message = outcome.error.message if outcome.error else "unknown error"
                lines.append(f"  - {outcome.url}: {message}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": {
                "total": self.total,
                "succeeded": self.succeeded,
                "failed": self.failed,
                "violations": self.violations,
            },
            "failures_by_kind": dict(self.failures_by_kind),
            "items": [outcome.to_dict() for outcome in self.outcomes],
        }


def aggregate(outcomes: Iterable[ProcessingOutcome], expected_total: int) -> BatchSummary:
    """Count outcomes; a count that disagrees with ``expected_total`` is an internal fault."""

    items = list(outcomes)
    succeeded = sum(1 for outcome in items if outcome.success)
    failed = len(items) - succeeded
    if len(items) != expected_total:
        raise RuntimeError(f"Expected {expected_total} outcomes, received {len(items)}")
    kinds = Counter(outcome.error.kind for outcome in items if not outcome.success and outcome.error)
    summary = BatchSummary(
        total=len(items),
        succeeded=succeeded,
        failed=failed,
        outcomes=items,
        failures_by_kind=dict(kinds),
    )
    logger.info("Batch complete: %d succeeded, %d failed (of %d)", succeeded, failed, summary.total)
    return summary


def _iso(moment: datetime) -> str:
    return moment.replace(microsecond=0).isoformat()


def write_run_summary(
    summary: BatchSummary,
    run_dir: Path,
    *,
    started_at: datetime,
    finished_at: datetime,
    intake: Optional[Dict[str, int]] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Path:
    payload: Dict[str, Any] = {
        "run_dir": str(run_dir),
        "started_at": _iso(started_at),
        "finished_at": _iso(finished_at),
        "duration_ms": int((finished_at - started_at).total_seconds() * 1000),
    }
    if intake is not None:
        payload["intake"] = dict(intake)
    payload.update(summary.to_dict())
    if config is not None:
        payload["config"] = config
    path = Path(run_dir) / RUN_SUMMARY_FILENAME
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


__all__ = ["BatchSummary", "aggregate", "write_run_summary", "RUN_SUMMARY_FILENAME"]
