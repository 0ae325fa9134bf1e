"""Optional flat CSV export: one row per violation node across the whole run."""

from __future__ import annotations

import asyncio
import csv
import logging
from pathlib import Path
from typing import Any, Dict, IO, List, Mapping, Optional

from ..core.keys import (
    K_ALL,
    K_ANY,
    K_DESCRIPTION,
    K_FAILURE_SUMMARY,
    K_HELP,
    K_HELP_URL,
    K_HTML,
    K_ID,
    K_IMPACT,
    K_MESSAGE,
    K_NODES,
    K_NONE,
    K_TAGS,
    K_TARGET,
    K_VIOLATIONS,
)
from .report import translate

logger = logging.getLogger(__name__)

CSV_FILENAME = "report.csv"
CSV_HEADERS = (
    "url",
    "check",
    "helpUrl",
    "tags",
    "impact",
    "failure_messages",
    "failure_summary",
    "target_html",
    "dom",
)


def _normalize_newlines(value: Any) -> str:
    if value is None:
        return ""
    return str(value).replace("\r\n", "\n").replace("\r", "\n")


def _join_target(target: Any) -> str:
    if not isinstance(target, list):
        return ""
    parts: List[str] = []
    for item in target:
        parts.append(" >> ".join(map(str, item)) if isinstance(item, list) else str(item))
    return " | ".join(parts)


def violation_rows(url: str, results: Mapping[str, Any], locale: Optional[str] = None) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    for violation in results.get(K_VIOLATIONS) or []:
        if not isinstance(violation, Mapping):
            continue
        check = violation.get(K_DESCRIPTION) or violation.get(K_HELP) or violation.get(K_ID) or ""
        tags = violation.get(K_TAGS)
        for node in violation.get(K_NODES) or []:
            if not isinstance(node, Mapping):
                continue
            messages: List[str] = []
            for key in (K_ANY, K_NONE, K_ALL):
                for item in node.get(key) or []:
                    if isinstance(item, Mapping) and item.get(K_MESSAGE):
                        messages.append(str(item[K_MESSAGE]))
            impact = node.get(K_IMPACT)
            rows.append(
                {
                    "url": url,
                    "check": _normalize_newlines(check),
                    "helpUrl": _normalize_newlines(violation.get(K_HELP_URL)),
                    "tags": " | ".join(map(str, tags)) if isinstance(tags, list) else "",
                    "impact": translate(locale, "impactData", impact) if impact else "",
                    "failure_messages": _normalize_newlines("\n".join(messages)),
                    "failure_summary": _normalize_newlines(node.get(K_FAILURE_SUMMARY)),
                    "target_html": _normalize_newlines(node.get(K_HTML)),
                    "dom": _join_target(node.get(K_TARGET)),
                }
            )
    return rows


class CsvReportBuilder:
    """Append-only CSV writer shared by concurrent page tasks."""

    def __init__(self, path: Path, *, locale: Optional[str] = None) -> None:
        self.path = Path(path)
        self.locale = locale
        self.rows_written = 0
        self._lock = asyncio.Lock()
        self._handle: Optional[IO[str]] = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.DictWriter(self._handle, fieldnames=CSV_HEADERS, lineterminator="\r\n")
        self._writer.writeheader()

    @property
    def closed(self) -> bool:
        return self._handle is None

    async def add_result(self, url: str, results: Mapping[str, Any]) -> int:
        rows = violation_rows(url, results, self.locale)
        if not rows:
            return 0
        async with self._lock:
            if self._handle is None:
                raise RuntimeError("CSV report already closed")
            self._writer.writerows(rows)
            self._handle.flush()
            self.rows_written += len(rows)
        return len(rows)

    async def close(self) -> None:
        async with self._lock:
            handle, self._handle = self._handle, None
            if handle is not None:
                handle.close()
                logger.info("CSV report written to %s (%d rows)", self.path, self.rows_written)


__all__ = ["CSV_FILENAME", "CSV_HEADERS", "CsvReportBuilder", "violation_rows"]
