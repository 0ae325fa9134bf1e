"""Offline summary page over a finished run directory.

Reads ``<run>/json/*.json``, counts violation nodes per impact level for each
page, and writes ``<run>/summary/index.html`` with summary cards and a table
that sorts by any severity column. Oversized or malformed files are skipped
with a warning; the run directory must live under the working directory.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.keys import K_URL, K_VIOLATIONS
from ..errors import SummaryError
from .reporter_config import (
    DEFAULT_STYLES_PATH,
    DEFAULT_SUMMARY_TEMPLATE_PATH,
    IMPACT_LEVELS,
    SUMMARY_MAX_FILE_BYTES,
    SUMMARY_MAX_FILES,
)
from .reporter_utils import is_within
from .report import escape_html, fill_template, is_http_url, load_template, resolve_locale, tally_impacts, translate

logger = logging.getLogger(__name__)


@dataclass
class PageSummary:
    url: str
    report_name: str
    counts: Dict[str, int]

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass
class SummaryData:
    pages: List[PageSummary] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def severity_totals(self) -> Dict[str, Dict[str, float]]:
        totals: Dict[str, Dict[str, float]] = {}
        page_count = len(self.pages)
        for impact in IMPACT_LEVELS:
            count = sum(page.counts.get(impact, 0) for page in self.pages)
            affected = sum(1 for page in self.pages if page.counts.get(impact, 0) > 0)
            percent = round(affected * 100.0 / page_count, 1) if page_count else 0.0
            totals[impact] = {"count": count, "pages": affected, "percent": percent}
        return totals


def resolve_run_path(path: Union[str, Path], cwd: Optional[Path] = None) -> Path:
    root = (cwd or Path.cwd()).resolve()
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if not is_within(resolved, root):
        raise SummaryError(f"Refusing to read {path}: it is outside the working directory {root}")
    return resolved


def _load_page(path: Path, max_file_bytes: int) -> PageSummary:
    size = path.stat().st_size
    if size > max_file_bytes:
        raise ValueError(f"{size} bytes exceeds the {max_file_bytes} byte limit")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get(K_VIOLATIONS), list):
        raise ValueError("not an axe-core result object")
    url = data.get(K_URL)
    if not isinstance(url, str) or not url:
        raise ValueError("result has no url")
    return PageSummary(url=url, report_name=path.stem, counts=tally_impacts(data))


def collect_summary(
    json_dir: Path,
    *,
    max_file_bytes: int = SUMMARY_MAX_FILE_BYTES,
    max_files: int = SUMMARY_MAX_FILES,
) -> SummaryData:
    files = sorted(p for p in json_dir.glob("*.json") if p.is_file())
    if not files:
        logger.warning("No JSON files found in %s", json_dir)
    if len(files) > max_files:
        logger.warning("Found %d JSON files; only the first %d are summarized", len(files), max_files)
        files = files[:max_files]
    data = SummaryData()
    for path in files:
        try:
            data.pages.append(_load_page(path, max_file_bytes))
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            logger.warning("Skipping %s: %s", path.name, exc)
            data.skipped.append(path.name)
    return data


def _render_cards(data: SummaryData, locale: str) -> str:
    items = [
        '<li class="summary-card">'
        f'<span class="label">{translate(locale, "summaryPages")}</span>'
        f'<span class="value">{len(data.pages)}</span></li>'
    ]
    for impact, stats in data.severity_totals().items():
        items.append(
            f'<li class="summary-card" data-impact="{impact}">'
            f'<span class="violationLabel {impact}">{translate(locale, "impactData", impact)}</span>'
            f'<span class="value">{stats["count"]}</span>'
            f'<span class="pages">{stats["pages"]} {translate(locale, "summaryPagesAffected")} ({stats["percent"]}%)</span>'
            "</li>"
        )
    return '<ul class="summary-cards">' + "".join(items) + "</ul>"


def _render_row(page: PageSummary) -> str:
    url = escape_html(page.url)
    attrs = " ".join(f'data-{impact}="{page.counts.get(impact, 0)}"' for impact in IMPACT_LEVELS)
    cells = "".join(f'<td class="count">{page.counts.get(impact, 0)}</td>' for impact in IMPACT_LEVELS)
    external = ""
    if is_http_url(page.url):
        external = f' <a class="report-link-ex" href="{url}" target="_blank" rel="noopener">&#8599;</a>'
    return (
        f'<tr data-url="{url}" {attrs}>'
        f'<th scope="row"><a href="../html/{escape_html(page.report_name)}.html">{url}</a>{external}</th>'
        f"{cells}</tr>"
    )


def _render_table(data: SummaryData, locale: str) -> str:
    headers = ['<th scope="col" data-sort="url"><button type="button">URL</button></th>']
    for impact in IMPACT_LEVELS:
        headers.append(
            f'<th scope="col" data-sort="{impact}"><button type="button">'
            f"{translate(locale, 'impactData', impact)}</button></th>"
        )
    rows = "\n".join(_render_row(page) for page in data.pages)
    return (
        '<div class="summary-table"><div class="overflow-table" tabindex="0">'
        f'<table id="summary-table"><caption>{translate(locale, "summaryIssues")} '
        f'<span class="sr-only">{translate(locale, "summarySortHint")}</span></caption>'
        f"<thead><tr>{''.join(headers)}</tr></thead>"
        f"<tbody>\n{rows}\n</tbody></table></div></div>"
    )


def render_summary(data: SummaryData, locale: Optional[str], *, template: Optional[str] = None, styles: Optional[str] = None) -> str:
    lang = resolve_locale(locale)
    source = template if template is not None else load_template(DEFAULT_SUMMARY_TEMPLATE_PATH)
    css = styles if styles is not None else load_template(DEFAULT_STYLES_PATH)
    return fill_template(
        source,
        {
            "STYLE": f"<style>{css}</style>",
            "LOCALE": escape_html(lang),
            "PAGE_TITLE": translate(lang, "summaryTitle"),
            "CONTENT": _render_cards(data, lang) + "\n" + _render_table(data, lang),
        },
    )


def build_summary(
    path: Union[str, Path],
    *,
    locale: Optional[str] = None,
    cwd: Optional[Path] = None,
    max_file_bytes: int = SUMMARY_MAX_FILE_BYTES,
    max_files: int = SUMMARY_MAX_FILES,
) -> Path:
    """Write ``summary/index.html`` into the run directory and return its path."""

    run_dir = resolve_run_path(path, cwd)
    json_dir = run_dir / "json"
    if not json_dir.is_dir():
        raise SummaryError(f"{json_dir} is not a directory")
    data = collect_summary(json_dir, max_file_bytes=max_file_bytes, max_files=max_files)
    html = render_summary(data, locale)
    summary_dir = run_dir / "summary"
    output = summary_dir / "index.html"
    try:
        summary_dir.mkdir(parents=True, exist_ok=True)
        output.write_text(html, encoding="utf-8")
    except OSError as exc:
        raise SummaryError(f"Failed to write {output}: {exc}") from exc
    logger.info("Summary page generated at %s (%d pages, %d skipped)", output, len(data.pages), len(data.skipped))
    return output


__all__ = [
    "PageSummary",
    "SummaryData",
    "resolve_run_path",
    "collect_summary",
    "render_summary",
    "build_summary",
]
