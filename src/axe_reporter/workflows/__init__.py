"""High-level exports for the axe-reporter workflows."""

from .aggregate import BatchSummary, aggregate
from .intake import IntakeResult, filter_urls, is_url_allowed, normalize_url
from .outcome import OutcomeError, ProcessingOutcome
from .report import escape_html, render_report, tally_impacts
from .scheduler import DomainScheduler, group_by_host
from .settings import ReporterConfig, load_settings, validate_settings
from .summary import build_summary

__all__ = [
    "BatchSummary",
    "aggregate",
    "IntakeResult",
    "filter_urls",
    "is_url_allowed",
    "normalize_url",
    "OutcomeError",
    "ProcessingOutcome",
    "escape_html",
    "render_report",
    "tally_impacts",
    "DomainScheduler",
    "group_by_host",
    "ReporterConfig",
    "load_settings",
    "validate_settings",
    "build_summary",
]
