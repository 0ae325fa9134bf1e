from __future__ import annotations

import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import typer

from .errors import ConfigError, Interrupted, ReporterError, classify_error
from .runner import dry_run_batch, run_batch
from .workflows.aggregate import RUN_SUMMARY_FILENAME
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.settings import ReporterConfig, load_settings
from .workflows.summary import build_summary

app = typer.Typer(add_help_option=False, no_args_is_help=False)

EXIT_OK = 0
EXIT_INPUT = 2
EXIT_FATAL = 3
EXIT_INTERRUPTED = 130

_INPUT_KINDS = {"config", "intake", "summary"}


def _minimal_help() -> str:
    return """axe-reporter (batch accessibility audits)

Usage:
  axe-reporter run [--config <FILE>] [--urls <FILE>] [--out <DIR>] [--locale <L>]
                   [--concurrency <N>] [--sequential] [--dry-run] [--json] [--verbose|--quiet]
  axe-reporter summary --path <RUN_DIR> [--locale <L>]
  axe-reporter doctor [--config <FILE>]

Common options:
  --config <FILE>   JSON settings file (snake_case or camelCase keys).
  --urls <FILE>     URL list, one URL per line.
  --out <DIR>       Output directory; each run gets a timestamped subdirectory.
  --json            Print run_summary.json to stdout only.
  --dry-run         Validate settings and the URL list without launching a browser.

Discoverability:
  --help-full     Expanded help + env vars + artifacts.
  --find <query>  Search commands, flags, env vars, artifacts.
  --doctor        Run environment diagnostics and exit.
"""


def _help_full() -> str:
    return """axe-reporter CLI

Commands:
  run       Audit every accepted URL with axe-core and write per-page reports.
  summary   Build summary/index.html for a finished run directory.
  doctor    Print environment and dependency diagnostics.

Artifacts (per run, under <output_directory>/<YYYY-MM-DD_HH-MM-SS>/):
  json/<name>.json          Raw axe-core result.
  html/<name>.html          Rendered report.
  html/images/<name>.<ext>  Screenshot (when enabled).
  report.csv                One row per violation node (enable_csv_report).
  run_summary.json          Counts, timings and per-URL outcomes.
  summary/index.html        Written by `axe-reporter summary`.

Settings (file keys; env vars use the AXE_REPORTER_ prefix, e.g. AXE_REPORTER_CONCURRENCY):
  url_list, locale, tags, mode, concurrency, per_domain_concurrency,
  request_delay_ms, enable_concurrency, enable_screenshots, screenshot_format,
  screenshot_quality, output_directory, template_path, styles_path,
  json_indentation, navigation_timeout, allowed_domains, blocked_domains,
  enable_sandbox, max_page_size, axe_script_path, axe_locale_path,
  enable_csv_report

Exit codes:
  0    batch completed (individual page failures are reported, not fatal)
  2    invalid settings, unreadable URL list, or no accepted URLs
  3    browser launch failure or internal fault
  130  interrupted by SIGINT/SIGTERM
"""


_FIND_INDEX = [
    ("command", "run", "Audit every accepted URL and write reports."),
    ("command", "summary", "Build summary/index.html for a run directory."),
    ("command", "doctor", "Print environment and dependency diagnostics."),
    ("flag", "--config", "JSON settings file."),
    ("flag", "--urls", "URL list, one URL per line."),
    ("flag", "--out", "Output directory for timestamped runs."),
    ("flag", "--locale", "Report language (en, ja)."),
    ("flag", "--concurrency", "Global limit of in-flight pages."),
    ("flag", "--sequential", "Process URLs one at a time in input order."),
    ("flag", "--dry-run", "Validate settings and URL list without a browser."),
    ("flag", "--json", "Print run_summary.json to stdout only."),
    ("flag", "--path", "Run directory for the summary command."),
    ("flag", "--help-full", "Expanded help, env vars, artifacts."),
    ("flag", "--find", "Search commands, flags, env vars, artifacts."),
    ("flag", "--doctor", "Run environment diagnostics and exit."),
    ("env", "AXE_REPORTER_URL_LIST", "Path to the URL list."),
    ("env", "AXE_REPORTER_CONCURRENCY", "Global concurrency limit (1-10)."),
    ("env", "AXE_REPORTER_PER_DOMAIN_CONCURRENCY", "Per-host concurrency limit (1-10)."),
    ("env", "AXE_REPORTER_REQUEST_DELAY_MS", "Minimum delay between requests to one host."),
    ("env", "AXE_REPORTER_ALLOWED_DOMAINS", "Comma separated allow list (hosts or CIDR)."),
    ("env", "AXE_REPORTER_BLOCKED_DOMAINS", "Comma separated deny list (hosts or CIDR)."),
    ("env", "AXE_REPORTER_ENABLE_SANDBOX", "Set to 0 to disable the Chromium sandbox."),
    ("env", "AXE_REPORTER_AXE_SCRIPT_PATH", "Inject this axe.min.js instead of the bundled build."),
    ("artifact", "run_summary.json", "Counts, timings and outcomes."),
    ("artifact", "report.csv", "Flat violation export."),
    ("artifact", "summary/index.html", "Sortable summary page."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s", force=True)


def _report_fatal(exc: BaseException, *, show_trace: bool) -> int:
    kind = classify_error(exc)
    if isinstance(exc, ConfigError):
        typer.echo("error [config]: invalid configuration", err=True)
        for item in exc.errors:
            typer.echo(f"  - {item}", err=True)
        return EXIT_INPUT
    if isinstance(exc, Interrupted):
        typer.echo(f"interrupted: {exc}", err=True)
        return EXIT_INTERRUPTED
    if kind in _INPUT_KINDS:
        typer.echo(f"error [{kind}]: {exc}", err=True)
        return EXIT_INPUT
    typer.echo(f"fatal [{kind}] {exc.__class__.__name__}: {exc}", err=True)
    if show_trace:
        typer.echo("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip(), err=True)
    return EXIT_FATAL


def _load(config_path: Optional[Path], overrides: Optional[Dict[str, Any]] = None) -> ReporterConfig:
    return load_settings(config_path, overrides)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars, artifacts."),
    doctor: bool = typer.Option(False, "--doctor", is_eager=True, help="Run environment diagnostics and exit."),
) -> None:
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=EXIT_OK)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=EXIT_OK)
    if doctor:
        _doctor(None)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=EXIT_OK)


def _doctor(config_path: Optional[Path]) -> None:
    config: Optional[ReporterConfig] = None
    errors = None
    try:
        config = _load(config_path)
    except ConfigError as exc:
        errors = exc.errors
    report = build_doctor_report(config, config_errors=errors)
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=EXIT_OK if report.get("ok", True) else EXIT_INPUT)


@app.command("doctor", add_help_option=True)
def doctor_cmd(
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON settings file."),
) -> None:
    """Print environment and dependency diagnostics."""
    _doctor(config_path)


@app.command("run", add_help_option=True)
def run_cmd(
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON settings file."),
    urls: Optional[str] = typer.Option(None, "--urls", help="URL list, one URL per line."),
    out: Optional[str] = typer.Option(None, "--out", help="Output directory for timestamped runs."),
    locale: Optional[str] = typer.Option(None, "--locale", help="Report language (en, ja)."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", help="Global limit of in-flight pages."),
    sequential: bool = typer.Option(False, "--sequential", help="Process URLs one at a time in input order."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate settings and URL list without a browser."),
    json_out: bool = typer.Option(False, "--json", help="Print run_summary.json to stdout only."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Warnings and errors only."),
) -> None:
    """Audit every accepted URL and write per-page reports."""
    _configure_logging(verbose, quiet or json_out)
    overrides: Dict[str, Any] = {
        "url_list": urls,
        "output_directory": out,
        "locale": locale,
        "concurrency": concurrency,
    }
    if sequential:
        overrides["enable_concurrency"] = False
    try:
        config = _load(config_path, overrides)
        if dry_run:
            report = dry_run_batch(config)
            if json_out:
                sys.stdout.write(json.dumps(report, ensure_ascii=False) + "\n")
            else:
                counts = report["counts"]
                typer.echo(
                    "Dry run: {accepted} accepted, {invalid} invalid, {blocked} blocked, {duplicates} duplicates".format(**counts)
                )
            raise typer.Exit(code=EXIT_OK if report["accepted"] else EXIT_INPUT)
        summary, run_dir = run_batch(config)
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        typer.echo("interrupted: Received SIGINT", err=True)
        raise typer.Exit(code=EXIT_INTERRUPTED)
    except Exception as exc:
        raise typer.Exit(code=_report_fatal(exc, show_trace=not isinstance(exc, ReporterError) or verbose))

    if json_out:
        summary_path = run_dir / RUN_SUMMARY_FILENAME
        sys.stdout.write(summary_path.read_text(encoding="utf-8"))
    else:
        typer.echo(summary.format_tally())
        typer.echo(f"Reports: {run_dir}")
    raise typer.Exit(code=EXIT_OK)


@app.command("summary", add_help_option=True)
def summary_cmd(
    path: str = typer.Option(..., "--path", help="Run directory containing json/."),
    locale: Optional[str] = typer.Option(None, "--locale", help="Summary language (defaults to the configured locale)."),
    config_path: Optional[Path] = typer.Option(None, "--config", help="JSON settings file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """Build summary/index.html for a finished run directory."""
    _configure_logging(verbose, False)
    try:
        if locale is None:
            locale = _load(config_path).locale
        output = build_summary(path, locale=locale)
    except Exception as exc:
        raise typer.Exit(code=_report_fatal(exc, show_trace=not isinstance(exc, ReporterError) or verbose))
    typer.echo(f"Summary page generated at {output}")
    raise typer.Exit(code=EXIT_OK)
