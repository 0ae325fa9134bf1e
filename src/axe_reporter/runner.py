from __future__ import annotations

import asyncio
import logging
import signal
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from .errors import Interrupted
from .workflows.aggregate import BatchSummary, aggregate, write_run_summary
from .workflows.analyzer import AxeAnalyzer, resolve_locale_path
from .workflows.browser import BrowserSession
from .workflows.csv_report import CSV_FILENAME, CsvReportBuilder
from .workflows.filename import unique_base_names
from .workflows.intake import IntakeResult, filter_urls, load_url_list
from .workflows.outcome import ProcessingOutcome
from .workflows.page_processor import PageProcessor, RunDirectory
from .workflows.scheduler import DomainScheduler
from .workflows.settings import ReporterConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def run_intake(config: ReporterConfig) -> IntakeResult:
    text = load_url_list(config.url_list)
    return filter_urls(text, config.allowed_domains, config.blocked_domains)


def build_scheduler(config: ReporterConfig, **kwargs: Any) -> DomainScheduler:
    return DomainScheduler(
        config.concurrency,
        config.per_domain_concurrency,
        config.request_delay_seconds,
        sequential=not config.enable_concurrency,
        **kwargs,
    )


async def run_cancellable(coro: Awaitable[T]) -> T:
    """Await ``coro``; SIGINT/SIGTERM cancel it and surface as ``Interrupted``."""

    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(coro)
    received: List[str] = []

    def _on_signal(sig: signal.Signals) -> None:
        received.append(sig.name)
        if len(received) == 1:
            logger.warning("Received %s; abandoning in-flight pages and closing the browser", sig.name)
            task.cancel()

    installed = []
    for sig in _SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, sig)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # Platforms without loop signal support fall back to KeyboardInterrupt.
            pass
    try:
        return await task
    except asyncio.CancelledError:
        if received:
            raise Interrupted(received[0]) from None
        raise
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


async def _audit(
    config: ReporterConfig,
    urls: List[str],
    analyzer: Any,
    playwright_factory: Optional[Callable[[], Any]],
    now: Optional[datetime],
) -> Tuple[List[ProcessingOutcome], RunDirectory]:
    # The run directory is only created once Chromium is up.
    csv_report: Optional[CsvReportBuilder] = None
    async with BrowserSession(enable_sandbox=config.enable_sandbox, playwright_factory=playwright_factory) as session:
        run_dir = RunDirectory.create(Path(config.output_directory), screenshots=config.enable_screenshots, now=now)
        logger.info("Writing reports to %s", run_dir.root)
        try:
            if config.enable_csv_report:
                csv_report = CsvReportBuilder(run_dir.root / CSV_FILENAME, locale=config.locale)
            processor = PageProcessor(
                session.browser,
                config,
                run_dir,
                analyzer,
                csv_report=csv_report,
                base_names=unique_base_names(urls),
            )
            outcomes = await build_scheduler(config).run(urls, processor.process)
        finally:
            if csv_report is not None:
                await csv_report.close()
    return outcomes, run_dir


async def run_batch_async(
    config: ReporterConfig,
    *,
    analyzer: Optional[Any] = None,
    playwright_factory: Optional[Callable[[], Any]] = None,
    now: Optional[datetime] = None,
) -> Tuple[BatchSummary, Path]:
    started_at = datetime.now()
    intake = run_intake(config)
    analyzer = analyzer or AxeAnalyzer(
        config.tags,
        script_path=config.axe_script_path,
        locale_path=resolve_locale_path(
            config.locale,
            locale_path=config.axe_locale_path,
            script_path=config.axe_script_path,
        ),
    )
    # Signals are handled from browser launch until the browser is closed.
    outcomes, run_dir = await run_cancellable(
        _audit(config, list(intake.accepted), analyzer, playwright_factory, now)
    )

    summary = aggregate(outcomes, expected_total=len(intake.accepted))
    write_run_summary(
        summary,
        run_dir.root,
        started_at=started_at,
        finished_at=datetime.now(),
        intake=intake.counts(),
        config=config.to_dict(),
    )
    return summary, run_dir.root


def run_batch(config: ReporterConfig, **kwargs: Any) -> Tuple[BatchSummary, Path]:
    return asyncio.run(run_batch_async(config, **kwargs))


def dry_run_batch(config: ReporterConfig) -> Dict[str, Any]:
    """Validate the URL list against the domain policy without launching a browser."""

    intake = filter_urls(
        load_url_list(config.url_list),
        config.allowed_domains,
        config.blocked_domains,
        require_accepted=False,
    )
    return {
        "dry_run": True,
        "counts": intake.counts(),
        "accepted": list(intake.accepted),
        "invalid": list(intake.invalid),
        "blocked": list(intake.blocked),
        "duplicates": list(intake.duplicates),
    }


__all__ = [
    "run_intake",
    "build_scheduler",
    "run_cancellable",
    "run_batch_async",
    "run_batch",
    "dry_run_batch",
]
