"""Per-URL page lifecycle: acquire, guard, capture, analyze, persist, release.

``PageProcessor.process`` is the isolation boundary for page-level failures:
whatever happens to one URL is converted to a failure ``ProcessingOutcome``
and the browser context is always closed.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..core.keys import K_URL, K_VIOLATIONS
from ..errors import ArtifactError, NavigationError, PageSizeExceededError, ScreenshotError, classify_error
from .analyzer import validate_result
from .filename import generate_base_filename
from .outcome import OutcomeError, ProcessingOutcome
from .report import load_template, render_report
from .settings import ReporterConfig

logger = logging.getLogger(__name__)

RUN_DIR_FORMAT = "%Y-%m-%d_%H-%M-%S"
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

W_SCREENSHOT_FAILED = "screenshot_failed"


@dataclass(frozen=True)
class RunDirectory:
    root: Path

    @property
    def json_dir(self) -> Path:
        return self.root / "json"

    @property
    def html_dir(self) -> Path:
        return self.root / "html"

    @property
    def images_dir(self) -> Path:
        return self.html_dir / "images"

    @classmethod
    def create(cls, output_directory: Path, *, screenshots: bool, now: Optional[datetime] = None) -> "RunDirectory":
        root = Path(output_directory) / (now or datetime.now()).strftime(RUN_DIR_FORMAT)
        if root.exists():
            logger.warning("Run directory %s already exists; files may be overwritten", root)
        run_dir = cls(root)
        targets = [run_dir.json_dir, run_dir.html_dir]
        if screenshots:
            targets.append(run_dir.images_dir)
        for target in targets:
            target.mkdir(parents=True, exist_ok=True)
        return run_dir


class SizeGuard:
    """Response listener that trips when any response declares a body over the limit."""

    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes
        self.tripped: Optional[str] = None

    def on_response(self, response: Any) -> None:
        if self.max_bytes <= 0 or self.tripped:
            return
        try:
            raw = (response.headers or {}).get("content-length")
            size = int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return
        if size is not None and size > self.max_bytes:
            self.tripped = f"{response.url} declares {size} bytes (limit {self.max_bytes})"

    def check(self) -> None:
        if self.tripped:
            raise PageSizeExceededError(f"Page size exceeds limit: {self.tripped}")


def _content_type(response: Any) -> str:
    headers = getattr(response, "headers", None) or {}
    return (headers.get("content-type") or "").split(";")[0].strip().lower()


class PageProcessor:
    def __init__(
        self,
        browser: Any,
        config: ReporterConfig,
        run_dir: RunDirectory,
        analyzer: Any,
        *,
        csv_report: Optional[Any] = None,
        base_names: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.browser = browser
        self.config = config
        self.run_dir = run_dir
        self.analyzer = analyzer
        self.csv_report = csv_report
        self.base_names = dict(base_names or {})
        self._template = load_template(config.resolved_template_path)
        self._styles = load_template(config.resolved_styles_path)

    async def process(self, url: str) -> ProcessingOutcome:
        started = time.monotonic()
        warnings: List[str] = []
        artifacts: Dict[str, str] = {}
        guard = SizeGuard(self.config.max_page_size)
        context: Optional[Any] = None
        page: Optional[Any] = None
        listening = False
        try:
            base = self.base_names.get(url) or generate_base_filename(url)
            context = await self.browser.new_context(
                viewport=self.config.viewport,
                is_mobile=self.config.is_mobile,
                has_touch=self.config.is_mobile,
            )
            page = await context.new_page()
            page.set_default_navigation_timeout(self.config.navigation_timeout)
            page.set_default_timeout(self.config.navigation_timeout)
            page.on("response", guard.on_response)
            listening = True

            await self._navigate(page, url, guard, warnings)
            guard.check()

            screenshot: Optional[bytes] = None
            if self.config.enable_screenshots:
                screenshot = await self._capture(page, url, warnings)

            results = validate_result(await self.analyzer.analyze(page))
            guard.check()
            results.setdefault(K_URL, url)

            await self._persist(url, base, results, screenshot, artifacts)
            if self.csv_report is not None:
                await self.csv_report.add_result(url, results)

            return ProcessingOutcome(
                url=url,
                success=True,
                warnings=warnings,
                artifacts=artifacts,
                violation_count=len(results[K_VIOLATIONS]),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            kind = classify_error(exc)
            if kind == "internal":
                logger.exception("Unexpected error while processing %s", url)
            else:
                logger.error("Failed to process %s [%s]: %s", url, kind, exc)
            return ProcessingOutcome(
                url=url,
                success=False,
                error=OutcomeError(message=str(exc) or exc.__class__.__name__, kind=kind),
                warnings=warnings,
                artifacts=artifacts,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        finally:
            await self._release(url, context, page, guard if listening else None)

    async def _navigate(self, page: Any, url: str, guard: SizeGuard, warnings: List[str]) -> None:
        try:
            response = await page.goto(url, wait_until="load", timeout=self.config.navigation_timeout)
        except Exception as exc:
            guard.check()
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc
        if response is None:
            return
        content_type = _content_type(response)
        if content_type and content_type not in HTML_CONTENT_TYPES:
            raise NavigationError(f"{url} returned non-HTML content ({content_type})")
        status = getattr(response, "status", None)
        if isinstance(status, int) and status >= 400:
            logger.warning("%s answered HTTP %d; auditing the error page", url, status)
            warnings.append(f"http_status_{status}")

    async def _capture(self, page: Any, url: str, warnings: List[str]) -> Optional[bytes]:
        options: Dict[str, Any] = {"type": self.config.screenshot_format, "full_page": True}
        if self.config.screenshot_format != "png":
            options["quality"] = self.config.screenshot_quality
        try:
            return await page.screenshot(**options)
        except Exception as exc:
            error = ScreenshotError(f"Screenshot of {url} failed: {exc}")
            logger.warning("%s; rendering report without screenshot", error)
            warnings.append(W_SCREENSHOT_FAILED)
            return None

    async def _persist(
        self,
        url: str,
        base: str,
        results: Dict[str, Any],
        screenshot: Optional[bytes],
        artifacts: Dict[str, str],
    ) -> None:
        screenshot_ref: Optional[str] = None
        try:
            if screenshot is not None:
                image_name = f"{base}.{self.config.screenshot_extension}"
                image_path = self.run_dir.images_dir / image_name
                await asyncio.to_thread(image_path.write_bytes, screenshot)
                artifacts["screenshot"] = str(image_path)
                screenshot_ref = f"images/{image_name}"

            json_path = self.run_dir.json_dir / f"{base}.json"
            indent = self.config.json_indentation or None
            payload = json.dumps(results, ensure_ascii=False, indent=indent, default=str)
            await asyncio.to_thread(json_path.write_text, payload, encoding="utf-8")
            artifacts["json"] = str(json_path)

            html = render_report(
                url, results, screenshot_ref, self.config.locale, self._template, styles=self._styles
            )
            html_path = self.run_dir.html_dir / f"{base}.html"
            await asyncio.to_thread(html_path.write_text, html, encoding="utf-8")
            artifacts["html"] = str(html_path)
        except OSError as exc:
            raise ArtifactError(f"Failed to write report files for {url}: {exc}") from exc

    async def _release(self, url: str, context: Optional[Any], page: Optional[Any], guard: Optional[SizeGuard]) -> None:
        if page is not None and guard is not None:
            try:
                page.remove_listener("response", guard.on_response)
            except Exception as exc:
                logger.warning("Failed to detach response listener for %s: %s", url, exc)
        if page is not None:
            try:
                if not page.is_closed():
                    await page.close()
            except Exception as exc:
                logger.warning("Failed to close page for %s: %s", url, exc)
        if context is not None:
            try:
                await context.close()
            except Exception as exc:
                logger.warning("Failed to close browser context for %s: %s", url, exc)


__all__ = ["RunDirectory", "SizeGuard", "PageProcessor", "ProcessingOutcome", "OutcomeError"]
