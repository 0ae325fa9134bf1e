"""Shared Chromium instance owned by one batch run."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

try:
    from playwright.async_api import async_playwright  # type: ignore
except ImportError:  # pragma: no cover - reported by doctor and at launch
    async_playwright = None  # type: ignore

from ..errors import BrowserLaunchError
from .reporter_config import CHROMIUM_ARGS, NO_SANDBOX_ARGS

logger = logging.getLogger(__name__)


def chromium_args(enable_sandbox: bool) -> List[str]:
    args = list(CHROMIUM_ARGS)
    if not enable_sandbox:
        args.extend(NO_SANDBOX_ARGS)
    return args


class BrowserSession:
    """Async context manager: launches on enter, closes on every exit path.

    Pages never share a browser context; the processor opens one context per
    URL from ``session.browser``.
    """

    def __init__(
        self,
        *,
        enable_sandbox: bool = True,
        headless: bool = True,
        playwright_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.enable_sandbox = enable_sandbox
        self.headless = headless
        self._factory = playwright_factory or async_playwright
        self._playwright: Optional[Any] = None
        self.browser: Optional[Any] = None

    async def __aenter__(self) -> "BrowserSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def start(self) -> Any:
        if self._factory is None:
            raise BrowserLaunchError(
                "Playwright is not installed; run `pip install playwright` and `playwright install chromium`"
            )
        if not self.enable_sandbox:
            logger.warning("Chromium sandbox disabled (enable_sandbox=false); only audit trusted sites")
        try:
            self._playwright = await self._factory().start()
            self.browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=chromium_args(self.enable_sandbox),
                chromium_sandbox=self.enable_sandbox,
            )
        except asyncio.CancelledError:
            await self.close()
            raise
        except Exception as exc:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch Chromium: {exc}") from exc
        logger.info("Chromium launched (headless=%s, sandbox=%s)", self.headless, self.enable_sandbox)
        return self.browser

    async def close(self) -> None:
        browser, self.browser = self.browser, None
        playwright, self._playwright = self._playwright, None
        cancelled = False
        if browser is not None:
            try:
                await browser.close()
            except asyncio.CancelledError:
                # Keep going so Playwright is still stopped; re-raised below.
                cancelled = True
            except Exception as exc:
                logger.warning("Failed to close browser: %s", exc)
        if playwright is not None:
            try:
                await playwright.stop()
            except asyncio.CancelledError:
                cancelled = True
            except Exception as exc:
                logger.warning("Failed to stop Playwright: %s", exc)
        if browser is not None:
            logger.info("Browser closed")
        if cancelled:
            raise asyncio.CancelledError()


__all__ = ["BrowserSession", "chromium_args"]
