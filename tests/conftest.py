import asyncio
import copy

import pytest

from axe_reporter.workflows.settings import ReporterConfig


class FakeResponse:
    def __init__(self, url, status=200, headers=None):
        self.url = url
        self.status = status
        self.headers = {"content-type": "text/html; charset=utf-8"} if headers is None else headers


class FakePage:
    def __init__(
        self,
        *,
        status=200,
        headers=None,
        extra_responses=(),
        goto_error=None,
        screenshot_error=None,
        screenshot_bytes=b"\xff\xd8\xff fake-jpeg",
        close_error=None,
    ):
        self.status = status
        self.headers = headers
        self.extra_responses = list(extra_responses)
        self.goto_error = goto_error
        self.screenshot_error = screenshot_error
        self.screenshot_bytes = screenshot_bytes
        self.close_error = close_error
        self.listeners = {}
        self.removed = []
        self.timeouts = {}
        self.goto_calls = []
        self.screenshot_kwargs = None
        self.closed = False

    def set_default_navigation_timeout(self, ms):
        self.timeouts["navigation"] = ms

    def set_default_timeout(self, ms):
        self.timeouts["default"] = ms

    def on(self, event, handler):
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.listeners[event].remove(handler)
        self.removed.append(event)

    async def goto(self, url, **kwargs):
        self.goto_calls.append((url, kwargs))
        main = FakeResponse(url, self.status, self.headers)
        for response in [main, *self.extra_responses]:
            for handler in list(self.listeners.get("response", [])):
                handler(response)
        await asyncio.sleep(0)
        if self.goto_error is not None:
            raise self.goto_error
        return main

    async def screenshot(self, **kwargs):
        self.screenshot_kwargs = kwargs
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return self.screenshot_bytes

    def is_closed(self):
        return self.closed

    async def close(self):
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class FakeContext:
    def __init__(self, page, close_error=None):
        self.page = page
        self.close_error = close_error
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True
        if self.close_error is not None:
            raise self.close_error


class FakeBrowser:
    """Hands out one FakeContext per call; ``pages`` maps URL fragments to page kwargs."""

    def __init__(self, pages=None, context_close_error=None):
        self.pages = pages or {}
        self.context_close_error = context_close_error
        self.contexts = []
        self.context_kwargs = []
        self.closed = False

    def page_for(self, url):
        for fragment, kwargs in self.pages.items():
            if fragment in url:
                return FakePage(**kwargs)
        return FakePage()

    async def new_context(self, **kwargs):
        self.context_kwargs.append(kwargs)
        context = FakeContext(_LazyPage(self), self.context_close_error)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


class _LazyPage(FakePage):
    """Picks its behaviour from the browser's ``pages`` map on first navigation."""

    def __init__(self, browser):
        super().__init__()
        self._browser = browser

    async def goto(self, url, **kwargs):
        template = self._browser.page_for(url)
        for name in ("status", "headers", "extra_responses", "goto_error", "screenshot_error", "screenshot_bytes", "close_error"):
            setattr(self, name, getattr(template, name))
        return await super().goto(url, **kwargs)


class FakeAnalyzer:
    def __init__(self, result=None, error=None, per_url=None):
        self.result = {"violations": []} if result is None else result
        self.error = error
        self.per_url = per_url or {}
        self.calls = 0

    async def analyze(self, page):
        self.calls += 1
        url = page.goto_calls[-1][0] if getattr(page, "goto_calls", None) else ""
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        for fragment, result in self.per_url.items():
            if fragment in url:
                return copy.deepcopy(result)
        return copy.deepcopy(self.result)


class FakePlaywright:
    def __init__(self, browser=None, launch_error=None):
        self.browser = browser or FakeBrowser()
        self.launch_error = launch_error
        self.launch_kwargs = None
        self.stopped = False
        self.chromium = self

    async def start(self):
        return self

    async def launch(self, **kwargs):
        self.launch_kwargs = kwargs
        if self.launch_error is not None:
            raise self.launch_error
        return self.browser

    async def stop(self):
        self.stopped = True


def critical_violation(description="Images must have alternate text", html='<img src="a.png">'):
    return {
        "id": "image-alt",
        "description": description,
        "help": "Images must have alternate text",
        "helpUrl": "https://dequeuniversity.com/rules/axe/4.8/image-alt",
        "tags": ["wcag2a", "wcag111"],
        "nodes": [
            {
                "impact": "critical",
                "html": html,
                "target": ["img"],
                "failureSummary": "Fix any of the following:\n  Element does not have an alt attribute",
                "any": [{"message": "Element does not have an alt attribute"}],
                "none": [],
                "all": [],
            }
        ],
    }


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides):
        values = {
            "url_list": str(tmp_path / "urls.txt"),
            "output_directory": str(tmp_path / "results"),
            "request_delay_ms": 0,
        }
        values.update(overrides)
        return ReporterConfig(**values)

    return _make
