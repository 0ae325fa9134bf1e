"""Exception taxonomy shared by the CLI, the runner and the page processor."""

from __future__ import annotations

from typing import Iterable, List


class ReporterError(Exception):
    """Base class; ``kind`` classifies the failure in outcomes and fatal reports."""

    kind = "error"


class ConfigError(ReporterError):
    kind = "config"

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class IntakeError(ReporterError):
    kind = "intake"


class BrowserLaunchError(ReporterError):
    kind = "browser_launch"


class SummaryError(ReporterError):
    kind = "summary"


class Interrupted(ReporterError):
    kind = "interrupted"

    def __init__(self, signal_name: str) -> None:
        self.signal_name = signal_name
        super().__init__(f"Received {signal_name}")


class PageError(ReporterError):
    """Failure confined to a single URL; converted to a failure outcome."""

    kind = "page"


class NavigationError(PageError):
    kind = "navigation"


class PageSizeExceededError(PageError):
    kind = "page_size"


class ScreenshotError(PageError):
    kind = "screenshot"


class AnalysisError(PageError):
    kind = "analysis"


class ArtifactError(PageError):
    kind = "artifact"


class FilenameError(PageError):
    kind = "filename"


def classify_error(exc: BaseException) -> str:
    if isinstance(exc, ReporterError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, OSError):
        return "artifact"
    return "internal"


__all__ = [
    "ReporterError",
    "ConfigError",
    "IntakeError",
    "BrowserLaunchError",
    "SummaryError",
    "Interrupted",
    "PageError",
    "NavigationError",
    "PageSizeExceededError",
    "ScreenshotError",
    "AnalysisError",
    "ArtifactError",
    "FilenameError",
    "classify_error",
]
