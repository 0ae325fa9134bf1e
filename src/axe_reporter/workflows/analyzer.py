"""axe-core invocation against a loaded Playwright page.

The axe build is either the operator's ``axe_script_path`` or the one bundled
with ``axe_playwright_python`` (``Axe.axe_script``). When locale data is
available the build is evaluated in the page, ``axe.configure({locale})``
is applied and ``axe.run`` is evaluated with the configured tags. Without
locale data and without an operator build, ``Axe.run`` is used directly.

Locale data comes from ``axe_locale_path`` or, for a non-English report
locale, from ``locales/<locale>.json`` beside the operator's axe build (the
axe-core package layout).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from axe_playwright_python.async_playwright import Axe

from ..core.keys import K_VIOLATIONS
from ..errors import AnalysisError, ConfigError
from .reporter_config import DEFAULT_LOCALE

logger = logging.getLogger(__name__)

_RUN_CONFIGURED = """
async ({ tags, locale }) => {
  if (typeof window.axe === 'undefined') {
    throw new Error('axe-core was not loaded into the page');
  }
  if (locale) {
    window.axe.configure({ locale });
  }
  return await window.axe.run(document, { runOnly: { type: 'tag', values: tags } });
}
"""


def run_only_options(tags: Sequence[str]) -> Dict[str, Any]:
    return {"runOnly": {"type": "tag", "values": list(tags)}}


def validate_result(result: Any) -> Dict[str, Any]:
    """Check the fields the pipeline touches; everything else passes through untouched."""

    if result is None:
        raise AnalysisError("Analyzer returned no result")
    if not isinstance(result, dict):
        raise AnalysisError(f"Analyzer returned {type(result).__name__}, expected an object")
    if not isinstance(result.get(K_VIOLATIONS), list):
        raise AnalysisError("Analyzer result has no 'violations' list")
    return result


def _read_text(path: Path, label: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError([f"Unable to read {label} {path}: {exc}"]) from exc


def resolve_locale_path(
    locale: Optional[str],
    *,
    locale_path: Optional[str] = None,
    script_path: Optional[str] = None,
) -> Optional[str]:
    """Pick the axe-core locale file for ``locale``; None means English rule text."""

    if locale_path:
        return locale_path
    if not locale or locale == DEFAULT_LOCALE:
        return None
    if script_path:
        candidate = Path(script_path).parent / "locales" / f"{locale}.json"
        if candidate.is_file():
            logger.info("Using axe-core locale file %s", candidate)
            return str(candidate)
    logger.warning(
        "No axe-core locale file for %r (set axe_locale_path); rule text stays in English", locale
    )
    return None


class AxeAnalyzer:
    def __init__(
        self,
        tags: Sequence[str],
        *,
        script_path: Optional[str] = None,
        locale_path: Optional[str] = None,
        axe: Optional[Any] = None,
    ) -> None:
        self.tags = tuple(tags)
        self._script: Optional[str] = _read_text(Path(script_path), "axe script") if script_path else None
        self._locale: Optional[Dict[str, Any]] = None
        if locale_path:
            try:
                self._locale = json.loads(_read_text(Path(locale_path), "axe locale file"))
            except json.JSONDecodeError as exc:
                raise ConfigError([f"axe locale file {locale_path} is not valid JSON: {exc}"]) from exc
        self._axe = axe if axe is not None else Axe()

    @property
    def configures_axe(self) -> bool:
        """True when axe is evaluated in the page by this analyzer rather than by ``Axe.run``."""

        return self._script is not None or self._locale is not None

    async def analyze(self, page: Any) -> Dict[str, Any]:
        try:
            if self.configures_axe:
                script = self._script if self._script is not None else self._axe.axe_script
                await page.evaluate(script)
                raw = await page.evaluate(_RUN_CONFIGURED, {"tags": list(self.tags), "locale": self._locale})
            else:
                results = await self._axe.run(page, options=run_only_options(self.tags))
                raw = getattr(results, "response", results)
        except AnalysisError:
            raise
        except Exception as exc:
            raise AnalysisError(f"axe-core run failed: {exc}") from exc
        return validate_result(raw)


__all__ = ["AxeAnalyzer", "resolve_locale_path", "run_only_options", "validate_result"]
