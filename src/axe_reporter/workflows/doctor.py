from __future__ import annotations

import importlib.util
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .reporter_config import SUPPORTED_LOCALES
from .settings import ReporterConfig


def _check_playwright_available() -> bool:
    try:
        from . import browser
        return getattr(browser, "async_playwright", None) is not None
    except Exception:
        return False


def _module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def _check_readable(path: Path) -> bool:
    try:
        return path.is_file() and os.access(path, os.R_OK)
    except OSError:
        return False


def _check_writable(path: Path) -> bool:
    try:
        existing = path
        while not existing.exists():
            if existing.parent == existing:
                return False
            existing = existing.parent
        return existing.is_dir() and os.access(existing, os.W_OK)
    except OSError:
        return False


def build_doctor_report(
    config: Optional[ReporterConfig] = None,
    *,
    config_errors: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": True,
        "checks": [],
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    playwright_ok = _check_playwright_available()
    add_check(
        "playwright",
        playwright_ok,
        detail="Chromium automation available" if playwright_ok else "playwright is not importable",
        remedy="Install Playwright and run `playwright install --with-deps chromium`.",
    )

    if config_errors:
        add_check(
            "settings",
            False,
            detail="; ".join(config_errors),
            remedy="Fix the listed settings in the settings file or AXE_REPORTER_* variables.",
        )
    if config is None:
        return report
    add_check("settings", True, detail="settings validated", level="info")

    if config.axe_script_path:
        add_check("axe_script_path", _check_readable(Path(config.axe_script_path)), detail=config.axe_script_path)
    else:
        bundled = _module_available("axe_playwright_python")
        add_check(
            "axe-playwright-python",
            bundled,
            detail="bundled axe-core build" if bundled else "no axe-core runner available",
            remedy="Install axe-playwright-python or set axe_script_path to an axe.min.js file.",
        )

    if config.axe_locale_path:
        add_check("axe_locale_path", _check_readable(Path(config.axe_locale_path)), detail=config.axe_locale_path)
    add_check(
        "locale",
        config.locale in SUPPORTED_LOCALES,
        detail=config.locale,
        remedy=f"Report labels are translated for: {', '.join(SUPPORTED_LOCALES)}.",
        level="info",
    )

    url_list = Path(config.url_list)
    add_check(
        "url_list",
        _check_readable(url_list),
        detail=str(url_list),
        remedy="Create the URL list (one URL per line) or pass --urls.",
    )
    output_dir = Path(config.output_directory)
    add_check(
        "output_directory",
        _check_writable(output_dir),
        detail=str(output_dir),
        remedy="Create the output directory or point output_directory at a writable location.",
    )
    for name, path in (("template_path", config.resolved_template_path), ("styles_path", config.resolved_styles_path)):
        add_check(name, _check_readable(path), detail=str(path))

    add_check(
        "sandbox",
        config.enable_sandbox,
        detail="Chromium sandbox enabled" if config.enable_sandbox else "Chromium sandbox disabled",
        remedy="Only disable the sandbox in containers that cannot provide it.",
        level="info",
    )
    return report


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("axe-reporter doctor")
    lines.append(f"Generated: {report.get('generated_at')}")
    lines.append("")
    for check in report.get("checks", []):
        name = check.get("name", "check")
        status = check.get("status", "unknown")
        level = check.get("level", "info")
        detail = check.get("detail")
        lines.append(f"- [{level}] {name}: {status}")
        if detail:
            lines.append(f"  detail: {detail}")
        remedy = check.get("remedy")
        if remedy and status != "ok":
            lines.append(f"  remedy: {remedy}")
    lines.append("")
    lines.append("Overall: ok" if report.get("ok") else "Overall: problems found")
    return "\n".join(lines).rstrip() + "\n"
