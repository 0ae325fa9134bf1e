"""axe-reporter defaults (viewports, tags, domain policy, limits, paths).

Centralizes static defaults so the settings loader has no embedded magic
values. These are baseline constants used to construct a ReporterConfig;
callers override any of them through a settings file, the environment, or
CLI flags.
"""

from __future__ import annotations

from pathlib import Path

# Paths (package-relative)
_PACKAGE_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = _PACKAGE_ROOT / "templates"
DEFAULT_TEMPLATE_PATH = TEMPLATES_DIR / "template.html"
DEFAULT_STYLES_PATH = TEMPLATES_DIR / "styles.css"
DEFAULT_SUMMARY_TEMPLATE_PATH = TEMPLATES_DIR / "summary.html"

ENV_PREFIX = "AXE_REPORTER_"

# Viewports (width, height)
VIEWPORTS = {
    "pc": {"width": 1024, "height": 768},
    "mobile": {"width": 375, "height": 812},
}

DEFAULT_TAGS = ("wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice")

# Internal and metadata targets refused by default
DEFAULT_BLOCKED_DOMAINS = (
    "localhost",
    "127.0.0.0/8",
    "0.0.0.0/8",
    "::1",
    "::/128",
    "169.254.0.0/16",
)

IMPACT_LEVELS = ("minor", "moderate", "serious", "critical")

SUPPORTED_LOCALES = ("en", "ja")
DEFAULT_LOCALE = "en"

SCREENSHOT_FORMATS = ("jpeg", "png")
SCREENSHOT_EXTENSIONS = {"jpeg": "jpg", "png": "png"}

# Chromium flags; --no-sandbox is appended only when the sandbox is disabled
CHROMIUM_ARGS = (
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
    "--disable-extensions",
)
NO_SANDBOX_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")

# Summary builder limits
SUMMARY_MAX_FILE_BYTES = 10 * 1024 * 1024
SUMMARY_MAX_FILES = 5000

# Validation ranges (inclusive)
CONCURRENCY_RANGE = (1, 10)
PER_DOMAIN_RANGE = (1, 10)
REQUEST_DELAY_RANGE_MS = (0, 60_000)
JSON_INDENT_RANGE = (0, 10)
NAVIGATION_TIMEOUT_RANGE_MS = (1_000, 300_000)
SCREENSHOT_QUALITY_RANGE = (0, 100)
MAX_PAGE_SIZE_RANGE = (0, 1024 * 1024 * 1024)
