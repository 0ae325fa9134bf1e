"""Reporter configuration: one fully-defaulted record, validated once at startup.

Sources, lowest to highest precedence: dataclass defaults, a flat JSON
settings file, ``AXE_REPORTER_*`` environment variables (``.env`` honoured),
and explicit overrides from the CLI. Every problem is collected into a single
itemized list before anything touches the network.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from ..errors import ConfigError
from .intake import parse_domain_rule
from .reporter_config import (
    CONCURRENCY_RANGE,
    DEFAULT_BLOCKED_DOMAINS,
    DEFAULT_LOCALE,
    DEFAULT_STYLES_PATH,
    DEFAULT_TAGS,
    DEFAULT_TEMPLATE_PATH,
    ENV_PREFIX,
    JSON_INDENT_RANGE,
    MAX_PAGE_SIZE_RANGE,
    NAVIGATION_TIMEOUT_RANGE_MS,
    PER_DOMAIN_RANGE,
    REQUEST_DELAY_RANGE_MS,
    SCREENSHOT_EXTENSIONS,
    SCREENSHOT_FORMATS,
    SCREENSHOT_QUALITY_RANGE,
    SUPPORTED_LOCALES,
    VIEWPORTS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReporterConfig:
    """Configuration parameters for one batch run."""

    url_list: str = "urls.txt"
    locale: str = DEFAULT_LOCALE
    tags: Tuple[str, ...] = DEFAULT_TAGS
    mode: str = "pc"
    concurrency: int = 3
    per_domain_concurrency: int = 1
    request_delay_ms: int = 1000
    enable_concurrency: bool = True
    enable_screenshots: bool = True
    screenshot_format: str = "jpeg"
    screenshot_quality: int = 80
    output_directory: str = "results"
    template_path: Optional[str] = None
    styles_path: Optional[str] = None
    json_indentation: int = 2
    navigation_timeout: int = 30_000
    allowed_domains: Tuple[str, ...] = ()
    blocked_domains: Tuple[str, ...] = DEFAULT_BLOCKED_DOMAINS
    enable_sandbox: bool = True
    max_page_size: int = 50 * 1024 * 1024
    axe_script_path: Optional[str] = None
    axe_locale_path: Optional[str] = None
    enable_csv_report: bool = False

    @property
    def viewport(self) -> Dict[str, int]:
        return dict(VIEWPORTS[self.mode])

    @property
    def is_mobile(self) -> bool:
        return self.mode == "mobile"

    @property
    def request_delay_seconds(self) -> float:
        return self.request_delay_ms / 1000.0

    @property
    def screenshot_extension(self) -> str:
        return SCREENSHOT_EXTENSIONS[self.screenshot_format]

    @property
    def resolved_template_path(self) -> Path:
        return Path(self.template_path) if self.template_path else DEFAULT_TEMPLATE_PATH

    @property
    def resolved_styles_path(self) -> Path:
        return Path(self.styles_path) if self.styles_path else DEFAULT_STYLES_PATH

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        for key, value in payload.items():
            if isinstance(value, tuple):
                payload[key] = list(value)
        return payload


# Field kinds drive both env coercion and validation.
_STR = "str"
_OPT_PATH = "optional_path"
_INT = "int"
_BOOL = "bool"
_LIST = "list"

FIELD_KINDS: Dict[str, str] = {
    "url_list": _STR,
    "locale": _STR,
    "tags": _LIST,
    "mode": _STR,
    "concurrency": _INT,
    "per_domain_concurrency": _INT,
    "request_delay_ms": _INT,
    "enable_concurrency": _BOOL,
    "enable_screenshots": _BOOL,
    "screenshot_format": _STR,
    "screenshot_quality": _INT,
    "output_directory": _STR,
    "template_path": _OPT_PATH,
    "styles_path": _OPT_PATH,
    "json_indentation": _INT,
    "navigation_timeout": _INT,
    "allowed_domains": _LIST,
    "blocked_domains": _LIST,
    "enable_sandbox": _BOOL,
    "max_page_size": _INT,
    "axe_script_path": _OPT_PATH,
    "axe_locale_path": _OPT_PATH,
    "enable_csv_report": _BOOL,
}

INT_RANGES: Dict[str, Tuple[int, int]] = {
    "concurrency": CONCURRENCY_RANGE,
    "per_domain_concurrency": PER_DOMAIN_RANGE,
    "request_delay_ms": REQUEST_DELAY_RANGE_MS,
    "screenshot_quality": SCREENSHOT_QUALITY_RANGE,
    "json_indentation": JSON_INDENT_RANGE,
    "navigation_timeout": NAVIGATION_TIMEOUT_RANGE_MS,
    "max_page_size": MAX_PAGE_SIZE_RANGE,
}

ENUMS: Dict[str, Tuple[str, ...]] = {
    "mode": tuple(VIEWPORTS),
    "screenshot_format": SCREENSHOT_FORMATS,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _to_snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _split_list(raw: str) -> List[str]:
    return [token.strip() for token in raw.split(",") if token.strip()]


def _coerce_env(name: str, raw: str) -> Any:
    """Convert an environment string to the field's type; ValueError on bad input."""

    kind = FIELD_KINDS[name]
    value = raw.strip()
    if kind == _INT:
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if kind == _BOOL:
        lowered = value.lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise ValueError(f"{name} must be a boolean (got {raw!r})")
    if kind == _LIST:
        return _split_list(value)
    if kind == _OPT_PATH:
        return value or None
    return value


def read_env_settings(environ: Optional[Mapping[str, str]] = None) -> Tuple[Dict[str, Any], List[str]]:
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    errors: List[str] = []
    for name in FIELD_KINDS:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        try:
            values[name] = _coerce_env(name, raw)
        except ValueError as exc:
            errors.append(str(exc))
    return values, errors


def read_settings_file(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError([f"Unable to read settings file {path}: {exc}"]) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError([f"Settings file {path} is not valid JSON: {exc}"]) from exc
    if not isinstance(data, dict):
        raise ConfigError([f"Settings file {path} must contain a JSON object"])
    return {_to_snake(str(key)): value for key, value in data.items()}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_settings(raw: Mapping[str, Any]) -> List[str]:
    """Return an itemized list of problems with ``raw`` (empty when valid)."""

    errors: List[str] = []
    for key in raw:
        if key not in FIELD_KINDS:
            errors.append(f"unknown setting: {key}")

    for name, kind in FIELD_KINDS.items():
        if name not in raw:
            continue
        value = raw[name]
        if kind == _STR and not _is_str(value):
            errors.append(f"{name} must be a non-empty string")
        elif kind == _OPT_PATH:
            if value is None:
                continue
            if not _is_str(value):
                errors.append(f"{name} must be a non-empty string or null")
            elif not Path(value).is_file():
                errors.append(f"{name} does not point to a file: {value}")
        elif kind == _BOOL and not isinstance(value, bool):
            errors.append(f"{name} must be a boolean")
        elif kind == _INT:
            low, high = INT_RANGES[name]
            if not _is_int(value) or not low <= value <= high:
                errors.append(f"{name} must be an integer between {low} and {high}")
        elif kind == _LIST:
            if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
                errors.append(f"{name} must be a list of strings")
                continue
            if name == "tags" and not [v for v in value if v.strip()]:
                errors.append("tags must be a non-empty list")
            if name in ("allowed_domains", "blocked_domains"):
                for entry in value:
                    try:
                        parse_domain_rule(entry)
                    except ValueError as exc:
                        errors.append(f"{name}: {exc}")

    for name, choices in ENUMS.items():
        value = raw.get(name)
        if _is_str(value) and value not in choices:
            errors.append(f"{name} must be one of: {', '.join(choices)}")
    return errors


def build_config(raw: Mapping[str, Any]) -> ReporterConfig:
    errors = validate_settings(raw)
    if errors:
        raise ConfigError(errors)
    values = dict(raw)
    for name in ("tags", "allowed_domains", "blocked_domains"):
        if name in values:
            values[name] = tuple(v.strip() for v in values[name] if v.strip())
    return ReporterConfig(**values)


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> ReporterConfig:
    """Merge every settings source and validate the result exactly once."""

    if use_dotenv and environ is None:
        load_dotenv(override=False)
    raw: Dict[str, Any] = {}
    if config_path is not None:
        raw.update(read_settings_file(config_path))
    env_values, env_errors = read_env_settings(environ)
    raw.update(env_values)
    for key, value in (overrides or {}).items():
        if value is not None:
            raw[key] = value
    errors = env_errors + validate_settings(raw)
    if errors:
        raise ConfigError(errors)
    config = build_config(raw)
    if config.locale not in SUPPORTED_LOCALES:
        logger.warning("Locale %r has no translation table; reports fall back to %r", config.locale, DEFAULT_LOCALE)
    return config


__all__ = [
    "ReporterConfig",
    "FIELD_KINDS",
    "read_env_settings",
    "read_settings_file",
    "validate_settings",
    "build_config",
    "load_settings",
]
