"""HTML report rendering for a single page's axe-core result.

Every string that originates from the audited page or from the analyzer is
passed through ``escape_html`` before interpolation; help links are only
rendered as anchors when they use http(s).
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlsplit

from ..core.keys import (
    K_ALL,
    K_ANY,
    K_DESCRIPTION,
    K_FAILURE_SUMMARY,
    K_HELP,
    K_HELP_URL,
    K_HTML,
    K_IMPACT,
    K_MESSAGE,
    K_NODES,
    K_NONE,
    K_TAGS,
    K_TARGET,
    K_VIOLATIONS,
)
from .reporter_config import DEFAULT_LOCALE, DEFAULT_STYLES_PATH, DEFAULT_TEMPLATE_PATH, IMPACT_LEVELS

logger = logging.getLogger(__name__)

_ESCAPES = {
    ord("&"): "&amp;",
    ord("<"): "&lt;",
    ord(">"): "&gt;",
    ord('"'): "&quot;",
    ord("'"): "&#039;",
}

_PLACEHOLDER = re.compile(r"\{\{([A-Z_]+)\}\}")

TRANSLATIONS: Dict[str, Dict[str, Any]] = {
    "en": {
        "labelTitle": "Accessibility Report",
        "labelViolations": "Test Result",
        "labelFailureMessage": "Failure Message",
        "labelFailureSummary": "Failure Summary",
        "labelImgAlt": "Screenshot of the page",
        "labelNoScreenshot": "No screenshot was captured for this page",
        "labelTargetHTML": "Target HTML",
        "labelHelpPage": "More Information",
        "labelNoIssues": "You have (0) automatic issues, nice!",
        "labelImpact": "Impact",
        "impactData": {
            "minor": "Minor",
            "moderate": "Moderate",
            "serious": "Serious",
            "critical": "Critical",
        },
        "labelViolationFilter": "Impact Filter",
        "labelViolationFilterNote": "(Uncheck to hide failures of the corresponding impact level)",
        "labelViolationFilterReset": "Reset Filter",
        "labelViolationFilterResetAriaLabel": "Reset the impact filter to display all failures.",
        "summaryTitle": "Accessibility Audit Summary",
        "summaryPages": "Pages audited",
        "summaryIssues": "Identified Issues",
        "summaryPagesAffected": "pages affected",
        "summaryOpenReport": "Open the detailed report",
        "summarySortHint": "Select a column heading to sort",
    },
    "ja": {
        "labelTitle": "アクセシビリティレポート",
        "labelViolations": "試験結果",
        "labelFailureMessage": "発見された問題点",
        "labelFailureSummary": "修正提案",
        "labelImgAlt": "ページのスクリーンショット",
        "labelNoScreenshot": "このページのスクリーンショットはありません",
        "labelTargetHTML": "対象 HTML",
        "labelHelpPage": "参考情報",
        "labelNoIssues": "問題点は発見されませんでした！",
        "labelImpact": "影響度",
        "impactData": {
            "minor": "軽度",
            "moderate": "中程度",
            "serious": "深刻",
            "critical": "重大",
        },
        "labelViolationFilter": "影響度フィルター",
        "labelViolationFilterNote": "（チェックを外すと該当する影響度の問題点が非表示になります）",
        "labelViolationFilterReset": "フィルターをリセット",
        "labelViolationFilterResetAriaLabel": "影響度フィルターをリセットしてすべての問題点を表示",
        "summaryTitle": "アクセシビリティ試験結果サマリー",
        "summaryPages": "試験ページ数",
        "summaryIssues": "発見された問題点",
        "summaryPagesAffected": "ページで検出",
        "summaryOpenReport": "詳細レポートを開く",
        "summarySortHint": "列見出しを選択すると並べ替えます",
    },
}


def escape_html(value: Any) -> str:
    if value is None:
        return ""
    return str(value).translate(_ESCAPES)


def resolve_locale(locale: Optional[str]) -> str:
    return locale if locale in TRANSLATIONS else DEFAULT_LOCALE


def translate(locale: Optional[str], key: str, subkey: Optional[str] = None) -> str:
    """Look up a label, falling back to the default locale, then to the key itself."""

    table = TRANSLATIONS[resolve_locale(locale)]
    value = table.get(key, TRANSLATIONS[DEFAULT_LOCALE].get(key))
    if subkey is not None:
        if isinstance(value, Mapping):
            return str(value.get(subkey, subkey))
        return subkey
    if value is None:
        logger.debug("Translation missing for %r (locale=%r)", key, locale)
        return key
    return str(value)


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def tally_impacts(results: Mapping[str, Any]) -> Dict[str, int]:
    """Count violation nodes per impact level; unknown impacts are ignored."""

    counts = {impact: 0 for impact in IMPACT_LEVELS}
    for violation in results.get(K_VIOLATIONS) or []:
        if not isinstance(violation, Mapping):
            continue
        for node in violation.get(K_NODES) or []:
            impact = node.get(K_IMPACT) if isinstance(node, Mapping) else None
            if impact in counts:
                counts[impact] += 1
    return counts


@lru_cache(maxsize=16)
def load_template(path: Union[str, Path]) -> str:
    return Path(path).read_text(encoding="utf-8")


def fill_template(template: str, values: Mapping[str, str]) -> str:
    # Single pass so substituted content is never re-scanned for placeholders.
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), template)


def _first_target(target: Any) -> str:
    if isinstance(target, (list, tuple)):
        if not target:
            return ""
        head = target[0]
        if isinstance(head, (list, tuple)):
            return " >> ".join(str(part) for part in head)
        return str(head)
    return "" if target is None else str(target)


def _check_messages(node: Mapping[str, Any]) -> List[str]:
    messages: List[str] = []
    for key in (K_ANY, K_NONE, K_ALL):
        for check in node.get(key) or []:
            if isinstance(check, Mapping) and check.get(K_MESSAGE):
                messages.append(str(check[K_MESSAGE]))
    return messages


def _render_node(node: Mapping[str, Any], locale: str) -> str:
    impact = node.get(K_IMPACT)
    impact_key = impact if impact in IMPACT_LEVELS else "unknown"
    impact_label = translate(locale, "impactData", impact_key) if impact in IMPACT_LEVELS else escape_html(impact or "-")
    lines: List[str] = []
    lines.append(f'<li data-impact="{impact_key}">')
    lines.append("<dl>")
    lines.append('<div class="failureMessage">')
    lines.append(
        f"<dt>{translate(locale, 'labelFailureMessage')} "
        f'<span class="impact">{translate(locale, "labelImpact")} '
        f'<span class="impactLabel {impact_key}">{impact_label}</span></span></dt>'
    )
    lines.append('<dd class="failureList"><ul>')
    for message in _check_messages(node):
        lines.append(f"<li>{escape_html(message)}</li>")
    lines.append("</ul></dd>")
    lines.append("</div>")
    lines.append('<div class="failureSummary">')
    lines.append(f"<dt>{translate(locale, 'labelFailureSummary')}</dt>")
    lines.append(f"<dd>{escape_html(node.get(K_FAILURE_SUMMARY))}</dd>")
    lines.append("</div>")
    lines.append('<div class="targetHTML">')
    lines.append(f"<dt>{translate(locale, 'labelTargetHTML')}</dt>")
    lines.append(f'<dd><code tabindex="0">{escape_html(node.get(K_HTML))}</code></dd>')
    lines.append("</div>")
    lines.append('<div class="targetDom">')
    lines.append("<dt>DOM</dt>")
    lines.append(f'<dd><code tabindex="0">{escape_html(_first_target(node.get(K_TARGET)))}</code></dd>')
    lines.append("</div>")
    lines.append("</dl>")
    lines.append("</li>")
    return "\n".join(lines)


def _render_violation(violation: Mapping[str, Any], locale: str) -> str:
    help_text = escape_html(violation.get(K_HELP))
    help_url = violation.get(K_HELP_URL)
    if is_http_url(help_url):
        help_html = f'<a href="{escape_html(help_url)}" target="_blank" rel="noopener">{help_text}</a>'
    else:
        help_html = help_text
    tags = violation.get(K_TAGS) or []
    tag_items = "".join(f"<li><span>{escape_html(tag)}</span></li>" for tag in tags)
    nodes = [node for node in violation.get(K_NODES) or [] if isinstance(node, Mapping)]

    lines: List[str] = []
    lines.append('<div class="violationBody">')
    lines.append('<div class="violationBodyHeader">')
    lines.append(f"<h3>{escape_html(violation.get(K_DESCRIPTION))}</h3>")
    lines.append(
        f'<div class="helpUrl"><dl><dt>{translate(locale, "labelHelpPage")}</dt><dd>{help_html}</dd></dl></div>'
    )
    lines.append(f'<div class="tagList"><ul>{tag_items}</ul></div>')
    lines.append("</div>")
    lines.append('<div class="violationItem"><ul>')
    for node in nodes:
        lines.append(_render_node(node, locale))
    lines.append("</ul></div>")
    lines.append("</div>")
    return "\n".join(lines)


def _render_no_issues(locale: str) -> str:
    return (
        '<div class="violationBody">'
        f'<p class="noIssues">{translate(locale, "labelNoIssues")}</p>'
        "</div>"
    )


def _render_tally(counts: Mapping[str, int], locale: str) -> str:
    lines: List[str] = []
    lines.append('<div class="violationSummary"><dl class="violationFilter">')
    lines.append(
        f"<dt>{translate(locale, 'labelViolationFilter')} "
        f'<span class="sr-only">{translate(locale, "labelViolationFilterNote")}</span></dt>'
    )
    lines.append("<dd><ul>")
    for impact in IMPACT_LEVELS:
        lines.append(
            f'<li class="impactCount" data-impact="{impact}">'
            f'<span class="sr-only"><input type="checkbox" name="filter-{impact}" id="filter-{impact}" checked></span>'
            f'<label class="violationFilterBtn" for="filter-{impact}">'
            f'<span class="violationLabel {impact}">{translate(locale, "impactData", impact)}</span>: '
            f'<span class="violationFilterNum">{counts.get(impact, 0)}</span>'
            "</label></li>"
        )
    lines.append(
        '<li class="violationFilterReset">'
        f'<button type="button" class="violationFilterResetBtn" id="filter-reset" '
        f'aria-label="{translate(locale, "labelViolationFilterResetAriaLabel")}">'
        f"{translate(locale, 'labelViolationFilterReset')}</button></li>"
    )
    lines.append("</ul></dd></dl></div>")
    return "\n".join(lines)


def _render_screenshot(screenshot_ref: Optional[str], locale: str) -> str:
    ref = (screenshot_ref or "").strip()
    if ref and not ref.startswith(("/", "\\")) and ".." not in ref and ":" not in ref:
        return f'<img src="{escape_html(ref)}" alt="{translate(locale, "labelImgAlt")}">'
    return f'<div class="no-screenshot">{translate(locale, "labelNoScreenshot")}</div>'


def render_report(
    url: str,
    results: Mapping[str, Any],
    screenshot_ref: Optional[str],
    locale: Optional[str],
    template: Optional[str] = None,
    *,
    styles: Optional[str] = None,
) -> str:
    """Render one page report.

    ``results`` is the analyzer output; only ``violations`` and the node
    fields shown in the report are read. ``screenshot_ref`` is a path
    relative to the HTML file, or None for the no-screenshot placeholder.
    """

    lang = resolve_locale(locale)
    if lang != locale:
        logger.debug("Unknown locale %r, rendering with %r", locale, lang)
    violations: Sequence[Any] = [v for v in results.get(K_VIOLATIONS) or [] if isinstance(v, Mapping)]

    if violations:
        body = "\n".join([_render_tally(tally_impacts(results), lang)] + [_render_violation(v, lang) for v in violations])
    else:
        body = _render_no_issues(lang)

    header = (
        '<hgroup class="title">'
        f"<h1>{translate(lang, 'labelTitle')}</h1>"
        f'<p class="testUrl"><span class="urlLabel">URL:</span> {escape_html(url)}</p>'
        "</hgroup>"
    )
    content = "\n".join(
        [
            '<div class="main-contents">',
            f'<div class="screenshot">{_render_screenshot(screenshot_ref, lang)}</div>',
            '<div class="violation">',
            f'<div class="violationHeader"><h2>{translate(lang, "labelViolations")}</h2></div>',
            body,
            "</div>",
            "</div>",
        ]
    )
    source = template if template is not None else load_template(DEFAULT_TEMPLATE_PATH)
    css = styles if styles is not None else load_template(DEFAULT_STYLES_PATH)
    return fill_template(
        source,
        {
            "STYLE": f"<style>{css}</style>",
            "LOCALE": escape_html(lang),
            "PAGE_TITLE": translate(lang, "labelTitle"),
            "URL": escape_html(url),
            "HEADER": header,
            "CONTENT": content,
        },
    )


__all__ = [
    "TRANSLATIONS",
    "escape_html",
    "resolve_locale",
    "translate",
    "is_http_url",
    "tally_impacts",
    "load_template",
    "fill_template",
    "render_report",
]
