"""Shared keys of the axe-core result shape, to avoid magic strings across modules."""

from __future__ import annotations

# Result-level keys
K_URL = "url"
K_VIOLATIONS = "violations"

# Violation keys
K_ID = "id"
K_DESCRIPTION = "description"
K_HELP = "help"
K_HELP_URL = "helpUrl"
K_TAGS = "tags"
K_NODES = "nodes"

# Node keys
K_IMPACT = "impact"
K_HTML = "html"
K_TARGET = "target"
K_FAILURE_SUMMARY = "failureSummary"
K_ANY = "any"
K_NONE = "none"
K_ALL = "all"
K_MESSAGE = "message"
