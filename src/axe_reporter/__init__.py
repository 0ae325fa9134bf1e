"""Batch accessibility auditing with Playwright and axe-core."""

__version__ = "2.1.0"
