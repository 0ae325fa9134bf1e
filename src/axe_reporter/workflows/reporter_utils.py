"""Shared helper functions used by the intake, scheduler and summary workflows."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlsplit

INVALID_HOST = "invalid"


def idna_normalize(host: str) -> str:
    """Return a lowercase, IDNA-normalized host name."""

    h = (host or "").strip().rstrip(".").lower()
    if not h:
        return ""
    try:
        h = h.encode("idna").decode("ascii")
    except UnicodeError:
        pass
    return h


def hostname_of(url: str) -> str:
    """Return the normalized hostname of ``url`` or ``INVALID_HOST``."""

    try:
        host = urlsplit(url).hostname
    except ValueError:
        return INVALID_HOST
    return idna_normalize(host or "") or INVALID_HOST


def domain_matches(host: str, entries: Iterable[str]) -> Optional[str]:
    """Return the entry matching ``host`` exactly or as a parent domain."""

    if not host:
        return None
    normalized = host.strip().lower().rstrip(".")
    for entry in entries:
        token = (entry or "").strip().lower().lstrip(".")
        if not token:
            continue
        if normalized == token or normalized.endswith(f".{token}"):
            return token
    return None


def is_within(child: Path, root: Path) -> bool:
    try:
        child.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def sanity_check() -> None:
    assert idna_normalize("ExAmple.COM.") == "example.com"
    assert hostname_of("https://WWW.Example.com:8443/a") == "www.example.com"
    assert hostname_of("http://[::1") == INVALID_HOST
    assert domain_matches("a.b.example.com", {"example.com"}) == "example.com"
    assert domain_matches("badexample.com", {"example.com"}) is None


sanity_check()

__all__ = [
    "INVALID_HOST",
    "idna_normalize",
    "hostname_of",
    "domain_matches",
    "is_within",
    "sanity_check",
]
