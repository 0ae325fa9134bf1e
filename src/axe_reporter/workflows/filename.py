"""Deterministic, filesystem-safe report names derived from URLs."""

from __future__ import annotations

import hashlib
import logging
import re
import unicodedata
from collections import Counter
from typing import Dict, Iterable
from urllib.parse import urlsplit

from ..errors import FilenameError

logger = logging.getLogger(__name__)

PART_MAX_LENGTH = 100
BASE_MAX_LENGTH = 200
NAME_MAX_LENGTH = 255
TRUNCATED_SUFFIX = "_truncated"

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_RESERVED = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$", re.IGNORECASE)
_UNSAFE = re.compile(r"[^A-Za-z0-9\-_.]")
_UNDERSCORES = re.compile(r"_{2,}")
DIGEST_LENGTH = 10


def _strip_dot_pairs(text: str) -> str:
    while ".." in text:
        text = text.replace("..", "")
    return text


def sanitize_filename_part(value: str) -> str:
    if not value or not isinstance(value, str):
        return ""
    text = _strip_dot_pairs(unicodedata.normalize("NFC", value))
    text = _INVALID_CHARS.sub("_", text)
    text = _RESERVED.sub("_reserved_", text)
    text = _UNSAFE.sub("_", text)
    text = _UNDERSCORES.sub("_", text)
    return text[:PART_MAX_LENGTH]


def generate_base_filename(url: str) -> str:
    """Return ``host[_path][_query]`` for ``url``; raises FilenameError when no safe name exists."""

    if not url or not isinstance(url, str):
        raise FilenameError("Invalid URL provided")
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError as exc:
        raise FilenameError(f"Cannot derive a filename from {url!r}: {exc}") from exc

    domain = sanitize_filename_part(hostname) if hostname else "unknown_host"
    path = sanitize_filename_part(_strip_dot_pairs(parts.path[1:].rstrip("/")))
    query = sanitize_filename_part(parts.query)

    base = domain
    if path:
        base += "_" + path
    if query:
        base += "_" + query
    if len(base) > BASE_MAX_LENGTH:
        base = base[:BASE_MAX_LENGTH] + TRUNCATED_SUFFIX
    if not is_valid_filename(base):
        raise FilenameError(f"Derived filename {base!r} for {url!r} is not safe")
    return base


def is_valid_filename(name: str) -> bool:
    if not name or not isinstance(name, str):
        return False
    normalized = unicodedata.normalize("NFC", name)
    if ".." in normalized or "/" in normalized or "\\" in normalized:
        return False
    if _RESERVED.match(normalized):
        return False
    if _INVALID_CHARS.search(normalized):
        return False
    if normalized.strip(".") == "":
        return False
    return 0 < len(normalized) <= NAME_MAX_LENGTH


def unique_base_names(urls: Iterable[str]) -> Dict[str, str]:
    """Map each URL to a base name no other URL in the batch shares.

    Names that collide (compared case-insensitively) get ``_<sha256 prefix>``
    of their full URL appended. URLs with no derivable name are left out;
    the processor reports those as filename failures.
    """

    names: Dict[str, str] = {}
    for url in urls:
        try:
            names[url] = generate_base_filename(url)
        except FilenameError:
            continue
    counts = Counter(name.lower() for name in names.values())
    taken = {name.lower() for name in names.values()}
    for url, name in names.items():
        if counts[name.lower()] < 2:
            continue
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        size = DIGEST_LENGTH
        candidate = f"{name}_{digest[:size]}"
        while candidate.lower() in taken:
            size += 2
            candidate = f"{name}_{digest[:size]}"
        taken.add(candidate.lower())
        names[url] = candidate
        logger.warning("Report name %r is shared by several URLs; using %r for %s", name, candidate, url)
    return names


__all__ = ["sanitize_filename_part", "generate_base_filename", "is_valid_filename", "unique_base_names"]
