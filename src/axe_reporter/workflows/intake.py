"""URL intake: parse the URL list, reject malformed URLs, apply the domain policy.

The domain policy is the first line of defense when URL lists come from
untrusted input: blocked entries may be hostnames (exact or parent-domain
match) or IP/CIDR literals for IPv4 and IPv6 hosts.
"""

from __future__ import annotations

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union
from urllib.parse import urlsplit, urlunsplit

from ..errors import IntakeError
from .reporter_utils import domain_matches, idna_normalize

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

ALLOWED_SCHEMES = ("http", "https")

_IPV4_PART = re.compile(r"^(0[xX][0-9a-fA-F]*|0[0-7]*|[1-9][0-9]*)$")


@dataclass(frozen=True)
class DomainRule:
    """One allow/deny entry: a hostname or an IP network."""

    raw: str
    hostname: Optional[str] = None
    network: Optional[IPNetwork] = None

    def matches(self, host: str, ip: Optional[IPAddress]) -> bool:
        if self.network is not None:
            if ip is None:
                return False
            if ip.version == self.network.version:
                return ip in self.network
            mapped = getattr(ip, "ipv4_mapped", None)
            if mapped is not None and self.network.version == 4:
                return mapped in self.network
            return False
        return domain_matches(host, (self.hostname or "",)) is not None


@dataclass
class IntakeResult:
    accepted: List[str] = field(default_factory=list)
    invalid: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)

    def counts(self) -> dict:
        return {
            "accepted": len(self.accepted),
            "invalid": len(self.invalid),
            "blocked": len(self.blocked),
            "duplicates": len(self.duplicates),
        }


def parse_domain_rule(entry: str) -> DomainRule:
    """Parse a policy entry; raises ValueError for entries that cannot match anything."""

    raw = (entry or "").strip()
    if not raw or any(ch.isspace() for ch in raw):
        raise ValueError(f"Invalid domain entry: {entry!r}")
    candidate = raw[1:-1] if raw.startswith("[") and raw.endswith("]") else raw
    try:
        return DomainRule(raw=raw, network=ipaddress.ip_network(candidate, strict=False))
    except ValueError:
        if "/" in candidate or ":" in candidate:
            raise ValueError(f"Invalid CIDR or IP entry: {entry!r}") from None
    hostname = idna_normalize(candidate.lstrip("."))
    if not hostname:
        raise ValueError(f"Invalid domain entry: {entry!r}")
    return DomainRule(raw=raw, hostname=hostname)


def compile_rules(entries: Iterable[Union[str, DomainRule]]) -> List[DomainRule]:
    rules: List[DomainRule] = []
    for entry in entries:
        rules.append(entry if isinstance(entry, DomainRule) else parse_domain_rule(entry))
    return rules


def _parse_ipv4_number_form(host: str) -> Optional[ipaddress.IPv4Address]:
    # Browsers accept shorthand IPv4 hosts (2130706433, 0x7f.1, 127.1, 0177.0.0.1).
    parts = host.split(".")
    if parts and parts[-1] == "":
        parts = parts[:-1]
    if not parts or len(parts) > 4:
        return None
    numbers: List[int] = []
    for part in parts:
        if not _IPV4_PART.match(part):
            return None
        if part[:2] in ("0x", "0X"):
            numbers.append(int(part[2:] or "0", 16))
        elif len(part) > 1 and part.startswith("0"):
            numbers.append(int(part, 8))
        else:
            numbers.append(int(part))
    *head, last = numbers
    if any(n > 255 for n in head) or last >= 256 ** (5 - len(numbers)):
        return None
    value = last
    for index, n in enumerate(head):
        value += n << (8 * (3 - index))
    return ipaddress.IPv4Address(value)


def parse_ip_host(host: str) -> Optional[IPAddress]:
    """Return the IP address a URL host denotes, or None for named hosts."""

    h = (host or "").strip().lower()
    if h.startswith("[") and h.endswith("]"):
        h = h[1:-1]
    if not h:
        return None
    try:
        return ipaddress.ip_address(h)
    except ValueError:
        pass
    if ":" in h:
        return None
    return _parse_ipv4_number_form(h)


def normalize_url(candidate: str) -> Optional[str]:
    """Return the normalized absolute http(s) URL, or None when it cannot be parsed."""

    text = (candidate or "").strip()
    if not text or any(ch.isspace() for ch in text):
        return None
    try:
        parts = urlsplit(text)
        port = parts.port
    except ValueError:
        return None
    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return None
    host = idna_normalize(parts.hostname or "")
    if not host:
        return None
    netloc = f"[{host}]" if ":" in host else host
    if port is not None:
        netloc = f"{netloc}:{port}"
    userinfo, sep, _ = parts.netloc.rpartition("@")
    if sep:
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, ""))


def is_url_allowed(
    url: str,
    allowed_domains: Iterable[Union[str, DomainRule]] = (),
    blocked_domains: Iterable[Union[str, DomainRule]] = (),
) -> bool:
    """Return True when ``url`` passes the blocked list and, if non-empty, the allowed list."""

    try:
        host = idna_normalize(urlsplit(url).hostname or "")
        blocked = compile_rules(blocked_domains)
        allowed = compile_rules(allowed_domains)
    except ValueError:
        return False
    if not host:
        return False
    ip = parse_ip_host(host)
    if any(rule.matches(host, ip) for rule in blocked):
        return False
    if not allowed:
        return True
    return any(rule.matches(host, ip) for rule in allowed)


def parse_url_lines(text: str) -> List[str]:
    candidates: List[str] = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        candidates.append(line)
    return candidates


def load_url_list(path: Union[str, Path]) -> str:
    target = Path(path)
    try:
        return target.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise IntakeError(f"Unable to read URL list {target}: {exc}") from exc


def _log_members(label: str, members: Sequence[str]) -> None:
    if not members:
        return
    logger.warning("%s (%d) will be skipped:", label, len(members))
    for member in members:
        logger.warning("  - %s", member)


def filter_urls(
    text: str,
    allowed_domains: Iterable[Union[str, DomainRule]] = (),
    blocked_domains: Iterable[Union[str, DomainRule]] = (),
    *,
    require_accepted: bool = True,
) -> IntakeResult:
    """Classify every candidate line as accepted, invalid or blocked."""

    allowed = compile_rules(allowed_domains)
    blocked = compile_rules(blocked_domains)
    result = IntakeResult()
    seen = set()
    for candidate in parse_url_lines(text):
        url = normalize_url(candidate)
        if url is None:
            result.invalid.append(candidate)
            continue
        if not is_url_allowed(url, allowed, blocked):
            result.blocked.append(candidate)
            continue
        if url in seen:
            result.duplicates.append(candidate)
            continue
        seen.add(url)
        result.accepted.append(url)

    _log_members("Invalid URLs", result.invalid)
    _log_members("Blocked URLs (domain policy)", result.blocked)
    _log_members("Duplicate URLs", result.duplicates)
    if require_accepted and not result.accepted:
        raise IntakeError(
            "No valid URLs to process "
            f"(invalid={len(result.invalid)}, blocked={len(result.blocked)})"
        )
    logger.info("Found %d valid URLs to process", len(result.accepted))
    return result


__all__ = [
    "DomainRule",
    "IntakeResult",
    "parse_domain_rule",
    "compile_rules",
    "parse_ip_host",
    "normalize_url",
    "is_url_allowed",
    "parse_url_lines",
    "load_url_list",
    "filter_urls",
]
