"""
Network access policy for browser sessions.

Private and local targets are always rejected, whatever the allow/block lists
say. A block-list match wins over the allow list; an empty allow list means
any public host not blocked is allowed.
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

from reporter.computer.types import ComputerErrorCode

_PRIVATE_V4 = [
    ipaddress.ip_network(n)
    for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
    )
]
_PRIVATE_V6 = [
    ipaddress.ip_network(n) for n in ("::/128", "::1/128", "fc00::/7", "fe80::/10")
]


@dataclass
class NetworkPolicy:
    allow_domains: list[str] = field(default_factory=list)
    block_domains: list[str] = field(default_factory=list)


@dataclass
class PolicyCheckResult:
    ok: bool
    code: Optional[ComputerErrorCode] = None
    message: Optional[str] = None


def _normalize(domain: str) -> str:
    return domain.strip().lower().rstrip(".")


def domain_matches(hostname: str, pattern: str) -> bool:
    """Exact match, or `*.suffix` matching the suffix itself and any subdomain"""
    host = _normalize(hostname)
    p = _normalize(pattern)
    if not p:
        return False
    if p.startswith("*."):
        suffix = p[2:]
        return host == suffix or host.endswith(f".{suffix}")
    return host == p


def _parse_ipv4_part(part: str) -> Optional[int]:
    if part[:2] in ("0x", "0X"):
        digits, base = part[2:], 16
    elif len(part) > 1 and part.startswith("0"):
        digits, base = part[1:], 8
    else:
        digits, base = part, 10
    if not digits:
        # bare "0x" is zero
        return 0 if base == 16 else None
    try:
        return int(digits, base)
    except ValueError:
        return None


def parse_ipv4_host(host: str) -> Optional[ipaddress.IPv4Address]:
    """
    Read a host the way browsers do: 1 to 4 dot-separated parts, each
    decimal, octal (leading 0) or hex (0x). The last part fills the remaining
    bytes, so `127.1`, `2130706433` and `0x7f000001` are all 127.0.0.1.
    """
    parts = host.split(".")
    if parts and parts[-1] == "":
        parts.pop()
    if not parts or len(parts) > 4 or any(p == "" for p in parts):
        return None
    values = [_parse_ipv4_part(p) for p in parts]
    if any(v is None for v in values):
        return None
    *head, last = values
    if any(v > 255 for v in head) or last >= 256 ** (5 - len(values)):
        return None
    number = last
    for i, value in enumerate(head):
        number += value << (8 * (3 - i))
    return ipaddress.IPv4Address(number)


def is_private_host(hostname: str) -> bool:
    host = _normalize(hostname)
    if not host:
        return True
    if host == "localhost" or host.endswith(".localhost") or host.endswith(".local"):
        return True

    ip = parse_ipv4_host(host)
    if ip is None:
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return False
    if ip.version == 6 and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    networks = _PRIVATE_V4 if ip.version == 4 else _PRIVATE_V6
    return any(ip in net for net in networks)


def validate_url_policy(url: str, policy: NetworkPolicy) -> PolicyCheckResult:
    try:
        parsed = urlsplit(url)
        host = parsed.hostname or ""
    except ValueError:
        return PolicyCheckResult(
            False, ComputerErrorCode.INVALID_URL, f"Invalid URL: {url}"
        )

    if parsed.scheme.lower() not in ("http", "https"):
        return PolicyCheckResult(
            False,
            ComputerErrorCode.UNSUPPORTED_PROTOCOL,
            "Only HTTP/HTTPS URLs are supported",
        )

    if is_private_host(host):
        return PolicyCheckResult(
            False,
            ComputerErrorCode.PRIVATE_NETWORK_BLOCKED,
            f"Blocked private/local target: {host}",
        )

    if any(domain_matches(host, p) for p in policy.block_domains):
        return PolicyCheckResult(
            False,
            ComputerErrorCode.DOMAIN_BLOCKED,
            f"Domain blocked by policy: {host}",
        )

    if policy.allow_domains and not any(
        domain_matches(host, p) for p in policy.allow_domains
    ):
        return PolicyCheckResult(
            False,
            ComputerErrorCode.NOT_ALLOWLISTED,
            f"Domain not in allowlist: {host}",
        )

    return PolicyCheckResult(True)
