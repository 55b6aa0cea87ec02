"""URL validation against SSRF and DNS rebinding.

A URL is accepted only when its scheme is http(s), its host is not a
loopback name, and every address the host resolves to lies outside the
blocked ranges. The accepted result carries one resolved address so the
caller can pin the outbound connection to it.
"""

from __future__ import annotations

import asyncio
import ipaddress
import re
import socket
from typing import Protocol, Sequence
from urllib.parse import urlsplit

from capture_guard.config import DEFAULT_DNS_TIMEOUT_SECONDS
from capture_guard.logger import log_event
from capture_guard.validation.types import (
    ALLOWED,
    AddressValidationResult,
    BlockDecision,
    ResolvedAddress,
)

ALLOWED_SCHEMES = ("http", "https")
BLOCKED_HOSTNAMES = ("localhost", "localhost.localdomain")

_IPV4_PATTERN = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
_IPV4_MAPPED_DOTTED = re.compile(r"^::ffff:(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})$")
_IPV4_MAPPED_HEX = re.compile(r"^::ffff:([0-9a-f]{1,4}):([0-9a-f]{1,4})$")
# Numeric hosts a browser reads as IPv4: decimal, octal or hex parts, 1 to 4 of them.
_NUMERIC_HOST = re.compile(r"^(0x[0-9a-f]+|\d+)(\.(0x[0-9a-f]+|\d+)){0,3}\.?$")


class DnsResolver(Protocol):
    """Returns every A and AAAA record for a hostname, or raises."""

    async def lookup(self, hostname: str) -> Sequence[ResolvedAddress]: ...


class SystemDnsResolver:
    def __init__(self, timeout_seconds: float | None = DEFAULT_DNS_TIMEOUT_SECONDS) -> None:
        self._timeout_seconds = timeout_seconds

    async def lookup(self, hostname: str) -> list[ResolvedAddress]:
        loop = asyncio.get_running_loop()
        infos = await asyncio.wait_for(
            loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM),
            timeout=self._timeout_seconds,
        )
        addresses: list[ResolvedAddress] = []
        for family, _, _, _, sockaddr in infos:
            if family == socket.AF_INET:
                entry = ResolvedAddress(address=sockaddr[0], family=4)
            elif family == socket.AF_INET6:
                entry = ResolvedAddress(address=sockaddr[0].split("%", 1)[0], family=6)
            else:
                continue
            if entry not in addresses:
                addresses.append(entry)
        return addresses


_default_dns_resolver = SystemDnsResolver()


def classify_ipv4(ip: str) -> BlockDecision:
    match = _IPV4_PATTERN.match(ip)
    if match is None:
        return BlockDecision(True, "Invalid IPv4 address")

    a, b, c, d = (int(group) for group in match.groups())
    if max(a, b, c, d) > 255:
        return BlockDecision(True, "Invalid IPv4 address")

    if a == 127:
        return BlockDecision(True, "Access to loopback addresses is not allowed")
    if a == 10:
        return BlockDecision(True, "Access to private network (10.x.x.x) is not allowed")
    if a == 172 and 16 <= b <= 31:
        return BlockDecision(True, "Access to private network (172.16-31.x.x) is not allowed")
    if a == 192 and b == 168:
        return BlockDecision(True, "Access to private network (192.168.x.x) is not allowed")
    if a == 169 and b == 254:
        return BlockDecision(True, "Access to link-local/metadata addresses (169.254.x.x) is not allowed")
    if a == 0:
        return BlockDecision(True, "Access to 0.x.x.x addresses is not allowed")
    if a == 100 and 64 <= b <= 127:
        return BlockDecision(True, "Access to shared/CGNAT addresses (100.64-127.x.x) is not allowed")
    if a == 198 and b in (18, 19):
        return BlockDecision(True, "Access to benchmark addresses (198.18-19.x.x) is not allowed")
    if (a, b, c, d) == (255, 255, 255, 255):
        return BlockDecision(True, "Access to broadcast address is not allowed")

    return ALLOWED


def classify_ipv6(ip: str) -> BlockDecision:
    normalized = _normalize_ipv6(ip)

    if normalized == "::1":
        return BlockDecision(True, "Access to IPv6 localhost is not allowed")
    if normalized == "::":
        return BlockDecision(True, "Access to the unspecified IPv6 address is not allowed")

    first_group = normalized.split(":")[0]
    if first_group:
        try:
            group_value = int(first_group, 16)
        except ValueError:
            group_value = None
        if group_value is not None and (group_value & 0xFFC0) == 0xFE80:
            return BlockDecision(True, "Access to IPv6 link-local addresses is not allowed")

    if normalized.startswith(("fc", "fd")):
        return BlockDecision(True, "Access to IPv6 private addresses is not allowed")

    mapped = _IPV4_MAPPED_DOTTED.match(normalized)
    if mapped is not None:
        return _mapped_decision(mapped.group(1))

    mapped = _IPV4_MAPPED_HEX.match(normalized)
    if mapped is not None:
        high = int(mapped.group(1), 16)
        low = int(mapped.group(2), 16)
        dotted = f"{(high >> 8) & 0xFF}.{high & 0xFF}.{(low >> 8) & 0xFF}.{low & 0xFF}"
        return _mapped_decision(dotted)

    return ALLOWED


def classify_address(address: str, family: int) -> BlockDecision:
    if family == 4:
        return classify_ipv4(address)
    if family == 6:
        return classify_ipv6(address)
    return BlockDecision(True, f"Unsupported address family: {family}")


async def validate_url(
    url: str,
    dns_resolver: DnsResolver | None = None,
) -> AddressValidationResult:
    resolver = dns_resolver or _default_dns_resolver

    if not isinstance(url, str):
        return _reject(None, "Invalid URL format")
    try:
        parsed = urlsplit(url)
        parsed.port  # raises ValueError for a malformed port
        hostname = parsed.hostname
    except ValueError:
        return _reject(None, "Invalid URL format")

    if not parsed.scheme:
        return _reject(None, "Invalid URL format")
    if parsed.scheme not in ALLOWED_SCHEMES:
        return _reject(None, "Only http and https protocols are allowed")
    if not hostname:
        return _reject(None, "Invalid URL format")

    bare_name = hostname.rstrip(".")
    if bare_name in BLOCKED_HOSTNAMES or bare_name.endswith(".localhost"):
        return _reject(hostname, "Access to localhost is not allowed")
    if hostname == "::1":
        return _reject(hostname, "Access to IPv6 localhost is not allowed")

    if _NUMERIC_HOST.match(hostname):
        ipv4 = _parse_numeric_host(hostname)
        if ipv4 is None:
            return _reject(hostname, "Invalid URL format")
        return _classify_literal(hostname, ipv4, classify_ipv4(ipv4))

    if ":" in hostname:
        ipv6 = hostname.split("%", 1)[0]
        try:
            ipaddress.IPv6Address(ipv6)
        except ValueError:
            return _reject(hostname, "Invalid URL format")
        return _classify_literal(hostname, ipv6, classify_ipv6(ipv6))

    try:
        addresses = list(await resolver.lookup(hostname))
    except Exception as exc:
        return _reject(hostname, f"DNS resolution failed: {_describe(exc)}")

    if not addresses:
        return _reject(hostname, "DNS resolution returned no addresses")

    # Any blocked record rejects the whole host; the connection could use any of them.
    first_allowed: str | None = None
    for entry in addresses:
        decision = classify_address(entry.address, entry.family)
        if decision.blocked:
            return _reject(hostname, f"DNS resolved to blocked IP: {decision.reason}")
        if first_allowed is None:
            first_allowed = entry.address

    log_event(
        "address_validator",
        "url.accepted",
        host=hostname,
        resolved=first_allowed,
        candidates=len(addresses),
    )
    return AddressValidationResult(valid=True, resolved_address=first_allowed, hostname=hostname)


class NavigationGuard:
    """Re-validates navigation targets (redirect hops) during a capture.

    Only the URL that was already validated is let through unchecked.
    """

    def __init__(
        self,
        original_url: str,
        original_result: AddressValidationResult,
        dns_resolver: DnsResolver | None = None,
    ) -> None:
        if not original_result.valid:
            raise ValueError("navigation guard requires a validated original URL")
        self._original_url = original_url
        self._original_result = original_result
        self._dns_resolver = dns_resolver

    async def check(self, request_url: str) -> AddressValidationResult:
        if request_url == self._original_url:
            return self._original_result
        return await validate_url(request_url, self._dns_resolver)

    async def allows(self, request_url: str) -> bool:
        try:
            result = await self.check(request_url)
        except Exception as exc:
            log_event("navigation_guard", "navigation.aborted", error=_describe(exc))
            return False
        if not result.valid:
            log_event("navigation_guard", "navigation.blocked", reason=result.error)
        return result.valid


def _classify_literal(hostname: str, address: str, decision: BlockDecision) -> AddressValidationResult:
    if decision.blocked:
        return _reject(hostname, decision.reason or "Blocked address")
    log_event("address_validator", "url.accepted", host=hostname, literal=True)
    return AddressValidationResult(valid=True, resolved_address=address, hostname=hostname)


def _mapped_decision(ipv4: str) -> BlockDecision:
    decision = classify_ipv4(ipv4)
    if decision.blocked:
        return BlockDecision(True, f"Access to IPv4-mapped blocked address: {decision.reason}")
    return ALLOWED


def _normalize_ipv6(ip: str) -> str:
    text = ip.strip().lower().split("%", 1)[0]
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    try:
        return ipaddress.IPv6Address(text).compressed
    except ValueError:
        return text


def _parse_numeric_host(hostname: str) -> str | None:
    try:
        packed = socket.inet_aton(hostname.rstrip("."))
    except OSError:
        return None
    return socket.inet_ntoa(packed)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _reject(hostname: str | None, reason: str) -> AddressValidationResult:
    log_event("address_validator", "url.rejected", host=hostname, reason=reason)
    return AddressValidationResult(valid=False, error=reason)
