import asyncio

from capture_guard.validation.address_validator import NavigationGuard, SystemDnsResolver, validate_url
from capture_guard.validation.types import ResolvedAddress


class _FakeDns:
    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    async def lookup(self, hostname):
        self.calls.append(hostname)
        if self.error is not None:
            raise self.error
        if hostname not in self.records:
            raise OSError(f"getaddrinfo ENOTFOUND {hostname}")
        return [ResolvedAddress(address, family) for address, family in self.records[hostname]]


def _validate(url, dns=None):
    return asyncio.run(validate_url(url, dns or _FakeDns()))


def test_malformed_url_rejected_with_format_reason():
    for url in ["not-a-url", "", "http://", "http://[::1", "http://example.com:99999/"]:
        result = _validate(url)
        assert result.valid is False, url
        assert "format" in result.error.lower(), url


def test_non_http_schemes_rejected():
    for url in ["ftp://host", "file:///etc/passwd", "javascript:alert(1)", "gopher://example.com/"]:
        result = _validate(url)
        assert result.valid is False, url
        assert "http and https" in result.error, url


def test_localhost_names_rejected_before_resolution():
    dns = _FakeDns({"localhost": [("93.184.216.34", 4)]})
    for url in ["http://localhost", "https://LOCALHOST:8443/x", "http://localhost.localdomain/", "http://localhost./", "http://app.localhost/"]:
        result = _validate(url, dns)
        assert result.valid is False, url
        assert "localhost" in result.error, url
    assert dns.calls == []


def test_bracketed_ipv6_loopback_rejected():
    result = _validate("http://[::1]:8080/")
    assert result.valid is False
    assert "IPv6 localhost" in result.error


def test_public_hostname_valid_with_resolved_address():
    dns = _FakeDns({"example.com": [("93.184.216.34", 4)]})
    result = _validate("https://example.com/page", dns)
    assert result.valid is True
    assert result.resolved_address == "93.184.216.34"
    assert result.hostname == "example.com"
    assert result.error is None


def test_any_blocked_resolved_address_invalidates_result():
    dns = _FakeDns({"example.com": [("93.184.216.34", 4), ("127.0.0.1", 4)]})
    result = _validate("http://example.com", dns)
    assert result.valid is False
    assert result.resolved_address is None
    assert "blocked IP" in result.error


def test_blocked_ipv6_record_invalidates_result():
    dns = _FakeDns({"rebind.test": [("93.184.216.34", 4), ("::ffff:169.254.169.254", 6)]})
    result = _validate("http://rebind.test/", dns)
    assert result.valid is False
    assert "IPv4-mapped" in result.error


def test_first_surviving_address_is_pinned():
    dns = _FakeDns({"dual.test": [("2606:2800:220:1:248:1893:25c8:1946", 6), ("93.184.216.34", 4)]})
    result = _validate("http://dual.test/", dns)
    assert result.valid is True
    assert result.resolved_address == "2606:2800:220:1:248:1893:25c8:1946"


def test_dns_failures_fail_closed():
    nxdomain = _validate("http://missing.test/", _FakeDns())
    assert nxdomain.valid is False
    assert "DNS resolution failed" in nxdomain.error

    timeout = _validate("http://example.com/", _FakeDns(error=asyncio.TimeoutError()))
    assert timeout.valid is False
    assert "DNS resolution failed" in timeout.error


def test_empty_resolution_fails_closed():
    result = _validate("http://empty.test/", _FakeDns({"empty.test": []}))
    assert result.valid is False
    assert "no addresses" in result.error


def test_literal_ipv4_skips_dns():
    dns = _FakeDns()
    blocked = _validate("http://169.254.169.254/latest/meta-data/", dns)
    assert blocked.valid is False
    assert "metadata" in blocked.error

    allowed = _validate("http://93.184.216.34/", dns)
    assert allowed.valid is True
    assert allowed.resolved_address == "93.184.216.34"
    assert dns.calls == []


def test_numeric_ipv4_spellings_are_normalized():
    for url in ["http://2130706433/", "http://0x7f.1/", "http://0177.0.0.1/", "http://127.1/"]:
        result = _validate(url)
        assert result.valid is False, url
        assert "loopback" in result.error, url


def test_out_of_range_numeric_host_is_malformed():
    result = _validate("http://256.1.1.1/")
    assert result.valid is False
    assert "format" in result.error.lower()


def test_literal_ipv6_checked_directly():
    assert _validate("http://[fe80::1]/").valid is False
    assert _validate("http://[fd00::1]/").valid is False
    assert _validate("http://[::ffff:7f00:1]/").valid is False
    assert _validate("http://[0:0:0:0:0:ffff:127.0.0.1]/").valid is False
    public = _validate("http://[2001:4860:4860::8888]/")
    assert public.valid is True
    assert public.resolved_address == "2001:4860:4860::8888"


def test_revalidation_is_idempotent():
    dns = _FakeDns({"example.com": [("93.184.216.34", 4)]})
    first = _validate("https://example.com/", dns)
    second = _validate("https://example.com/", dns)
    assert first == second


def test_resolver_exception_never_escapes():
    class _Broken:
        async def lookup(self, hostname):
            raise RuntimeError("resolver crashed")

    result = _validate("http://example.com/", _Broken())
    assert result.valid is False
    assert "resolver crashed" in result.error


def test_navigation_guard_exempts_only_original_url():
    dns = _FakeDns(
        {
            "example.com": [("93.184.216.34", 4)],
            "internal.test": [("10.0.0.5", 4)],
            "cdn.test": [("151.101.1.1", 4)],
        }
    )

    async def _run():
        original = await validate_url("https://example.com/", dns)
        guard = NavigationGuard("https://example.com/", original, dns)
        calls_before = len(dns.calls)
        same = await guard.allows("https://example.com/")
        calls_after_original = len(dns.calls)
        internal = await guard.allows("http://internal.test/admin")
        metadata = await guard.allows("http://169.254.169.254/")
        public = await guard.allows("https://cdn.test/next")
        return same, calls_before == calls_after_original, internal, metadata, public

    same, no_lookup, internal, metadata, public = asyncio.run(_run())
    assert same is True
    assert no_lookup is True
    assert internal is False
    assert metadata is False
    assert public is True


def test_navigation_guard_requires_valid_original():
    rejected = _validate("ftp://example.com/")
    try:
        NavigationGuard("ftp://example.com/", rejected)
        assert False, "Expected ValueError"
    except ValueError as exc:
        assert "validated" in str(exc)


def test_system_resolver_tags_address_family():
    addresses = asyncio.run(SystemDnsResolver(timeout_seconds=5).lookup("127.0.0.1"))
    assert addresses == [ResolvedAddress("127.0.0.1", 4)]
