"""Validators guarding capture requests built from untrusted input.

Both validators return result values for every input, policy or resolver
failure. Resolvers are injected so callers can pin DNS answers and tests can
run without network or filesystem access.
"""

from capture_guard.validation.address_validator import (
    ALLOWED_SCHEMES,
    BLOCKED_HOSTNAMES,
    DnsResolver,
    NavigationGuard,
    SystemDnsResolver,
    classify_address,
    classify_ipv4,
    classify_ipv6,
    validate_url,
)
from capture_guard.validation.path_validator import (
    RealPathResolver,
    SystemRealPathResolver,
    validate_output_path,
)
from capture_guard.validation.types import (
    AddressValidationResult,
    PathValidationResult,
    ResolvedAddress,
)

__all__ = [
    "ALLOWED_SCHEMES",
    "AddressValidationResult",
    "BLOCKED_HOSTNAMES",
    "DnsResolver",
    "NavigationGuard",
    "PathValidationResult",
    "RealPathResolver",
    "ResolvedAddress",
    "SystemDnsResolver",
    "SystemRealPathResolver",
    "classify_address",
    "classify_ipv4",
    "classify_ipv6",
    "validate_output_path",
    "validate_url",
]
