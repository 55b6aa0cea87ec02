"""Process-wide guard context.

``build_guard_context`` is the only place a ConcurrencyGate is constructed.
The resulting context is created once at startup and passed to every call
site that needs the gate, config or resolvers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from capture_guard.concurrency_gate import ConcurrencyGate
from capture_guard.config import GuardConfig, load_guard_config_from_env
from capture_guard.validation.address_validator import DnsResolver, SystemDnsResolver
from capture_guard.validation.path_validator import RealPathResolver, SystemRealPathResolver


@dataclass
class GuardContext:
    config: GuardConfig
    gate: ConcurrencyGate
    dns_resolver: DnsResolver
    real_path_resolver: RealPathResolver
    _default_dir_created: bool = field(default=False, repr=False)

    def ensure_default_directory(self) -> None:
        if not self._default_dir_created:
            os.makedirs(self.config.allow_list.default_directory, exist_ok=True)
            self._default_dir_created = True


def build_guard_context(
    config: GuardConfig | None = None,
    *,
    dns_resolver: DnsResolver | None = None,
    real_path_resolver: RealPathResolver | None = None,
) -> GuardContext:
    if config is None:
        config = load_guard_config_from_env()
    return GuardContext(
        config=config,
        gate=ConcurrencyGate(config.max_concurrent_captures),
        dns_resolver=dns_resolver or SystemDnsResolver(timeout_seconds=config.dns_timeout_seconds),
        real_path_resolver=real_path_resolver or SystemRealPathResolver(),
    )
