"""Security and resource gating for capture tools driven by untrusted input."""

from capture_guard.concurrency_gate import ConcurrencyGate, GateInvariantError
from capture_guard.config import (
    AllowListConfig,
    ConfigLoadError,
    GuardConfig,
    load_guard_config,
    load_guard_config_from_env,
)
from capture_guard.dispatch import CaptureBackend, PinnedTarget, run_guarded_capture
from capture_guard.result import ToolResponse, default_file_name, err, ok
from capture_guard.runtime import GuardContext, build_guard_context
from capture_guard.validation import (
    AddressValidationResult,
    NavigationGuard,
    PathValidationResult,
    ResolvedAddress,
    validate_output_path,
    validate_url,
)

__all__ = [
    "AddressValidationResult",
    "AllowListConfig",
    "CaptureBackend",
    "ConcurrencyGate",
    "ConfigLoadError",
    "GateInvariantError",
    "GuardConfig",
    "GuardContext",
    "NavigationGuard",
    "PathValidationResult",
    "PinnedTarget",
    "ResolvedAddress",
    "ToolResponse",
    "build_guard_context",
    "default_file_name",
    "err",
    "load_guard_config",
    "load_guard_config_from_env",
    "ok",
    "run_guarded_capture",
    "validate_output_path",
    "validate_url",
]
