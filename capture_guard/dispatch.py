import os
import time
from dataclasses import dataclass
from typing import Protocol

from capture_guard.logger import log_event
from capture_guard.result import ToolResponse, default_file_name, err, ok
from capture_guard.runtime import GuardContext
from capture_guard.validation.address_validator import NavigationGuard, validate_url
from capture_guard.validation.path_validator import validate_output_path


@dataclass(frozen=True)
class PinnedTarget:
    url: str
    hostname: str | None
    resolved_address: str | None

    def host_resolver_rule(self) -> str | None:
        """Chromium switch mapping the hostname to the validated address."""
        if not self.hostname or not self.resolved_address:
            return None
        if self.hostname == self.resolved_address:
            return None
        address = self.resolved_address
        if ":" in address:
            address = f"[{address}]"
        return f"--host-resolver-rules=MAP {self.hostname} {address}"


class CaptureBackend(Protocol):
    """Performs the actual capture. Must write only to ``output_path``."""

    async def capture(
        self,
        target: PinnedTarget,
        output_path: str,
        navigation_guard: NavigationGuard,
    ) -> None: ...


async def run_guarded_capture(
    context: GuardContext,
    url: str,
    backend: CaptureBackend,
    *,
    output_path: str | None = None,
    file_name: str | None = None,
) -> ToolResponse:
    """
    Validates the URL and output path, then runs one capture under the gate.
    The gate is never waited on; a busy gate refuses the request.
    """
    context.ensure_default_directory()

    url_result = await validate_url(url, context.dns_resolver)
    if not url_result.valid:
        return err(f"URL validation failed: {url_result.error}")

    path_result = await validate_output_path(
        output_path,
        file_name or default_file_name(),
        context.config.allow_list,
        context.real_path_resolver,
    )
    if not path_result.valid:
        return err(f"Output path validation failed: {path_result.error}")
    dest = path_result.resolved_path

    limit = context.config.max_concurrent_captures
    if not context.gate.try_acquire():
        log_event("dispatch", "capture.busy", host=url_result.hostname, max=limit)
        return err(
            f"Concurrent screenshot limit reached (max {limit}). "
            "Please wait for existing screenshots to complete."
        )

    target = PinnedTarget(
        url=url,
        hostname=url_result.hostname,
        resolved_address=url_result.resolved_address,
    )
    guard = NavigationGuard(url, url_result, context.dns_resolver)
    started = time.monotonic()
    try:
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        await backend.capture(target, dest, guard)
    except Exception as exc:
        log_event("dispatch", "capture.failed", host=target.hostname, error=exc)
        return err(f"Screenshot error: {exc}")
    finally:
        context.gate.release()

    log_event(
        "dispatch",
        "capture.saved",
        host=target.hostname,
        path=dest,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return ok(f"Screenshot saved: {dest}")
