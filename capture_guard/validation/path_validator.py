"""Output path validation against traversal and symlink escapes.

Containment is decided on real paths only: the requested path and every
allowed directory are passed through the real-path resolver before they are
compared, so a symlink inside an allowed directory cannot point a write
outside of it.
"""

from __future__ import annotations

import asyncio
import os
from typing import Protocol

from capture_guard.config import AllowListConfig
from capture_guard.logger import log_event
from capture_guard.validation.types import PathValidationResult


class RealPathResolver(Protocol):
    """Returns the canonical form of an existing path, or raises OSError.

    A symlink whose target is missing counts as existing and resolves to
    that target.
    """

    async def realpath(self, path: str) -> str: ...


class SystemRealPathResolver:
    async def realpath(self, path: str) -> str:
        return await asyncio.to_thread(_canonical_path, path)


def _canonical_path(path: str) -> str:
    try:
        return os.path.realpath(path, strict=True)
    except OSError:
        # A dangling link still exists; a write through it lands on its target.
        if os.path.islink(path):
            return os.path.realpath(path)
        raise


_default_real_path_resolver = SystemRealPathResolver()


async def validate_output_path(
    custom_path: str | None,
    default_file_name: str,
    config: AllowListConfig,
    real_path_resolver: RealPathResolver | None = None,
) -> PathValidationResult:
    resolver = real_path_resolver or _default_real_path_resolver

    if custom_path is None or not custom_path.strip():
        return PathValidationResult(
            valid=True,
            resolved_path=os.path.join(config.default_directory, default_file_name),
        )

    if "\x00" in custom_path or "%00" in custom_path:
        return _reject(custom_path, "Path contains null bytes")

    target_path = _absolute(custom_path, config.default_directory)

    try:
        real_path = await resolver.realpath(target_path)
    except Exception:
        # Target does not exist yet: resolve the parent and re-append the name.
        parent_dir, file_name = os.path.split(target_path)
        try:
            real_parent = await resolver.realpath(parent_dir)
        except Exception:
            return _reject(custom_path, f"Parent directory does not exist: {parent_dir}")
        real_path = os.path.join(real_parent, file_name)

    for allowed_dir in config.allowed_directories:
        real_allowed_dir = await _resolve_allowed_directory(allowed_dir, resolver)
        if _is_within(real_path, real_allowed_dir):
            log_event("path_validator", "path.accepted", path=real_path, allowed_dir=real_allowed_dir)
            return PathValidationResult(valid=True, resolved_path=real_path)

    return _reject(
        custom_path,
        "Output path must be within allowed directories "
        f"({', '.join(config.allowed_directories)}). "
        "Symlinks to other locations are not permitted.",
    )


async def _resolve_allowed_directory(allowed_dir: str, resolver: RealPathResolver) -> str:
    try:
        return await resolver.realpath(allowed_dir)
    except Exception:
        return _absolute(allowed_dir, "/")


def _absolute(path: str, base: str) -> str:
    if path.startswith("/"):
        joined = path
    else:
        joined = os.path.join(base, path)
    normalized = os.path.normpath(joined)
    # normpath keeps a leading "//"; a single root is required for comparison.
    return "/" + normalized.lstrip("/")


def _is_within(path: str, directory: str) -> bool:
    path = os.path.normpath(path)
    directory = os.path.normpath(directory)
    try:
        return os.path.commonpath([path, directory]) == directory
    except ValueError:
        return False


def _reject(custom_path: str, reason: str) -> PathValidationResult:
    log_event("path_validator", "path.rejected", requested=repr(custom_path), reason=reason)
    return PathValidationResult(valid=False, error=reason)
