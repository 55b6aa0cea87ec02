import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from capture_guard.logger import log_event


MAX_CONCURRENT_CAPTURES = 3
DEFAULT_DNS_TIMEOUT_SECONDS = 10.0
CONFIG_PATH_ENV = "CAPTURE_GUARD_CONFIG"

HOME_DIR = os.environ.get("HOME") or "/tmp"
DEFAULT_OUTPUT_DIR = os.path.join(HOME_DIR, "Desktop", "Screenshots")
ALLOWED_OUTPUT_DIRS = (
    DEFAULT_OUTPUT_DIR,
    "/tmp",
    os.path.join(HOME_DIR, "Downloads"),
    os.path.join(HOME_DIR, "Documents"),
)

KNOWN_KEYS = {
    "allowed_output_dirs",
    "default_output_dir",
    "max_concurrent_captures",
    "dns_timeout_seconds",
}


class ConfigLoadError(Exception):
    pass


@dataclass(frozen=True)
class AllowListConfig:
    allowed_directories: tuple[str, ...] = ALLOWED_OUTPUT_DIRS
    default_directory: str = DEFAULT_OUTPUT_DIR


@dataclass(frozen=True)
class GuardConfig:
    allow_list: AllowListConfig = AllowListConfig()
    max_concurrent_captures: int = MAX_CONCURRENT_CAPTURES
    dns_timeout_seconds: float = DEFAULT_DNS_TIMEOUT_SECONDS


def load_guard_config(config_path):
    path = Path(config_path)
    try:
        raw = path.read_text(encoding="utf-8")
    except Exception as exc:
        log_event("config_loader", "config.load_failed", path=path, error=exc)
        raise ConfigLoadError(f"Failed to read config: {exc}") from exc

    try:
        document = yaml.safe_load(raw)
    except Exception as exc:
        log_event("config_loader", "config.parse_failed", path=path, error=exc)
        raise ConfigLoadError(f"Failed to parse config YAML: {exc}") from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        log_event("config_loader", "config.invalid_mapping", path=path)
        raise ConfigLoadError("Config YAML must be a mapping")

    unknown = sorted(set(document.keys()) - KNOWN_KEYS)
    if unknown:
        log_event("config_loader", "config.unknown_keys", path=path, unknown=",".join(map(str, unknown)))
        raise ConfigLoadError(f"Config has unknown keys: {', '.join(map(str, unknown))}")

    try:
        config = _build_config(document)
    except ConfigLoadError as exc:
        log_event("config_loader", "config.invalid_value", path=path, error=exc)
        raise

    log_event(
        "config_loader",
        "config.loaded",
        path=path,
        allowed_dirs=len(config.allow_list.allowed_directories),
        max_concurrent=config.max_concurrent_captures,
    )
    return config


def load_guard_config_from_env():
    config_path = os.environ.get(CONFIG_PATH_ENV)
    if not config_path:
        return GuardConfig()
    return load_guard_config(config_path)


def _build_config(document: dict) -> GuardConfig:
    allowed = document.get("allowed_output_dirs", list(ALLOWED_OUTPUT_DIRS))
    if not isinstance(allowed, list) or not allowed:
        raise ConfigLoadError("allowed_output_dirs must be a non-empty list")
    if not all(isinstance(d, str) and d.strip() for d in allowed):
        raise ConfigLoadError("allowed_output_dirs entries must be non-empty strings")
    allowed_dirs = tuple(_expand_dir(d) for d in allowed)

    default_dir = document.get("default_output_dir", DEFAULT_OUTPUT_DIR)
    if not isinstance(default_dir, str) or not default_dir.strip():
        raise ConfigLoadError("default_output_dir must be a non-empty string")
    default_dir = _expand_dir(default_dir)
    if not any(_contains(d, default_dir) for d in allowed_dirs):
        raise ConfigLoadError("default_output_dir must be inside an allowed output directory")

    max_concurrent = document.get("max_concurrent_captures", MAX_CONCURRENT_CAPTURES)
    if not isinstance(max_concurrent, int) or isinstance(max_concurrent, bool) or max_concurrent < 1:
        raise ConfigLoadError("max_concurrent_captures must be a positive integer")

    dns_timeout = document.get("dns_timeout_seconds", DEFAULT_DNS_TIMEOUT_SECONDS)
    if not isinstance(dns_timeout, (int, float)) or isinstance(dns_timeout, bool) or dns_timeout <= 0:
        raise ConfigLoadError("dns_timeout_seconds must be a positive number")

    return GuardConfig(
        allow_list=AllowListConfig(allowed_directories=allowed_dirs, default_directory=default_dir),
        max_concurrent_captures=max_concurrent,
        dns_timeout_seconds=float(dns_timeout),
    )


def _expand_dir(directory: str) -> str:
    expanded = os.path.expanduser(directory.strip())
    if not os.path.isabs(expanded):
        raise ConfigLoadError(f"output directories must be absolute: {directory}")
    return os.path.normpath(expanded)


def _contains(directory: str, path: str) -> bool:
    return os.path.commonpath([directory, path]) == directory
