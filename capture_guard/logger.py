"""Append-only event log for guard decisions.

Each line reads ``<utc> [component] event key=value ...``. Field values are
redacted and flattened to one line; values with spaces are quoted.
"""

import os
import re
from datetime import datetime, timezone


LOG_PATH_ENV = "CAPTURE_GUARD_LOG_PATH"
DEFAULT_LOG_PATH = "logs/capture-guard.log"

_REDACTIONS = (
    (re.compile(r"(?i)\b(https?://)[^/\s:@]+:[^/\s@]+@"), r"\1[REDACTED]@"),
    (re.compile(r"(?i)authorization\s*[:=]\s*[^\s,;]+"), "Authorization=[REDACTED]"),
    (re.compile(r"(?i)\b(token|bearer)\s+[A-Za-z0-9._\-]+"), r"\1 [REDACTED]"),
)


def _redact(value) -> str:
    text = str(value)
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return re.sub(r"\s+", " ", text).strip()


def _field(key: str, value) -> str:
    text = _redact("-" if value is None else value)
    if not text or " " in text or '"' in text:
        text = '"' + text.replace('"', '\\"') + '"'
    return f"{key}={text}"


def format_event(component: str, event: str, **fields) -> str:
    parts = [
        datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        f"[{_redact(component)}]",
        _redact(event),
    ]
    parts.extend(_field(key, value) for key, value in fields.items())
    return " ".join(parts)


def log_event(component: str, event: str, **fields) -> None:
    path = os.environ.get(LOG_PATH_ENV, DEFAULT_LOG_PATH)
    line = format_event(component, event, **fields)
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        return
