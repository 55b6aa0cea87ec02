import dataclasses
from datetime import datetime, timezone
from typing import Any


def utc_iso8601() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def filename_timestamp() -> str:
    return utc_iso8601().replace(":", "-").replace(".", "-")


def default_file_name(prefix: str = "screenshot", extension: str = "png") -> str:
    return f"{prefix}-{filename_timestamp()}.{extension}"


@dataclasses.dataclass(frozen=True)
class ToolResponse:
    text: str
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            payload["isError"] = True
        return payload


def ok(text: str) -> ToolResponse:
    return ToolResponse(text=text)


def err(text: str) -> ToolResponse:
    return ToolResponse(text=text, is_error=True)
