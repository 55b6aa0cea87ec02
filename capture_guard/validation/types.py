"""Result types shared by the address and path validators."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResolvedAddress:
    address: str
    family: int


@dataclass(frozen=True)
class BlockDecision:
    blocked: bool
    reason: str | None = None


ALLOWED = BlockDecision(blocked=False)


@dataclass(frozen=True)
class AddressValidationResult:
    valid: bool
    error: str | None = None
    resolved_address: str | None = None
    hostname: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class PathValidationResult:
    valid: bool
    resolved_path: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
