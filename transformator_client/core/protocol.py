"""Protocol value types shared by the codec, transport and client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Resolved connection target: a TCP host/port or a unix socket path."""

    host: str | None = None
    port: int | None = None
    path: str | None = None

    def __post_init__(self) -> None:
        tcp = self.host is not None and self.port is not None
        unix = self.path is not None
        if tcp == unix:
            raise ValueError("endpoint needs either host and port or a socket path")

    @property
    def is_unix(self) -> bool:
        return self.path is not None

    def __str__(self) -> str:
        if self.path is not None:
            return f"unix/:{self.path}"
        if self.host and ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(slots=True)
class TransformRequest:
    """One request frame: engine name, input payload and auxiliary data."""

    engine: str
    input: str | bytes
    data: dict[str, Any] = field(default_factory=dict)


class ResponseOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    MALFORMED = "malformed"


@dataclass(slots=True)
class TransformResponse:
    """Decoded response frame. Exactly one outcome holds."""

    outcome: ResponseOutcome
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ResponseOutcome.SUCCESS
