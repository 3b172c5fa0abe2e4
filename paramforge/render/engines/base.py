"""Abstract GeometryEngine boundary and its message types."""

from __future__ import annotations

import abc
from enum import Enum
from typing import Any, AsyncIterator, Optional

from pydantic import BaseModel, Field


class RenderRequest(BaseModel):
    """One computation request sent across the engine boundary."""

    request_id: str
    tier: str
    parameters: dict[str, Any]
    timeout_ms: int
    source_text: str
    auxiliary_files: dict[str, bytes] = Field(default_factory=dict)
    resolution: dict[str, Any] = Field(default_factory=dict)

    def to_message(self) -> dict[str, Any]:
        """Wire form of the request."""
        return {
            "requestId": self.request_id,
            "sourceText": self.source_text,
            "auxiliaryFiles": {name: len(data) for name, data in self.auxiliary_files.items()},
            "parameters": dict(self.parameters),
            "tier": self.tier,
            "timeoutMs": self.timeout_ms,
        }


class EventKind(str, Enum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class EngineEvent(BaseModel):
    """An event emitted by the engine for one request id."""

    request_id: str
    kind: EventKind
    percent: Optional[float] = None
    artifact: Optional[bytes] = None
    stats: dict[str, Any] = Field(default_factory=dict)
    error_kind: Optional[str] = None
    message: str = ""

    @classmethod
    def progress(cls, request_id: str, percent: float) -> "EngineEvent":
        return cls(request_id=request_id, kind=EventKind.PROGRESS, percent=percent)

    @classmethod
    def complete(cls, request_id: str, artifact: bytes, stats: dict[str, Any] | None = None) -> "EngineEvent":
        return cls(request_id=request_id, kind=EventKind.COMPLETE, artifact=artifact, stats=stats or {})

    @classmethod
    def error(cls, request_id: str, message: str, error_kind: str = "engine_error") -> "EngineEvent":
        return cls(request_id=request_id, kind=EventKind.ERROR, error_kind=error_kind, message=message)

    @property
    def terminal(self) -> bool:
        return self.kind is not EventKind.PROGRESS

    def to_message(self) -> dict[str, Any]:
        """Wire form of the event."""
        if self.kind is EventKind.PROGRESS:
            payload: dict[str, Any] = {"percent": self.percent}
        elif self.kind is EventKind.COMPLETE:
            payload = {"size": len(self.artifact or b""), "stats": dict(self.stats)}
        else:
            payload = {"errorKind": self.error_kind, "message": self.message}
        return {"requestId": self.request_id, "kind": self.kind.value, "payload": payload}


class GeometryEngine(abc.ABC):
    """Base class for geometry engine boundaries.

    Implementations may emit events for superseded requests, out of order or
    more than once; the orchestrator correlates strictly by request id.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Engine name."""

    @abc.abstractmethod
    async def initialize(self, assets: dict[str, Any] | None = None) -> bool:
        """Prepare the engine.  Return True when it is ready."""

    @abc.abstractmethod
    def submit(self, request: RenderRequest) -> AsyncIterator[EngineEvent]:
        """Start *request* and yield its events until a terminal one."""

    @abc.abstractmethod
    async def cancel(self, request_id: str) -> None:
        """Best-effort cancellation of *request_id*."""

    async def close(self) -> None:
        """Release engine resources."""
