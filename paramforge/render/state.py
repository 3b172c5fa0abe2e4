"""Render states, failures and results observed by orchestrator callers."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class RenderState(str, Enum):
    """Public state of a :class:`~paramforge.render.orchestrator.RenderOrchestrator`."""

    IDLE = "idle"
    PENDING = "pending"
    RENDERING = "rendering"
    CURRENT = "current"
    STALE = "stale"
    ERROR = "error"


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    ENGINE_ERROR = "engine_error"
    CANCELLED = "cancelled"
    BOUNDARY_INIT_FAILED = "boundary_init_failed"


class RenderFailure(Exception):
    """A render request that did not produce an artifact."""

    def __init__(self, kind: FailureKind, message: str = "", request_id: str | None = None) -> None:
        self.kind = kind
        self.message = message or kind.value
        self.request_id = request_id
        super().__init__(f"[{kind.value}] {self.message}")


class RenderResult(BaseModel):
    """A successful render of one resolved snapshot at one tier."""

    request_id: str
    tier: str
    key: str
    artifact: bytes
    stats: dict[str, Any] = Field(default_factory=dict)
    cached: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StateDetail(BaseModel):
    """Payload delivered with every state change."""

    tier: Optional[str] = None
    request_id: Optional[str] = None
    cached: bool = False
    stats: dict[str, Any] = Field(default_factory=dict)
    error_kind: Optional[FailureKind] = None
    message: str = ""

    @classmethod
    def from_failure(cls, failure: RenderFailure, tier: str | None = None) -> "StateDetail":
        return cls(
            tier=tier,
            request_id=failure.request_id,
            error_kind=failure.kind,
            message=failure.message,
        )

    @classmethod
    def from_result(cls, result: RenderResult) -> "StateDetail":
        return cls(
            tier=result.tier,
            request_id=result.request_id,
            cached=result.cached,
            stats=dict(result.stats),
        )
