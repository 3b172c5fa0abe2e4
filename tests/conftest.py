"""Shared fixtures: a scripted fake geometry engine and a state recorder."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from paramforge.render.engines.base import EngineEvent, GeometryEngine, RenderRequest
from paramforge.render.state import RenderState, StateDetail

BOX_SOURCE = """\
/* [Dimensions] */
// Outer width of the box
width = 50; // [10:100]
depth = 40; // [10:100]
height = 20; // [5:1:60]

/* [Style] */
shape = "round"; // [round, square, hex]
// @depends shape == "round"
$fn = 64; // [12:128]
lid = true;

cube([width, depth, height]);
"""


class FakeEngine(GeometryEngine):
    """Geometry engine whose behaviour per submission is scripted.

    Each entry of *script* applies to one ``submit`` call, in order; once the
    script runs out every call behaves as ``"ok"``.

    ``ok``         progress, then complete after *delay* seconds
    ``error``      progress, then an engine error
    ``hang``       progress, then never finishes
    ``foreign``    an event for another request id before completing
    ``duplicate``  complete twice
    ``silent``     finish without a terminal event
    """

    def __init__(self, delay: float = 0.01, script: list[str] | None = None, ready: bool = True) -> None:
        self.delay = delay
        self.script = list(script or [])
        self.ready = ready
        self.init_calls = 0
        self.submitted: list[RenderRequest] = []
        self.cancelled: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def initialize(self, assets: dict[str, Any] | None = None) -> bool:
        self.init_calls += 1
        return self.ready

    async def submit(self, request: RenderRequest):
        self.submitted.append(request)
        behaviour = self.script.pop(0) if self.script else "ok"
        rid = request.request_id

        yield EngineEvent.progress(rid, 10)
        if behaviour == "hang":
            await asyncio.sleep(3600)
        await asyncio.sleep(self.delay)

        if behaviour == "error":
            yield EngineEvent.error(rid, "CGAL error: non-manifold")
            return
        if behaviour == "silent":
            return
        if behaviour == "foreign":
            yield EngineEvent.complete("preview-999", b"not mine")

        artifact = json.dumps(request.parameters, sort_keys=True).encode("utf-8")
        yield EngineEvent.complete(rid, artifact, {"triangles": 12})
        if behaviour == "duplicate":
            yield EngineEvent.complete(rid, b"second copy")

    async def cancel(self, request_id: str) -> None:
        self.cancelled.append(request_id)

    async def close(self) -> None:
        self.closed = True


class StateRecorder:
    """Collects ``(state, detail)`` pairs from ``on_state_changed``."""

    def __init__(self) -> None:
        self.events: list[tuple[RenderState, StateDetail]] = []

    def __call__(self, state: RenderState, detail: StateDetail) -> None:
        self.events.append((state, detail))

    @property
    def states(self) -> list[RenderState]:
        return [state for state, _ in self.events]

    @property
    def last(self) -> StateDetail:
        return self.events[-1][1]


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def recorder() -> StateRecorder:
    return StateRecorder()
