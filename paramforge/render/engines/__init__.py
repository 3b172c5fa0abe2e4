"""Geometry engine boundaries — abstract interface and the OpenSCAD subprocess engine."""

from paramforge.render.engines.base import EngineEvent, EventKind, GeometryEngine, RenderRequest
from paramforge.render.engines.openscad import EngineUnavailableError, OpenSCADEngine

__all__ = [
    "EngineEvent",
    "EngineUnavailableError",
    "EventKind",
    "GeometryEngine",
    "OpenSCADEngine",
    "RenderRequest",
]
