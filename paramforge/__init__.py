"""paramforge — annotation-driven parameter schemas and render orchestration for OpenSCAD designs."""

__version__ = "0.4.0"

from paramforge.parser import AnnotationParser, SourceDecodeError, parse_source
from paramforge.render import (
    FailureKind,
    PreviewCache,
    QualityTier,
    RenderFailure,
    RenderOrchestrator,
    RenderResult,
    RenderState,
    StateDetail,
)
from paramforge.render.engines import EngineEvent, GeometryEngine, OpenSCADEngine, RenderRequest
from paramforge.schema import (
    Diagnostic,
    DiagnosticKind,
    Group,
    Parameter,
    ParameterType,
    SchemaModel,
    to_json_schema,
    to_source,
)
from paramforge.settings import Settings, load_settings

__all__ = [
    "__version__",
    # Extraction
    "AnnotationParser",
    "Diagnostic",
    "DiagnosticKind",
    "Group",
    "Parameter",
    "ParameterType",
    "SchemaModel",
    "SourceDecodeError",
    "parse_source",
    "to_json_schema",
    "to_source",
    # Rendering
    "EngineEvent",
    "FailureKind",
    "GeometryEngine",
    "OpenSCADEngine",
    "PreviewCache",
    "QualityTier",
    "RenderFailure",
    "RenderOrchestrator",
    "RenderRequest",
    "RenderResult",
    "RenderState",
    "StateDetail",
    # Configuration
    "Settings",
    "load_settings",
]
