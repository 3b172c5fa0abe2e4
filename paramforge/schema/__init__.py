"""Parameter schema — data model, normalization and export."""

from paramforge.schema.export import to_json_schema, to_source
from paramforge.schema.models import (
    Combination,
    Condition,
    Constraints,
    Diagnostic,
    DiagnosticKind,
    Group,
    Parameter,
    SchemaModel,
    UIHint,
)
from paramforge.schema.normalize import normalize_schema
from paramforge.schema.scalars import ParameterType, Scalar, coerce_value, value_matches_type

__all__ = [
    "Combination",
    "Condition",
    "Constraints",
    "Diagnostic",
    "DiagnosticKind",
    "Group",
    "Parameter",
    "ParameterType",
    "Scalar",
    "SchemaModel",
    "UIHint",
    "coerce_value",
    "normalize_schema",
    "to_json_schema",
    "to_source",
    "value_matches_type",
]
