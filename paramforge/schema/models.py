"""SchemaModel — the normalized, UI-ready parameter schema of a design document.

A schema is built once per document and never mutated afterwards.  Current
parameter *values* live outside it, in a plain ``dict`` owned by the caller,
and are resolved against the schema with :meth:`SchemaModel.resolve_values`.

Attributes are snake_case; ``model_dump(by_alias=True)`` produces the
camelCase document (``allowedValues``, ``lineNumber``, ...).
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from paramforge.config import DEFAULT_GROUP_ID
from paramforge.schema.scalars import ParameterType, Scalar, coerce_value, values_equal

logger = logging.getLogger(__name__)


class _SchemaBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class UIHint(str, Enum):
    """Presentation hint for form layers.  Never changes type or default."""

    INPUT = "input"
    SLIDER = "slider"
    SELECT = "select"
    TOGGLE = "toggle"
    CHECKBOX = "checkbox"
    COLOR = "color"
    FILE = "file"


class DiagnosticKind(str, Enum):
    """Kinds of non-fatal problems recorded during extraction."""

    # Parse diagnostics
    MALFORMED_HINT = "malformed_hint"
    MIXED_ENUM = "mixed_enum"
    DUPLICATE_PARAMETER = "duplicate_parameter"
    UNTERMINATED_STRING = "unterminated_string"
    MALFORMED_DIRECTIVE = "malformed_directive"
    ORPHANED_DIRECTIVE = "orphaned_directive"
    # Validation warnings
    UNRESOLVED_GROUP = "unresolved_group"
    UNRESOLVED_DEPENDENCY = "unresolved_dependency"
    INVERTED_RANGE = "inverted_range"
    CLAMPED_DEFAULT = "clamped_default"
    SUBSTITUTED_DEFAULT = "substituted_default"

    @property
    def is_validation_warning(self) -> bool:
        return self in _VALIDATION_KINDS


_VALIDATION_KINDS = frozenset({
    DiagnosticKind.UNRESOLVED_GROUP,
    DiagnosticKind.UNRESOLVED_DEPENDENCY,
    DiagnosticKind.INVERTED_RANGE,
    DiagnosticKind.CLAMPED_DEFAULT,
    DiagnosticKind.SUBSTITUTED_DEFAULT,
})


class Diagnostic(_SchemaBase):
    """A malformed-but-recovered annotation or a normalization warning."""

    kind: DiagnosticKind
    message: str
    line_number: Optional[int] = None
    parameter: Optional[str] = None

    def __str__(self) -> str:
        where = f"line {self.line_number}: " if self.line_number is not None else ""
        return f"{where}[{self.kind.value}] {self.message}"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


class Condition(_SchemaBase):
    """Equality test against another parameter's current value."""

    kind: Literal["condition"] = "condition"
    parameter: str
    operator: Literal["==", "!="] = "=="
    value: Scalar

    def evaluate(self, values: dict[str, Any]) -> bool:
        if self.parameter not in values:
            return False
        equal = values_equal(values[self.parameter], self.value)
        return equal if self.operator == "==" else not equal

    def references(self) -> set[str]:
        return {self.parameter}


class Combination(_SchemaBase):
    """Conjunction (``all``) or disjunction (``any``) of dependency terms."""

    kind: Literal["all", "any"]
    terms: list[Dependency]

    def evaluate(self, values: dict[str, Any]) -> bool:
        results = (term.evaluate(values) for term in self.terms)
        return all(results) if self.kind == "all" else any(results)

    def references(self) -> set[str]:
        refs: set[str] = set()
        for term in self.terms:
            refs |= term.references()
        return refs


Dependency = Annotated[Union[Condition, Combination], Field(discriminator="kind")]

Combination.model_rebuild()


# ---------------------------------------------------------------------------
# Groups and parameters
# ---------------------------------------------------------------------------


class Group(_SchemaBase):
    """A named section of parameters."""

    id: str
    label: str
    order: int = 0
    collapsed: bool = False
    hidden: bool = False
    line_number: Optional[int] = None


class Constraints(_SchemaBase):
    """Type-dependent constraints.

    Numeric types use ``minimum``/``maximum``/``step``; enum types use
    ``allowed_values`` and, when the hint labels its choices, ``labels``
    (parallel to ``allowed_values``).
    """

    minimum: Optional[Union[int, float]] = None
    maximum: Optional[Union[int, float]] = None
    step: Optional[Union[int, float]] = None
    allowed_values: Optional[list[Union[int, float, str]]] = None
    labels: Optional[list[str]] = None


class Parameter(_SchemaBase):
    """One user-adjustable parameter of the document."""

    id: str
    type: ParameterType
    default: Scalar
    constraints: Constraints = Field(default_factory=Constraints)
    group: str = DEFAULT_GROUP_ID
    order: int = 0
    unit: Optional[str] = None
    help: str = ""
    hidden: bool = False
    dependency: Optional[Dependency] = None
    ui_hint: UIHint = UIHint.INPUT
    accepted_extensions: list[str] = Field(default_factory=list)
    line_number: Optional[int] = None

    def is_active(self, values: dict[str, Any]) -> bool:
        """Evaluate the dependency against *values*; no dependency means active."""
        if self.dependency is None:
            return True
        return self.dependency.evaluate(values)


class SchemaModel(_SchemaBase):
    """Immutable parameter schema of one document."""

    groups: list[Group] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    libraries: list[str] = Field(default_factory=list)

    def get_parameter(self, parameter_id: str) -> Parameter | None:
        for param in self.parameters:
            if param.id == parameter_id:
                return param
        return None

    def get_group(self, group_id: str) -> Group | None:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def parameters_in_group(self, group_id: str) -> list[Parameter]:
        return [p for p in self.parameters if p.group == group_id]

    def defaults(self) -> dict[str, Scalar]:
        """Return a fresh ``{id: default}`` mapping."""
        return {p.id: p.default for p in self.parameters}

    def is_active(self, parameter_id: str, values: dict[str, Any]) -> bool:
        param = self.get_parameter(parameter_id)
        if param is None:
            return False
        return param.is_active({**self.defaults(), **values})

    def resolve_values(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        """Merge *snapshot* over the defaults and coerce values to their types.

        Unknown keys are passed through unchanged (special variables such as
        ``$fn`` may be set without being declared).  A value that cannot be
        coerced is kept as given and logged.
        """
        resolved: dict[str, Any] = self.defaults()
        for key, value in snapshot.items():
            param = self.get_parameter(key)
            if param is None:
                resolved[key] = value
                continue
            try:
                resolved[key] = coerce_value(value, param.type)
            except ValueError:
                logger.warning(
                    "Value %r for parameter '%s' does not match type %s",
                    value, key, param.type.value,
                )
                resolved[key] = value
        return resolved
