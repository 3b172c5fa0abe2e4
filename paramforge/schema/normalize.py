"""Normalization pass — make a schema satisfy its invariants.

Runs independently of the parser, so a schema loaded from JSON can be
normalized the same way as a freshly parsed one.  Nothing is ever rejected:
bad defaults are clamped or substituted and a warning is recorded.
"""

from __future__ import annotations

import logging

from paramforge.config import DEFAULT_GROUP_ID, DEFAULT_GROUP_LABEL
from paramforge.schema.models import (
    Constraints,
    Diagnostic,
    DiagnosticKind,
    Group,
    Parameter,
    SchemaModel,
)
from paramforge.schema.scalars import (
    ParameterType,
    coerce_value,
    is_number,
    values_equal,
)

logger = logging.getLogger(__name__)


def normalize_schema(schema: SchemaModel) -> tuple[SchemaModel, list[Diagnostic]]:
    """Resolve groups, repair defaults, check dependencies and sort.

    Parameters
    ----------
    schema:
        Any schema, possibly violating its invariants.

    Returns
    -------
    tuple[SchemaModel, list[Diagnostic]]
        The normalized schema and the validation warnings recorded.
    """
    warnings: list[Diagnostic] = []
    groups = list(schema.groups)
    group_ids = {g.id for g in groups}

    params: list[Parameter] = []
    for param in schema.parameters:
        if param.group not in group_ids:
            warnings.append(Diagnostic(
                kind=DiagnosticKind.UNRESOLVED_GROUP,
                message=(
                    f"Parameter '{param.id}' references unknown group "
                    f"'{param.group}'; moved to '{DEFAULT_GROUP_ID}'."
                ),
                line_number=param.line_number,
                parameter=param.id,
            ))
            param = param.model_copy(update={"group": DEFAULT_GROUP_ID})
        params.append(_normalize_default(param, warnings))

    if DEFAULT_GROUP_ID not in group_ids and (
        not groups or any(p.group == DEFAULT_GROUP_ID for p in params)
    ):
        groups.insert(0, Group(id=DEFAULT_GROUP_ID, label=DEFAULT_GROUP_LABEL, order=0))

    params = _check_dependencies(params, warnings)

    # list.sort is stable, so equal orders keep source order
    groups.sort(key=lambda g: g.order)
    rank = {g.id: index for index, g in enumerate(groups)}
    params.sort(key=lambda p: (rank[p.group], p.order))

    for warning in warnings:
        logger.debug("Normalization: %s", warning)

    normalized = SchemaModel(groups=groups, parameters=params, libraries=list(schema.libraries))
    return normalized, warnings


def _normalize_default(param: Parameter, warnings: list[Diagnostic]) -> Parameter:
    if param.type.is_numeric:
        return _normalize_numeric(param, warnings)
    if param.type.is_enum:
        return _normalize_enum(param, warnings)

    try:
        default = coerce_value(param.default, param.type)
    except ValueError:
        default = False if param.type is ParameterType.BOOLEAN else str(param.default)
        _substituted(param, default, warnings)
    if default == param.default and type(default) is type(param.default):
        return param
    return param.model_copy(update={"default": default})


def _normalize_numeric(param: Parameter, warnings: list[Diagnostic]) -> Parameter:
    c = param.constraints
    lo, hi = c.minimum, c.maximum
    if lo is not None and hi is not None and lo > hi:
        warnings.append(Diagnostic(
            kind=DiagnosticKind.INVERTED_RANGE,
            message=f"Parameter '{param.id}' has minimum {lo} above maximum {hi}; swapped.",
            line_number=param.line_number,
            parameter=param.id,
        ))
        lo, hi = hi, lo
        c = c.model_copy(update={"minimum": lo, "maximum": hi})

    default = param.default
    if not is_number(default):
        try:
            default = coerce_value(default, param.type)
        except ValueError:
            default = lo if lo is not None else 0
            _substituted(param, default, warnings)

    if param.type is ParameterType.INTEGER and not float(default).is_integer():
        rounded = int(round(default))
        _substituted(param, rounded, warnings)
        default = rounded

    clamped = default
    if lo is not None and clamped < lo:
        clamped = lo
    if hi is not None and clamped > hi:
        clamped = hi
    if clamped != default:
        warnings.append(Diagnostic(
            kind=DiagnosticKind.CLAMPED_DEFAULT,
            message=(
                f"Default {default} of '{param.id}' is outside "
                f"[{lo}, {hi}]; clamped to {clamped}."
            ),
            line_number=param.line_number,
            parameter=param.id,
        ))
        default = clamped

    if param.type is ParameterType.INTEGER and float(default).is_integer():
        default = int(default)

    return param.model_copy(update={"default": default, "constraints": c})


def _normalize_enum(param: Parameter, warnings: list[Diagnostic]) -> Parameter:
    allowed = list(param.constraints.allowed_values or [])
    if not allowed:
        default = coerce_value(param.default, ParameterType.STRING)
        warnings.append(Diagnostic(
            kind=DiagnosticKind.SUBSTITUTED_DEFAULT,
            message=f"Enum parameter '{param.id}' has no allowed values; treated as a string.",
            line_number=param.line_number,
            parameter=param.id,
        ))
        return param.model_copy(update={
            "type": ParameterType.STRING,
            "default": default,
            "constraints": Constraints(),
        })

    for candidate in allowed:
        if candidate == param.default and type(candidate) is type(param.default):
            return param
    for candidate in allowed:
        if values_equal(candidate, param.default):
            return param.model_copy(update={"default": candidate})

    _substituted(param, allowed[0], warnings)
    return param.model_copy(update={"default": allowed[0]})


def _substituted(param: Parameter, value: object, warnings: list[Diagnostic]) -> None:
    warnings.append(Diagnostic(
        kind=DiagnosticKind.SUBSTITUTED_DEFAULT,
        message=f"Default {param.default!r} of '{param.id}' is invalid; using {value!r}.",
        line_number=param.line_number,
        parameter=param.id,
    ))


def _check_dependencies(params: list[Parameter], warnings: list[Diagnostic]) -> list[Parameter]:
    known = {p.id for p in params}
    checked: list[Parameter] = []
    for param in params:
        if param.dependency is not None:
            missing = sorted(param.dependency.references() - known)
            if missing:
                warnings.append(Diagnostic(
                    kind=DiagnosticKind.UNRESOLVED_DEPENDENCY,
                    message=(
                        f"Dependency of '{param.id}' references unknown "
                        f"parameter(s) {', '.join(missing)}; dependency dropped."
                    ),
                    line_number=param.line_number,
                    parameter=param.id,
                ))
                param = param.model_copy(update={"dependency": None})
        checked.append(param)
    return checked
