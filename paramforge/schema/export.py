"""Schema export — JSON Schema documents and annotated source.

:func:`to_source` writes a schema back as annotated design source; parsing
that text again yields the same ids, types, defaults, constraints, groups
and orders.  :func:`to_json_schema` produces a draft-07 JSON Schema with
``x-*`` extensions for the form layer.
"""

from __future__ import annotations

from typing import Any

from paramforge.schema.models import Combination, Condition, Dependency, Parameter, SchemaModel, UIHint
from paramforge.schema.scalars import ParameterType, Scalar, literal_number

_JSON_TYPES = {
    ParameterType.INTEGER: "integer",
    ParameterType.NUMBER: "number",
    ParameterType.BOOLEAN: "boolean",
    ParameterType.STRING: "string",
    ParameterType.ENUM_STRING: "string",
    ParameterType.ENUM_NUMBER: "number",
}


def quote_string(value: str) -> str:
    """Render *value* as a double-quoted source literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
    )
    return f'"{escaped}"'


def literal(value: Scalar) -> str:
    """Render a scalar as a source literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return literal_number(value)
    return quote_string(str(value))


# ---------------------------------------------------------------------------
# Annotated source
# ---------------------------------------------------------------------------


def to_source(schema: SchemaModel) -> str:
    """Serialize *schema* as annotated design source."""
    lines: list[str] = []
    for group in schema.groups:
        options = [f"id={group.id}", f"order={group.order}"]
        if group.collapsed:
            options.append("collapsed")
        lines.append(f"/* [{group.label}] {' '.join(options)} */")

        for param in schema.parameters_in_group(group.id):
            if param.dependency is not None:
                lines.append(f"// @depends {render_dependency(param.dependency)}")
            lines.append(f"// @order {param.order}")
            if param.unit:
                lines.append(f"// @unit {param.unit}")
            if param.hidden and not group.hidden:
                lines.append("// @hidden")
            if param.help:
                lines.append(f"// @help {param.help}")

            statement = f"{param.id} = {literal(param.default)};"
            hint = _render_hint(param)
            lines.append(f"{statement} // {hint}" if hint else statement)
        lines.append("")
    return "\n".join(lines)


def render_dependency(dependency: Dependency) -> str:
    """Render a dependency tree in ``@depends`` syntax."""
    if isinstance(dependency, Condition):
        return f"{dependency.parameter} {dependency.operator} {literal(dependency.value)}"
    joiner = " && " if dependency.kind == "all" else " || "
    parts = []
    for term in dependency.terms:
        text = render_dependency(term)
        parts.append(f"({text})" if isinstance(term, Combination) else text)
    return joiner.join(parts)


def _render_hint(param: Parameter) -> str:
    c = param.constraints
    if param.ui_hint is UIHint.COLOR:
        return "[color]"
    if param.ui_hint is UIHint.FILE:
        if param.accepted_extensions:
            return f"[file:{','.join(param.accepted_extensions)}]"
        return "[file]"
    if param.type.is_numeric and c.minimum is not None and c.maximum is not None:
        fields = [c.minimum] + ([c.step] if c.step is not None else []) + [c.maximum]
        return "[" + ":".join(literal_number(f) for f in fields) + "]"
    if param.type.is_enum and c.allowed_values:
        items = []
        for index, value in enumerate(c.allowed_values):
            item = literal(value)
            if c.labels:
                item = f"{item}:{c.labels[index]}"
            items.append(item)
        return "[" + ", ".join(items) + "]"
    return ""


# ---------------------------------------------------------------------------
# JSON Schema
# ---------------------------------------------------------------------------


def to_json_schema(schema: SchemaModel, title: str = "Parameters", description: str = "") -> dict[str, Any]:
    """Build a draft-07 JSON Schema document for *schema*.

    Parameters
    ----------
    schema:
        A normalized schema.
    title:
        Document title, usually the source file stem.
    description:
        Optional document description.
    """
    document: dict[str, Any] = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": title,
        "description": description or f"Parameters for {title}",
        "type": "object",
        "properties": {},
        "x-groups": [
            {
                "id": g.id,
                "label": g.label,
                "order": g.order,
                "collapsed": g.collapsed,
                "hidden": g.hidden,
            }
            for g in schema.groups
        ],
    }
    if schema.libraries:
        document["x-libraries"] = list(schema.libraries)

    for param in schema.parameters:
        document["properties"][param.id] = _json_property(param)
    return document


def _json_property(param: Parameter) -> dict[str, Any]:
    c = param.constraints
    prop: dict[str, Any] = {
        "type": _JSON_TYPES[param.type],
        "title": param.id,
        "description": param.help,
        "default": param.default,
        "x-group": param.group,
        "x-order": param.order,
        "x-hint": param.ui_hint.value,
    }
    if param.type.is_numeric:
        if c.minimum is not None:
            prop["minimum"] = c.minimum
        if c.maximum is not None:
            prop["maximum"] = c.maximum
        if c.step is not None:
            prop["x-step"] = c.step
    if param.type.is_enum and c.allowed_values:
        prop["enum"] = list(c.allowed_values)
        if c.labels:
            prop["x-labels"] = list(c.labels)
    if param.accepted_extensions:
        prop["x-accept"] = list(param.accepted_extensions)
    if param.unit:
        prop["x-unit"] = param.unit
    if param.hidden:
        prop["x-hidden"] = True
    if param.dependency is not None:
        prop["x-depends"] = param.dependency.model_dump(by_alias=True)
    return prop
