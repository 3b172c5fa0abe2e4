"""Tests for schema export: annotated source and JSON Schema."""

from __future__ import annotations

import json

from paramforge.parser import parse_source
from paramforge.schema import Condition, ParameterType, to_json_schema, to_source
from paramforge.schema.export import literal, render_dependency

RICH_SOURCE = r"""
include <BOSL2/std.scad>

/* [Size] */
width = 50; // [10:100] Outer width
// @unit mm
wall = 1.5; // [0.5:0.5:5]
teeth = 12; // [8:Few, 12:Some, 16:Many]

/* [Style] collapsed */
shape = "round"; // [round, square, hex]
// @depends shape == "round" || shape == "hex"
$fn = 64; // [12:128]
label = "Box \"A\""; // Text on lid
tint = "#ff8800"; // [color]
logo = ""; // [file:svg]
show = "yes"; // [yes, no]
lid = true;

/* [Hidden] */
secret = 7;
"""


def _comparable(schema):
    groups = [g.model_dump(exclude={"line_number"}) for g in schema.groups]
    params = [p.model_dump(exclude={"line_number"}) for p in schema.parameters]
    return groups, params


# ---------------------------------------------------------------------------
# Annotated source
# ---------------------------------------------------------------------------


class TestToSource:
    def test_round_trip_preserves_schema(self) -> None:
        original, diagnostics = parse_source(RICH_SOURCE)
        assert diagnostics == []

        text = to_source(original)
        reparsed, diagnostics = parse_source(text)

        assert diagnostics == []
        assert _comparable(reparsed) == _comparable(original)

    def test_round_trip_keeps_value_types(self) -> None:
        original, _ = parse_source(RICH_SOURCE)
        reparsed, _ = parse_source(to_source(original))
        for before in original.parameters:
            after = reparsed.get_parameter(before.id)
            assert type(after.default) is type(before.default), before.id

    def test_group_header_options(self) -> None:
        schema, _ = parse_source(RICH_SOURCE)
        text = to_source(schema)
        assert "/* [Size] id=size order=0 */" in text
        assert "/* [Style] id=style order=1 collapsed */" in text
        assert "wall = 1.5; // [0.5:0.5:5]" in text

    def test_literals(self) -> None:
        assert literal(True) == "true"
        assert literal(5.0) == "5.0"
        assert literal('say "hi"') == '"say \\"hi\\""'

    def test_render_dependency(self) -> None:
        schema, _ = parse_source(RICH_SOURCE)
        dep = schema.get_parameter("$fn").dependency
        assert render_dependency(dep) == 'shape == "round" || shape == "hex"'
        assert render_dependency(Condition(parameter="n", operator="!=", value=3)) == "n != 3"


# ---------------------------------------------------------------------------
# JSON Schema
# ---------------------------------------------------------------------------


class TestToJsonSchema:
    def test_document_shape(self) -> None:
        schema, _ = parse_source(RICH_SOURCE)
        doc = to_json_schema(schema, title="box")

        assert doc["$schema"] == "http://json-schema.org/draft-07/schema#"
        assert doc["title"] == "box"
        assert doc["type"] == "object"
        assert [g["id"] for g in doc["x-groups"]] == ["size", "style", "hidden"]
        assert doc["x-libraries"] == ["BOSL2"]
        json.dumps(doc)

    def test_numeric_property(self) -> None:
        schema, _ = parse_source(RICH_SOURCE)
        width = to_json_schema(schema)["properties"]["width"]

        assert width["type"] == "integer"
        assert width["minimum"] == 10
        assert width["maximum"] == 100
        assert width["x-step"] == 1
        assert width["x-group"] == "size"
        assert width["x-order"] == 0
        assert width["x-hint"] == "slider"
        assert width["description"] == "Outer width"

    def test_enum_and_extension_properties(self) -> None:
        schema, _ = parse_source(RICH_SOURCE)
        props = to_json_schema(schema)["properties"]

        assert props["shape"]["enum"] == ["round", "square", "hex"]
        assert props["teeth"]["type"] == "number"
        assert props["teeth"]["x-labels"] == ["Few", "Some", "Many"]
        assert props["wall"]["x-unit"] == "mm"
        assert props["logo"]["x-accept"] == ["svg"]
        assert props["secret"]["x-hidden"] is True
        assert props["$fn"]["x-depends"]["kind"] == "any"
        assert props["lid"]["type"] == "boolean"
        assert schema.get_parameter("show").type is ParameterType.ENUM_STRING
