"""Tests for the schema model, scalar helpers and normalization."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from paramforge.schema import (
    Combination,
    Condition,
    Constraints,
    DiagnosticKind,
    Group,
    Parameter,
    ParameterType,
    SchemaModel,
    coerce_value,
    normalize_schema,
    value_matches_type,
)
from paramforge.schema.models import Dependency
from paramforge.schema.scalars import canonical_number, literal_number, parse_number, values_equal


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


class TestScalars:
    def test_parse_number(self) -> None:
        assert parse_number("42") == 42 and isinstance(parse_number("42"), int)
        assert parse_number("-1.5") == -1.5
        assert parse_number("1e3") == 1000.0
        assert parse_number("abc") is None
        assert parse_number("") is None

    def test_bool_is_never_a_number(self) -> None:
        assert not value_matches_type(True, ParameterType.INTEGER)
        assert not value_matches_type(False, ParameterType.NUMBER)
        assert value_matches_type(True, ParameterType.BOOLEAN)
        assert value_matches_type(3.0, ParameterType.INTEGER)
        assert not value_matches_type(3.5, ParameterType.INTEGER)
        assert value_matches_type("x", ParameterType.ENUM_STRING)

    def test_coerce_form_values(self) -> None:
        assert coerce_value("50", ParameterType.INTEGER) == 50
        assert coerce_value("2.5", ParameterType.NUMBER) == 2.5
        assert coerce_value("TRUE", ParameterType.BOOLEAN) is True
        assert coerce_value(12, ParameterType.STRING) == "12"
        assert coerce_value(4.0, ParameterType.ENUM_STRING) == "4"

    @pytest.mark.parametrize(
        "value, ptype",
        [("2.5", ParameterType.INTEGER), ("wide", ParameterType.NUMBER), ("maybe", ParameterType.BOOLEAN)],
    )
    def test_coerce_rejects(self, value, ptype) -> None:
        with pytest.raises(ValueError):
            coerce_value(value, ptype)

    def test_values_equal(self) -> None:
        assert values_equal(4, 4.0)
        assert values_equal("4", 4)
        assert values_equal(True, "true")
        assert not values_equal(True, 1)
        assert not values_equal("a", "b")

    def test_number_formatting(self) -> None:
        assert canonical_number(50.0) == "50"
        assert canonical_number(2.5) == "2.5"
        assert literal_number(50.0) == "50.0"
        assert literal_number(7) == "7"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


def _schema() -> SchemaModel:
    return SchemaModel(
        groups=[Group(id="size", label="Size")],
        parameters=[
            Parameter(
                id="width", type=ParameterType.INTEGER, default=50, group="size",
                constraints=Constraints(minimum=10, maximum=100, step=1),
            ),
            Parameter(id="rounded", type=ParameterType.BOOLEAN, default=False, group="size"),
            Parameter(
                id="radius", type=ParameterType.NUMBER, default=2.0, group="size",
                dependency=Condition(parameter="rounded", value=True),
            ),
        ],
    )


class TestModels:
    def test_schema_is_frozen(self) -> None:
        schema = _schema()
        with pytest.raises(ValidationError):
            schema.parameters[0].default = 5

    def test_defaults_are_fresh(self) -> None:
        schema = _schema()
        values = schema.defaults()
        values["width"] = 99
        assert schema.defaults()["width"] == 50

    def test_resolve_values_coerces_and_passes_unknowns(self) -> None:
        resolved = _schema().resolve_values({"width": "60", "rounded": "true", "$fn": 32})
        assert resolved == {"width": 60, "rounded": True, "radius": 2.0, "$fn": 32}

    def test_resolve_values_keeps_uncoercible_value(self) -> None:
        resolved = _schema().resolve_values({"width": "wide"})
        assert resolved["width"] == "wide"

    def test_is_active(self) -> None:
        schema = _schema()
        assert not schema.is_active("radius", {})
        assert schema.is_active("radius", {"rounded": True})
        assert schema.is_active("width", {})
        assert not schema.is_active("missing", {})

    def test_not_equal_condition(self) -> None:
        cond = Condition(parameter="shape", operator="!=", value="hex")
        assert cond.evaluate({"shape": "round"})
        assert not cond.evaluate({"shape": "hex"})
        assert not cond.evaluate({})

    def test_dependency_round_trips_through_json(self) -> None:
        dep = Combination(kind="any", terms=[
            Condition(parameter="a", value=1),
            Combination(kind="all", terms=[Condition(parameter="b", value="x")]),
        ])
        adapter = TypeAdapter(Dependency)
        restored = adapter.validate_python(dep.model_dump(by_alias=True))
        assert restored == dep
        assert restored.references() == {"a", "b"}

    def test_diagnostic_str(self) -> None:
        schema, diagnostics = normalize_schema(SchemaModel(parameters=[
            Parameter(id="w", type=ParameterType.INTEGER, default=500,
                      constraints=Constraints(minimum=0, maximum=10), line_number=3),
        ]))
        assert str(diagnostics[0]).startswith("line 3: [clamped_default]")
        assert diagnostics[0].kind.is_validation_warning


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


class TestNormalize:
    def test_unresolved_group_moves_to_default(self) -> None:
        schema, warnings = normalize_schema(SchemaModel(
            groups=[Group(id="a", label="A", order=1)],
            parameters=[Parameter(id="x", type=ParameterType.STRING, default="", group="nowhere")],
        ))
        assert [w.kind for w in warnings] == [DiagnosticKind.UNRESOLVED_GROUP]
        assert schema.get_parameter("x").group == "general"
        assert [g.id for g in schema.groups] == ["general", "a"]

    def test_empty_schema_gets_default_group(self) -> None:
        schema, warnings = normalize_schema(SchemaModel())
        assert [g.id for g in schema.groups] == ["general"]
        assert warnings == []

    def test_numeric_default_invariants(self) -> None:
        schema, _ = normalize_schema(SchemaModel(parameters=[
            Parameter(id="lo", type=ParameterType.NUMBER, default=-5.0,
                      constraints=Constraints(minimum=0, maximum=10)),
            Parameter(id="text", type=ParameterType.INTEGER, default="abc",
                      constraints=Constraints(minimum=3, maximum=10)),
            Parameter(id="frac", type=ParameterType.INTEGER, default=2.6),
        ]))
        assert schema.get_parameter("lo").default == 0
        assert schema.get_parameter("text").default == 3
        assert schema.get_parameter("frac").default == 3
        for param in schema.parameters:
            c = param.constraints
            if c.minimum is not None:
                assert c.minimum <= param.default <= c.maximum

    def test_enum_default_matched_by_value(self) -> None:
        schema, warnings = normalize_schema(SchemaModel(parameters=[
            Parameter(id="n", type=ParameterType.ENUM_NUMBER, default=8.0,
                      constraints=Constraints(allowed_values=[4, 8, 16])),
        ]))
        assert schema.get_parameter("n").default == 8
        assert warnings == []

    def test_empty_enum_becomes_string(self) -> None:
        schema, warnings = normalize_schema(SchemaModel(parameters=[
            Parameter(id="e", type=ParameterType.ENUM_STRING, default="x",
                      constraints=Constraints(allowed_values=[])),
        ]))
        assert schema.get_parameter("e").type is ParameterType.STRING
        assert [w.kind for w in warnings] == [DiagnosticKind.SUBSTITUTED_DEFAULT]

    def test_boolean_default_coerced(self) -> None:
        schema, _ = normalize_schema(SchemaModel(parameters=[
            Parameter(id="b", type=ParameterType.BOOLEAN, default="true"),
        ]))
        assert schema.get_parameter("b").default is True

    def test_sorting_is_stable(self) -> None:
        schema, _ = normalize_schema(SchemaModel(
            groups=[Group(id="b", label="B", order=2), Group(id="a", label="A", order=1)],
            parameters=[
                Parameter(id="p1", type=ParameterType.INTEGER, default=0, group="b", order=0),
                Parameter(id="p2", type=ParameterType.INTEGER, default=0, group="a", order=5),
                Parameter(id="p3", type=ParameterType.INTEGER, default=0, group="a", order=5),
                Parameter(id="p4", type=ParameterType.INTEGER, default=0, group="a", order=1),
            ],
        ))
        assert [g.id for g in schema.groups] == ["a", "b"]
        assert [p.id for p in schema.parameters] == ["p4", "p2", "p3", "p1"]

    def test_normalize_is_idempotent(self) -> None:
        first, _ = normalize_schema(_schema())
        second, warnings = normalize_schema(first)
        assert second == first
        assert warnings == []
