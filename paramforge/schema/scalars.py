"""Scalar parameter values and their type tags.

A parameter value is always one of ``bool``, ``int``, ``float`` or ``str``.
:class:`ParameterType` is the tag that says which of those a parameter holds;
the helpers here check and convert values against that tag.  ``bool`` is never
treated as a number even though Python makes it an ``int`` subclass.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Union

Scalar = Union[bool, int, float, str]

_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")


class ParameterType(str, Enum):
    """Type tag of a parameter."""

    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    ENUM_STRING = "enum-of-string"
    ENUM_NUMBER = "enum-of-number"

    @property
    def is_numeric(self) -> bool:
        return self in (ParameterType.INTEGER, ParameterType.NUMBER)

    @property
    def is_enum(self) -> bool:
        return self in (ParameterType.ENUM_STRING, ParameterType.ENUM_NUMBER)


def is_number(value: Any) -> bool:
    """Return *True* for ints and floats, never for bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(text: str) -> int | float | None:
    """Parse *text* as an integer, then as a decimal literal.

    Returns *None* when *text* is neither.
    """
    text = text.strip()
    if _INT_RE.fullmatch(text):
        return int(text)
    if _FLOAT_RE.fullmatch(text):
        return float(text)
    return None


def canonical_number(value: int | float) -> str:
    """Format a number so that value-equal ints and floats print the same."""
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def literal_number(value: int | float) -> str:
    """Format a number as a source literal, keeping int/float distinct."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return f"{int(value)}.0"
    return repr(value) if isinstance(value, float) else str(value)


def value_matches_type(value: Any, ptype: ParameterType) -> bool:
    """Check *value* against *ptype* exhaustively."""
    if ptype is ParameterType.INTEGER:
        return is_number(value) and float(value).is_integer()
    if ptype in (ParameterType.NUMBER, ParameterType.ENUM_NUMBER):
        return is_number(value)
    if ptype is ParameterType.BOOLEAN:
        return isinstance(value, bool)
    if ptype in (ParameterType.STRING, ParameterType.ENUM_STRING):
        return isinstance(value, str)
    raise ValueError(f"Unknown parameter type: {ptype!r}")


def coerce_value(value: Any, ptype: ParameterType) -> Scalar:
    """Convert *value* to the Python type tagged by *ptype*.

    Form layers usually hand over strings (``"50"``); this turns them into
    the typed value the parameter expects.

    Raises
    ------
    ValueError
        If *value* cannot represent a value of *ptype*.
    """
    if ptype is ParameterType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValueError(f"{value!r} is not a boolean")

    if ptype in (ParameterType.STRING, ParameterType.ENUM_STRING):
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if is_number(value):
            return canonical_number(value)
        raise ValueError(f"{value!r} is not a string")

    number: int | float | None
    if is_number(value):
        number = value
    elif isinstance(value, str):
        number = parse_number(value)
    else:
        number = None
    if number is None:
        raise ValueError(f"{value!r} is not a number")

    if ptype is ParameterType.INTEGER:
        if not float(number).is_integer():
            raise ValueError(f"{value!r} is not an integer")
        return int(number)
    return number


def values_equal(left: Any, right: Any) -> bool:
    """Compare two scalars the way a form would: ``4 == 4.0 == "4"``."""
    if isinstance(left, bool) or isinstance(right, bool):
        if isinstance(left, str) or isinstance(right, str):
            return str(left).lower() == str(right).lower()
        return left is right
    left_num = left if is_number(left) else parse_number(left) if isinstance(left, str) else None
    right_num = right if is_number(right) else parse_number(right) if isinstance(right, str) else None
    if left_num is not None and right_num is not None:
        return float(left_num) == float(right_num)
    return left == right
