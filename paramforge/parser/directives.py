"""Comment directives: ``// @depends``, ``// @order``, ``// @unit``, ``// @hidden``, ``// @help``.

Directives sit on their own comment lines before an assignment and attach to
the next parameter.  Group headers accept ``id=``, ``order=`` and
``collapsed`` options after the bracketed label.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from paramforge.parser.values import ValueToken, read_token
from paramforge.schema.models import Combination, Condition, Dependency

_IDENT_RE = re.compile(r"\$?[A-Za-z_][A-Za-z0-9_]*")
_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<op>&&|\|\||==|!=|\(|\))
      | (?P<str>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
      | (?P<word>[^\s()&|=!"']+)
    )""",
    re.VERBOSE,
)


class DirectiveError(ValueError):
    """Raised when a directive or dependency expression cannot be parsed."""


@dataclass
class PendingAnnotations:
    """Directives collected since the last assignment."""

    dependency: Optional[Dependency] = None
    order: Optional[int] = None
    unit: Optional[str] = None
    hidden: bool = False
    help: Optional[str] = None
    lines: list[int] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.lines


def apply_directive(pending: PendingAnnotations, name: str, argument: str, line_number: int) -> None:
    """Record directive *name* with *argument* on *pending*.

    Raises
    ------
    DirectiveError
        For unknown directives or malformed arguments.
    """
    if name == "depends":
        pending.dependency = parse_dependency(argument)
    elif name == "order":
        try:
            pending.order = int(argument)
        except ValueError:
            raise DirectiveError(f"@order expects an integer, got {argument!r}") from None
    elif name == "unit":
        if not argument:
            raise DirectiveError("@unit expects a unit name")
        pending.unit = argument
    elif name == "hidden":
        pending.hidden = True
    elif name == "help":
        pending.help = argument
    else:
        raise DirectiveError(f"Unknown directive @{name}")
    pending.lines.append(line_number)


def parse_group_options(text: str) -> tuple[Optional[str], Optional[int], bool, list[str]]:
    """Parse group header options.

    Returns ``(explicit_id, explicit_order, collapsed, unknown_options)``.
    """
    group_id: Optional[str] = None
    order: Optional[int] = None
    collapsed = False
    unknown: list[str] = []
    for option in re.split(r"[\s,]+", text.strip()):
        if not option:
            continue
        key, _, value = option.partition("=")
        key = key.lower()
        if key == "collapsed" and not value:
            collapsed = True
        elif key == "id" and value:
            group_id = value
        elif key == "order" and value.lstrip("+-").isdigit():
            order = int(value)
        else:
            unknown.append(option)
    return group_id, order, collapsed, unknown


# ---------------------------------------------------------------------------
# Dependency expressions
# ---------------------------------------------------------------------------


def parse_dependency(expression: str) -> Dependency:
    """Parse ``a == 1 && (b != "x" || c == true)`` into a dependency tree."""
    tokens = _tokenize(expression)
    if not tokens:
        raise DirectiveError("@depends expects an expression")
    parser = _ExpressionParser(tokens)
    result = parser.parse_or()
    if parser.peek() is not None:
        raise DirectiveError(f"Unexpected {parser.peek()[1]!r} in dependency expression")
    return result


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    expression = expression.rstrip()
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None or match.end() == pos:
            raise DirectiveError(f"Cannot read dependency expression at {expression[pos:]!r}")
        kind = match.lastgroup
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _ExpressionParser:
    def __init__(self, tokens: list[tuple[str, str]]) -> None:
        self._tokens = tokens
        self._pos = 0

    def peek(self) -> tuple[str, str] | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> tuple[str, str]:
        token = self.peek()
        if token is None:
            raise DirectiveError("Dependency expression ends unexpectedly")
        self._pos += 1
        return token

    def parse_or(self) -> Dependency:
        terms = [self.parse_and()]
        while self.peek() == ("op", "||"):
            self._next()
            terms.append(self.parse_and())
        return terms[0] if len(terms) == 1 else Combination(kind="any", terms=terms)

    def parse_and(self) -> Dependency:
        terms = [self.parse_factor()]
        while self.peek() == ("op", "&&"):
            self._next()
            terms.append(self.parse_factor())
        return terms[0] if len(terms) == 1 else Combination(kind="all", terms=terms)

    def parse_factor(self) -> Dependency:
        kind, text = self._next()
        if (kind, text) == ("op", "("):
            inner = self.parse_or()
            if self._next() != ("op", ")"):
                raise DirectiveError("Missing ')' in dependency expression")
            return inner
        if kind != "word" or not _IDENT_RE.fullmatch(text):
            raise DirectiveError(f"Expected a parameter name, got {text!r}")
        op_kind, operator = self._next()
        if op_kind != "op" or operator not in ("==", "!="):
            raise DirectiveError(f"Expected '==' or '!=' after {text!r}")
        lit_kind, literal = self._next()
        if lit_kind == "str":
            value = read_token(literal).text
        elif lit_kind == "word":
            value = ValueToken(literal).interpret()
        else:
            raise DirectiveError(f"Expected a value after {operator!r}")
        return Condition(parameter=text, operator=operator, value=value)
