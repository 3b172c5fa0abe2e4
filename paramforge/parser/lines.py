"""Line classification for the annotation scanner.

Every top-level line is given exactly one :class:`LineKind`, checked in a
fixed order.  Lines that start inside a block comment or inside a ``{ }``
scope are :attr:`LineKind.NESTED` and never produce parameters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from paramforge.config import SPECIAL_VARIABLE_SIGIL

_QUOTES = ('"', "'")

_GROUP_RE = re.compile(r"^/\*\s*\[([^\]]*)\]\s*(.*?)\s*\*/$")
_DIRECTIVE_RE = re.compile(r"^//\s*@([A-Za-z_]\w*)(.*)$")
_COMMENT_RE = re.compile(r"^//+\s?(.*)$")
_ASSIGN_RE = re.compile(
    r"^(" + re.escape(SPECIAL_VARIABLE_SIGIL) + r"?[A-Za-z_][A-Za-z0-9_]*)\s*=(?!=)(.*)$"
)
_LINE_END_RE = re.compile(r"\r\n|\r|\n")


class LineKind(Enum):
    BLANK = "blank"
    GROUP_HEADER = "group_header"
    DIRECTIVE = "directive"
    COMMENT = "comment"
    ASSIGNMENT = "assignment"
    CODE = "code"
    NESTED = "nested"


@dataclass
class ScopeState:
    """Block-comment and brace-depth state carried between lines."""

    in_block_comment: bool = False
    depth: int = 0

    @property
    def top_level(self) -> bool:
        return not self.in_block_comment and self.depth == 0


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    number: int
    text: str
    name: str = ""
    """Group label, directive name or assignment identifier."""
    rest: str = ""
    """Header options, directive argument, comment text or assignment right-hand side."""


def split_lines(text: str) -> list[str]:
    """Split on CRLF, CR or LF only; form feeds and Unicode separators stay in the line."""
    if not text:
        return []
    lines = _LINE_END_RE.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


def classify_line(line: str, number: int, scope: ScopeState) -> ClassifiedLine:
    """Classify *line* given the scope state *before* it."""
    stripped = line.strip()
    if not scope.top_level:
        return ClassifiedLine(LineKind.NESTED, number, stripped)
    if not stripped:
        return ClassifiedLine(LineKind.BLANK, number, stripped)

    match = _GROUP_RE.match(stripped)
    if match:
        return ClassifiedLine(
            LineKind.GROUP_HEADER, number, stripped,
            name=match.group(1).strip(), rest=match.group(2).strip(),
        )

    match = _DIRECTIVE_RE.match(stripped)
    if match:
        return ClassifiedLine(
            LineKind.DIRECTIVE, number, stripped,
            name=match.group(1).lower(), rest=match.group(2).strip(),
        )

    match = _COMMENT_RE.match(stripped)
    if match:
        return ClassifiedLine(LineKind.COMMENT, number, stripped, rest=match.group(1).strip())
    if stripped.startswith("/*"):
        inner = stripped[2:]
        if inner.endswith("*/"):
            inner = inner[:-2]
        return ClassifiedLine(LineKind.COMMENT, number, stripped, rest=inner.strip(" *"))

    match = _ASSIGN_RE.match(stripped)
    if match:
        return ClassifiedLine(
            LineKind.ASSIGNMENT, number, stripped,
            name=match.group(1), rest=match.group(2),
        )

    return ClassifiedLine(LineKind.CODE, number, stripped)


def update_scope(line: str, scope: ScopeState) -> None:
    """Advance *scope* past *line*, ignoring braces in strings and comments."""
    i = 0
    in_string = ""
    while i < len(line):
        ch = line[i]
        nxt = line[i + 1] if i + 1 < len(line) else ""

        if scope.in_block_comment:
            if ch == "*" and nxt == "/":
                scope.in_block_comment = False
                i += 2
                continue
            i += 1
            continue

        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == in_string:
                in_string = ""
            i += 1
            continue

        if ch == "/" and nxt == "*":
            scope.in_block_comment = True
            i += 2
            continue
        if ch == "/" and nxt == "/":
            return
        if ch in _QUOTES:
            in_string = ch
        elif ch == "{":
            scope.depth += 1
        elif ch == "}":
            scope.depth = max(0, scope.depth - 1)
        i += 1
