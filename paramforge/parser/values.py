"""Value-expression scanning: quoted strings, literals and comma lists."""

from __future__ import annotations

from dataclasses import dataclass

from paramforge.schema.scalars import Scalar, parse_number

_QUOTES = ('"', "'")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}


@dataclass(frozen=True)
class ValueToken:
    """A scanned value expression.

    ``text`` is the unescaped string content for quoted values and the raw
    expression text otherwise.
    """

    text: str
    quoted: bool = False
    terminated: bool = True

    def interpret(self) -> Scalar:
        """Quoted → string; otherwise integer, decimal, boolean, unquoted string."""
        if self.quoted:
            return self.text
        number = parse_number(self.text)
        if number is not None:
            return number
        if self.text in ("true", "false"):
            return self.text == "true"
        return self.text


def read_quoted(text: str, start: int) -> tuple[str, int, bool]:
    """Read a quoted string whose opening quote is at *start*.

    Returns ``(content, end, terminated)`` where *end* is the index just past
    the closing quote, or ``len(text)`` when the quote is never closed.
    """
    quote = text[start]
    buf: list[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            nxt = text[i + 1]
            buf.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if ch == quote:
            return "".join(buf), i + 1, True
        buf.append(ch)
        i += 1
    return "".join(buf), len(text), False


def find_outside_quotes(text: str, target: str, start: int = 0) -> int:
    """Index of the first *target* character outside quotes, or ``-1``."""
    i = start
    while i < len(text):
        ch = text[i]
        if ch in _QUOTES:
            _, i, terminated = read_quoted(text, i)
            if not terminated:
                return -1
            continue
        if ch == target:
            return i
        i += 1
    return -1


def scan_assignment_value(rest: str) -> tuple[ValueToken, str] | None:
    """Scan the value after ``=`` up to its terminating ``;``.

    Returns ``(token, trailing_text)`` or *None* when *rest* is not a
    complete single-line value.  An unterminated quote consumes the rest of
    the line and yields an unterminated token with no trailing text.
    """
    stripped = rest.lstrip()
    if stripped[:1] in _QUOTES:
        content, end, terminated = read_quoted(stripped, 0)
        if not terminated:
            return ValueToken(content, quoted=True, terminated=False), ""
        after = stripped[end:].lstrip()
        if after.startswith(";"):
            return ValueToken(content, quoted=True), after[1:]
        # e.g. "a" + "b": an expression, not a plain string literal

    semi = find_outside_quotes(stripped, ";")
    if semi < 0:
        return None
    text = stripped[:semi].strip()
    if not text:
        return None
    return ValueToken(text), stripped[semi + 1:]


def split_list(text: str) -> list[str]:
    """Split *text* on commas outside quotes; raw items, trimmed, empties dropped."""
    items: list[str] = []
    start = 0
    while True:
        comma = find_outside_quotes(text, ",", start)
        if comma < 0:
            piece = text[start:].strip()
            if piece:
                items.append(piece)
            return items
        piece = text[start:comma].strip()
        if piece:
            items.append(piece)
        start = comma + 1


def read_token(raw: str) -> ValueToken:
    """Turn a raw list item into a token, unquoting when it is fully quoted."""
    raw = raw.strip()
    if raw[:1] in _QUOTES:
        content, end, terminated = read_quoted(raw, 0)
        if terminated and not raw[end:].strip():
            return ValueToken(content, quoted=True)
        if not terminated:
            return ValueToken(content, quoted=True, terminated=False)
    return ValueToken(raw)

