"""Trailing-comment classification for assignment lines.

Precedence is fixed: keyword hint (``[color]``, ``[file...]``) → range hint
→ enum hint → plain description.  A bracket hint that is neither a valid
range nor a valid enum is downgraded to a description and the reason is
reported back to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from paramforge.parser.values import find_outside_quotes, read_token, split_list
from paramforge.schema.models import UIHint
from paramforge.schema.scalars import parse_number


@dataclass(frozen=True)
class RangeHint:
    minimum: Union[int, float]
    maximum: Union[int, float]
    step: Optional[Union[int, float]] = None

    @property
    def integral(self) -> bool:
        """True when every field was written as an integer literal."""
        fields = [self.minimum, self.maximum]
        if self.step is not None:
            fields.append(self.step)
        return all(isinstance(f, int) for f in fields)


@dataclass(frozen=True)
class EnumHint:
    values: list[Union[int, float, str]]
    numeric: bool
    labels: Optional[list[str]] = None
    mixed: bool = False

    @property
    def toggle(self) -> bool:
        """A case-insensitive ``yes``/``no`` pair, rendered as a toggle."""
        if self.numeric or len(self.values) != 2:
            return False
        return {str(v).lower() for v in self.values} == {"yes", "no"}


@dataclass(frozen=True)
class KeywordHint:
    ui_hint: UIHint
    extensions: list[str] = field(default_factory=list)


Hint = Union[RangeHint, EnumHint, KeywordHint]


@dataclass(frozen=True)
class CommentHint:
    """Result of classifying one trailing comment."""

    hint: Optional[Hint] = None
    help: str = ""
    malformed: Optional[str] = None
    """Reason a bracket hint was downgraded to a description."""


def classify_comment(text: str) -> CommentHint:
    """Classify the text of a trailing ``//`` comment."""
    text = text.strip()
    if not text:
        return CommentHint()
    if not text.startswith("["):
        return CommentHint(help=text)

    close = find_outside_quotes(text, "]", 1)
    if close < 0:
        return CommentHint(help=text, malformed="unclosed bracket hint")

    content = text[1:close].strip()
    after = text[close + 1:].strip()
    if not content:
        return CommentHint(help=text, malformed="empty bracket hint")

    keyword = _keyword_hint(content)
    if keyword is not None:
        return CommentHint(hint=keyword, help=after)

    if find_outside_quotes(content, ":") >= 0 and find_outside_quotes(content, ",") < 0:
        rng = _range_hint(content)
        if rng is None:
            return CommentHint(help=text, malformed=f"invalid range hint [{content}]")
        return CommentHint(hint=rng, help=after)

    enum = _enum_hint(content)
    if enum is None:
        return CommentHint(help=text, malformed=f"invalid enum hint [{content}]")
    return CommentHint(hint=enum, help=after)


def _keyword_hint(content: str) -> KeywordHint | None:
    lowered = content.lower()
    if lowered == "color":
        return KeywordHint(UIHint.COLOR)
    if lowered == "file" or lowered.startswith("file:"):
        extensions: list[str] = []
        if ":" in content:
            extensions = [e.strip() for e in content.split(":", 1)[1].split(",") if e.strip()]
        return KeywordHint(UIHint.FILE, extensions)
    return None


def _range_hint(content: str) -> RangeHint | None:
    parts = [parse_number(p) for p in content.split(":")]
    if len(parts) not in (2, 3) or any(p is None for p in parts):
        return None
    if len(parts) == 2:
        return RangeHint(minimum=parts[0], maximum=parts[1])
    step = parts[1]
    if step <= 0:
        return None
    return RangeHint(minimum=parts[0], step=step, maximum=parts[2])


def _enum_hint(content: str) -> EnumHint | None:
    items = split_list(content)
    if not items:
        return None

    texts: list[str] = []
    numbers: list[Union[int, float, None]] = []
    labels: list[Optional[str]] = []
    for raw in items:
        colon = find_outside_quotes(raw, ":")
        label = None
        if colon >= 0:
            label = read_token(raw[colon + 1:]).text.strip() or None
            raw = raw[:colon]
        token = read_token(raw)
        if not token.terminated:
            return None
        texts.append(token.text)
        numbers.append(None if token.quoted else parse_number(token.text))
        labels.append(label)

    label_list = None
    if any(label is not None for label in labels):
        label_list = [label if label is not None else text for label, text in zip(labels, texts)]

    if numbers[0] is not None and all(n is not None for n in numbers):
        return EnumHint(values=list(numbers), numeric=True, labels=label_list)
    return EnumHint(
        values=texts,
        numeric=False,
        labels=label_list,
        mixed=numbers[0] is not None,
    )
