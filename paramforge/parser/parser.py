"""AnnotationParser — extract a parameter schema from annotated design source.

Usage::

    from paramforge.parser import AnnotationParser

    schema, diagnostics = AnnotationParser().parse(source_text)

The scan is line oriented.  Each line is classified (see
:mod:`paramforge.parser.lines`) and handled by the matching ``_on_*`` method;
every call works on a fresh :class:`_ParseState`, so nothing leaks between
documents.  Malformed annotations never abort extraction; they become
:class:`~paramforge.schema.models.Diagnostic` entries.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from paramforge.config import DEFAULT_GROUP_ID, DEFAULT_GROUP_LABEL, HIDDEN_GROUP_NAME
from paramforge.parser.directives import (
    DirectiveError,
    PendingAnnotations,
    apply_directive,
    parse_group_options,
)
from paramforge.parser.hints import CommentHint, EnumHint, KeywordHint, RangeHint, classify_comment
from paramforge.parser.libraries import detect_libraries
from paramforge.parser.lines import (
    ClassifiedLine,
    ScopeState,
    classify_line,
    split_lines,
    update_scope,
)
from paramforge.parser.values import ValueToken, scan_assignment_value
from paramforge.schema.models import (
    Constraints,
    Diagnostic,
    DiagnosticKind,
    Group,
    Parameter,
    SchemaModel,
    UIHint,
)
from paramforge.schema.normalize import normalize_schema
from paramforge.schema.scalars import ParameterType, Scalar, coerce_value, is_number

logger = logging.getLogger(__name__)


class SourceDecodeError(ValueError):
    """Raised when source bytes are not valid UTF-8 text."""


def slugify(label: str) -> str:
    """Lower-case *label*, collapse non-alphanumeric runs to ``-``, trim edges."""
    return re.sub(r"[^a-z0-9]+", "-", label.lower()).strip("-")


@dataclass
class _ParseState:
    groups: dict[str, Group] = field(default_factory=dict)
    parameters: dict[str, Parameter] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    current_group: str = DEFAULT_GROUP_ID
    pending: PendingAnnotations = field(default_factory=PendingAnnotations)
    preceding_comment: Optional[str] = None
    group_counter: int = 0
    param_counter: int = 0

    def diagnose(self, kind: DiagnosticKind, message: str, line: int, parameter: str | None = None) -> None:
        self.diagnostics.append(
            Diagnostic(kind=kind, message=message, line_number=line, parameter=parameter)
        )


class AnnotationParser:
    """Parse annotated design source into a normalized :class:`SchemaModel`."""

    def parse(self, source: str | bytes) -> tuple[SchemaModel, list[Diagnostic]]:
        """Extract the parameter schema from *source*.

        Parameters
        ----------
        source:
            Source text.  ``bytes`` are decoded as UTF-8 (a BOM is allowed).

        Returns
        -------
        tuple[SchemaModel, list[Diagnostic]]
            The normalized schema and every parse diagnostic and validation
            warning, in that order.

        Raises
        ------
        SourceDecodeError
            If *source* is bytes that are not valid UTF-8.
        """
        text = self._decode(source)
        state = _ParseState()
        scope = ScopeState()

        for number, raw in enumerate(split_lines(text), start=1):
            line = classify_line(raw, number, scope)
            handler = getattr(self, f"_on_{line.kind.value}")
            handler(state, line)
            update_scope(raw, scope)

        self._flush_orphans(state)

        schema = SchemaModel(
            groups=list(state.groups.values()),
            parameters=list(state.parameters.values()),
            libraries=detect_libraries(text),
        )
        schema, warnings = normalize_schema(schema)
        diagnostics = state.diagnostics + warnings
        logger.debug(
            "Parsed %d parameter(s) in %d group(s) with %d diagnostic(s)",
            len(schema.parameters), len(schema.groups), len(diagnostics),
        )
        return schema, diagnostics

    # -- decoding ---------------------------------------------------------

    @staticmethod
    def _decode(source: str | bytes) -> str:
        if isinstance(source, str):
            return source.lstrip("\ufeff")
        if isinstance(source, (bytes, bytearray)):
            try:
                return bytes(source).decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise SourceDecodeError(f"Source is not valid UTF-8: {exc}") from exc
        raise SourceDecodeError(f"Expected text, got {type(source).__name__}")

    # -- line handlers ----------------------------------------------------

    def _on_blank(self, state: _ParseState, line: ClassifiedLine) -> None:
        state.preceding_comment = None

    def _on_nested(self, state: _ParseState, line: ClassifiedLine) -> None:
        pass

    def _on_comment(self, state: _ParseState, line: ClassifiedLine) -> None:
        state.preceding_comment = line.rest or None

    def _on_code(self, state: _ParseState, line: ClassifiedLine) -> None:
        state.preceding_comment = None
        self._flush_orphans(state)

    def _on_directive(self, state: _ParseState, line: ClassifiedLine) -> None:
        try:
            apply_directive(state.pending, line.name, line.rest, line.number)
        except DirectiveError as exc:
            state.diagnose(DiagnosticKind.MALFORMED_DIRECTIVE, str(exc), line.number)

    def _on_group_header(self, state: _ParseState, line: ClassifiedLine) -> None:
        state.preceding_comment = None
        self._flush_orphans(state)

        label = line.name
        explicit_id, explicit_order, collapsed, unknown = parse_group_options(line.rest)
        for option in unknown:
            state.diagnose(
                DiagnosticKind.MALFORMED_DIRECTIVE,
                f"Unknown group option {option!r} ignored",
                line.number,
            )

        group_id = explicit_id or slugify(label) or f"group-{state.group_counter}"
        if group_id not in state.groups:
            hidden = label.strip().lower() == HIDDEN_GROUP_NAME
            state.groups[group_id] = Group(
                id=group_id,
                label=label or group_id,
                order=explicit_order if explicit_order is not None else state.group_counter,
                collapsed=collapsed,
                hidden=hidden,
                line_number=line.number,
            )
            state.group_counter += 1
        state.current_group = group_id

    def _on_assignment(self, state: _ParseState, line: ClassifiedLine) -> None:
        scanned = scan_assignment_value(line.rest)
        if scanned is None:
            # Multi-line or otherwise incomplete expression; not a parameter
            self._on_code(state, line)
            return
        token, trailing = scanned
        if not token.terminated:
            state.diagnose(
                DiagnosticKind.UNTERMINATED_STRING,
                f"Unterminated string for '{line.name}'; value runs to end of line",
                line.number,
                line.name,
            )

        comment = CommentHint()
        trailing = trailing.strip()
        if trailing.startswith("//"):
            comment = classify_comment(trailing.lstrip("/"))
        if comment.malformed:
            state.diagnose(
                DiagnosticKind.MALFORMED_HINT,
                f"{comment.malformed} for '{line.name}'; treated as description",
                line.number,
                line.name,
            )

        param = self._build_parameter(state, line, token, comment)
        if param.id in state.parameters:
            state.diagnose(
                DiagnosticKind.DUPLICATE_PARAMETER,
                f"Parameter '{param.id}' redefined; the last definition wins",
                line.number,
                param.id,
            )
            del state.parameters[param.id]
        state.parameters[param.id] = param

        state.pending = PendingAnnotations()
        state.preceding_comment = None

    # -- building ---------------------------------------------------------

    def _build_parameter(
        self,
        state: _ParseState,
        line: ClassifiedLine,
        token: ValueToken,
        comment: CommentHint,
    ) -> Parameter:
        group = self._ensure_current_group(state, line.number)
        pending = state.pending
        default: Scalar = token.interpret()
        fields: dict[str, Any] = {
            "type": _type_of(default),
            "ui_hint": UIHint.CHECKBOX if isinstance(default, bool) else UIHint.INPUT,
        }

        hint = comment.hint
        if isinstance(hint, RangeHint):
            if is_number(default):
                fields.update(_range_fields(default, hint))
            else:
                state.diagnose(
                    DiagnosticKind.MALFORMED_HINT,
                    f"Range hint on non-numeric default of '{line.name}'; treated as description",
                    line.number,
                    line.name,
                )
                comment = CommentHint(help=_bracket_text(hint, comment.help))
        elif isinstance(hint, EnumHint):
            fields.update(_enum_fields(hint))
            if hint.mixed:
                state.diagnose(
                    DiagnosticKind.MIXED_ENUM,
                    f"Enum for '{line.name}' mixes numbers and text; stored as strings",
                    line.number,
                    line.name,
                )
        elif isinstance(hint, KeywordHint):
            fields.update({
                "type": ParameterType.STRING,
                "ui_hint": hint.ui_hint,
                "accepted_extensions": list(hint.extensions),
            })
            default = coerce_value(default, ParameterType.STRING)

        help_text = comment.help or pending.help or state.preceding_comment or ""
        order = pending.order if pending.order is not None else state.param_counter
        state.param_counter += 1

        return Parameter(
            id=line.name,
            default=default,
            group=group.id,
            order=order,
            unit=pending.unit,
            help=help_text,
            hidden=group.hidden or pending.hidden,
            dependency=pending.dependency,
            line_number=line.number,
            **fields,
        )

    def _ensure_current_group(self, state: _ParseState, line_number: int) -> Group:
        group = state.groups.get(state.current_group)
        if group is None:
            group = Group(
                id=DEFAULT_GROUP_ID,
                label=DEFAULT_GROUP_LABEL,
                order=state.group_counter,
                line_number=line_number,
            )
            state.groups[group.id] = group
            state.group_counter += 1
        return group

    @staticmethod
    def _flush_orphans(state: _ParseState) -> None:
        if state.pending.empty:
            return
        for number in state.pending.lines:
            state.diagnose(
                DiagnosticKind.ORPHANED_DIRECTIVE,
                "Directive is not followed by a parameter assignment; ignored",
                number,
            )
        state.pending = PendingAnnotations()


def parse_source(source: str | bytes) -> tuple[SchemaModel, list[Diagnostic]]:
    """Convenience wrapper around :meth:`AnnotationParser.parse`."""
    return AnnotationParser().parse(source)


def _type_of(value: Scalar) -> ParameterType:
    if isinstance(value, bool):
        return ParameterType.BOOLEAN
    if isinstance(value, int):
        return ParameterType.INTEGER
    if isinstance(value, float):
        return ParameterType.NUMBER
    return ParameterType.STRING


def _range_fields(default: int | float, hint: RangeHint) -> dict[str, Any]:
    integral = isinstance(default, int) and hint.integral
    step = hint.step
    if step is None and integral:
        step = 1
    return {
        "type": ParameterType.INTEGER if integral else ParameterType.NUMBER,
        "ui_hint": UIHint.SLIDER,
        "constraints": Constraints(minimum=hint.minimum, maximum=hint.maximum, step=step),
    }


def _enum_fields(hint: EnumHint) -> dict[str, Any]:
    if hint.toggle:
        ui_hint = UIHint.TOGGLE
    else:
        ui_hint = UIHint.SELECT
    return {
        "type": ParameterType.ENUM_NUMBER if hint.numeric else ParameterType.ENUM_STRING,
        "ui_hint": ui_hint,
        "constraints": Constraints(allowed_values=list(hint.values), labels=hint.labels),
    }


def _bracket_text(hint: RangeHint, help_text: str) -> str:
    fields = [hint.minimum] + ([hint.step] if hint.step is not None else []) + [hint.maximum]
    text = "[" + ":".join(str(f) for f in fields) + "]"
    return f"{text} {help_text}".strip()
