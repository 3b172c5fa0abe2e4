"""Command-line interface: the ``extract``, ``render`` and ``env-template`` subcommands."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from paramforge import __version__
from paramforge.parser import SourceDecodeError, parse_source
from paramforge.parser.values import read_token
from paramforge.render.engines.base import GeometryEngine
from paramforge.render.engines.openscad import OpenSCADEngine
from paramforge.render.orchestrator import RenderOrchestrator
from paramforge.render.state import FailureKind, RenderFailure, RenderResult, RenderState, StateDetail
from paramforge.render.tiers import get_tier
from paramforge.schema.export import to_json_schema, to_source
from paramforge.settings import Settings, generate_env_template, load_settings

logger = logging.getLogger(__name__)


def parse_define(text: str) -> tuple[str, Any]:
    """Parse ``name=value`` into a name and a typed value.

    Raises
    ------
    argparse.ArgumentTypeError
        If *text* has no ``=`` or an empty name.
    """
    name, sep, value = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"Expected name=value, got {text!r}")
    return name, read_token(value).interpret()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paramforge",
        description="Extract parameter schemas from annotated OpenSCAD sources and render them.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project", default=".", help="Directory holding .paramforge/config.json and .env")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    extract = sub.add_parser("extract", help="Print the parameter schema of a source file")
    extract.add_argument("file", type=Path)
    extract.add_argument(
        "--format",
        choices=("schema", "json-schema", "source"),
        default="schema",
        help="schema (camelCase model), json-schema (draft-07) or annotated source",
    )
    extract.add_argument("-o", "--output", type=Path, help="Write to a file instead of stdout")

    render = sub.add_parser("render", help="Render a source file with parameter overrides")
    render.add_argument("file", type=Path)
    render.add_argument(
        "-D", dest="defines", action="append", type=parse_define, default=[],
        metavar="NAME=VALUE", help="Override a parameter (repeatable)",
    )
    render.add_argument("--tier", choices=("draft", "preview", "full"), default="full")
    render.add_argument(
        "--aux", action="append", type=Path, default=[],
        help="Auxiliary file made available next to the source (repeatable)",
    )
    render.add_argument("-o", "--output", type=Path, required=True)

    sub.add_parser("env-template", help="Write .env.example with every configuration key into --project")
    return parser


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _write_output(text: str, output: Optional[Path]) -> None:
    if output is None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
    else:
        output.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", output)


def cmd_extract(args: argparse.Namespace) -> int:
    schema, diagnostics = parse_source(args.file.read_bytes())
    for diagnostic in diagnostics:
        print(f"{args.file}:{diagnostic}", file=sys.stderr)

    if args.format == "json-schema":
        text = json.dumps(to_json_schema(schema, title=args.file.stem), indent=2)
    elif args.format == "source":
        text = to_source(schema)
    else:
        text = schema.model_dump_json(by_alias=True, indent=2)
    _write_output(text, args.output)
    return 0


async def render_file(
    source_text: str,
    overrides: dict[str, Any],
    tier_name: str,
    settings: Settings,
    auxiliary_files: dict[str, bytes] | None = None,
    engine: GeometryEngine | None = None,
) -> RenderResult:
    """Render *source_text* once through the orchestrator.

    Raises
    ------
    RenderFailure
        If the engine is unavailable or the render fails.
    """
    tier = get_tier(tier_name)
    details: list[StateDetail] = []
    engine = engine or OpenSCADEngine(settings.openscad_binary, settings.export_format)
    tier_kwargs: dict[str, Any] = {"full_tier": tier} if tier.full else {"preview_tier": tier}
    # One-shot render: nothing to coalesce
    orchestrator = RenderOrchestrator.from_settings(
        engine,
        settings,
        debounce_ms=0,
        **tier_kwargs,
        on_state_changed=lambda state, detail: details.append(detail),
        on_progress=lambda t, rid, pct: logger.info("%s %s: %.0f%%", t, rid, pct),
    )
    try:
        if not await orchestrator.initialize():
            raise orchestrator.init_failure
        orchestrator.load_document(source_text, auxiliary_files=auxiliary_files)
        if tier.full:
            return await orchestrator.request_full_quality(overrides)

        orchestrator.on_parameter_edit(overrides)
        await orchestrator.settled()
        if orchestrator.state is not RenderState.CURRENT or orchestrator.last_result is None:
            last = details[-1] if details else StateDetail()
            raise RenderFailure(
                last.error_kind or FailureKind.ENGINE_ERROR,
                last.message or "Preview render failed",
                last.request_id,
            )
        return orchestrator.last_result
    finally:
        await orchestrator.close()


def cmd_env_template(args: argparse.Namespace) -> int:
    path = generate_env_template(args.project)
    print(f"Wrote {path}")
    return 0


def cmd_render(args: argparse.Namespace, settings: Settings) -> int:
    auxiliary = {path.name: path.read_bytes() for path in args.aux}
    source_text = args.file.read_bytes().decode("utf-8-sig")
    try:
        result = asyncio.run(
            render_file(source_text, dict(args.defines), args.tier, settings, auxiliary)
        )
    except RenderFailure as exc:
        print(f"render failed: {exc}", file=sys.stderr)
        return 2
    args.output.write_bytes(result.artifact)
    logger.info("Wrote %s (%d bytes, %s)", args.output, len(result.artifact), result.stats)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.project)
    configure_logging(settings, args.verbose)
    try:
        if args.command == "extract":
            return cmd_extract(args)
        if args.command == "env-template":
            return cmd_env_template(args)
        return cmd_render(args, settings)
    except (OSError, SourceDecodeError, UnicodeDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
