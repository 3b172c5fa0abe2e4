"""OpenSCADEngine — renders through the ``openscad`` executable.

Each request runs in its own subprocess inside a temporary directory that
holds the main source and any auxiliary files.  Parameter values are passed
as ``-D name=value`` overrides.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Any, AsyncIterator

from paramforge.config import DEFAULT_EXPORT_FORMAT, DEFAULT_OPENSCAD_BINARY
from paramforge.render.engines.base import EngineEvent, GeometryEngine, RenderRequest
from paramforge.schema.export import literal

logger = logging.getLogger(__name__)

_MAIN_FILE = "main.scad"
_STDERR_TAIL_LINES = 20


class EngineUnavailableError(RuntimeError):
    """Raised when the OpenSCAD executable cannot be found."""


def format_define(name: str, value: Any) -> str:
    """Format one ``-D`` override, e.g. ``width=50`` or ``label="A"``."""
    if isinstance(value, (bool, int, float, str)):
        return f"{name}={literal(value)}"
    raise TypeError(f"Cannot pass {type(value).__name__} value for '{name}' to OpenSCAD")


def stderr_tail(stderr: str, lines: int = _STDERR_TAIL_LINES) -> str:
    return "\n".join(stderr.strip().splitlines()[-lines:])


class OpenSCADEngine(GeometryEngine):
    """Geometry engine backed by an OpenSCAD subprocess per request.

    Parameters
    ----------
    binary:
        Executable name or path.
    export_format:
        Output file extension passed through ``-o`` (``stl``, ``3mf``, ``off``...).
    extra_args:
        Additional command-line arguments placed before the source path.
    """

    def __init__(
        self,
        binary: str = DEFAULT_OPENSCAD_BINARY,
        export_format: str = DEFAULT_EXPORT_FORMAT,
        extra_args: tuple[str, ...] = (),
    ) -> None:
        self.binary = binary
        self.export_format = export_format.lstrip(".")
        self.extra_args = tuple(extra_args)
        self._executable: str | None = None
        self._processes: dict[str, asyncio.subprocess.Process] = {}

    @property
    def name(self) -> str:
        return "openscad"

    def locate(self) -> str:
        """Resolve the executable path.

        Raises
        ------
        EngineUnavailableError
            If the executable is not on ``PATH`` and not an existing file.
        """
        found = shutil.which(self.binary)
        if found is None:
            raise EngineUnavailableError(f"OpenSCAD executable '{self.binary}' not found")
        return found

    async def initialize(self, assets: dict[str, Any] | None = None) -> bool:
        if assets and assets.get("binary"):
            self.binary = str(assets["binary"])
        try:
            self._executable = self.locate()
        except EngineUnavailableError as exc:
            logger.warning("%s", exc)
            self._executable = None
            return False
        logger.info("Using OpenSCAD at %s", self._executable)
        return True

    def build_command(self, request: RenderRequest, source_path: Path, output_path: Path) -> list[str]:
        """Build the argument list for *request*."""
        cmd = [self._executable or self.binary, "-o", str(output_path)]
        for name, value in request.parameters.items():
            cmd.extend(["-D", format_define(name, value)])
        cmd.extend(self.extra_args)
        cmd.append(str(source_path))
        return cmd

    async def submit(self, request: RenderRequest) -> AsyncIterator[EngineEvent]:
        rid = request.request_id
        yield EngineEvent.progress(rid, 0)

        with tempfile.TemporaryDirectory(prefix="paramforge-") as tmp:
            workdir = Path(tmp)
            source_path = workdir / _MAIN_FILE
            source_path.write_text(request.source_text, encoding="utf-8")
            _write_auxiliary_files(workdir, request.auxiliary_files)
            output_path = workdir / f"output.{self.export_format}"

            cmd = self.build_command(request, source_path, output_path)
            logger.debug("openscad %s", " ".join(cmd[1:]))
            start = time.monotonic()
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    cwd=str(workdir),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                yield EngineEvent.error(rid, f"Could not start OpenSCAD: {exc}")
                return

            self._processes[rid] = proc
            try:
                _, stderr = await proc.communicate()
            finally:
                self._processes.pop(rid, None)
                if proc.returncode is None:
                    proc.kill()
                    await proc.wait()

            duration_ms = int((time.monotonic() - start) * 1000)
            message = stderr.decode("utf-8", errors="replace")
            if proc.returncode != 0:
                yield EngineEvent.error(
                    rid,
                    f"OpenSCAD exited with code {proc.returncode}: {stderr_tail(message)}",
                )
                return
            if not output_path.exists():
                yield EngineEvent.error(rid, f"OpenSCAD produced no output: {stderr_tail(message)}")
                return

            artifact = output_path.read_bytes()

        yield EngineEvent.progress(rid, 100)
        yield EngineEvent.complete(
            rid,
            artifact,
            {"duration_ms": duration_ms, "size_bytes": len(artifact), "format": self.export_format},
        )

    async def cancel(self, request_id: str) -> None:
        proc = self._processes.get(request_id)
        if proc is None or proc.returncode is not None:
            return
        logger.debug("Killing OpenSCAD process for %s", request_id)
        proc.kill()

    async def close(self) -> None:
        for request_id in list(self._processes):
            await self.cancel(request_id)


def _write_auxiliary_files(workdir: Path, files: dict[str, bytes]) -> None:
    for name, data in files.items():
        relative = PurePosixPath(name.replace("\\", "/"))
        if relative.is_absolute() or ".." in relative.parts:
            logger.warning("Skipping auxiliary file outside the work directory: %s", name)
            continue
        target = workdir.joinpath(*relative.parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
