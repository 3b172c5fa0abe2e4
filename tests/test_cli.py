"""Tests for the command-line interface."""

from __future__ import annotations

import argparse
import json
import os
import sys

import pytest

from conftest import BOX_SOURCE
from paramforge import cli
from paramforge.settings import _CONFIG_KEYS

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def box_file(tmp_path):
    path = tmp_path / "box.scad"
    path.write_text(BOX_SOURCE)
    return path


def _use_binary(project, body: str) -> None:
    binary = project / "fake-openscad"
    binary.write_text("#!/bin/sh\n" + body)
    os.chmod(binary, 0o755)
    (project / ".paramforge").mkdir()
    (project / ".paramforge" / "config.json").write_text(
        json.dumps({"PARAMFORGE_OPENSCAD_BINARY": str(binary)})
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParseDefine:
    def test_typed_values(self) -> None:
        assert cli.parse_define("width=60") == ("width", 60)
        assert cli.parse_define("wall=1.5") == ("wall", 1.5)
        assert cli.parse_define("lid=false") == ("lid", False)
        assert cli.parse_define('label="a=b"') == ("label", "a=b")
        assert cli.parse_define("shape=hex") == ("shape", "hex")

    @pytest.mark.parametrize("text", ["width", "=5"])
    def test_rejects_malformed(self, text) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            cli.parse_define(text)

    def test_bad_define_exits(self, box_file, tmp_path, capsys) -> None:
        with pytest.raises(SystemExit) as info:
            cli.main(["render", str(box_file), "-D", "width", "-o", str(tmp_path / "out.stl")])
        assert info.value.code == 2
        assert "Expected name=value" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


class TestExtract:
    def test_schema_format(self, box_file, tmp_path, capsys) -> None:
        assert cli.main(["--project", str(tmp_path), "extract", str(box_file)]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [p["id"] for p in data["parameters"]][:3] == ["width", "depth", "height"]
        assert [g["label"] for g in data["groups"]] == ["Dimensions", "Style"]

    def test_json_schema_format(self, box_file, tmp_path, capsys) -> None:
        assert cli.main(["--project", str(tmp_path), "extract", str(box_file), "--format", "json-schema"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["title"] == "box"
        assert data["properties"]["height"]["maximum"] == 60

    def test_source_format_to_file(self, box_file, tmp_path) -> None:
        out = tmp_path / "annotated.scad"
        argv = ["--project", str(tmp_path), "extract", str(box_file), "--format", "source", "-o", str(out)]
        assert cli.main(argv) == 0
        text = out.read_text()
        assert "/* [Dimensions] id=dimensions order=0 */" in text
        assert "height = 20; // [5:1:60]" in text

    def test_env_template(self, tmp_path, capsys) -> None:
        assert cli.main(["--project", str(tmp_path), "env-template"]) == 0
        template = (tmp_path / ".env.example").read_text()
        assert "PARAMFORGE_CACHE_CAPACITY=10" in template
        assert "PARAMFORGE_OPENSCAD_BINARY=openscad" in template
        assert ".env.example" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys) -> None:
        assert cli.main(["--project", str(tmp_path), "extract", str(tmp_path / "nope.scad")]) == 1
        assert "error:" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# render
# ---------------------------------------------------------------------------


@posix_only
class TestRender:
    def test_full_render(self, box_file, tmp_path) -> None:
        _use_binary(tmp_path, 'echo "$@" > "$2"\n')
        out = tmp_path / "box.stl"

        code = cli.main([
            "--project", str(tmp_path), "render", str(box_file),
            "-D", "width=70", "-D", "shape=hex", "-o", str(out),
        ])

        assert code == 0
        args = out.read_text()
        assert "width=70" in args
        assert 'shape="hex"' in args
        assert "$fn=64" in args

    def test_draft_render_caps_resolution(self, box_file, tmp_path) -> None:
        _use_binary(tmp_path, 'echo "$@" > "$2"\n')
        out = tmp_path / "box.stl"

        code = cli.main(["--project", str(tmp_path), "render", str(box_file), "--tier", "draft", "-o", str(out)])

        assert code == 0
        assert "$fn=24" in out.read_text()

    def test_engine_failure(self, box_file, tmp_path, capsys) -> None:
        _use_binary(tmp_path, 'echo "ERROR: boom" >&2\nexit 1\n')
        out = tmp_path / "box.stl"

        code = cli.main(["--project", str(tmp_path), "render", str(box_file), "-o", str(out)])

        assert code == 2
        assert "boom" in capsys.readouterr().err
        assert not out.exists()

    def test_missing_engine(self, box_file, tmp_path, capsys) -> None:
        (tmp_path / ".paramforge").mkdir()
        (tmp_path / ".paramforge" / "config.json").write_text(
            json.dumps({"PARAMFORGE_OPENSCAD_BINARY": str(tmp_path / "missing-openscad")})
        )

        code = cli.main(["--project", str(tmp_path), "render", str(box_file), "-o", str(tmp_path / "o.stl")])

        assert code == 2
        assert "boundary_init_failed" in capsys.readouterr().err
