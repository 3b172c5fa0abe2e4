"""Tests for layered settings."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from paramforge.settings import Settings, _CONFIG_KEYS, generate_env_template, load_config, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_config(root, data) -> None:
    (root / ".paramforge").mkdir(exist_ok=True)
    (root / ".paramforge" / "config.json").write_text(json.dumps(data))


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


class TestLayering:
    def test_defaults_and_development_profile(self, tmp_path) -> None:
        config = load_config(tmp_path)
        assert config["PARAMFORGE_ENV"] == "development"
        assert config["PARAMFORGE_LOG_LEVEL"] == "DEBUG"
        assert config["PARAMFORGE_DEBOUNCE_MS"] == "1500"

        settings = load_settings(tmp_path)
        assert settings.debounce_ms == 1500
        assert settings.openscad_binary == "openscad"
        assert settings.preview_tier == "preview"

    def test_profile_from_environment(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("PARAMFORGE_ENV", "testing")
        settings = load_settings(tmp_path)
        assert settings.env == "testing"
        assert settings.debounce_ms == 50

    def test_config_json_over_profile(self, tmp_path) -> None:
        _write_config(tmp_path, {"PARAMFORGE_LOG_LEVEL": "ERROR", "PARAMFORGE_CACHE_CAPACITY": 3})
        settings = load_settings(tmp_path)
        assert settings.log_level == "ERROR"
        assert settings.cache_capacity == 3

    def test_dotenv_over_config_json(self, tmp_path) -> None:
        _write_config(tmp_path, {"PARAMFORGE_EXPORT_FORMAT": "off"})
        (tmp_path / ".env").write_text(
            "# local overrides\n"
            "PARAMFORGE_EXPORT_FORMAT='3mf'\n"
            "PARAMFORGE_OPENSCAD_BINARY=\"/opt/openscad/bin/openscad\"\n"
            "not a setting\n"
        )
        settings = load_settings(tmp_path)
        assert settings.export_format == "3mf"
        assert settings.openscad_binary == "/opt/openscad/bin/openscad"

    def test_environment_overrides_everything(self, tmp_path, monkeypatch) -> None:
        _write_config(tmp_path, {"PARAMFORGE_DEBOUNCE_MS": 200})
        (tmp_path / ".env").write_text("PARAMFORGE_DEBOUNCE_MS=300\n")
        monkeypatch.setenv("PARAMFORGE_DEBOUNCE_MS", "400")
        assert load_settings(tmp_path).debounce_ms == 400

    def test_unreadable_config_json_is_skipped(self, tmp_path, caplog) -> None:
        (tmp_path / ".paramforge").mkdir()
        (tmp_path / ".paramforge" / "config.json").write_text("{not json")
        settings = load_settings(tmp_path)
        assert settings.cache_capacity == 10
        assert "Could not read" in caplog.text

    def test_unknown_keys_are_ignored(self, tmp_path) -> None:
        _write_config(tmp_path, {"PARAMFORGE_COLOR_SCHEME": "dark", "OTHER": 1})
        assert load_settings(tmp_path) == Settings(log_level="DEBUG")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_log_level_is_normalized(self) -> None:
        assert Settings(log_level="warning").log_level == "WARNING"

    @pytest.mark.parametrize(
        "field, value",
        [("log_level", "loud"), ("preview_tier", "ultra"), ("cache_capacity", 0), ("debounce_ms", -1)],
    )
    def test_rejects_invalid_values(self, field, value) -> None:
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_from_mapping_filters_prefix(self) -> None:
        settings = Settings.from_mapping({"PARAMFORGE_PREVIEW_TIER": "draft", "HOME": "/root"})
        assert settings.preview_tier == "draft"


class TestEnvTemplate:
    def test_generate_env_template(self, tmp_path) -> None:
        path = generate_env_template(tmp_path)
        text = path.read_text()
        assert path.name == ".env.example"
        for key in _CONFIG_KEYS:
            assert f"{key}=" in text
        assert "# Preview debounce window (ms)" in text
