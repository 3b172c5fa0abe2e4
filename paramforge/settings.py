"""Settings — layered configuration for the CLI and the render pipeline.

Values are merged in order: defaults -> profile -> ``.paramforge/config.json``
-> ``.env`` -> ``PARAMFORGE_*`` environment variables, then validated into a
:class:`Settings` model.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from paramforge.config import (
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_EXPORT_FORMAT,
    DEFAULT_OPENSCAD_BINARY,
)
from paramforge.render.tiers import TIERS

logger = logging.getLogger(__name__)

ENV_PREFIX = "PARAMFORGE_"

# All known configuration keys with defaults
_CONFIG_KEYS: dict[str, dict[str, Any]] = {
    "PARAMFORGE_ENV": {"default": "development", "description": "Environment profile"},
    "PARAMFORGE_LOG_LEVEL": {"default": "INFO", "description": "Logging level"},
    "PARAMFORGE_DEBOUNCE_MS": {"default": DEFAULT_DEBOUNCE_MS, "description": "Preview debounce window (ms)"},
    "PARAMFORGE_CACHE_CAPACITY": {"default": DEFAULT_CACHE_CAPACITY, "description": "Cached results per tier"},
    "PARAMFORGE_PREVIEW_TIER": {"default": "preview", "description": "Tier used for debounced previews"},
    "PARAMFORGE_OPENSCAD_BINARY": {"default": DEFAULT_OPENSCAD_BINARY, "description": "OpenSCAD executable"},
    "PARAMFORGE_EXPORT_FORMAT": {"default": DEFAULT_EXPORT_FORMAT, "description": "Rendered artifact format"},
}

_PROFILES: dict[str, dict[str, str]] = {
    "development": {
        "PARAMFORGE_ENV": "development",
        "PARAMFORGE_LOG_LEVEL": "DEBUG",
    },
    "production": {
        "PARAMFORGE_ENV": "production",
        "PARAMFORGE_LOG_LEVEL": "WARNING",
    },
    "testing": {
        "PARAMFORGE_ENV": "testing",
        "PARAMFORGE_LOG_LEVEL": "DEBUG",
        "PARAMFORGE_DEBOUNCE_MS": "50",
    },
}


class Settings(BaseModel):
    """Validated runtime settings."""

    env: str = "development"
    log_level: str = "INFO"
    debounce_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, ge=0)
    cache_capacity: int = Field(default=DEFAULT_CACHE_CAPACITY, ge=1)
    preview_tier: str = "preview"
    openscad_binary: str = DEFAULT_OPENSCAD_BINARY
    export_format: str = DEFAULT_EXPORT_FORMAT

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{value}'")
        return value

    @field_validator("preview_tier")
    @classmethod
    def _known_tier(cls, value: str) -> str:
        if value not in TIERS:
            raise ValueError(f"Unknown quality tier '{value}'")
        return value

    @classmethod
    def from_mapping(cls, config: dict[str, str]) -> "Settings":
        """Build settings from a flat ``PARAMFORGE_*`` mapping."""
        fields = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in config.items()
            if key.startswith(ENV_PREFIX)
        }
        return cls(**{k: v for k, v in fields.items() if k in cls.model_fields})


def load_config(project_path: str | Path = ".") -> dict[str, str]:
    """Load merged config: defaults -> profile -> config.json -> .env -> env vars.

    Returns a flat dict of configuration values.
    """
    root = Path(project_path)
    config: dict[str, str] = {}

    # 1. Defaults
    for key, info in _CONFIG_KEYS.items():
        config[key] = str(info["default"])

    # 2. Profile overrides
    env_name = os.environ.get("PARAMFORGE_ENV", config["PARAMFORGE_ENV"])
    config.update(_PROFILES.get(env_name, {}))

    # 3. .paramforge/config.json
    config_json = root / ".paramforge" / "config.json"
    if config_json.is_file():
        try:
            data = json.loads(config_json.read_text(encoding="utf-8"))
            for k, v in data.items():
                config[k] = str(v)
        except (json.JSONDecodeError, OSError):
            logger.warning("Could not read %s", config_json, exc_info=True)

    # 4. .env file
    env_file = root / ".env"
    if env_file.is_file():
        for line in env_file.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            config[k.strip()] = v.strip().strip('"').strip("'")

    # 5. Environment variables override all
    for key in _CONFIG_KEYS:
        env_val = os.environ.get(key)
        if env_val is not None:
            config[key] = env_val

    return config


def load_settings(project_path: str | Path = ".") -> Settings:
    """Load and validate settings for *project_path*."""
    return Settings.from_mapping(load_config(project_path))


def generate_env_template(project_path: str | Path) -> Path:
    """Create ``.env.example`` with all config keys.

    Returns the path to the generated file.
    """
    env_path = Path(project_path) / ".env.example"
    lines = ["# paramforge configuration template", "# Copy to .env and fill in values", ""]
    for key, info in _CONFIG_KEYS.items():
        lines.append(f"# {info['description']}")
        lines.append(f"{key}={info['default']}")
        lines.append("")
    env_path.write_text("\n".join(lines), encoding="utf-8")
    return env_path
