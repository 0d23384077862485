"""User configuration loaded from ``$XDG_CONFIG_HOME/kbdctl/config.yaml``."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from kbdctl.core.errors import ConfigError, KbdctlError
from kbdctl.core.keycode_loader import (
    UniqueKeyLoader,
    format_validation_error,
    load_schema_validator,
)
from kbdctl.core.model import COMBO_TRIGGER_SLOTS

DEFAULT_TAPPING_TERM = 200
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    firmware: str | None = None
    device: str | None = None
    interactive: bool = False
    tapping_term: int = DEFAULT_TAPPING_TERM
    max_combo_triggers: int = COMBO_TRIGGER_SLOTS


def config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "kbdctl/config.yaml"


def _normalize_bool(value: Any, *, context: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
    raise ConfigError(f"{context} must be boolean true/false")


def _read_document(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except KbdctlError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def load_config(path: Path | None = None) -> Config:
    path = path or config_path()
    config = Config()

    if path.exists():
        doc = _read_document(path)
        validator = load_schema_validator("config.schema.json")
        try:
            validator.validate(doc)
        except ValidationError as exc:
            raise ConfigError(
                f"Schema validation failed for {path}{format_validation_error(exc)}"
            ) from exc
        if "interactive" in doc:
            doc["interactive"] = _normalize_bool(doc["interactive"], context=f"{path}: interactive")
        config = replace(config, **doc)
        LOGGER.debug("Loaded config from %s", path)

    env_overrides = {
        field: os.environ[var]
        for field, var in (("firmware", "KBDCTL_FIRMWARE"), ("device", "KBDCTL_DEVICE"))
        if os.environ.get(var)
    }
    if env_overrides:
        config = replace(config, **env_overrides)
    return config
