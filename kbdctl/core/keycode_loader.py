"""Keycode table loading and validation for YAML-based kbdctl keycode tables."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from kbdctl.core.errors import KeycodeTableError, KeycodeTableValidationError
from kbdctl.core.keycodes import KeycodeTable, KeycodeTableSpec, LayerFunction

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise KeycodeTableValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedKeycodes:
    table: KeycodeTable
    specs: dict[str, KeycodeTableSpec]
    warnings: tuple[str, ...]


def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("kbdctl.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def format_validation_error(exc: ValidationError) -> str:
    path = ".".join(str(p) for p in exc.path)
    where = f" ({path})" if path else ""
    return f"{where}: {exc.message}"


def _keycode_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "kbdctl/keycodes", xdg_data / "kbdctl/keycodes"


def read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise KeycodeTableError(f"Could not read keycode table {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise KeycodeTableValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise KeycodeTableValidationError(f"Keycode table {path} must contain a mapping at root")
    return loaded


def _build_spec(doc: dict[str, Any], source: Path | Traversable) -> KeycodeTableSpec:
    validator = load_schema_validator("keycodes.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        raise KeycodeTableValidationError(
            f"Schema validation failed for {source}{format_validation_error(exc)}"
        ) from exc

    keycodes = dict(doc.get("keycodes", {}))
    modifiers = dict(doc.get("modifiers", {}))
    collisions = sorted(set(keycodes) & set(modifiers))
    if collisions:
        raise KeycodeTableValidationError(
            f"{doc['id']}: names used both as keycode and modifier: {', '.join(collisions)}"
        )

    return KeycodeTableSpec(
        id=doc["id"],
        name=doc["name"],
        keycodes=keycodes,
        aliases=dict(doc.get("aliases", {})),
        modifiers=modifiers,
        layer_functions={
            name: LayerFunction(base=int(spec["base"]), max=int(spec["max"]))
            for name, spec in doc.get("layer_functions", {}).items()
        },
    )


def _iter_packaged_table_paths() -> list[Traversable]:
    table_root = resources.files("kbdctl.keycodes")
    return [item for item in table_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_table_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _keycode_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_keycodes() -> LoadedKeycodes:
    specs: dict[str, KeycodeTableSpec] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_table_paths(), key=lambda p: p.name):
        spec = _build_spec(read_yaml(path), path)
        specs[spec.id] = spec

    for path in _iter_user_table_paths():
        spec = _build_spec(read_yaml(path), path)
        if spec.id in specs:
            warning = f"User keycode table '{spec.id}' overrides packaged table"
            LOGGER.warning(warning)
            warnings.append(warning)
        specs[spec.id] = spec

    return LoadedKeycodes(table=KeycodeTable(specs.values()), specs=specs, warnings=tuple(warnings))
