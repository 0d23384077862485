"""Whole-keyboard commands: devices, info, upload and download."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from kbdctl.commands.keymap import persist_keymap, write_key
from kbdctl.commands.qmk_setting import persist_settings, push_setting
from kbdctl.core import files
from kbdctl.core.bulk import Section, process_sections, summarize
from kbdctl.core.device_select import format_device_list
from kbdctl.core.errors import KbdctlError, KeyParseError, PersistFailedError, UploadValidationError
from kbdctl.core.keycode_loader import format_validation_error, load_schema_validator
from kbdctl.core.keycodes import KeycodeCodec
from kbdctl.core.model import (
    NO_KEY,
    Action,
    Combo,
    CommandResult,
    KeyOverride,
    Macro,
    SectionOutcome,
    Snapshot,
    TapDance,
    is_no_key,
)
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.session import require_fields
from kbdctl.core.slots import COMBOS, KEY_OVERRIDES, MACROS, TAPDANCES, SlotKind
from kbdctl.firmware.base import capability, has_capability, persist_function

JSON_SUFFIXES = (".svl", ".kbi")
UPLOAD_SUFFIXES = (".vil", *JSON_SUFFIXES)
DIMENSIONS = ("layers", "rows", "cols")
LOGGER = logging.getLogger(__name__)


def list_devices(service: KeyboardService) -> CommandResult:
    try:
        candidates = service.list_devices()
    except KbdctlError as exc:
        return CommandResult(errors=(str(exc),), exit_code=1)
    if not candidates:
        return CommandResult(errors=("No compatible keyboard found.",), exit_code=1)
    return CommandResult(value=f"Device(s):\n{format_device_list(candidates)}")


def _key_name(value: str | int, keycodes: KeycodeCodec, where: str) -> str:
    if isinstance(value, int):
        if not 0 <= value <= 0xFFFF:
            raise KeyParseError(f"Invalid keycode {value} in {where}")
        return keycodes.stringify(value)
    if is_no_key(value):
        return NO_KEY
    code = keycodes.parse(value)
    if code is None:
        raise KeyParseError(f"Invalid keycode '{value}' in {where}")
    return keycodes.stringify(code)


def _key_code(value: str | int, keycodes: KeycodeCodec, where: str) -> int:
    if isinstance(value, int):
        if not 0 <= value <= 0xFFFF:
            raise KeyParseError(f"Invalid keycode {value} in {where}")
        return value
    code = keycodes.parse(value) if value else 0
    if code is None:
        raise KeyParseError(f"Invalid keycode '{value}' in {where}")
    return code


def snapshot_document(snapshot: Snapshot, keycodes: KeycodeCodec) -> dict[str, Any]:
    """Serialize a snapshot into the .svl/.kbi document shape."""
    doc: dict[str, Any] = {name: getattr(snapshot, name) for name in DIMENSIONS if getattr(snapshot, name) is not None}
    doc["device_info"] = {
        "name": snapshot.name,
        "vendor_id": snapshot.vendor_id,
        "product_id": snapshot.product_id,
        **{name: getattr(snapshot, name) for name in DIMENSIONS},
    }
    if snapshot.keymap is not None:
        doc["keymap"] = [[keycodes.stringify(code) for code in layer] for layer in snapshot.keymap]
    if snapshot.macros is not None:
        doc["macros"] = [[action.as_list() for action in macro.actions] for macro in snapshot.macros]
    if snapshot.combos is not None:
        doc["combos"] = [combo.as_list() for combo in snapshot.combos]
    if snapshot.tapdances is not None:
        doc["tapdances"] = [td.as_dict() for td in snapshot.tapdances]
    if snapshot.key_overrides is not None:
        doc["key_overrides"] = [ko.as_dict() for ko in snapshot.key_overrides]
    if snapshot.qmk_settings is not None:
        doc["qmk_settings"] = dict(snapshot.qmk_settings)
    return doc


def keyboard_info(service: KeyboardService) -> CommandResult:
    def operation(ctx: OperationContext) -> str:
        return json.dumps(snapshot_document(ctx.snapshot, ctx.keycodes), indent=2)

    return service.run(operation)


def validate_document(text: str, source: str) -> dict[str, Any]:
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UploadValidationError(f"Invalid JSON in {source}: {exc}") from exc
    if not isinstance(doc, dict):
        raise UploadValidationError(f"Invalid {source}: must contain a JSON object")

    validator = load_schema_validator("upload.schema.json")
    try:
        validator.validate(doc)
    except ValidationError as exc:
        raise UploadValidationError(
            f"Invalid {source}{format_validation_error(exc)}"
        ) from exc

    device_info = doc.get("device_info") or {}
    if not any(
        isinstance(scope.get(name), int) and scope[name] >= 0
        for scope in (doc, device_info)
        for name in DIMENSIONS
    ):
        raise UploadValidationError(
            f"Invalid {source}: must contain at least one keyboard dimension (layers, rows, or cols)"
        )
    return doc


def _flatten_layer(layer: list[Any]) -> list[Any]:
    flat: list[Any] = []
    for entry in layer:
        if isinstance(entry, list):
            flat.extend(entry)
        else:
            flat.append(entry)
    return flat


def _apply_keymap(ctx: OperationContext, keymap: list[list[Any]]) -> bool:
    snapshot = ctx.snapshot
    require_fields(snapshot, "layers", "rows", "cols", what="Keyboard dimension")
    if len(keymap) > snapshot.layers:
        raise UploadValidationError(f"File has {len(keymap)} layers, keyboard supports {snapshot.layers}")
    size = snapshot.rows * snapshot.cols

    layers: list[list[int]] = []
    for layer_index, layer in enumerate(keymap):
        flat = _flatten_layer(layer)
        if len(flat) > size:
            raise UploadValidationError(f"Layer {layer_index} has {len(flat)} keys, keyboard has {size}")
        layers.append([_key_code(value, ctx.keycodes, f"keymap layer {layer_index}") for value in flat])

    for layer_index, codes in enumerate(layers):
        for index, code in enumerate(codes):
            write_key(ctx, layer_index, index // snapshot.cols, index % snapshot.cols, code)
    ctx.info(f"Keymap: updated {sum(len(codes) for codes in layers)} keys.")
    return persist_keymap(ctx)


def _macro_from_file(actions: list[list[Any]], ctx: OperationContext, where: str) -> Macro:
    converted = []
    for kind, value in actions:
        if kind in ("tap", "down", "up"):
            value = _key_name(value, ctx.keycodes, where)
            if is_no_key(value):
                raise KeyParseError(f"Macro action cannot use a no-op key in {where}")
        elif kind == "delay":
            if not isinstance(value, int) or value < 0:
                raise UploadValidationError(f"Delay must be a non-negative integer in {where}")
        converted.append(Action(kind, value))
    return Macro(actions=tuple(converted))


def _combo_from_file(entry: list[Any], ctx: OperationContext, where: str) -> Combo:
    names = [_key_name(value, ctx.keycodes, where) for value in entry]
    return Combo(triggers=tuple(names[:4]), action=names[4])


def _tapdance_from_file(entry: dict[str, Any], ctx: OperationContext, where: str) -> TapDance:
    keys = {name: _key_name(entry[name], ctx.keycodes, where) for name in ("tap", "hold", "doubletap", "taphold")}
    return TapDance(tapms=entry["tapms"], **keys)


def _key_override_from_file(entry: dict[str, Any], ctx: OperationContext, where: str) -> KeyOverride:
    numeric = {
        name: entry[name]
        for name in ("layers", "trigger_mods", "negative_mod_mask", "suppressed_mods", "options")
        if name in entry
    }
    return KeyOverride(
        trigger=_key_name(entry["trigger"], ctx.keycodes, where),
        replacement=_key_name(entry["replacement"], ctx.keycodes, where),
        **numeric,
    )


_CONVERTERS = {
    "macros": (MACROS, _macro_from_file),
    "combos": (COMBOS, _combo_from_file),
    "tapdances": (TAPDANCES, _tapdance_from_file),
    "key_overrides": (KEY_OVERRIDES, _key_override_from_file),
}


def _slot_section(ctx: OperationContext, name: str, payload: list[Any]) -> Section:
    kind, convert = _CONVERTERS[name]

    def apply(entries: list[Any]) -> bool:
        store = ctx.store(kind)
        converted = [convert(entry, ctx, f"{name}[{i}]") for i, entry in enumerate(entries)]
        persisted = store.replace_all(converted)
        ctx.info(f"{kind.label}s: wrote {len(converted)} of {store.capacity} slots.")
        return persisted

    return Section(name=name, payload=payload, apply=apply, unavailable=_missing(ctx, kind))


def _missing(ctx: OperationContext, kind: SlotKind) -> Callable[[], str | None]:
    def unavailable() -> str | None:
        if not has_capability(ctx.firmware, kind.capability):
            return f"{kind.capability} not available"
        return None

    return unavailable


def _settings_section(ctx: OperationContext, payload: dict[str, Any]) -> Section:
    def apply(settings: dict[str, Any]) -> bool:
        require_fields(ctx.snapshot, "qmk_settings", what="QMK settings")
        failures = []
        for name, value in settings.items():
            try:
                push_setting(ctx, str(name), value)
            except KbdctlError as exc:
                failures.append(str(exc))
        if failures:
            raise KbdctlError(f"{len(failures)} of {len(settings)} settings failed: {'; '.join(failures)}")
        return persist_settings(ctx)

    def unavailable() -> str | None:
        return None if has_capability(ctx.firmware, "qmk_settings.push") else "qmk_settings.push not available"

    return Section(name="qmk_settings", payload=payload, apply=apply, unavailable=unavailable)


def build_sections(ctx: OperationContext, doc: dict[str, Any]) -> list[Section]:
    sections: list[Section] = []
    if "keymap" in doc:
        sections.append(
            Section(
                name="keymap",
                payload=doc["keymap"],
                apply=lambda keymap: _apply_keymap(ctx, keymap),
                unavailable=lambda: None
                if has_capability(ctx.firmware, "keymap.set_key")
                else "keymap.set_key not available",
            )
        )
    for name in ("macros", "key_overrides", "combos", "tapdances"):
        if name in doc:
            sections.append(_slot_section(ctx, name, doc[name]))
    settings = doc.get("qmk_settings", doc.get("settings"))
    if settings is not None:
        sections.append(_settings_section(ctx, settings))
    return sections


def _vil_section(ctx: OperationContext, text: str) -> Section:
    def apply(content: str) -> bool:
        capability(ctx.firmware, None, "apply_vil")(content)
        return persist_keymap_after_vil(ctx)

    return Section(
        name=".vil content",
        payload=text,
        apply=apply,
        unavailable=lambda: None
        if has_capability(ctx.firmware, "apply_vil")
        else ".vil upload is not supported by this firmware (no apply_vil)",
    )


def persist_keymap_after_vil(ctx: OperationContext) -> bool:
    save = persist_function(ctx.firmware, "keymap")
    if save is None:
        return False
    try:
        save()
    except Exception as exc:
        raise PersistFailedError(f"Failed to save keymap: {exc}") from exc
    return True


def upload(service: KeyboardService, path: str) -> CommandResult:
    suffix = Path(path).suffix.lower()
    try:
        if suffix not in UPLOAD_SUFFIXES:
            raise UploadValidationError(
                f"Unsupported file type '{suffix}'. Only .vil, .svl, or .kbi files are supported."
            )
        text = files.read_text(path)
        doc = validate_document(text, suffix) if suffix in JSON_SUFFIXES else None
    except KbdctlError as exc:
        return CommandResult(errors=(str(exc),), exit_code=1)

    def operation(ctx: OperationContext) -> CommandResult:
        ctx.info(f"Current device layers: {ctx.snapshot.layers}, rows: {ctx.snapshot.rows}, cols: {ctx.snapshot.cols}")
        sections = [_vil_section(ctx, text)] if doc is None else build_sections(ctx, doc)
        if not sections:
            ctx.warn(f"No recognizable configuration sections found in {path}.")
        LOGGER.debug("Processing %d section(s) from %s", len(sections), path)
        result = process_sections(sections)
        errors = tuple(
            f"{r.section}: {r.detail}" for r in result.results if r.outcome is SectionOutcome.FAILED
        )
        warnings = tuple(
            f"{r.section}: {r.detail}"
            for r in result.results
            if r.outcome in (SectionOutcome.SKIPPED, SectionOutcome.WARNING)
        )
        return CommandResult(
            value=result,
            messages=tuple(summarize(result)),
            warnings=warnings,
            errors=errors,
            exit_code=result.exit_code,
        )

    return service.run(operation)


def download(service: KeyboardService, path: str) -> CommandResult:
    suffix = Path(path).suffix.lower()
    if suffix not in JSON_SUFFIXES:
        return CommandResult(
            errors=(f"Unsupported file type '{suffix}'. Only .svl or .kbi files are supported.",),
            exit_code=1,
        )

    def operation(ctx: OperationContext) -> dict[str, Any]:
        return snapshot_document(ctx.snapshot, ctx.keycodes)

    result = service.run(operation)
    if not result.ok:
        return result
    try:
        files.write_text(path, json.dumps(result.value, indent=2))
    except KbdctlError as exc:
        return result.extend(errors=(str(exc),), exit_code=1)
    return result.extend(messages=(f"Keyboard configuration downloaded to {path}",))
