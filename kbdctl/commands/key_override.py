"""Key override commands: list, get, add, edit, delete."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from kbdctl.commands.output import format_error, render
from kbdctl.core.errors import KeyParseError, KbdctlError, StructuralParseError
from kbdctl.core.model import ALL_LAYERS, KEY_OVERRIDE_ENABLED, CommandResult, KeyOverride, is_no_key
from kbdctl.core.sequence import canonical_key
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.slots import KEY_OVERRIDES

PUSH = (KEY_OVERRIDES.capability,)
MODIFIER_BITS = (
    (0x01, "LCTL"),
    (0x02, "LSFT"),
    (0x04, "LALT"),
    (0x08, "LGUI"),
    (0x10, "RCTL"),
    (0x20, "RSFT"),
    (0x40, "RALT"),
    (0x80, "RGUI"),
)
NUMERIC_FIELDS = {
    "layers": 0xFFFF,
    "trigger_mods": 0xFF,
    "negative_mod_mask": 0xFF,
    "suppressed_mods": 0xFF,
    "options": 0xFF,
}


def format_layer_names(layers: int) -> str:
    if layers == ALL_LAYERS:
        return "all"
    names = [str(i) for i in range(16) if layers & (1 << i)]
    return ", ".join(names) if names else "none"


def format_modifier_names(mask: int) -> str:
    return " + ".join(name for bit, name in MODIFIER_BITS if mask & bit)


def parse_number(raw: str | int, field: str) -> int:
    """Accept decimal or ``0x`` hex; values must fit the field's width."""
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    else:
        text = str(raw).strip().lower()
        try:
            value = int(text, 16) if text.startswith("0x") else int(text, 10)
        except ValueError:
            raise StructuralParseError(f"Invalid value for {field}: '{raw}'") from None
    if not 0 <= value <= NUMERIC_FIELDS[field]:
        raise StructuralParseError(
            f"Value for {field} out of range: {raw} (0-0x{NUMERIC_FIELDS[field]:X})"
        )
    return value


def parse_json_definition(text: str) -> dict[str, Any]:
    """Read a key override from a JSON object as produced by ``list -f json``."""
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        raise StructuralParseError(f"Invalid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise StructuralParseError("Invalid JSON: expected an object")

    fields: dict[str, Any] = {}
    for field, aliases in (("trigger", ("trigger_key", "trigger")), ("replacement", ("override_key", "replacement"))):
        for alias in aliases:
            if alias in doc:
                fields[field] = doc[alias]
                break
    for field in NUMERIC_FIELDS:
        if field in doc:
            fields[field] = parse_number(doc[field], field)
    if "enabled" in doc:
        fields["enabled"] = bool(doc["enabled"])
    return fields


def build_key_override(
    ctx: OperationContext,
    fields: dict[str, Any],
    base: KeyOverride | None = None,
) -> KeyOverride:
    base = base if base is not None else KeyOverride()
    changes: dict[str, Any] = {}
    for field in ("trigger", "replacement"):
        if field not in fields:
            if is_no_key(getattr(base, field)):
                raise StructuralParseError(f"Key override requires a {field} key")
            continue
        name = canonical_key(str(fields[field]), ctx.keycodes)
        if name is None:
            raise KeyParseError(f"Invalid {field} key '{fields[field]}'")
        if is_no_key(name):
            raise KeyParseError(f"{field.capitalize()} key cannot be a no-op key")
        changes[field] = name
    for field in NUMERIC_FIELDS:
        if fields.get(field) is not None:
            changes[field] = parse_number(fields[field], field)

    override = replace(base, **changes)
    enabled = fields.get("enabled")
    if enabled is True:
        override = replace(override, options=override.options | KEY_OVERRIDE_ENABLED)
    elif enabled is False:
        override = replace(override, options=override.options & ~KEY_OVERRIDE_ENABLED)
    return override


def key_override_as_dict(slot_id: int, override: KeyOverride) -> dict[str, Any]:
    return {
        "id": slot_id,
        "trigger_key": override.trigger,
        "override_key": override.replacement,
        "layers": override.layers,
        "layer_names": format_layer_names(override.layers),
        "trigger_mods": override.trigger_mods,
        "trigger_mod_names": format_modifier_names(override.trigger_mods),
        "negative_mod_mask": override.negative_mod_mask,
        "negative_mod_names": format_modifier_names(override.negative_mod_mask),
        "suppressed_mods": override.suppressed_mods,
        "suppressed_mod_names": format_modifier_names(override.suppressed_mods),
        "options": override.options,
        "enabled": override.enabled,
    }


def format_key_override(slot_id: int, override: KeyOverride, *, verbose: bool = True) -> list[str]:
    status = "enabled" if override.enabled else "disabled"
    lines = [f"Override {slot_id}: {override.trigger} -> {override.replacement} ({status})"]
    if not verbose:
        return lines
    layers = format_layer_names(override.layers)
    if layers != "all":
        lines.append(f"  Layers: {layers}")
    for label, mask in (
        ("Trigger modifiers", override.trigger_mods),
        ("Negative modifiers", override.negative_mod_mask),
        ("Suppressed modifiers", override.suppressed_mods),
    ):
        if mask:
            lines.append(f"  {label}: {format_modifier_names(mask)}")
    if override.options not in (0, KEY_OVERRIDE_ENABLED):
        lines.append(f"  Options: 0x{override.options:X}")
    return lines


def list_key_overrides(
    service: KeyboardService,
    *,
    output_format: str = "text",
    verbose: bool = False,
) -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(KEY_OVERRIDES)
        active = store.active()

        def as_text(_: Any) -> str:
            lines = [f"Found {len(active)} active key override(s) (total slots: {store.capacity}):"]
            for i, override in active:
                lines.extend(f"  {line}" for line in format_key_override(i, override, verbose=verbose))
            return "\n".join(lines)

        return render([key_override_as_dict(i, o) for i, o in active], output_format, as_text)

    return service.run(operation)


def get_key_override(service: KeyboardService, override_id: str, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(KEY_OVERRIDES)
        slot_id = store.check_id(override_id)
        override = store.get(slot_id)
        return render(
            key_override_as_dict(slot_id, override),
            output_format,
            lambda _: "\n".join(format_key_override(slot_id, override)),
        )

    return service.run(operation)


def add_key_override(service: KeyboardService, fields: dict[str, Any]) -> CommandResult:
    """Add an override built from ``trigger``, ``replacement`` and optional numeric fields."""

    def operation(ctx: OperationContext) -> int:
        override = build_key_override(ctx, fields)
        slot_id = ctx.store(KEY_OVERRIDES).add(override)
        ctx.info(f"Key override successfully added with ID {slot_id}.")
        return slot_id

    return service.run(operation, requires=PUSH)


def edit_key_override(service: KeyboardService, override_id: str, fields: dict[str, Any]) -> CommandResult:
    """Edit an override; numeric fields not given keep their current values."""

    def operation(ctx: OperationContext) -> int:
        store = ctx.store(KEY_OVERRIDES)
        slot_id = store.check_id(override_id)
        current = store.get(slot_id)
        store.edit(slot_id, build_key_override(ctx, fields, base=current))
        ctx.info(f"Key override {slot_id} updated successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)


def delete_key_overrides(
    service: KeyboardService,
    override_ids: Sequence[str] = (),
    *,
    all_disabled: bool = False,
    all_empty: bool = False,
) -> CommandResult:
    if all_disabled and all_empty:
        return CommandResult(errors=("Use only one of --all-disabled and --all-empty.",), exit_code=1)
    if not override_ids and not (all_disabled or all_empty):
        return CommandResult(
            errors=("At least one key override ID must be provided, or use --all-disabled/--all-empty.",),
            exit_code=1,
        )

    def operation(ctx: OperationContext) -> list[int]:
        store = ctx.store(KEY_OVERRIDES)
        if override_ids and (all_disabled or all_empty):
            ctx.warn("ID arguments ignored when using --all-disabled or --all-empty.")

        if all_disabled:
            targets = [i for i, o in store.active() if not o.enabled]
            if not targets:
                ctx.info("No disabled key overrides found to delete.")
                return []
        elif all_empty:
            targets = [i for i, o in enumerate(store.entities) if store.kind.is_empty(o)]
            if not targets:
                ctx.info("No empty key overrides found to delete.")
                return []
        else:
            targets = [store.check_id(raw) for raw in override_ids]

        already_empty = store.delete_many(targets)
        if already_empty and not all_empty:
            ctx.warn(
                f"Key override(s) already empty: {', '.join(str(i) for i in already_empty)}."
            )
        ids = ", ".join(str(i) for i in dict.fromkeys(targets))
        ctx.info(f"Deleted key override(s): {ids}.")
        return list(dict.fromkeys(targets))

    return service.run(operation, requires=PUSH)


def ensure_fields(
    trigger: str | None,
    replacement: str | None,
    json_text: str | None,
    *,
    require_keys: bool = True,
) -> dict[str, Any]:
    """Merge positional keys with an optional ``--json`` definition."""
    fields = parse_json_definition(json_text) if json_text else {}
    if trigger is not None:
        fields["trigger"] = trigger
    if replacement is not None:
        fields["replacement"] = replacement
    if require_keys and ("trigger" not in fields or "replacement" not in fields):
        raise KbdctlError("Both a trigger key and an override key are required.")
    return fields
