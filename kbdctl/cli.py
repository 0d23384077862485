"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import click
import typer

from kbdctl.commands import combo as combo_commands
from kbdctl.commands import key_override as key_override_commands
from kbdctl.commands import keyboard as keyboard_commands
from kbdctl.commands import keymap as keymap_commands
from kbdctl.commands import macro as macro_commands
from kbdctl.commands import qmk_setting as qmk_setting_commands
from kbdctl.commands import tapdance as tapdance_commands
from kbdctl.core.device_select import format_device_list
from kbdctl.core.errors import KbdctlError
from kbdctl.core.files import deliver_output
from kbdctl.core.model import CommandResult, DeviceCandidate
from kbdctl.core.service import KeyboardService

app = typer.Typer(help="Configure QMK/Vial keyboards over USB HID")
keyboard_app = typer.Typer(help="Keyboard-wide operations")
macro_app = typer.Typer(help="Macro operations")
tapdance_app = typer.Typer(help="Tapdance operations")
combo_app = typer.Typer(help="Combo operations")
key_override_app = typer.Typer(help="Key override operations")
qmk_setting_app = typer.Typer(help="QMK setting operations")

app.add_typer(keyboard_app, name="keyboard")
app.add_typer(macro_app, name="macro")
app.add_typer(tapdance_app, name="tapdance")
app.add_typer(combo_app, name="combo")
app.add_typer(key_override_app, name="key-override")
app.add_typer(qmk_setting_app, name="qmk-setting")

FORMAT_OPTION = typer.Option("text", "--format", "-f", help="Output format: text or json")
OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Write output to this file")

_state: dict[str, object] = {"device": None, "interactive": None}


@app.callback()
def main(
    device: str | None = typer.Option(None, "--device", "-d", help="Manufacturer, product, serial or VID:PID"),
    interactive: bool = typer.Option(False, "--interactive", "-i", help="Prompt when several keyboards match"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    _state["device"] = device
    _state["interactive"] = True if interactive else None
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _prompt_for_device(candidates: Sequence[DeviceCandidate]) -> DeviceCandidate:
    typer.echo(f"Multiple keyboards found:\n{format_device_list(candidates)}", err=True)
    index = typer.prompt("Select keyboard", type=click.IntRange(0, len(candidates) - 1), err=True)
    return candidates[index]


def _build_service() -> KeyboardService:
    service = KeyboardService(
        device_hint=_state["device"],
        interactive=_state["interactive"],
        chooser=_prompt_for_device,
    )
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _emit(result: CommandResult, output: Path | None = None) -> None:
    exit_code = result.exit_code
    for message in result.messages:
        typer.echo(message)
    if result.ok and isinstance(result.value, str):
        delivery = deliver_output(result.value, output)
        if delivery.error:
            typer.echo(f"Error: {delivery.error}", err=True)
            typer.echo("Output (fallback due to file write error):")
            exit_code = 1
        if delivery.printed is not None:
            typer.echo(delivery.printed)
        if delivery.message:
            typer.echo(delivery.message)
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    for error in result.errors:
        typer.echo(f"Error: {error}", err=True)
    if exit_code:
        raise typer.Exit(code=exit_code)


def _run(command, *args, output: Path | None = None, **kwargs) -> None:
    try:
        service = _build_service()
        result = command(service, *args, **kwargs)
    except KbdctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    _emit(result, output)


@keyboard_app.command("devices")
def keyboard_devices() -> None:
    """List connected keyboards."""
    _run(keyboard_commands.list_devices)


@keyboard_app.command("info")
def keyboard_info(output: Path | None = OUTPUT_OPTION) -> None:
    """Dump everything loaded from the keyboard as JSON."""
    _run(keyboard_commands.keyboard_info, output=output)


@keyboard_app.command("get-keymap")
def keyboard_get_keymap(
    layer: str | None = typer.Option(None, "--layer", "-l", help="Only this layer"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format: json or text"),
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Show the keymap."""
    _run(keymap_commands.get_keymap, layer=layer, output_format=output_format, output=output)


@keyboard_app.command("set-keymap")
def keyboard_set_keymap(
    key: str,
    position: str,
    layer: str = typer.Option("0", "--layer", "-l", help="Layer number"),
) -> None:
    """Set the key at a flat POSITION index (row * cols + col)."""
    _run(keymap_commands.set_keymap_key, key, position, layer=layer)


@keyboard_app.command("upload")
def keyboard_upload(path: str) -> None:
    """Upload a .vil, .svl or .kbi file to the keyboard."""
    _run(keyboard_commands.upload, path)


@keyboard_app.command("download")
def keyboard_download(path: str) -> None:
    """Download the keyboard configuration to a .svl or .kbi file."""
    _run(keyboard_commands.download, path)


@macro_app.command("list")
def macro_list(output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """List active macros."""
    _run(macro_commands.list_macros, output_format=output_format, output=output)


@macro_app.command("get")
def macro_get(macro_id: str, output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """Show one macro."""
    _run(macro_commands.get_macro, macro_id, output_format=output_format, output=output)


@macro_app.command("add")
def macro_add(definition: str) -> None:
    """Add a macro, e.g. "KC_A,DELAY(100),LCTL(KC_C)"."""
    _run(macro_commands.add_macro, definition)


@macro_app.command("edit")
def macro_edit(macro_id: str, definition: str) -> None:
    """Replace the actions of an existing macro."""
    _run(macro_commands.edit_macro, macro_id, definition)


@macro_app.command("delete")
def macro_delete(macro_id: str) -> None:
    """Clear a macro slot."""
    _run(macro_commands.delete_macro, macro_id)


@tapdance_app.command("list")
def tapdance_list(output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """List active tapdances."""
    _run(tapdance_commands.list_tapdances, output_format=output_format, output=output)


@tapdance_app.command("get")
def tapdance_get(tapdance_id: str, output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """Show one tapdance."""
    _run(tapdance_commands.get_tapdance, tapdance_id, output_format=output_format, output=output)


@tapdance_app.command("add")
def tapdance_add(definition: str) -> None:
    """Add a tapdance, e.g. "TAP(KC_A),HOLD(KC_B),TERM(250)"."""
    _run(tapdance_commands.add_tapdance, definition)


@tapdance_app.command("edit")
def tapdance_edit(tapdance_id: str, definition: str) -> None:
    """Replace an existing tapdance."""
    _run(tapdance_commands.edit_tapdance, tapdance_id, definition)


@tapdance_app.command("delete")
def tapdance_delete(tapdance_id: str) -> None:
    """Clear a tapdance slot."""
    _run(tapdance_commands.delete_tapdance, tapdance_id)


@combo_app.command("list")
def combo_list(output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """List active combos."""
    _run(combo_commands.list_combos, output_format=output_format, output=output)


@combo_app.command("get")
def combo_get(combo_id: str, output_format: str = FORMAT_OPTION, output: Path | None = OUTPUT_OPTION) -> None:
    """Show one combo."""
    _run(combo_commands.get_combo, combo_id, output_format=output_format, output=output)


@combo_app.command("add")
def combo_add(definition: str) -> None:
    """Add a combo, e.g. "KC_A+KC_S KC_D"."""
    _run(combo_commands.add_combo, definition)


@combo_app.command("edit")
def combo_edit(combo_id: str, definition: str) -> None:
    """Replace an existing combo."""
    _run(combo_commands.edit_combo, combo_id, definition)


@combo_app.command("delete")
def combo_delete(combo_id: str) -> None:
    """Clear a combo slot."""
    _run(combo_commands.delete_combo, combo_id)


def _key_override_fields(
    trigger: str | None,
    replacement: str | None,
    json_text: str | None,
    layers: str | None,
    trigger_mods: str | None,
    negative_mods: str | None,
    suppressed_mods: str | None,
    options: str | None,
    enabled: bool | None,
    *,
    require_keys: bool = True,
) -> dict[str, object]:
    fields = key_override_commands.ensure_fields(trigger, replacement, json_text, require_keys=require_keys)
    for name, value in (
        ("layers", layers),
        ("trigger_mods", trigger_mods),
        ("negative_mod_mask", negative_mods),
        ("suppressed_mods", suppressed_mods),
        ("options", options),
    ):
        if value is not None:
            fields[name] = value
    if enabled is not None:
        fields["enabled"] = enabled
    return fields


LAYERS_OPTION = typer.Option(None, "--layers", help="Layer mask, hex or decimal")
TRIGGER_MODS_OPTION = typer.Option(None, "--trigger-mods", help="Trigger modifier mask")
NEGATIVE_MODS_OPTION = typer.Option(None, "--negative-mods", help="Negative modifier mask")
SUPPRESSED_MODS_OPTION = typer.Option(None, "--suppressed-mods", help="Suppressed modifier mask")
OPTIONS_OPTION = typer.Option(None, "--options", help="Raw options byte")
ENABLED_OPTION = typer.Option(None, "--enabled/--disabled", help="Enable or disable the override")
JSON_OPTION = typer.Option(None, "--json", help="Override definition as a JSON object")


@key_override_app.command("list")
def key_override_list(
    output_format: str = FORMAT_OPTION,
    output: Path | None = OUTPUT_OPTION,
    verbose: bool = typer.Option(False, "--verbose", help="Show layers, modifiers and options"),
) -> None:
    """List active key overrides."""
    _run(
        key_override_commands.list_key_overrides,
        output_format=output_format,
        verbose=verbose,
        output=output,
    )


@key_override_app.command("get")
def key_override_get(
    override_id: str,
    output_format: str = FORMAT_OPTION,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Show one key override."""
    _run(key_override_commands.get_key_override, override_id, output_format=output_format, output=output)


@key_override_app.command("add")
def key_override_add(
    trigger: str | None = typer.Argument(None),
    replacement: str | None = typer.Argument(None),
    json_text: str | None = JSON_OPTION,
    layers: str | None = LAYERS_OPTION,
    trigger_mods: str | None = TRIGGER_MODS_OPTION,
    negative_mods: str | None = NEGATIVE_MODS_OPTION,
    suppressed_mods: str | None = SUPPRESSED_MODS_OPTION,
    options: str | None = OPTIONS_OPTION,
    enabled: bool | None = ENABLED_OPTION,
) -> None:
    """Add a key override making TRIGGER behave as REPLACEMENT."""
    try:
        fields = _key_override_fields(
            trigger, replacement, json_text, layers, trigger_mods, negative_mods, suppressed_mods, options, enabled
        )
    except KbdctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    _run(key_override_commands.add_key_override, fields)


@key_override_app.command("edit")
def key_override_edit(
    override_id: str,
    trigger: str | None = typer.Argument(None),
    replacement: str | None = typer.Argument(None),
    json_text: str | None = JSON_OPTION,
    layers: str | None = LAYERS_OPTION,
    trigger_mods: str | None = TRIGGER_MODS_OPTION,
    negative_mods: str | None = NEGATIVE_MODS_OPTION,
    suppressed_mods: str | None = SUPPRESSED_MODS_OPTION,
    options: str | None = OPTIONS_OPTION,
    enabled: bool | None = ENABLED_OPTION,
) -> None:
    """Edit an existing key override."""
    try:
        fields = _key_override_fields(
            trigger, replacement, json_text, layers, trigger_mods, negative_mods, suppressed_mods, options, enabled,
            require_keys=False,
        )
    except KbdctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    _run(key_override_commands.edit_key_override, override_id, fields)


@key_override_app.command("delete")
def key_override_delete(
    override_ids: list[str] | None = typer.Argument(None),
    all_disabled: bool = typer.Option(False, "--all-disabled", help="Delete every disabled override"),
    all_empty: bool = typer.Option(False, "--all-empty", help="Clear every empty slot"),
) -> None:
    """Delete one or more key overrides."""
    _run(
        key_override_commands.delete_key_overrides,
        override_ids or (),
        all_disabled=all_disabled,
        all_empty=all_empty,
    )


@qmk_setting_app.command("list")
def qmk_setting_list(output: Path | None = OUTPUT_OPTION) -> None:
    """List QMK settings and their current values."""
    _run(qmk_setting_commands.list_settings, as_json=output is not None, output=output)


@qmk_setting_app.command("get")
def qmk_setting_get(name: str) -> None:
    """Show one QMK setting."""
    _run(qmk_setting_commands.get_setting, name)


@qmk_setting_app.command("set")
def qmk_setting_set(name: str, value: str) -> None:
    """Change a QMK setting. VALUE may be true/false, a number or text."""
    _run(qmk_setting_commands.set_setting, name, value)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
