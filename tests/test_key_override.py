from __future__ import annotations

import json

import pytest

from kbdctl.commands.key_override import (
    add_key_override,
    delete_key_overrides,
    edit_key_override,
    ensure_fields,
    format_key_override,
    format_layer_names,
    format_modifier_names,
    get_key_override,
    list_key_overrides,
    parse_json_definition,
    parse_number,
)
from kbdctl.core.errors import KbdctlError, StructuralParseError
from kbdctl.core.model import KeyOverride


def test_layer_and_modifier_names() -> None:
    assert format_layer_names(0xFFFF) == "all"
    assert format_layer_names(0) == "none"
    assert format_layer_names(0b101) == "0, 2"
    assert format_modifier_names(0x22) == "LSFT + RSFT"
    assert format_modifier_names(0) == ""


def test_parse_number() -> None:
    assert parse_number("0x02", "trigger_mods") == 2
    assert parse_number("65535", "layers") == 0xFFFF
    with pytest.raises(StructuralParseError):
        parse_number("0x100", "trigger_mods")
    with pytest.raises(StructuralParseError):
        parse_number("two", "options")


def test_parse_json_definition_accepts_list_output() -> None:
    fields = parse_json_definition(
        '{"trigger_key": "KC_BSPC", "override_key": "KC_DEL", "trigger_mods": 2, "enabled": false}'
    )
    assert fields == {"trigger": "KC_BSPC", "replacement": "KC_DEL", "trigger_mods": 2, "enabled": False}
    with pytest.raises(StructuralParseError):
        parse_json_definition("[1, 2]")


def test_ensure_fields() -> None:
    assert ensure_fields("KC_A", None, '{"override_key": "KC_B"}') == {"trigger": "KC_A", "replacement": "KC_B"}
    with pytest.raises(KbdctlError):
        ensure_fields("KC_A", None, None)
    assert ensure_fields(None, None, None, require_keys=False) == {}


def test_add_and_get(service, firmware) -> None:
    result = add_key_override(
        service,
        {"trigger": "KC_BSPC", "replacement": "KC_DEL", "trigger_mods": "0x02", "suppressed_mods": "0x02"},
    )
    assert result.messages == ("Key override successfully added with ID 0.",)
    assert firmware.device.key_overrides[0] == KeyOverride(
        trigger="KC_BACKSPACE", replacement="KC_DELETE", trigger_mods=2, suppressed_mods=2
    )

    assert get_key_override(service, "0").value == (
        "Override 0: KC_BACKSPACE -> KC_DELETE (enabled)\n"
        "  Trigger modifiers: LSFT\n"
        "  Suppressed modifiers: LSFT"
    )
    data = json.loads(get_key_override(service, "0", output_format="json").value)
    assert data["trigger_key"] == "KC_BACKSPACE"
    assert data["layer_names"] == "all"
    assert data["enabled"] is True


def test_add_disabled(service, firmware) -> None:
    add_key_override(service, {"trigger": "KC_A", "replacement": "KC_B", "enabled": False})
    assert not firmware.device.key_overrides[0].enabled


def test_add_rejects_no_op_key(service, firmware) -> None:
    result = add_key_override(service, {"trigger": "KC_A", "replacement": "KC_NO"})
    assert result.errors == ("Replacement key cannot be a no-op key",)
    assert firmware.key_overrides.pushes == []


def test_add_rejects_unknown_key(service) -> None:
    result = add_key_override(service, {"trigger": "KC_NOPE", "replacement": "KC_B"})
    assert result.errors == ("Invalid trigger key 'KC_NOPE'",)


def test_list_verbose(service, firmware) -> None:
    firmware.device.key_overrides[1] = KeyOverride(trigger="KC_A", replacement="KC_B", layers=0b11, options=0x81)
    firmware.device.key_overrides[2] = KeyOverride(trigger="KC_C", replacement="KC_D", options=0)

    assert list_key_overrides(service).value == (
        "Found 2 active key override(s) (total slots: 4):\n"
        "  Override 1: KC_A -> KC_B (enabled)\n"
        "  Override 2: KC_C -> KC_D (disabled)"
    )
    assert list_key_overrides(service, verbose=True).value == (
        "Found 2 active key override(s) (total slots: 4):\n"
        "  Override 1: KC_A -> KC_B (enabled)\n"
        "    Layers: 0, 1\n"
        "    Options: 0x81\n"
        "  Override 2: KC_C -> KC_D (disabled)"
    )


def test_edit_keeps_unspecified_fields(service, firmware) -> None:
    firmware.device.key_overrides[0] = KeyOverride(trigger="KC_A", replacement="KC_B", trigger_mods=0x01)
    result = edit_key_override(service, "0", {"replacement": "KC_C", "layers": "0x1"})
    assert result.messages == ("Key override 0 updated successfully.",)
    assert firmware.device.key_overrides[0] == KeyOverride(
        trigger="KC_A", replacement="KC_C", trigger_mods=0x01, layers=1
    )

    edit_key_override(service, "0", {"enabled": False})
    assert not firmware.device.key_overrides[0].enabled
    assert firmware.device.key_overrides[0].replacement == "KC_C"


def test_edit_empty_slot(service) -> None:
    result = edit_key_override(service, "3", {"trigger": "KC_A"})
    assert result.errors == ("Key override with ID 3 not found or not set.",)


def test_delete_multiple_ids(service, firmware) -> None:
    firmware.device.key_overrides[0] = KeyOverride(trigger="KC_A", replacement="KC_B")
    firmware.device.key_overrides[2] = KeyOverride(trigger="KC_C", replacement="KC_D")

    result = delete_key_overrides(service, ["0", "1", "2"])
    assert result.exit_code == 0
    assert result.warnings == ("Key override(s) already empty: 1.",)
    assert result.messages == ("Deleted key override(s): 0, 1, 2.",)
    assert firmware.saved == ["key_overrides"]


def test_delete_rejects_out_of_range_before_writing(service, firmware) -> None:
    firmware.device.key_overrides[0] = KeyOverride(trigger="KC_A", replacement="KC_B")
    result = delete_key_overrides(service, ["0", "7"])
    assert result.errors == ("Key override ID 7 is out of range (0-3).",)
    assert firmware.key_overrides.pushes == []


def test_delete_all_disabled(service, firmware) -> None:
    firmware.device.key_overrides[0] = KeyOverride(trigger="KC_A", replacement="KC_B")
    firmware.device.key_overrides[1] = KeyOverride(trigger="KC_C", replacement="KC_D", options=0)

    result = delete_key_overrides(service, ["0"], all_disabled=True)
    assert result.warnings == ("ID arguments ignored when using --all-disabled or --all-empty.",)
    assert result.value == [1]
    assert firmware.device.key_overrides[0].trigger == "KC_A"
    assert firmware.device.key_overrides[1].trigger == "KC_NO"

    none_left = delete_key_overrides(service, all_disabled=True)
    assert none_left.messages == ("No disabled key overrides found to delete.",)


def test_delete_argument_errors(service) -> None:
    assert delete_key_overrides(service).exit_code == 1
    assert delete_key_overrides(service, all_disabled=True, all_empty=True).errors == (
        "Use only one of --all-disabled and --all-empty.",
    )


def test_format_key_override_not_verbose() -> None:
    override = KeyOverride(trigger="KC_A", replacement="KC_B", trigger_mods=1)
    assert format_key_override(0, override, verbose=False) == ["Override 0: KC_A -> KC_B (enabled)"]
