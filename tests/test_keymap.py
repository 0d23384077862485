from __future__ import annotations

import json

from kbdctl.commands.keymap import get_keymap, set_keymap_key
from tests.fakes import BareFirmware


def test_get_keymap_json(service) -> None:
    data = json.loads(get_keymap(service).value)
    assert len(data) == 2
    assert data[0] == ["KC_A", "KC_B", "KC_C", "KC_D", "KC_E", "KC_F"]


def test_get_keymap_single_layer_text(service, firmware) -> None:
    firmware.device.keymap[1][0] = 0x5221
    result = get_keymap(service, layer="1", output_format="text")
    assert result.value == (
        "Layer 1:\n"
        "  MO(1)          KC_B           KC_C\n"
        "  KC_D           KC_E           KC_F"
    )


def test_get_keymap_layer_out_of_range(service) -> None:
    result = get_keymap(service, layer="2")
    assert result.errors == ("Layer number 2 is out of range (0-1).",)


def test_set_key(service, firmware) -> None:
    result = set_keymap_key(service, "LCTL(KC_Z)", "4", layer="1")
    assert result.exit_code == 0
    assert result.messages == (
        "Setting layer 1, position 4 (row 1, col 1) to LCTL(KC_Z) (code: 0x011D)...",
        "Keymap saved successfully.",
    )
    assert firmware.keymap.writes == [(1, 1, 1, 0x011D)]
    assert firmware.device.keymap[1][4] == 0x011D
    assert result.value == {"layer": 1, "row": 1, "col": 1, "code": 0x011D}


def test_set_key_errors(service, firmware) -> None:
    assert set_keymap_key(service, "KC_A", "6").errors == ("Position index 6 is out of range (0-5).",)
    assert set_keymap_key(service, "KC_A", "x").errors == ("Position index must be an integer.",)
    assert set_keymap_key(service, "KC_WHAT", "0").errors == ("Invalid key definition 'KC_WHAT'.",)
    assert set_keymap_key(service, "KC_A", "0", layer="5").errors == ("Layer number 5 is out of range (0-1).",)
    assert firmware.keymap.writes == []


def test_set_key_write_failure(service, firmware) -> None:
    firmware.keymap.error = OSError("pipe error")
    result = set_keymap_key(service, "KC_A", "0")
    assert result.exit_code == 1
    assert result.errors == ("Failed to write key at layer 0, row 0, col 0: pipe error",)


def test_set_key_requires_keymap_writer(make_service) -> None:
    result = set_keymap_key(make_service(BareFirmware()), "KC_A", "0")
    assert result.errors == ("Required objects not available: keymap.set_key",)
