from __future__ import annotations

import json

from kbdctl.commands.combo import add_combo, delete_combo, edit_combo, get_combo, list_combos
from kbdctl.core.config import Config
from kbdctl.core.model import Combo
from tests.fakes import BareFirmware


def test_add_delete_get_scenario(service, firmware) -> None:
    first = add_combo(service, "KC_A+KC_S KC_D")
    assert first.exit_code == 0
    assert first.value == 0
    assert first.messages == ("Combo successfully added with ID 0.",)
    assert firmware.device.combos[0].as_list() == ["KC_A", "KC_S", "KC_NO", "KC_NO", "KC_D"]

    second = add_combo(service, "KC_J+KC_K KC_ESC")
    assert second.exit_code == 0
    assert second.value == 1

    deleted = delete_combo(service, "0")
    assert deleted.exit_code == 0
    assert deleted.messages == ("Combo 0 deleted successfully.",)
    assert firmware.device.combos[0].as_list() == ["KC_NO"] * 5

    missing = get_combo(service, "0")
    assert missing.exit_code == 1
    assert missing.errors == ("Combo with ID 0 not found or not set.",)


def test_add_rejects_bad_definition_without_writing(service, firmware) -> None:
    result = add_combo(service, "KC_A+KC_B+KC_C+KC_D+KC_E KC_X")
    assert result.exit_code == 1
    assert result.errors == ("Too many trigger keys: found 5, maximum 4",)
    assert firmware.combos.pushes == []


def test_trigger_cap_from_config(make_service, firmware) -> None:
    service = make_service(firmware, config=Config(max_combo_triggers=2))
    result = add_combo(service, "KC_A+KC_B+KC_C KC_X")
    assert result.errors == ("Too many trigger keys: found 3, maximum 2",)


def test_list_text_and_json(service, firmware) -> None:
    firmware.device.combos[3] = Combo(triggers=("KC_J", "KC_K", "KC_NO", "KC_NO"), action="KC_ESCAPE")

    text = list_combos(service)
    assert text.value == (
        "Found 1 active combo(s) (total slots: 16):\n"
        "  Combo 3: KC_J + KC_K -> KC_ESCAPE"
    )

    data = json.loads(list_combos(service, output_format="json").value)
    assert data == [
        {"id": 3, "trigger_keys": ["KC_J", "KC_K", "KC_NO", "KC_NO"], "action_key": "KC_ESCAPE"}
    ]


def test_list_empty(service) -> None:
    assert list_combos(service).value == "No active combos found on this keyboard."


def test_edit_existing_combo(service, firmware) -> None:
    add_combo(service, "KC_A+KC_S KC_D")
    result = edit_combo(service, "0", "KC_Q+KC_W KC_TAB")
    assert result.messages == ("Combo 0 updated successfully.",)
    assert firmware.device.combos[0] == Combo(triggers=("KC_Q", "KC_W", "KC_NO", "KC_NO"), action="KC_TAB")


def test_edit_errors(service) -> None:
    assert edit_combo(service, "x", "KC_A KC_B").errors == ("Invalid ID 'x'. ID must be a non-negative integer.",)
    assert edit_combo(service, "16", "KC_A KC_B").errors == ("Combo ID 16 is out of range (0-15).",)
    assert edit_combo(service, "2", "KC_A KC_B").errors == ("Combo with ID 2 not found or not set.",)


def test_delete_empty_slot_warns(service, firmware) -> None:
    result = delete_combo(service, "5")
    assert result.exit_code == 0
    assert result.warnings == ("Combo 5 was already empty.",)
    assert firmware.combos.pushes == [5]


def test_add_requires_push_capability(make_service) -> None:
    result = add_combo(make_service(BareFirmware()), "KC_A+KC_S KC_D")
    assert result.errors == ("Required objects not available: combos.push",)


def test_list_works_without_push_capability(make_service) -> None:
    assert list_combos(make_service(BareFirmware())).exit_code == 0
