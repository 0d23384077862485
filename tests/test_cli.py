from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from kbdctl import cli
from kbdctl.core.config import Config
from kbdctl.core.model import Combo
from kbdctl.core.service import KeyboardService
from tests.fakes import KEYBOARD, OTHER_KEYBOARD

runner = CliRunner()


@pytest.fixture
def use_fakes(monkeypatch, firmware, transport, keycodes):
    def build(**kwargs):
        return KeyboardService(
            transport=transport,
            firmware_factory=lambda _transport: firmware,
            keycodes=keycodes,
            config=Config(),
            **kwargs,
        )

    monkeypatch.setattr(cli, "KeyboardService", build)
    return build


def test_combo_add_then_list(use_fakes, firmware):
    result = runner.invoke(cli.app, ["combo", "add", "KC_A+KC_S KC_D"])
    assert result.exit_code == 0
    assert "Combo successfully added with ID 0." in result.stdout
    assert firmware.device.combos[0] == Combo(triggers=("KC_A", "KC_S", "KC_NO", "KC_NO"), action="KC_D")

    result = runner.invoke(cli.app, ["combo", "list"])
    assert result.exit_code == 0
    assert "Combo 0: KC_A + KC_S -> KC_D" in result.stdout


def test_error_is_clean(use_fakes):
    result = runner.invoke(cli.app, ["combo", "get", "0"])
    assert result.exit_code == 1
    assert "Error: Combo with ID 0 not found or not set." in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_bad_format_is_reported(use_fakes):
    result = runner.invoke(cli.app, ["macro", "list", "-f", "yaml"])
    assert result.exit_code == 1
    assert result.stderr.startswith("Error:")


def test_output_file(use_fakes, firmware, tmp_path):
    firmware.device.combos[2] = Combo(triggers=("KC_J", "KC_K", "KC_NO", "KC_NO"), action="KC_ESCAPE")
    target = tmp_path / "combos.json"

    result = runner.invoke(cli.app, ["combo", "list", "-f", "json", "-o", str(target)])
    assert result.exit_code == 0
    assert f"Output written to {target}" in result.stdout
    assert json.loads(target.read_text(encoding="utf-8"))[0]["id"] == 2


def test_output_file_fallback_to_console(use_fakes, tmp_path):
    target = tmp_path / "missing" / "keymap.json"
    result = runner.invoke(cli.app, ["keyboard", "get-keymap", "-o", str(target)])
    assert result.exit_code == 1
    assert "Error: Could not write file" in result.stderr
    assert "Output (fallback due to file write error):" in result.stdout
    assert "KC_A" in result.stdout


def test_key_override_add_flags(use_fakes, firmware):
    result = runner.invoke(
        cli.app,
        ["key-override", "add", "KC_BSPC", "KC_DEL", "--trigger-mods", "0x02", "--disabled"],
    )
    assert result.exit_code == 0
    override = firmware.device.key_overrides[0]
    assert override.trigger == "KC_BACKSPACE"
    assert override.trigger_mods == 2
    assert override.enabled is False


def test_key_override_add_requires_keys(use_fakes, firmware):
    result = runner.invoke(cli.app, ["key-override", "add", "KC_A"])
    assert result.exit_code == 1
    assert "Error: Both a trigger key and an override key are required." in result.stderr


def test_key_override_delete_many(use_fakes, firmware):
    runner.invoke(cli.app, ["key-override", "add", "KC_A", "KC_B"])
    runner.invoke(cli.app, ["key-override", "add", "KC_C", "KC_D"])
    result = runner.invoke(cli.app, ["key-override", "delete", "0", "1"])
    assert result.exit_code == 0
    assert "Deleted key override(s): 0, 1." in result.stdout


def test_keyboard_devices(use_fakes, transport):
    transport.candidates = [KEYBOARD, OTHER_KEYBOARD]
    result = runner.invoke(cli.app, ["keyboard", "devices"])
    assert result.exit_code == 0
    assert "[1] Keychron Q1 (3434:0100)" in result.stdout


def test_ambiguous_device_needs_hint(use_fakes, transport):
    transport.candidates = [KEYBOARD, OTHER_KEYBOARD]
    result = runner.invoke(cli.app, ["qmk-setting", "get", "tapping_term"])
    assert result.exit_code == 1
    assert "Use --device to choose one." in result.stderr

    result = runner.invoke(cli.app, ["--device", "3434:0100", "qmk-setting", "get", "tapping_term"])
    assert result.exit_code == 0
    assert "tapping_term: 200" in result.stdout
    assert transport.opened[-1] == OTHER_KEYBOARD


def test_interactive_prompt(use_fakes, transport):
    transport.candidates = [KEYBOARD, OTHER_KEYBOARD]
    result = runner.invoke(cli.app, ["-i", "qmk-setting", "set", "auto_shift", "true"], input="1\n")
    assert result.exit_code == 0
    assert transport.opened == [OTHER_KEYBOARD]
    assert 'QMK setting "auto_shift" successfully set to "true".' in result.stdout


def test_load_warning_is_printed(monkeypatch, use_fakes):
    def build(**kwargs):
        service = use_fakes(**kwargs)
        service.load_warnings = ("Ignoring keycode overlay /tmp/keycodes.yaml: bad entry",)
        return service

    monkeypatch.setattr(cli, "KeyboardService", build)
    result = runner.invoke(cli.app, ["keyboard", "devices"])
    assert result.exit_code == 0
    assert "Warning: Ignoring keycode overlay /tmp/keycodes.yaml: bad entry" in result.stderr


def test_upload_partial_failure_exit_code(use_fakes, tmp_path):
    path = tmp_path / "layout.svl"
    path.write_text(json.dumps({"layers": 2, "macros": [[["tap", "KC_NOPE"]]]}))
    result = runner.invoke(cli.app, ["keyboard", "upload", str(path)])
    assert result.exit_code == 1
    assert "Error: macros: Invalid keycode 'KC_NOPE' in macros[0]" in result.stderr
