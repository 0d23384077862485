"""Stable public API for building tooling on top of kbdctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.

Every method returns a :class:`CommandResult`; nothing is printed and no
exception escapes for expected failures such as a missing keyboard.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from kbdctl.commands import combo as combo_commands
from kbdctl.commands import key_override as key_override_commands
from kbdctl.commands import keyboard as keyboard_commands
from kbdctl.commands import keymap as keymap_commands
from kbdctl.commands import macro as macro_commands
from kbdctl.commands import qmk_setting as qmk_setting_commands
from kbdctl.commands import tapdance as tapdance_commands
from kbdctl.core.config import Config
from kbdctl.core.device_select import Chooser
from kbdctl.core.errors import (
    AmbiguousDeviceError,
    CollaboratorMissingError,
    CommitError,
    DeviceOpenError,
    KbdctlError,
    NoDeviceFoundError,
    SequenceParseError,
    SlotError,
    SnapshotIncompleteError,
)
from kbdctl.core.keycodes import KeycodeCodec
from kbdctl.core.model import (
    Action,
    AggregateResult,
    Combo,
    CommandResult,
    DeviceCandidate,
    KeyOverride,
    Macro,
    SectionOutcome,
    SectionResult,
    Snapshot,
    TapDance,
)
from kbdctl.core.service import KeyboardService
from kbdctl.firmware.base import FirmwareFactory
from kbdctl.transports.base import Transport
from kbdctl.transports.hid_transport import HIDTransport

__all__ = [
    "KbdctlError",
    "AmbiguousDeviceError",
    "CollaboratorMissingError",
    "CommitError",
    "DeviceOpenError",
    "NoDeviceFoundError",
    "SequenceParseError",
    "SlotError",
    "SnapshotIncompleteError",
    "Action",
    "AggregateResult",
    "Combo",
    "CommandResult",
    "DeviceCandidate",
    "KeyOverride",
    "Macro",
    "SectionOutcome",
    "SectionResult",
    "Snapshot",
    "TapDance",
    "HIDTransport",
    "Client",
]


class Client:
    """Public client for reading and changing a keyboard's configuration.

    A `Client` wraps keycode loading, device selection, the session lifecycle
    and the per-entity commands behind a stable API intended for third-party
    tools (GUI/TUI/services/scripts).
    """

    def __init__(
        self,
        *,
        transport: Transport | None = None,
        firmware_factory: FirmwareFactory | None = None,
        keycodes: KeycodeCodec | None = None,
        config: Config | None = None,
        device_hint: str | None = None,
        chooser: Chooser | None = None,
    ) -> None:
        self._service = KeyboardService(
            transport=transport,
            firmware_factory=firmware_factory,
            keycodes=keycodes,
            config=config,
            device_hint=device_hint,
            interactive=chooser is not None,
            chooser=chooser,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._service.load_warnings

    def list_devices(self) -> list[DeviceCandidate]:
        return self._service.list_devices()

    def info(self) -> CommandResult:
        return keyboard_commands.keyboard_info(self._service)

    def get_keymap(self, *, layer: int | None = None, output_format: str = "json") -> CommandResult:
        return keymap_commands.get_keymap(
            self._service,
            layer=None if layer is None else str(layer),
            output_format=output_format,
        )

    def set_key(self, key: str, position: int, *, layer: int = 0) -> CommandResult:
        return keymap_commands.set_keymap_key(self._service, key, str(position), layer=str(layer))

    def upload(self, path: str) -> CommandResult:
        return keyboard_commands.upload(self._service, path)

    def download(self, path: str) -> CommandResult:
        return keyboard_commands.download(self._service, path)

    def list_combos(self, *, output_format: str = "json") -> CommandResult:
        return combo_commands.list_combos(self._service, output_format=output_format)

    def add_combo(self, definition: str) -> CommandResult:
        return combo_commands.add_combo(self._service, definition)

    def edit_combo(self, combo_id: int, definition: str) -> CommandResult:
        return combo_commands.edit_combo(self._service, str(combo_id), definition)

    def delete_combo(self, combo_id: int) -> CommandResult:
        return combo_commands.delete_combo(self._service, str(combo_id))

    def list_macros(self, *, output_format: str = "json") -> CommandResult:
        return macro_commands.list_macros(self._service, output_format=output_format)

    def add_macro(self, definition: str) -> CommandResult:
        return macro_commands.add_macro(self._service, definition)

    def edit_macro(self, macro_id: int, definition: str) -> CommandResult:
        return macro_commands.edit_macro(self._service, str(macro_id), definition)

    def delete_macro(self, macro_id: int) -> CommandResult:
        return macro_commands.delete_macro(self._service, str(macro_id))

    def list_tapdances(self, *, output_format: str = "json") -> CommandResult:
        return tapdance_commands.list_tapdances(self._service, output_format=output_format)

    def add_tapdance(self, definition: str) -> CommandResult:
        return tapdance_commands.add_tapdance(self._service, definition)

    def edit_tapdance(self, tapdance_id: int, definition: str) -> CommandResult:
        return tapdance_commands.edit_tapdance(self._service, str(tapdance_id), definition)

    def delete_tapdance(self, tapdance_id: int) -> CommandResult:
        return tapdance_commands.delete_tapdance(self._service, str(tapdance_id))

    def list_key_overrides(self, *, output_format: str = "json") -> CommandResult:
        return key_override_commands.list_key_overrides(self._service, output_format=output_format)

    def add_key_override(self, trigger: str, replacement: str, **fields: Any) -> CommandResult:
        return key_override_commands.add_key_override(
            self._service,
            {"trigger": trigger, "replacement": replacement, **fields},
        )

    def edit_key_override(self, override_id: int, **fields: Any) -> CommandResult:
        return key_override_commands.edit_key_override(self._service, str(override_id), fields)

    def delete_key_overrides(self, override_ids: Sequence[int]) -> CommandResult:
        return key_override_commands.delete_key_overrides(
            self._service,
            [str(override_id) for override_id in override_ids],
        )

    def list_settings(self) -> CommandResult:
        return qmk_setting_commands.list_settings(self._service, as_json=True)

    def set_setting(self, name: str, value: str) -> CommandResult:
        return qmk_setting_commands.set_setting(self._service, name, value)
