"""Firmware protocol interfaces.

A firmware backend speaks the keyboard's configuration protocol over an open
transport. Optional capabilities (``save``, ``apply_vil`` ...) are looked up
with :func:`capability` instead of being called blindly.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from kbdctl.core.model import Snapshot
from kbdctl.transports.base import Transport


class SlotCollection(Protocol):
    def push(self, snapshot: Snapshot, slot_id: int | None = None) -> None:
        """Write one slot (or every slot when ``slot_id`` is None) to the device."""


class KeymapWriter(Protocol):
    def set_key(self, layer: int, row: int, col: int, code: int) -> None:
        """Write one numeric keycode into the live keymap."""


class SettingsWriter(Protocol):
    def push(self, snapshot: Snapshot, name: str) -> None:
        """Write one QMK setting from ``snapshot.qmk_settings`` to the device."""


class Firmware(Protocol):
    combos: SlotCollection
    macros: SlotCollection
    tapdances: SlotCollection
    key_overrides: SlotCollection
    keymap: KeymapWriter
    qmk_settings: SettingsWriter

    def init(self, snapshot: Snapshot) -> None:
        """Populate identity and dimensions of the opened keyboard."""

    def load(self, snapshot: Snapshot) -> None:
        """Populate keymap, slot collections and settings."""


FirmwareFactory = Callable[[Transport], Firmware]


def capability(firmware: Any, collection: str | None, method: str) -> Callable[..., Any] | None:
    """Return ``firmware.<collection>.<method>`` if it exists and is callable."""
    target = firmware if collection is None else getattr(firmware, collection, None)
    if target is None:
        return None
    func = getattr(target, method, None)
    return func if callable(func) else None


def has_capability(firmware: Any, name: str) -> bool:
    """Check a dotted capability name such as ``combos.push`` or ``save``."""
    collection, _, method = name.rpartition(".")
    return capability(firmware, collection or None, method) is not None


def persist_function(firmware: Any, collection: str | None) -> Callable[[], Any] | None:
    """Collection-level ``save`` first, then the firmware-level ``save``."""
    if collection is not None:
        func = capability(firmware, collection, "save")
        if func is not None:
            return func
    return capability(firmware, None, "save")
