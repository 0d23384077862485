"""Core data models used across session, slot store, commands, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

NO_KEY = "KC_NO"
NO_KEY_NAMES = frozenset({"KC_NO", "KC_NONE", "XXXXXXX", "0x0000", "0x0", ""})
COMBO_TRIGGER_SLOTS = 4
KEY_OVERRIDE_ENABLED = 0x80
ALL_LAYERS = 0xFFFF


def is_no_key(name: str | None) -> bool:
    return name is None or name.strip() in NO_KEY_NAMES


@dataclass(frozen=True)
class DeviceCandidate:
    manufacturer: str
    product: str
    path: bytes
    vendor_id: int = 0
    product_id: int = 0
    serial: str = ""

    @property
    def label(self) -> str:
        return f"{self.manufacturer} {self.product}".strip()


@dataclass(frozen=True)
class Action:
    kind: str
    value: str | int

    def as_list(self) -> list[str | int]:
        return [self.kind, self.value]


@dataclass(frozen=True)
class Combo:
    triggers: tuple[str, ...]
    action: str

    @property
    def active_triggers(self) -> tuple[str, ...]:
        return tuple(key for key in self.triggers if not is_no_key(key))

    def as_list(self) -> list[str]:
        return [*self.triggers, self.action]


@dataclass(frozen=True)
class Macro:
    actions: tuple[Action, ...] = ()


@dataclass(frozen=True)
class TapDance:
    tap: str = NO_KEY
    hold: str = NO_KEY
    doubletap: str = NO_KEY
    taphold: str = NO_KEY
    tapms: int = 200

    def as_dict(self) -> dict[str, Any]:
        return {
            "tap": self.tap,
            "hold": self.hold,
            "doubletap": self.doubletap,
            "taphold": self.taphold,
            "tapms": self.tapms,
        }


@dataclass(frozen=True)
class KeyOverride:
    trigger: str = NO_KEY
    replacement: str = NO_KEY
    layers: int = ALL_LAYERS
    trigger_mods: int = 0
    negative_mod_mask: int = 0
    suppressed_mods: int = 0
    options: int = KEY_OVERRIDE_ENABLED

    @property
    def enabled(self) -> bool:
        return bool(self.options & KEY_OVERRIDE_ENABLED)

    def as_dict(self) -> dict[str, Any]:
        return {
            "trigger": self.trigger,
            "replacement": self.replacement,
            "layers": self.layers,
            "trigger_mods": self.trigger_mods,
            "negative_mod_mask": self.negative_mod_mask,
            "suppressed_mods": self.suppressed_mods,
            "options": self.options,
        }


@dataclass
class Snapshot:
    """In-memory mirror of one keyboard's configuration for a single session.

    Populated by the firmware collaborator. Fields left as ``None`` were not
    reported by the device and must never be silently defaulted.
    """

    name: str | None = None
    vendor_id: int | None = None
    product_id: int | None = None
    layers: int | None = None
    rows: int | None = None
    cols: int | None = None
    keymap: list[list[int]] | None = None
    macro_count: int | None = None
    macros: list[Macro] | None = None
    combo_count: int | None = None
    combos: list[Combo] | None = None
    tapdance_count: int | None = None
    tapdances: list[TapDance] | None = None
    key_override_count: int | None = None
    key_overrides: list[KeyOverride] | None = None
    qmk_settings: dict[str, Any] | None = None


class SectionOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"
    PARTIAL = "partial"


@dataclass(frozen=True)
class SectionResult:
    section: str
    outcome: SectionOutcome
    detail: str = ""


@dataclass(frozen=True)
class AggregateResult:
    results: tuple[SectionResult, ...]
    status: SectionOutcome
    succeeded: int
    attempted: int

    @property
    def exit_code(self) -> int:
        return 1 if any(r.outcome is SectionOutcome.FAILED for r in self.results) else 0


@dataclass(frozen=True)
class CommandResult:
    value: Any = None
    messages: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def extend(
        self,
        *,
        messages: tuple[str, ...] = (),
        warnings: tuple[str, ...] = (),
        errors: tuple[str, ...] = (),
        exit_code: int | None = None,
    ) -> CommandResult:
        return CommandResult(
            value=self.value,
            messages=self.messages + messages,
            warnings=self.warnings + warnings,
            errors=self.errors + errors,
            exit_code=self.exit_code if exit_code is None else exit_code,
        )


@dataclass
class Report:
    """Mutable collector used while a command runs; frozen into a CommandResult."""

    messages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.messages.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
