"""Fixed-capacity slot collections on top of a loaded snapshot.

A slot holds exactly one entity. Free slots hold the kind's empty sentinel
rather than being absent, so "is this slot in use" is always answered by the
kind's ``is_empty`` predicate.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from kbdctl.core.errors import (
    CollaboratorMissingError,
    InvalidSlotIdError,
    NoSlotsAvailableError,
    PersistFailedError,
    SlotNotFoundError,
    SlotError,
    SlotOutOfRangeError,
    WriteFailedError,
)
from kbdctl.core.model import (
    COMBO_TRIGGER_SLOTS,
    NO_KEY,
    Combo,
    KeyOverride,
    Macro,
    Report,
    Snapshot,
    TapDance,
    is_no_key,
)
from kbdctl.core.session import require_fields
from kbdctl.firmware.base import capability, persist_function

_SLOT_ID_RE = re.compile(r"^[0-9]+$")
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotKind:
    label: str
    collection: str
    count_field: str
    is_empty: Callable[[Any], bool]
    empty: Callable[[], Any]

    @property
    def capability(self) -> str:
        return f"{self.collection}.push"


def _combo_is_empty(combo: Combo) -> bool:
    return not combo.active_triggers or is_no_key(combo.action)


def _tapdance_is_empty(tapdance: TapDance) -> bool:
    return all(is_no_key(key) for key in (tapdance.tap, tapdance.hold, tapdance.doubletap, tapdance.taphold))


def _key_override_is_empty(override: KeyOverride) -> bool:
    return is_no_key(override.trigger) or is_no_key(override.replacement)


COMBOS = SlotKind(
    label="Combo",
    collection="combos",
    count_field="combo_count",
    is_empty=_combo_is_empty,
    empty=lambda: Combo(triggers=(NO_KEY,) * COMBO_TRIGGER_SLOTS, action=NO_KEY),
)
MACROS = SlotKind(
    label="Macro",
    collection="macros",
    count_field="macro_count",
    is_empty=lambda macro: not macro.actions,
    empty=Macro,
)
TAPDANCES = SlotKind(
    label="Tapdance",
    collection="tapdances",
    count_field="tapdance_count",
    is_empty=_tapdance_is_empty,
    empty=TapDance,
)
KEY_OVERRIDES = SlotKind(
    label="Key override",
    collection="key_overrides",
    count_field="key_override_count",
    is_empty=_key_override_is_empty,
    empty=lambda: KeyOverride(options=0),
)


def parse_slot_id(raw: str | int) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    elif isinstance(raw, str) and _SLOT_ID_RE.match(raw.strip()):
        value = int(raw.strip())
    else:
        raise InvalidSlotIdError(f"Invalid ID '{raw}'. ID must be a non-negative integer.")
    if value < 0:
        raise InvalidSlotIdError(f"Invalid ID '{raw}'. ID must be a non-negative integer.")
    return value


class SlotStore:
    def __init__(
        self,
        kind: SlotKind,
        snapshot: Snapshot,
        firmware: Any,
        report: Report | None = None,
    ) -> None:
        require_fields(snapshot, kind.count_field, kind.collection, what=kind.label)
        self.kind = kind
        self.snapshot = snapshot
        self.firmware = firmware
        self.report = report if report is not None else Report()

    @property
    def capacity(self) -> int:
        return getattr(self.snapshot, self.kind.count_field)

    @property
    def entities(self) -> list[Any]:
        return getattr(self.snapshot, self.kind.collection)

    def active(self) -> list[tuple[int, Any]]:
        return [(i, entity) for i, entity in enumerate(self.entities) if not self.kind.is_empty(entity)]

    def find_first_available(self) -> int | None:
        for i, entity in enumerate(self.entities):
            if self.kind.is_empty(entity):
                return i
        return None

    def check_id(self, raw: str | int) -> int:
        slot_id = parse_slot_id(raw)
        if slot_id >= self.capacity:
            raise SlotOutOfRangeError(
                f"{self.kind.label} ID {slot_id} is out of range (0-{self.capacity - 1})."
                if self.capacity
                else f"{self.kind.label} ID {slot_id} is out of range (no slots available)."
            )
        return slot_id

    def get(self, raw: str | int) -> Any:
        slot_id = self.check_id(raw)
        entity = self.entities[slot_id]
        if self.kind.is_empty(entity):
            raise SlotNotFoundError(f"{self.kind.label} with ID {slot_id} not found or not set.")
        return entity

    def _check_not_empty(self, entity: Any) -> None:
        if self.kind.is_empty(entity):
            raise SlotError(f"Cannot store an empty {self.kind.label.lower()}; use delete to clear a slot.")

    def add(self, entity: Any) -> int:
        self._check_not_empty(entity)
        slot_id = self.find_first_available()
        if slot_id is None:
            raise NoSlotsAvailableError(
                f"No empty {self.kind.label.lower()} slots available. Max {self.capacity} reached."
            )
        self.commit(slot_id, entity)
        return slot_id

    def edit(self, raw: str | int, entity: Any) -> int:
        slot_id = self.check_id(raw)
        self.get(slot_id)
        self._check_not_empty(entity)
        self.commit(slot_id, entity)
        return slot_id

    def delete(self, raw: str | int) -> bool:
        """Clear one slot. Returns False when the slot was already empty."""
        slot_id = self.check_id(raw)
        was_active = not self.kind.is_empty(self.entities[slot_id])
        self.commit(slot_id, self.kind.empty())
        return was_active

    def delete_many(self, raw_ids: Iterable[str | int]) -> list[int]:
        """Clear several slots with a single persist. Returns the already-empty ids."""
        slot_ids = list(dict.fromkeys(self.check_id(raw) for raw in raw_ids))
        already_empty = [i for i in slot_ids if self.kind.is_empty(self.entities[i])]
        for slot_id in slot_ids:
            self.write(slot_id, self.kind.empty())
        self.persist()
        return already_empty

    def replace_all(self, entities: list[Any]) -> bool:
        """Overwrite the whole collection, padding with empty slots."""
        if len(entities) > self.capacity:
            raise SlotOutOfRangeError(
                f"{len(entities)} {self.kind.collection} given, keyboard supports {self.capacity}."
            )
        padded = list(entities) + [self.kind.empty() for _ in range(self.capacity - len(entities))]
        previous = list(self.entities)
        setattr(self.snapshot, self.kind.collection, padded)
        try:
            self._push(None)
        except WriteFailedError:
            setattr(self.snapshot, self.kind.collection, previous)
            raise
        return self.persist()

    def commit(self, slot_id: int, entity: Any, *, persist: bool = True) -> bool:
        self.write(slot_id, entity)
        if not persist:
            return False
        return self.persist()

    def write(self, slot_id: int, entity: Any) -> None:
        previous = self.entities[slot_id]
        self.entities[slot_id] = entity
        try:
            self._push(slot_id)
        except WriteFailedError:
            self.entities[slot_id] = previous
            raise

    def persist(self) -> bool:
        save = persist_function(self.firmware, self.kind.collection)
        if save is None:
            self.report.warn(
                f"No explicit save function for {self.kind.collection}. "
                "Changes might be volatile or rely on firmware auto-save."
            )
            return False
        try:
            save()
        except Exception as exc:
            raise PersistFailedError(f"Failed to save {self.kind.collection}: {exc}") from exc
        LOGGER.debug("Saved %s", self.kind.collection)
        return True

    def _push(self, slot_id: int | None) -> None:
        push = capability(self.firmware, self.kind.collection, "push")
        if push is None:
            raise CollaboratorMissingError(
                f"Required objects not available: {self.kind.capability}"
            )
        target = "all" if slot_id is None else slot_id
        LOGGER.debug("Pushing %s %s", self.kind.collection, target)
        try:
            push(self.snapshot, slot_id)
        except Exception as exc:
            raise WriteFailedError(
                f"Failed to write {self.kind.label.lower()} {target}: {exc}"
            ) from exc
