"""Combo commands: list, get, add, edit, delete."""

from __future__ import annotations

from typing import Any

from kbdctl.commands.output import format_error, render
from kbdctl.core.model import Combo, CommandResult
from kbdctl.core.sequence import parse_combo
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.slots import COMBOS

PUSH = (COMBOS.capability,)


def combo_as_dict(slot_id: int, combo: Combo) -> dict[str, Any]:
    return {"id": slot_id, "trigger_keys": list(combo.triggers), "action_key": combo.action}


def format_combo_line(slot_id: int, combo: Combo) -> str:
    return f"Combo {slot_id}: {' + '.join(combo.active_triggers)} -> {combo.action}"


def list_combos(service: KeyboardService, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(COMBOS)
        active = store.active()
        data = [combo_as_dict(i, combo) for i, combo in active]

        def as_text(_: Any) -> str:
            if not active:
                return "No active combos found on this keyboard."
            lines = [f"Found {len(active)} active combo(s) (total slots: {store.capacity}):"]
            lines.extend(f"  {format_combo_line(i, combo)}" for i, combo in active)
            return "\n".join(lines)

        return render(data, output_format, as_text)

    return service.run(operation)


def get_combo(service: KeyboardService, combo_id: str, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(COMBOS)
        slot_id = store.check_id(combo_id)
        combo = store.get(slot_id)
        return render(combo_as_dict(slot_id, combo), output_format, lambda _: format_combo_line(slot_id, combo))

    return service.run(operation)


def add_combo(service: KeyboardService, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        combo = parse_combo(definition, ctx.keycodes, ctx.config.max_combo_triggers)
        slot_id = ctx.store(COMBOS).add(combo)
        ctx.info(f"Combo successfully added with ID {slot_id}.")
        return slot_id

    return service.run(operation, requires=PUSH)


def edit_combo(service: KeyboardService, combo_id: str, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(COMBOS)
        slot_id = store.check_id(combo_id)
        store.get(slot_id)
        combo = parse_combo(definition, ctx.keycodes, ctx.config.max_combo_triggers)
        store.edit(slot_id, combo)
        ctx.info(f"Combo {slot_id} updated successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)


def delete_combo(service: KeyboardService, combo_id: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(COMBOS)
        slot_id = store.check_id(combo_id)
        if not store.delete(slot_id):
            ctx.warn(f"Combo {slot_id} was already empty.")
        ctx.info(f"Combo {slot_id} deleted successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)
