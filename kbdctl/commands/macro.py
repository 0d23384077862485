"""Macro commands: list, get, add, edit, delete."""

from __future__ import annotations

from typing import Any

from kbdctl.commands.output import format_error, render
from kbdctl.core.model import Action, CommandResult, Macro
from kbdctl.core.sequence import MACRO_GRAMMAR, parse_sequence
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.slots import MACROS

PUSH = (MACROS.capability,)


def _format_action(action: Action) -> str:
    label = action.kind.capitalize()
    if action.kind == "delay":
        return f"{label}({action.value}ms)"
    return f"{label}({action.value})"


def macro_as_dict(slot_id: int, macro: Macro) -> dict[str, Any]:
    return {"id": slot_id, "actions": [action.as_list() for action in macro.actions]}


def format_macro_line(slot_id: int, macro: Macro) -> str:
    return f"Macro {slot_id}: {' '.join(_format_action(a) for a in macro.actions)}"


def parse_macro(definition: str, ctx: OperationContext) -> Macro:
    return Macro(actions=parse_sequence(definition, MACRO_GRAMMAR, ctx.keycodes).actions)


def list_macros(service: KeyboardService, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(MACROS)
        active = store.active()

        def as_text(_: Any) -> str:
            lines = [f"Found {len(active)} active macro(s) (total slots: {store.capacity}):"]
            lines.extend(f"  {format_macro_line(i, macro)}" for i, macro in active)
            return "\n".join(lines)

        return render([macro_as_dict(i, m) for i, m in active], output_format, as_text)

    return service.run(operation)


def get_macro(service: KeyboardService, macro_id: str, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(MACROS)
        slot_id = store.check_id(macro_id)
        macro = store.get(slot_id)
        return render(macro_as_dict(slot_id, macro), output_format, lambda _: format_macro_line(slot_id, macro))

    return service.run(operation)


def add_macro(service: KeyboardService, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        macro = parse_macro(definition, ctx)
        slot_id = ctx.store(MACROS).add(macro)
        ctx.info(f"Macro successfully added with ID {slot_id}.")
        return slot_id

    return service.run(operation, requires=PUSH)


def edit_macro(service: KeyboardService, macro_id: str, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(MACROS)
        slot_id = store.check_id(macro_id)
        store.get(slot_id)
        store.edit(slot_id, parse_macro(definition, ctx))
        ctx.info(f"Macro {slot_id} updated successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)


def delete_macro(service: KeyboardService, macro_id: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(MACROS)
        slot_id = store.check_id(macro_id)
        if not store.delete(slot_id):
            ctx.warn(f"Macro {slot_id} was already empty.")
        ctx.info(f"Macro {slot_id} deleted successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)
