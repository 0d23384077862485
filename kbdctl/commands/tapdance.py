"""Tap-dance commands: list, get, add, edit, delete."""

from __future__ import annotations

from typing import Any

from kbdctl.commands.output import format_error, render
from kbdctl.core.errors import KeyParseError
from kbdctl.core.model import CommandResult, TapDance, is_no_key
from kbdctl.core.sequence import TAPDANCE_GRAMMAR, parse_sequence
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.slots import TAPDANCES

PUSH = (TAPDANCES.capability,)
_TEXT_LABELS = (
    ("tap", "Tap"),
    ("hold", "Hold"),
    ("doubletap", "DoubleTap"),
    ("taphold", "TapHold"),
)


def tapdance_as_dict(slot_id: int, tapdance: TapDance) -> dict[str, Any]:
    return {"id": slot_id, **tapdance.as_dict()}


def format_tapdance_line(slot_id: int, tapdance: TapDance) -> str:
    fields = tapdance.as_dict()
    parts = [f"{label}({fields[name]})" for name, label in _TEXT_LABELS if not is_no_key(fields[name])]
    parts.append(f"Term({tapdance.tapms}ms)")
    return f"Tapdance {slot_id}: {' '.join(parts)}"


def parse_tapdance(definition: str, ctx: OperationContext, *, default_term: int | None = None) -> TapDance:
    parsed = parse_sequence(definition, TAPDANCE_GRAMMAR, ctx.keycodes)
    fields: dict[str, Any] = {action.kind: action.value for action in parsed.actions}
    term = parsed.metadata.get("term")
    if term is None:
        term = ctx.config.tapping_term if default_term is None else default_term
    tapdance = TapDance(tapms=term, **fields)
    if TAPDANCES.is_empty(tapdance):
        raise KeyParseError("Tapdance definition needs at least one key other than KC_NO")
    return tapdance


def list_tapdances(service: KeyboardService, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(TAPDANCES)
        active = store.active()

        def as_text(_: Any) -> str:
            lines = [f"Found {len(active)} active tapdance(s) (total slots: {store.capacity}):"]
            lines.extend(f"  {format_tapdance_line(i, td)}" for i, td in active)
            return "\n".join(lines)

        return render([tapdance_as_dict(i, td) for i, td in active], output_format, as_text)

    return service.run(operation)


def get_tapdance(service: KeyboardService, tapdance_id: str, *, output_format: str = "text") -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        store = ctx.store(TAPDANCES)
        slot_id = store.check_id(tapdance_id)
        tapdance = store.get(slot_id)
        return render(
            tapdance_as_dict(slot_id, tapdance),
            output_format,
            lambda _: format_tapdance_line(slot_id, tapdance),
        )

    return service.run(operation)


def add_tapdance(service: KeyboardService, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        tapdance = parse_tapdance(definition, ctx)
        slot_id = ctx.store(TAPDANCES).add(tapdance)
        ctx.info(f"Tapdance successfully added with ID {slot_id}.")
        return slot_id

    return service.run(operation, requires=PUSH)


def edit_tapdance(service: KeyboardService, tapdance_id: str, definition: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(TAPDANCES)
        slot_id = store.check_id(tapdance_id)
        current = store.get(slot_id)
        # Without TERM(n) the slot keeps its current tapping term.
        store.edit(slot_id, parse_tapdance(definition, ctx, default_term=current.tapms))
        ctx.info(f"Tapdance {slot_id} updated successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)


def delete_tapdance(service: KeyboardService, tapdance_id: str) -> CommandResult:
    def operation(ctx: OperationContext) -> int:
        store = ctx.store(TAPDANCES)
        slot_id = store.check_id(tapdance_id)
        if not store.delete(slot_id):
            ctx.warn(f"Tapdance {slot_id} was already empty.")
        ctx.info(f"Tapdance {slot_id} deleted successfully.")
        return slot_id

    return service.run(operation, requires=PUSH)
