"""Keymap commands: dump the keymap and set a single key."""

from __future__ import annotations

import logging
from typing import Any

from kbdctl.commands.output import format_error, render
from kbdctl.core.errors import KbdctlError, KeyParseError, PersistFailedError, WriteFailedError
from kbdctl.core.model import CommandResult, Snapshot
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.session import require_fields
from kbdctl.firmware.base import capability, persist_function

SET_KEY = ("keymap.set_key",)
LOGGER = logging.getLogger(__name__)


def _parse_index(raw: str | int, what: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise KbdctlError(f"{what} must be an integer.") from None


def check_layer(snapshot: Snapshot, raw: str | int) -> int:
    layer = _parse_index(raw, "Layer number")
    if not 0 <= layer < snapshot.layers:
        raise KbdctlError(f"Layer number {layer} is out of range (0-{snapshot.layers - 1}).")
    return layer


def position_to_matrix(snapshot: Snapshot, raw: str | int) -> tuple[int, int, int]:
    """Map a flat key index to ``(index, row, col)``."""
    index = _parse_index(raw, "Position index")
    max_index = snapshot.rows * snapshot.cols - 1
    if not 0 <= index <= max_index:
        raise KbdctlError(f"Position index {index} is out of range (0-{max_index}).")
    return index, index // snapshot.cols, index % snapshot.cols


def write_key(ctx: OperationContext, layer: int, row: int, col: int, code: int) -> None:
    set_key = capability(ctx.firmware, "keymap", "set_key")
    try:
        set_key(layer, row, col, code)
    except Exception as exc:
        raise WriteFailedError(f"Failed to write key at layer {layer}, row {row}, col {col}: {exc}") from exc
    if ctx.snapshot.keymap is not None and layer < len(ctx.snapshot.keymap):
        ctx.snapshot.keymap[layer][row * ctx.snapshot.cols + col] = code


def persist_keymap(ctx: OperationContext) -> bool:
    """Dynamic keymap writes are stored by the firmware; save only when offered."""
    save = persist_function(ctx.firmware, "keymap")
    if save is None:
        return True
    try:
        save()
    except Exception as exc:
        raise PersistFailedError(f"Failed to save keymap: {exc}") from exc
    return True


def keymap_names(ctx: OperationContext, layers: list[int]) -> list[list[str]]:
    return [[ctx.keycodes.stringify(code) for code in ctx.snapshot.keymap[layer]] for layer in layers]


def get_keymap(
    service: KeyboardService,
    *,
    layer: str | None = None,
    output_format: str = "json",
) -> CommandResult:
    error = format_error(output_format)
    if error is not None:
        return error

    def operation(ctx: OperationContext) -> str:
        snapshot = ctx.snapshot
        require_fields(snapshot, "keymap", "layers", "rows", "cols", what="Keymap")
        layers = [check_layer(snapshot, layer)] if layer is not None else list(range(snapshot.layers))
        data = keymap_names(ctx, layers)

        def as_text(_: Any) -> str:
            lines: list[str] = []
            for layer_index, names in zip(layers, data):
                if lines:
                    lines.append("")
                lines.append(f"Layer {layer_index}:")
                for row in range(snapshot.rows):
                    cells = names[row * snapshot.cols:(row + 1) * snapshot.cols]
                    lines.append("  " + "".join(name.ljust(15) for name in cells).rstrip())
            return "\n".join(lines)

        return render(data, output_format, as_text)

    return service.run(operation)


def set_keymap_key(
    service: KeyboardService,
    key: str,
    position: str,
    *,
    layer: str = "0",
) -> CommandResult:
    def operation(ctx: OperationContext) -> dict[str, int]:
        snapshot = ctx.snapshot
        require_fields(snapshot, "layers", "rows", "cols", what="Keyboard dimension")
        layer_index = check_layer(snapshot, layer)
        index, row, col = position_to_matrix(snapshot, position)
        code = ctx.keycodes.parse(key)
        if code is None:
            raise KeyParseError(f"Invalid key definition '{key}'.")

        ctx.info(
            f"Setting layer {layer_index}, position {index} (row {row}, col {col}) "
            f"to {ctx.keycodes.stringify(code)} (code: 0x{code:04X})..."
        )
        write_key(ctx, layer_index, row, col, code)
        persist_keymap(ctx)
        LOGGER.debug("Key written at layer %d row %d col %d", layer_index, row, col)
        ctx.info("Keymap saved successfully.")
        return {"layer": layer_index, "row": row, "col": col, "code": code}

    return service.run(operation, requires=SET_KEY)
