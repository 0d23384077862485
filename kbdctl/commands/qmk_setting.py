"""QMK setting commands: list, get, set."""

from __future__ import annotations

import json
import re
from typing import Any

from kbdctl.core.errors import PersistFailedError, SettingResolutionError, WriteFailedError
from kbdctl.core.model import CommandResult
from kbdctl.core.service import KeyboardService, OperationContext
from kbdctl.core.session import require_fields
from kbdctl.firmware.base import capability, persist_function

PUSH = ("qmk_settings.push",)
_INT_RE = re.compile(r"^[+-]?[0-9]+$")


def parse_setting_value(text: str) -> bool | int | float | str:
    """``true``/``false`` become booleans, numbers become numbers, anything else stays text."""
    stripped = text.strip()
    if not stripped:
        raise SettingResolutionError("Value for the QMK setting must be non-empty.")
    lowered = stripped.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_RE.match(stripped):
        return int(stripped)
    try:
        return float(stripped)
    except ValueError:
        return text


def resolve_setting_name(settings: dict[str, Any], name: str) -> str:
    if name in settings:
        return name
    matches = [key for key in settings if str(key).lower() == name.lower()]
    if len(matches) == 1:
        return matches[0]
    available = ", ".join(sorted(str(key) for key in settings))
    raise SettingResolutionError(
        f"QMK setting '{name}' not found on this keyboard. Available settings: {available or 'none'}"
    )


def push_setting(ctx: OperationContext, name: str, value: Any) -> None:
    settings = ctx.snapshot.qmk_settings
    previous = settings.get(name)
    settings[name] = value
    push = capability(ctx.firmware, "qmk_settings", "push")
    try:
        push(ctx.snapshot, name)
    except Exception as exc:
        settings[name] = previous
        raise WriteFailedError(f"Failed to write QMK setting '{name}': {exc}") from exc


def persist_settings(ctx: OperationContext) -> bool:
    save = persist_function(ctx.firmware, "qmk_settings")
    if save is None:
        ctx.warn("No explicit save function for QMK settings. Changes might be volatile or rely on firmware auto-save.")
        return False
    try:
        save()
    except Exception as exc:
        raise PersistFailedError(f"Failed to save QMK settings: {exc}") from exc
    return True


def list_settings(service: KeyboardService, *, as_json: bool = False) -> CommandResult:
    def operation(ctx: OperationContext) -> str:
        require_fields(ctx.snapshot, "qmk_settings", what="QMK settings")
        settings = ctx.snapshot.qmk_settings
        if as_json:
            return json.dumps(settings, indent=2)
        if not settings:
            return "No QMK settings available on this keyboard."
        lines = ["QMK Settings:"]
        lines.extend(f"  {name}: {json.dumps(value)}" for name, value in sorted(settings.items()))
        return "\n".join(lines)

    return service.run(operation)


def get_setting(service: KeyboardService, name: str) -> CommandResult:
    def operation(ctx: OperationContext) -> str:
        require_fields(ctx.snapshot, "qmk_settings", what="QMK settings")
        key = resolve_setting_name(ctx.snapshot.qmk_settings, name)
        return f"{key}: {json.dumps(ctx.snapshot.qmk_settings[key])}"

    return service.run(operation)


def set_setting(service: KeyboardService, name: str, value: str) -> CommandResult:
    if not name.strip():
        return CommandResult(errors=("QMK setting name must be provided.",), exit_code=1)

    def operation(ctx: OperationContext) -> Any:
        parsed = parse_setting_value(value)
        require_fields(ctx.snapshot, "qmk_settings", what="QMK settings")
        key = resolve_setting_name(ctx.snapshot.qmk_settings, name)
        push_setting(ctx, key, parsed)
        persist_settings(ctx)
        ctx.info(f'QMK setting "{key}" successfully set to "{value}".')
        return parsed

    return service.run(operation, requires=PUSH)
