"""Shared rendering helpers for list/get commands."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from kbdctl.core.errors import KbdctlError
from kbdctl.core.model import CommandResult

FORMATS = ("text", "json")


def check_format(output_format: str) -> str:
    normalized = output_format.lower()
    if normalized not in FORMATS:
        raise KbdctlError(f"Unsupported format '{output_format}'. Use one of: {', '.join(FORMATS)}")
    return normalized


def render(data: Any, output_format: str, as_text: Callable[[Any], str]) -> str:
    if check_format(output_format) == "json":
        return json.dumps(data, indent=2)
    return as_text(data)


def format_error(output_format: str) -> CommandResult | None:
    try:
        check_format(output_format)
    except KbdctlError as exc:
        return CommandResult(errors=(str(exc),), exit_code=1)
    return None
