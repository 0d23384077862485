"""Local file access for uploads, downloads and ``--output`` files."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from kbdctl.core.errors import FileIOError

LOGGER = logging.getLogger(__name__)


def read_text(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileIOError(f"Could not read file {path}: {exc}") from exc


def write_text(path: str | Path, content: str) -> None:
    try:
        Path(path).write_text(content, encoding="utf-8")
    except OSError as exc:
        raise FileIOError(f"Could not write file {path}: {exc}") from exc


@dataclass(frozen=True)
class Delivery:
    printed: str | None
    message: str | None = None
    error: str | None = None


def deliver_output(content: str, path: str | Path | None) -> Delivery:
    """Write ``content`` to ``path``, or hand it back for printing.

    When the file cannot be written the content is handed back too, together
    with the error, so nothing produced by the command is lost.
    """
    if path is None:
        return Delivery(printed=content)
    try:
        write_text(path, content)
    except FileIOError as exc:
        LOGGER.debug("Falling back to console output: %s", exc)
        return Delivery(printed=content, error=str(exc))
    return Delivery(printed=None, message=f"Output written to {path}")
