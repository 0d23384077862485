"""Discovery of firmware backends installed as ``kbdctl.firmware`` entry points."""

from __future__ import annotations

import logging
from importlib.metadata import EntryPoint, entry_points

from kbdctl.core.errors import CollaboratorMissingError, ConfigError
from kbdctl.firmware.base import FirmwareFactory

ENTRY_POINT_GROUP = "kbdctl.firmware"
LOGGER = logging.getLogger(__name__)


def available_backends() -> dict[str, EntryPoint]:
    return {ep.name: ep for ep in entry_points(group=ENTRY_POINT_GROUP)}


def load_firmware_factory(name: str | None = None) -> FirmwareFactory | None:
    """Return the named backend factory, or the first installed one.

    Returns None when no backend is installed at all.
    """
    backends = available_backends()
    if not backends:
        return None

    if name:
        entry_point = backends.get(name)
        if entry_point is None:
            available = ", ".join(sorted(backends))
            raise ConfigError(f"Unknown firmware backend '{name}'. Available: {available}")
    else:
        first = sorted(backends)[0]
        if len(backends) > 1:
            LOGGER.debug("Several firmware backends installed, using '%s'", first)
        entry_point = backends[first]

    try:
        return entry_point.load()
    except Exception as exc:
        raise CollaboratorMissingError(
            f"Could not load firmware backend '{entry_point.name}': {exc}"
        ) from exc
