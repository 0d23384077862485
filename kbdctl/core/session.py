"""Device session lifecycle: discover, open, load, close."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from kbdctl.core.errors import (
    DeviceDiscoveryError,
    DeviceOpenError,
    KbdctlError,
    SnapshotIncompleteError,
)
from kbdctl.core.model import DeviceCandidate, Snapshot
from kbdctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

_COUNTED_ARRAYS = {
    "macros": "macro_count",
    "combos": "combo_count",
    "tapdances": "tapdance_count",
    "key_overrides": "key_override_count",
}


def discover(transport: Transport) -> list[DeviceCandidate]:
    try:
        candidates = list(transport.discover())
    except KbdctlError:
        raise
    except Exception as exc:
        raise DeviceDiscoveryError(f"Device discovery failed: {exc}") from exc
    LOGGER.debug("Discovered %d candidate keyboard(s)", len(candidates))
    return candidates


class DeviceSession:
    """An open connection to one keyboard. ``close`` runs at most once."""

    def __init__(self, transport: Transport, candidate: DeviceCandidate) -> None:
        self.transport = transport
        self.candidate = candidate
        self.closed = False

    def close(self, *, quiet: bool = False) -> None:
        """Close the device. With ``quiet`` a failing close is logged, not raised."""
        if self.closed:
            return
        self.closed = True
        LOGGER.debug("Closing %s", self.candidate.label)
        try:
            self.transport.close()
        except Exception:
            if not quiet:
                raise
            LOGGER.warning("Failed to close %s", self.candidate.label, exc_info=True)


@contextmanager
def open_session(transport: Transport, candidate: DeviceCandidate) -> Iterator[DeviceSession]:
    LOGGER.debug("Opening %s", candidate.label)
    try:
        opened = transport.open(candidate)
    except Exception as exc:
        raise DeviceOpenError(f"Could not open USB device {candidate.label}: {exc}") from exc
    if not opened:
        raise DeviceOpenError(f"Could not open USB device {candidate.label}.")

    session = DeviceSession(transport, candidate)
    try:
        yield session
    except BaseException:
        # the error already in flight is the one to report
        session.close(quiet=True)
        raise
    session.close()


def load_snapshot(firmware: Any, snapshot: Snapshot | None = None) -> Snapshot:
    """Two-phase populate: identity and dimensions first, then content."""
    snapshot = snapshot if snapshot is not None else Snapshot()
    LOGGER.debug("Loading keyboard info")
    firmware.init(snapshot)
    LOGGER.debug("Loading keyboard data")
    firmware.load(snapshot)
    return snapshot


def require_fields(snapshot: Snapshot, *fields: str, what: str = "Keyboard") -> None:
    """Fail unless every named field was populated by the firmware.

    For counted collections the array must also be exactly ``count`` long.
    """
    missing = [name for name in fields if getattr(snapshot, name, None) is None]
    if missing:
        raise SnapshotIncompleteError(
            f"{what} data not fully populated. Missing: {', '.join(missing)}"
        )

    for array_name, count_name in _COUNTED_ARRAYS.items():
        if array_name not in fields or count_name not in fields:
            continue
        array = getattr(snapshot, array_name)
        count = getattr(snapshot, count_name)
        if len(array) != count:
            raise SnapshotIncompleteError(
                f"{what} data not fully populated. {array_name} has {len(array)} entries, expected {count}"
            )
