"""Resolve one target keyboard out of the discovered candidates."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from kbdctl.core.errors import AmbiguousDeviceError, NoDeviceFoundError
from kbdctl.core.model import DeviceCandidate

Chooser = Callable[[Sequence[DeviceCandidate]], DeviceCandidate]


def _vid_pid(candidate: DeviceCandidate) -> str:
    return f"{candidate.vendor_id:04x}:{candidate.product_id:04x}"


def matches_hint(candidate: DeviceCandidate, hint: str) -> bool:
    needle = hint.strip().lower()
    if not needle:
        return True
    if needle == _vid_pid(candidate):
        return True
    fields = (
        candidate.manufacturer,
        candidate.product,
        candidate.serial,
        candidate.path.decode("utf-8", errors="ignore"),
    )
    return any(needle in value.lower() for value in fields if value)


def format_device_list(candidates: Sequence[DeviceCandidate]) -> str:
    return "\n".join(
        f"  [{i}] {c.label} ({_vid_pid(c)})" for i, c in enumerate(candidates)
    )


def select_device(
    candidates: Sequence[DeviceCandidate],
    device_hint: str | None = None,
    chooser: Chooser | None = None,
) -> DeviceCandidate:
    if not candidates:
        raise NoDeviceFoundError("No compatible keyboard found.")

    if device_hint:
        hinted = [c for c in candidates if matches_hint(c, device_hint)]
        if not hinted:
            raise NoDeviceFoundError(
                f"No keyboard found matching '{device_hint}'. Available:\n"
                f"{format_device_list(candidates)}"
            )
        candidates = hinted

    if len(candidates) == 1:
        return candidates[0]

    if chooser is not None:
        chosen = chooser(candidates)
        if chosen not in candidates:
            raise NoDeviceFoundError("No keyboard selected.")
        return chosen

    raise AmbiguousDeviceError(
        f"Multiple keyboards found:\n{format_device_list(candidates)}\n"
        "Use --device to choose one."
    )
