"""USB HID transport implementation using hidapi."""

from __future__ import annotations

import logging

import hid

from kbdctl.core.errors import DeviceDiscoveryError, DeviceOpenError
from kbdctl.core.model import DeviceCandidate

RAW_HID_USAGE_PAGE = 0xFF60
RAW_HID_USAGE = 0x61
LOGGER = logging.getLogger(__name__)


def _is_raw_hid_interface(info: dict) -> bool:
    return info.get("usage_page") == RAW_HID_USAGE_PAGE and info.get("usage") == RAW_HID_USAGE


class HIDTransport:
    def __init__(self) -> None:
        self._dev: hid.device | None = None

    def discover(self) -> list[DeviceCandidate]:
        try:
            entries = hid.enumerate()
        except (OSError, ValueError) as exc:
            raise DeviceDiscoveryError(f"USB HID enumeration failed: {exc}") from exc

        candidates: list[DeviceCandidate] = []
        seen: set[bytes] = set()
        for info in entries:
            if not _is_raw_hid_interface(info):
                continue
            path = info["path"]
            if isinstance(path, str):
                path = path.encode()
            if path in seen:
                continue
            seen.add(path)
            candidates.append(
                DeviceCandidate(
                    manufacturer=info.get("manufacturer_string") or "Unknown",
                    product=info.get("product_string") or "Unknown",
                    path=path,
                    vendor_id=info.get("vendor_id", 0),
                    product_id=info.get("product_id", 0),
                    serial=info.get("serial_number") or "",
                )
            )
        LOGGER.debug("Found %d raw HID keyboard interface(s)", len(candidates))
        return candidates

    def open(self, candidate: DeviceCandidate) -> bool:
        if self._dev is not None:
            return True
        dev = hid.device()
        try:
            dev.open_path(candidate.path)
        except OSError as exc:
            LOGGER.debug("open_path failed for %r: %s", candidate.path, exc)
            return False
        self._dev = dev
        return True

    def close(self) -> None:
        if self._dev is None:
            return
        self._dev.close()
        self._dev = None

    def write(self, report: bytes) -> int:
        if self._dev is None:
            raise DeviceOpenError("Device not open")
        # hidapi expects the report id as the first byte; raw HID uses 0.
        written = self._dev.write(b"\x00" + bytes(report))
        if written < 0:
            raise DeviceOpenError("Write to device failed")
        return written

    def read(self, size: int, timeout_ms: int = 500) -> bytes:
        if self._dev is None:
            raise DeviceOpenError("Device not open")
        return bytes(self._dev.read(size, timeout_ms=timeout_ms))
