"""Transport interfaces."""

from __future__ import annotations

from typing import Protocol

from kbdctl.core.model import DeviceCandidate


class Transport(Protocol):
    def discover(self) -> list[DeviceCandidate]:
        """Return every connected keyboard exposing a configuration interface."""

    def open(self, candidate: DeviceCandidate) -> bool:
        """Open the candidate; return False when the device refused."""

    def close(self) -> None:
        """Release the open device. Calling it again is a no-op."""

    def write(self, report: bytes) -> int:
        """Send one raw report to the open device."""

    def read(self, size: int, timeout_ms: int = 500) -> bytes:
        """Read one raw report from the open device."""
