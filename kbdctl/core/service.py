"""Service layer used by CLI and API frontends.

``KeyboardService.run`` is the single envelope every command goes through:
check collaborators, pick a keyboard, open it, load its snapshot, run the
operation, and always close the device again. Failures come back as a
``CommandResult`` instead of propagating.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from kbdctl.core.config import Config, load_config
from kbdctl.core.device_select import Chooser, select_device
from kbdctl.core.errors import CollaboratorMissingError, KbdctlError
from kbdctl.core.keycode_loader import load_keycodes
from kbdctl.core.keycodes import KeycodeCodec
from kbdctl.core.model import CommandResult, DeviceCandidate, Report, Snapshot
from kbdctl.core.session import DeviceSession, discover, load_snapshot, open_session
from kbdctl.core.slots import SlotKind, SlotStore
from kbdctl.firmware.backends import load_firmware_factory
from kbdctl.firmware.base import FirmwareFactory, has_capability
from kbdctl.transports.base import Transport
from kbdctl.transports.hid_transport import HIDTransport

LOGGER = logging.getLogger(__name__)


@dataclass
class OperationContext:
    snapshot: Snapshot
    firmware: Any
    keycodes: KeycodeCodec
    config: Config
    session: DeviceSession
    report: Report = field(default_factory=Report)

    def store(self, kind: SlotKind) -> SlotStore:
        return SlotStore(kind, self.snapshot, self.firmware, self.report)

    def info(self, message: str) -> None:
        self.report.info(message)

    def warn(self, message: str) -> None:
        self.report.warn(message)


Operation = Callable[[OperationContext], Any]


class KeyboardService:
    def __init__(
        self,
        *,
        transport: Transport | None = None,
        firmware_factory: FirmwareFactory | None = None,
        keycodes: KeycodeCodec | None = None,
        config: Config | None = None,
        device_hint: str | None = None,
        interactive: bool | None = None,
        chooser: Chooser | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        self.load_warnings: tuple[str, ...] = ()
        if keycodes is None:
            loaded = load_keycodes()
            keycodes = loaded.table
            self.load_warnings = loaded.warnings
        self.keycodes = keycodes
        self.transport = transport if transport is not None else HIDTransport()
        self.firmware_factory = (
            firmware_factory
            if firmware_factory is not None
            else load_firmware_factory(self.config.firmware)
        )
        self.device_hint = device_hint if device_hint is not None else self.config.device
        interactive = self.config.interactive if interactive is None else interactive
        self.chooser = chooser if interactive else None

    def list_devices(self) -> list[DeviceCandidate]:
        return discover(self.transport)

    def select(self) -> DeviceCandidate:
        return select_device(self.list_devices(), self.device_hint, self.chooser)

    def run(
        self,
        operation: Operation,
        *,
        requires: Iterable[str] = (),
        load_data: bool = True,
    ) -> CommandResult:
        report = Report()
        try:
            value = self._run(operation, tuple(requires), load_data, report)
        except KbdctlError as exc:
            LOGGER.debug("Command failed: %s", exc)
            return self._result(None, report, errors=(str(exc),), exit_code=1)
        except Exception as exc:
            LOGGER.debug("Operation failed", exc_info=True)
            return self._result(None, report, errors=(f"Operation failed: {exc}",), exit_code=1)

        if isinstance(value, CommandResult):
            merged = self._result(value.value, report)
            return merged.extend(
                messages=value.messages,
                warnings=value.warnings,
                errors=value.errors,
                exit_code=value.exit_code,
            )
        return self._result(value, report)

    def _run(
        self,
        operation: Operation,
        requires: Sequence[str],
        load_data: bool,
        report: Report,
    ) -> Any:
        firmware = self._check_collaborators(requires)
        candidate = self.select()
        with open_session(self.transport, candidate) as session:
            snapshot = Snapshot()
            if load_data:
                load_snapshot(firmware, snapshot)
            ctx = OperationContext(
                snapshot=snapshot,
                firmware=firmware,
                keycodes=self.keycodes,
                config=self.config,
                session=session,
                report=report,
            )
            LOGGER.debug("Running operation on %s", candidate.label)
            return operation(ctx)

    def _check_collaborators(self, requires: Sequence[str]) -> Any:
        missing: list[str] = []
        if self.transport is None:
            missing.append("transport")
        if self.keycodes is None:
            missing.append("keycodes")
        firmware = None
        if self.firmware_factory is None:
            missing.append("firmware")
        else:
            firmware = self.firmware_factory(self.transport)
            missing.extend(name for name in requires if not has_capability(firmware, name))
        if missing:
            raise CollaboratorMissingError(f"Required objects not available: {', '.join(missing)}")
        return firmware

    def _result(
        self,
        value: Any,
        report: Report,
        *,
        errors: tuple[str, ...] = (),
        exit_code: int = 0,
    ) -> CommandResult:
        return CommandResult(
            value=value,
            messages=tuple(report.messages),
            warnings=tuple(report.warnings),
            errors=errors,
            exit_code=exit_code,
        )
