from __future__ import annotations

import pytest

from kbdctl.core.config import Config
from kbdctl.core.keycode_loader import load_keycodes
from kbdctl.core.service import KeyboardService
from tests.fakes import FakeFirmware, FakeTransport


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("KBDCTL_FIRMWARE", raising=False)
    monkeypatch.delenv("KBDCTL_DEVICE", raising=False)


@pytest.fixture
def keycodes():
    return load_keycodes().table


@pytest.fixture
def firmware():
    return FakeFirmware()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_service(keycodes):
    def build(firmware, transport=None, **kwargs):
        return KeyboardService(
            transport=transport if transport is not None else FakeTransport(),
            firmware_factory=lambda _transport: firmware,
            keycodes=keycodes,
            config=kwargs.pop("config", Config()),
            **kwargs,
        )

    return build


@pytest.fixture
def service(make_service, firmware, transport):
    return make_service(firmware, transport)
