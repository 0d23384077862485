import pytest

from kbdctl.core.device_select import format_device_list, matches_hint, select_device
from kbdctl.core.errors import AmbiguousDeviceError, NoDeviceFoundError
from tests.fakes import KEYBOARD, OTHER_KEYBOARD


def test_hint_matches_vid_pid_and_names() -> None:
    assert matches_hint(KEYBOARD, "feed:4242")
    assert matches_hint(KEYBOARD, "FEED:4242")
    assert matches_hint(KEYBOARD, "split")
    assert matches_hint(KEYBOARD, "a1b2")
    assert matches_hint(KEYBOARD, "hidraw3")
    assert not matches_hint(KEYBOARD, "keychron")


def test_single_candidate_selected_automatically() -> None:
    assert select_device([KEYBOARD]) == KEYBOARD


def test_no_candidates() -> None:
    with pytest.raises(NoDeviceFoundError, match="No compatible keyboard found."):
        select_device([])


def test_hint_without_match_lists_devices() -> None:
    with pytest.raises(NoDeviceFoundError) as excinfo:
        select_device([KEYBOARD, OTHER_KEYBOARD], device_hint="planck")
    assert "Keychron Q1 (3434:0100)" in str(excinfo.value)


def test_multiple_candidates_without_chooser_is_ambiguous() -> None:
    with pytest.raises(AmbiguousDeviceError):
        select_device([KEYBOARD, OTHER_KEYBOARD])


def test_hint_narrows_to_one() -> None:
    assert select_device([KEYBOARD, OTHER_KEYBOARD], device_hint="3434:0100") == OTHER_KEYBOARD


def test_chooser_result_must_be_a_candidate() -> None:
    assert select_device([KEYBOARD, OTHER_KEYBOARD], chooser=lambda c: c[0]) == KEYBOARD
    with pytest.raises(NoDeviceFoundError):
        select_device([KEYBOARD, OTHER_KEYBOARD], chooser=lambda c: None)


def test_format_device_list() -> None:
    assert format_device_list([KEYBOARD, OTHER_KEYBOARD]) == (
        "  [0] Acme Split 42 (feed:4242)\n  [1] Keychron Q1 (3434:0100)"
    )
