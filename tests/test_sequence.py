from __future__ import annotations

import pytest

from kbdctl.core.errors import (
    ConstraintParseError,
    EmptySequenceError,
    KeyParseError,
    StructuralParseError,
)
from kbdctl.core.model import Action, Combo
from kbdctl.core.sequence import (
    MACRO_GRAMMAR,
    TAPDANCE_GRAMMAR,
    format_combo,
    format_sequence,
    parse_combo,
    parse_sequence,
    tokenize,
)


def test_tokenize_respects_parentheses_and_quotes() -> None:
    assert tokenize('KC_A, TEXT("a, b"), LCTL(KC_C)') == ["KC_A", 'TEXT("a, b")', "LCTL(KC_C)"]
    assert tokenize("KC_A,,KC_B,") == ["KC_A", "KC_B"]


@pytest.mark.parametrize("text", ["TAP(KC_A", "KC_A)", 'TEXT("open'])
def test_tokenize_rejects_unbalanced_input(text: str) -> None:
    with pytest.raises(StructuralParseError):
        tokenize(text)


def test_macro_order_preserved(keycodes) -> None:
    parsed = parse_sequence("TAP(KC_A),DELAY(10),TAP(KC_B)", MACRO_GRAMMAR, keycodes)
    assert parsed.actions == (
        Action("tap", "KC_A"),
        Action("delay", 10),
        Action("tap", "KC_B"),
    )
    again = parse_sequence(format_sequence(parsed.actions), MACRO_GRAMMAR, keycodes)
    assert again.actions == parsed.actions


def test_macro_bare_keys_and_call_form_keys(keycodes) -> None:
    parsed = parse_sequence("kc_a, LCTL(KC_C), DOWN(KC_LSFT), UP(KC_LSFT)", MACRO_GRAMMAR, keycodes)
    assert parsed.actions == (
        Action("tap", "KC_A"),
        Action("tap", "LCTL(KC_C)"),
        Action("down", "KC_LEFT_SHIFT"),
        Action("up", "KC_LEFT_SHIFT"),
    )


def test_macro_text_kept_verbatim(keycodes) -> None:
    parsed = parse_sequence("TEXT(Hello, world),KC_ENT", MACRO_GRAMMAR, keycodes)
    assert parsed.actions == (Action("text", "Hello, world"), Action("tap", "KC_ENTER"))
    parsed = parse_sequence('TEXT("Hello, world")', MACRO_GRAMMAR, keycodes)
    assert parsed.actions == (Action("text", '"Hello, world"'),)


def test_structural_error_wins_over_bad_key(keycodes) -> None:
    with pytest.raises(StructuralParseError):
        parse_sequence("KC_BOGUS, DELAY(abc)", MACRO_GRAMMAR, keycodes)


@pytest.mark.parametrize(
    ("text", "grammar"),
    [
        ("KC_A, DELAY(\N{SUPERSCRIPT TWO})", MACRO_GRAMMAR),
        ("KC_A, DELAY(\N{ARABIC-INDIC DIGIT THREE})", MACRO_GRAMMAR),
        ("KC_A, TERM(\N{SUPERSCRIPT TWO})", TAPDANCE_GRAMMAR),
    ],
)
def test_numeric_arguments_must_be_ascii_digits(keycodes, text: str, grammar) -> None:
    with pytest.raises(StructuralParseError, match="non-negative integer"):
        parse_sequence(text, grammar, keycodes)


def test_unknown_key_is_key_error(keycodes) -> None:
    with pytest.raises(KeyParseError):
        parse_sequence("TAP(KC_A), FOO(1)", MACRO_GRAMMAR, keycodes)


def test_empty_key_argument_is_structural(keycodes) -> None:
    with pytest.raises(StructuralParseError):
        parse_sequence("TAP()", MACRO_GRAMMAR, keycodes)


def test_empty_definition_rejected(keycodes) -> None:
    with pytest.raises(EmptySequenceError):
        parse_sequence(" , ", MACRO_GRAMMAR, keycodes)
    with pytest.raises(EmptySequenceError):
        parse_sequence("TERM(200)", TAPDANCE_GRAMMAR, keycodes)


def test_tapdance_fields_and_term(keycodes) -> None:
    parsed = parse_sequence("KC_A, HOLD(KC_B), DOUBLE(KC_C), TERM(250)", TAPDANCE_GRAMMAR, keycodes)
    assert parsed.actions == (
        Action("tap", "KC_A"),
        Action("hold", "KC_B"),
        Action("doubletap", "KC_C"),
    )
    assert parsed.metadata == {"term": 250}
    assert format_sequence(parsed.actions, TAPDANCE_GRAMMAR, parsed.metadata) == (
        "TAP(KC_A), HOLD(KC_B), DOUBLE(KC_C), TERM(250)"
    )


def test_tapdance_duplicate_field_rejected(keycodes) -> None:
    with pytest.raises(ConstraintParseError, match="HOLD"):
        parse_sequence("HOLD(KC_A), HOLD(KC_B)", TAPDANCE_GRAMMAR, keycodes)
    with pytest.raises(ConstraintParseError, match="TERM"):
        parse_sequence("KC_A, TERM(100), TERM(200)", TAPDANCE_GRAMMAR, keycodes)


def test_tapdance_key_error_before_duplicate(keycodes) -> None:
    with pytest.raises(KeyParseError):
        parse_sequence("TAP(KC_A), TAP(KC_BOGUS)", TAPDANCE_GRAMMAR, keycodes)


def test_parse_combo_pads_triggers(keycodes) -> None:
    combo = parse_combo("KC_A+KC_S KC_D", keycodes)
    assert combo == Combo(triggers=("KC_A", "KC_S", "KC_NO", "KC_NO"), action="KC_D")
    assert format_combo(combo) == "KC_A+KC_S KC_D"


def test_parse_combo_too_many_triggers_reported_first(keycodes) -> None:
    with pytest.raises(StructuralParseError, match="Too many trigger keys: found 5, maximum 4"):
        parse_combo("KC_A+KC_B+KC_BOGUS+KC_D+KC_E KC_X", keycodes)


def test_parse_combo_respects_lower_trigger_cap(keycodes) -> None:
    with pytest.raises(StructuralParseError, match="maximum 2"):
        parse_combo("KC_A+KC_B+KC_C KC_X", keycodes, max_triggers=2)


@pytest.mark.parametrize("text", ["KC_A", "KC_A KC_B KC_C", "KC_A++KC_B KC_C", "+KC_A KC_B"])
def test_parse_combo_structural_errors(keycodes, text: str) -> None:
    with pytest.raises(StructuralParseError):
        parse_combo(text, keycodes)


@pytest.mark.parametrize(
    "text",
    ["KC_BOGUS+KC_A KC_B", "KC_NO+KC_A KC_B", "KC_A+KC_B KC_BOGUS", "KC_A+KC_B XXXXXXX"],
)
def test_parse_combo_key_errors(keycodes, text: str) -> None:
    with pytest.raises(KeyParseError):
        parse_combo(text, keycodes)


def test_parse_combo_duplicate_triggers(keycodes) -> None:
    with pytest.raises(ConstraintParseError, match="KC_A"):
        parse_combo("KC_A+kc_a KC_B", keycodes)
