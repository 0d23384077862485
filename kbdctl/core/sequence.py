"""Parsing of textual macro, tap-dance and combo definitions.

Definitions are validated in three passes over the whole input: structural
shape first, then keycode translation of every key argument, then constraints
across fields. The first violation found is raised and nothing is returned
for a partially valid definition.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from kbdctl.core.errors import (
    ConstraintParseError,
    EmptySequenceError,
    KeyParseError,
    StructuralParseError,
)
from kbdctl.core.keycodes import KeycodeCodec
from kbdctl.core.model import COMBO_TRIGGER_SLOTS, NO_KEY, Action, Combo, is_no_key

_CALL_RE = re.compile(r"^([A-Za-z_]+)\((.*)\)$", re.DOTALL)


@dataclass(frozen=True)
class Grammar:
    name: str
    key_verbs: dict[str, str]
    numeric_verbs: dict[str, str] = field(default_factory=dict)
    text_verbs: dict[str, str] = field(default_factory=dict)
    metadata_verbs: dict[str, str] = field(default_factory=dict)
    bare_kind: str = "tap"
    unique_kinds: bool = False

    def verb_for(self, kind: str) -> str:
        for verbs in (self.key_verbs, self.numeric_verbs, self.text_verbs, self.metadata_verbs):
            for verb, verb_kind in verbs.items():
                if verb_kind == kind:
                    return verb
        raise KeyError(kind)


MACRO_GRAMMAR = Grammar(
    name="macro",
    key_verbs={"TAP": "tap", "DOWN": "down", "UP": "up"},
    numeric_verbs={"DELAY": "delay"},
    text_verbs={"TEXT": "text"},
)

TAPDANCE_GRAMMAR = Grammar(
    name="tapdance",
    key_verbs={"TAP": "tap", "HOLD": "hold", "DOUBLE": "doubletap", "TAPHOLD": "taphold"},
    metadata_verbs={"TERM": "term"},
    unique_kinds=True,
)


@dataclass(frozen=True)
class ParsedSequence:
    actions: tuple[Action, ...]
    metadata: dict[str, int]


@dataclass(frozen=True)
class _Token:
    kind: str
    argument: str
    is_key: bool
    is_metadata: bool = False


def tokenize(text: str) -> list[str]:
    """Split on commas that are outside parentheses and double quotes."""
    tokens: list[str] = []
    current: list[str] = []
    depth = 0
    quoted = False

    for char in text:
        if char == '"':
            quoted = not quoted
        elif not quoted and char == "(":
            depth += 1
        elif not quoted and char == ")":
            depth -= 1
            if depth < 0:
                raise StructuralParseError(f"Unbalanced ')' in definition: {text!r}")
        elif not quoted and depth == 0 and char == ",":
            tokens.append("".join(current).strip())
            current = []
            continue
        current.append(char)

    if quoted:
        raise StructuralParseError(f"Unterminated quote in definition: {text!r}")
    if depth != 0:
        raise StructuralParseError(f"Unbalanced '(' in definition: {text!r}")

    tokens.append("".join(current).strip())
    return [token for token in tokens if token]


def _classify(token: str, grammar: Grammar) -> _Token:
    match = _CALL_RE.match(token)
    verb = match.group(1).upper() if match else None

    if match is None or verb not in {
        *grammar.key_verbs,
        *grammar.numeric_verbs,
        *grammar.text_verbs,
        *grammar.metadata_verbs,
    }:
        # Not one of our verbs: the whole token is a key name, which may itself
        # be a call form such as LCTL(KC_A) or MO(1).
        return _Token(kind=grammar.bare_kind, argument=token, is_key=True)

    argument = match.group(2)
    if verb in grammar.text_verbs:
        return _Token(kind=grammar.text_verbs[verb], argument=argument, is_key=False)

    argument = argument.strip()
    if verb in grammar.key_verbs:
        if not argument:
            raise StructuralParseError(f"{verb}() requires a key argument")
        return _Token(kind=grammar.key_verbs[verb], argument=argument, is_key=True)

    if not (argument.isascii() and argument.isdigit()):
        raise StructuralParseError(
            f"{verb}({argument}) requires a non-negative integer argument"
        )
    if verb in grammar.metadata_verbs:
        return _Token(
            kind=grammar.metadata_verbs[verb], argument=argument, is_key=False, is_metadata=True
        )
    return _Token(kind=grammar.numeric_verbs[verb], argument=argument, is_key=False)


def canonical_key(name: str, keycodes: KeycodeCodec) -> str | None:
    code = keycodes.parse(name)
    if code is None:
        return None
    return keycodes.stringify(code)


def parse_sequence(text: str, grammar: Grammar, keycodes: KeycodeCodec) -> ParsedSequence:
    classified = [_classify(token, grammar) for token in tokenize(text)]
    action_tokens = [token for token in classified if not token.is_metadata]
    if not action_tokens:
        raise EmptySequenceError(f"{grammar.name.capitalize()} definition contains no actions")

    actions: list[Action] = []
    for token in action_tokens:
        if token.is_key:
            name = canonical_key(token.argument, keycodes)
            if name is None:
                raise KeyParseError(
                    f"Invalid key '{token.argument}' in {grammar.name} definition"
                )
            actions.append(Action(token.kind, name))
        elif token.kind in grammar.numeric_verbs.values():
            actions.append(Action(token.kind, int(token.argument)))
        else:
            actions.append(Action(token.kind, token.argument))

    if grammar.unique_kinds:
        seen: set[str] = set()
        for action in actions:
            if action.kind in seen:
                raise ConstraintParseError(
                    f"{grammar.verb_for(action.kind)} specified more than once"
                )
            seen.add(action.kind)

    metadata: dict[str, int] = {}
    for token in classified:
        if not token.is_metadata:
            continue
        if token.kind in metadata:
            raise ConstraintParseError(
                f"{grammar.verb_for(token.kind)} specified more than once"
            )
        metadata[token.kind] = int(token.argument)

    return ParsedSequence(actions=tuple(actions), metadata=metadata)


def format_sequence(
    actions: tuple[Action, ...] | list[Action],
    grammar: Grammar = MACRO_GRAMMAR,
    metadata: dict[str, int] | None = None,
) -> str:
    parts = [f"{grammar.verb_for(action.kind)}({action.value})" for action in actions]
    for kind, value in (metadata or {}).items():
        parts.append(f"{grammar.verb_for(kind)}({value})")
    return ", ".join(parts)


def parse_combo(text: str, keycodes: KeycodeCodec, max_triggers: int = COMBO_TRIGGER_SLOTS) -> Combo:
    fields = text.split()
    if len(fields) != 2:
        raise StructuralParseError(
            "Combo definition must be 'TRIGGER1[+TRIGGER2...] ACTION' (e.g. 'KC_A+KC_S KC_D')"
        )

    trigger_text, action_text = fields
    trigger_names = trigger_text.split("+")
    if any(not name for name in trigger_names):
        raise StructuralParseError(f"Empty trigger key in '{trigger_text}'")
    if len(trigger_names) > max_triggers:
        raise StructuralParseError(
            f"Too many trigger keys: found {len(trigger_names)}, maximum {max_triggers}"
        )

    triggers: list[str] = []
    for name in trigger_names:
        canonical = canonical_key(name, keycodes)
        if canonical is None:
            raise KeyParseError(f"Invalid trigger key '{name}'")
        if is_no_key(canonical):
            raise KeyParseError(f"Trigger key cannot be {NO_KEY}: '{name}'")
        triggers.append(canonical)

    action = canonical_key(action_text, keycodes)
    if action is None:
        raise KeyParseError(f"Invalid action key '{action_text}'")
    if is_no_key(action):
        raise KeyParseError(f"Action key cannot be {NO_KEY}: '{action_text}'")

    duplicates = sorted({name for name in triggers if triggers.count(name) > 1})
    if duplicates:
        raise ConstraintParseError(f"Duplicate trigger keys: {', '.join(duplicates)}")

    padded = triggers + [NO_KEY] * (COMBO_TRIGGER_SLOTS - len(triggers))
    return Combo(triggers=tuple(padded), action=action)


def format_combo(combo: Combo) -> str:
    return f"{'+'.join(combo.active_triggers)} {combo.action}"
