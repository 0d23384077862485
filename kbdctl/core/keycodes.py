"""Keycode name <-> numeric code translation backed by loaded keycode tables."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from kbdctl.core.errors import KeycodeTableValidationError

_HEX_LITERAL_RE = re.compile(r"^0x[0-9a-f]{1,4}$", re.IGNORECASE)
_CALL_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\((.*)\)$")
_MODS_MASK = 0x1F00
_MODDED_MAX = 0x1FFF


class KeycodeCodec(Protocol):
    def parse(self, name: str) -> int | None:
        """Return the numeric code for a key name, or None when unknown."""

    def stringify(self, code: int) -> str:
        """Return the canonical name for a numeric code."""


@dataclass(frozen=True)
class LayerFunction:
    base: int
    max: int


@dataclass(frozen=True)
class KeycodeTableSpec:
    id: str
    name: str
    keycodes: dict[str, int]
    aliases: dict[str, str]
    modifiers: dict[str, int]
    layer_functions: dict[str, LayerFunction]


class KeycodeTable:
    """Keycode codec merged from one or more table specs.

    Later specs override names defined by earlier ones. When several names map
    to the same code, the first one defined is the canonical name returned by
    ``stringify``.
    """

    def __init__(self, specs: Iterable[KeycodeTableSpec]) -> None:
        self._by_name: dict[str, int] = {}
        self._aliases: dict[str, str] = {}
        self._modifiers: dict[str, int] = {}
        self._layer_functions: dict[str, LayerFunction] = {}

        for spec in specs:
            self._by_name.update({name.upper(): code for name, code in spec.keycodes.items()})
            self._aliases.update({alias.upper(): target.upper() for alias, target in spec.aliases.items()})
            self._modifiers.update({name.upper(): mask for name, mask in spec.modifiers.items()})
            self._layer_functions.update(
                {name.upper(): fn for name, fn in spec.layer_functions.items()}
            )

        for alias, target in self._aliases.items():
            if target not in self._by_name:
                raise KeycodeTableValidationError(
                    f"Alias '{alias}' points to unknown keycode '{target}'"
                )

        self._by_code: dict[int, str] = {}
        for name, code in self._by_name.items():
            self._by_code.setdefault(code, name)
        self._modifier_names: dict[int, str] = {}
        for name, mask in self._modifiers.items():
            self._modifier_names.setdefault(mask, name)

    def __contains__(self, name: str) -> bool:
        return self.parse(name) is not None

    def parse(self, name: str) -> int | None:
        text = name.strip() if isinstance(name, str) else ""
        if not text:
            return None
        if _HEX_LITERAL_RE.match(text):
            return int(text, 16)

        upper = text.upper()
        code = self._by_name.get(self._aliases.get(upper, upper))
        if code is not None:
            return code

        match = _CALL_RE.match(text)
        if not match:
            return None
        function = match.group(1).upper()
        argument = match.group(2).strip()

        if function in self._modifiers:
            inner = self.parse(argument)
            if inner is None or inner > _MODDED_MAX:
                return None
            return self._modifiers[function] | inner

        layer_function = self._layer_functions.get(function)
        if layer_function is not None and argument.isascii() and argument.isdigit():
            index = int(argument)
            if index <= layer_function.max:
                return layer_function.base + index
        return None

    def stringify(self, code: int) -> str:
        name = self._by_code.get(code)
        if name is not None:
            return name

        if 0 < code <= _MODDED_MAX and code & _MODS_MASK:
            modifier = self._modifier_names.get(code & _MODS_MASK)
            if modifier is not None:
                return f"{modifier}({self.stringify(code & 0xFF)})"

        for function, layer_function in self._layer_functions.items():
            if layer_function.base <= code <= layer_function.base + layer_function.max:
                return f"{function}({code - layer_function.base})"

        return f"0x{code:04X}"
