from __future__ import annotations

import re
from typing import NamedTuple, Union

from imagestamp.constants import TRANSPARENT_KEYWORD
from imagestamp.errors import InvalidColor

_HEX_COLOR = re.compile(r"#?([0-9a-fA-F]{6}|[0-9a-fA-F]{8})")


class Color(NamedTuple):
    r: int
    g: int
    b: int
    a: int = 255

    @property
    def rgba(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)

    @property
    def is_opaque(self) -> bool:
        return self.a == 255

    def opaque(self) -> Color:
        return self._replace(a=255)


class _Transparent:
    """Sentinel for "do not paint". Never equal to any Color, even alpha 0."""

    _instance: _Transparent | None = None

    def __new__(cls) -> _Transparent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TRANSPARENT"

    def __reduce__(self) -> str:
        return "TRANSPARENT"


TRANSPARENT = _Transparent()

ParsedColor = Union[Color, _Transparent]


def parse_color(value: object) -> ParsedColor:
    """Parse ``RRGGBB`` / ``RRGGBBAA`` hex (``#`` optional) or ``transparent``."""
    if not isinstance(value, str):
        raise InvalidColor(value)
    text = value.strip()
    if text.lower() == TRANSPARENT_KEYWORD:
        return TRANSPARENT
    match = _HEX_COLOR.fullmatch(text)
    if match is None:
        raise InvalidColor(value)
    digits = match.group(1)
    r = int(digits[0:2], 16)
    g = int(digits[2:4], 16)
    b = int(digits[4:6], 16)
    a = int(digits[6:8], 16) if len(digits) == 8 else 255
    return Color(r, g, b, a)


def is_transparent(color: ParsedColor) -> bool:
    return color is TRANSPARENT
