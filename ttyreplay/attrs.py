"""Cell attributes, colour encoding and terminal flags.

An attribute is a 64-bit integer.  The low 26 bits hold the foreground
colour (2 bits of colour type, 24 bits of value); the same layout shifted by
32 bits holds the background.  The remaining bits are style flags.
"""

from __future__ import annotations

from enum import IntEnum

MAXTOK = 16
CJK_RIGHT = 0xFFFFFFFF
"""Character value stored in the right half of a double-width cell."""

ATTR_COLOR_MASK = 0x3FFFFFF
ATTR_COLOR_TYPE = 0x3000000
_COLOR_VALUE = 0xFFFFFF
_BG_SHIFT = 32
_BG_MASK = ATTR_COLOR_MASK << _BG_SHIFT
_ATTR_BITS = (1 << 64) - 1

ATTR_BOLD = 0x04000000
ATTR_DIM = 0x08000000
ATTR_ITALIC = 0x10000000
ATTR_UNDERLINE = 0x20000000
ATTR_STRIKE = 0x40000000
ATTR_INVERSE = 0x0400000000000000
ATTR_BLINK = 0x0800000000000000
ATTR_CJK = 0x8000000000000000


class Flag(IntEnum):
    """Terminal options reported to listeners when they change."""

    CURSOR = 0
    KPAD = 1
    AUTO_WRAP = 2


class ColorType(IntEnum):
    """How the 24-bit colour value is to be read."""

    OFF = 0
    PALETTE16 = 1
    PALETTE256 = 2
    RGB = 3


def make_color(kind: ColorType | int, value: int) -> int:
    """Encode a colour of the given type; the value is cut to 24 bits."""
    return int(ColorType(kind)) << 24 | (value & _COLOR_VALUE)


def color_type(color: int) -> ColorType:
    """Return the type of an encoded colour."""
    return ColorType((color & ATTR_COLOR_TYPE) >> 24)


def foreground(attr: int) -> int:
    """Return the encoded foreground colour of an attribute."""
    return attr & ATTR_COLOR_MASK


def background(attr: int) -> int:
    """Return the encoded background colour of an attribute."""
    return (attr >> _BG_SHIFT) & ATTR_COLOR_MASK


def with_foreground(attr: int, color: int) -> int:
    """Return the attribute with its foreground replaced."""
    return (attr & ~ATTR_COLOR_MASK | color & ATTR_COLOR_MASK) & _ATTR_BITS


def with_background(attr: int, color: int) -> int:
    """Return the attribute with its background replaced."""
    return (attr & ~_BG_MASK | (color & ATTR_COLOR_MASK) << _BG_SHIFT) & _ATTR_BITS