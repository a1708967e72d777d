"""Screen buffer of a character-cell terminal.

A :class:`Screen` holds the grid of cells, the cursor, the scrolling region
and the rendition state.  It knows how to place printable characters
(including double-width and combining ones), clear and scroll regions and
resize itself.  Every visible change is reported to an optional
:class:`TerminalListener`.
"""

from __future__ import annotations

import copy as _copy
from dataclasses import dataclass, field, replace
from typing import Callable

from .attrs import ATTR_CJK, CJK_RIGHT, Flag
from .wcwidth import wcwidth

CJK_DAMAGED = ord(" ")
"""What remains of a double-width character when one of its halves is hit."""

MAX_COMBINING = 4
"""Combining marks kept on one cell; further ones are dropped."""

# DEC special graphics: the line-drawing set selected with ESC ( 0.
VT100_GRAPHICS: dict[int, int] = {
    0x60: 0x2666, 0x61: 0x2592, 0x62: 0x2409, 0x63: 0x240C,
    0x64: 0x240D, 0x65: 0x240A, 0x66: 0x00B0, 0x67: 0x00B1,
    0x68: 0x2424, 0x69: 0x240B, 0x6A: 0x2518, 0x6B: 0x2510,
    0x6C: 0x250C, 0x6D: 0x2514, 0x6E: 0x253C, 0x6F: 0x23BA,
    0x70: 0x23BB, 0x71: 0x2500, 0x72: 0x23BC, 0x73: 0x23BD,
    0x74: 0x251C, 0x75: 0x2524, 0x76: 0x2534, 0x77: 0x252C,
    0x78: 0x2502, 0x79: 0x2264, 0x7A: 0x2265, 0x7B: 0x03C0,
    0x7C: 0x2260, 0x7D: 0x00A3, 0x7E: 0x00B7,
}

_FLAG_OPTIONS = {
    Flag.CURSOR: "opt_cursor",
    Flag.KPAD: "opt_kpad",
    Flag.AUTO_WRAP: "opt_auto_wrap",
}


@dataclass(frozen=True)
class Cell:
    """One character cell: code point, attribute and combining marks."""

    ch: int = CJK_DAMAGED
    attr: int = 0
    comb: tuple[int, ...] = field(default=())

    @property
    def is_cjk_right(self) -> bool:
        """True for the right half of a double-width character."""
        return self.ch == CJK_RIGHT

    @property
    def text(self) -> str:
        """The cell's character followed by its combining marks."""
        if self.ch == CJK_RIGHT:
            return ""
        return chr(self.ch) + "".join(chr(c) for c in self.comb)


class TerminalListener:
    """Receives notifications about changes to a screen.

    Each specific method forwards its notification to :meth:`on_event`
    under a short event name, so a listener may either override the
    specific methods it cares about, catch everything in one place, or
    register plain callables in :attr:`handlers` keyed by event name.
    """

    handlers: dict[str, Callable] | None = None

    def on_event(self, vt, event, *args):
        """Dispatch a notification to the handler registered for `event`."""
        handler = (self.handlers or {}).get(event)
        if handler is None:
            return None
        return handler(vt, *args)

    def on_char(self, vt, x, y, ch, attr, width):
        """A character has been written at (x, y)."""
        return self.on_event(vt, "char", x, y, ch, attr, width)

    def on_comb(self, vt, x, y, ch, attr):
        """A combining mark has been added to the cell at (x, y)."""
        return self.on_event(vt, "comb", x, y, ch, attr)

    def on_cursor(self, vt, x, y):
        """The cursor has moved."""
        return self.on_event(vt, "cursor", x, y)

    def on_clear(self, vt, x, y, length):
        """A run of cells starting at (x, y) has been cleared."""
        return self.on_event(vt, "clear", x, y, length)

    def on_scroll(self, vt, nl):
        """The scrolling region moved by nl lines (negative: backwards)."""
        return self.on_event(vt, "scroll", nl)

    def on_flag(self, vt, flag, value):
        """A terminal flag changed to value."""
        return self.on_event(vt, "flag", flag, value)

    def on_osc(self, vt, cmd, text):
        """An operating system command (window title etc.) arrived."""
        return self.on_event(vt, "osc", cmd, text)

    def on_resize(self, vt, sx, sy):
        """The terminal has been resized."""
        return self.on_event(vt, "resize", sx, sy)

    def on_flush(self, vt):
        """A chunk of input has been processed."""
        return self.on_event(vt, "flush")

    def on_bell(self, vt):
        """A bell character was received."""
        return self.on_event(vt, "bell")

    def on_free(self, vt):
        """The terminal is about to be closed."""
        return self.on_event(vt, "free")


class Screen:
    """Grid of cells with cursor, scrolling region and rendition state."""

    def __init__(self, sx: int = 80, sy: int = 25, resizable: bool = True) -> None:
        self.sx = 0
        self.sy = 0
        self.cx = 0
        self.cy = 0
        self.cells: list[Cell] = []
        self.attr = 0
        self.title: str | None = None
        self.s1 = 0
        self.s2 = 0
        self.save_cx = 0
        self.save_cy = 0
        self.save_attr = 0
        self.g_graphics = 0
        self.cur_g = 0
        self.save_g_graphics = 0
        self.save_cur_g = 0
        self.cp437 = False
        self.allow_resize = bool(resizable)
        self.opt_auto_wrap = True
        self.opt_cursor = True
        self.opt_kpad = False
        self.listener: TerminalListener | None = None
        self.closed = False
        self.reset()
        if sx and sy:
            self.resize(sx, sy)

    # -- basic geometry -------------------------------------------------

    def _index(self, x: int, y: int) -> int:
        return y * self.sx + x

    def cell(self, x: int, y: int) -> Cell:
        """Return the cell at column x, row y."""
        if not (0 <= x < self.sx and 0 <= y < self.sy):
            raise IndexError(f"cell ({x}, {y}) outside {self.sx}x{self.sy} screen")
        return self.cells[self._index(x, y)]

    def line_text(self, y: int) -> str:
        """Return the text of row y, one character per column."""
        if not 0 <= y < self.sy:
            raise IndexError(f"row {y} outside screen of height {self.sy}")
        row = self.cells[self._index(0, y):self._index(0, y + 1)]
        return "".join(c.text for c in row)

    def _blank(self) -> Cell:
        return Cell(CJK_DAMAGED, self.attr)

    # -- lifecycle ------------------------------------------------------

    def resize(self, nsx: int, nsy: int) -> bool:
        """Change the screen size, keeping the overlapping contents.

        Returns False if the size did not change.
        """
        if nsx <= 0 or nsy <= 0:
            raise ValueError(f"invalid screen size {nsx}x{nsy}")
        if nsx == self.sx and nsy == self.sy:
            return False
        blank = self._blank()
        new = [blank] * (nsx * nsy)
        if self.cells:
            if nsx < self.sx:
                for y in range(self.sy):
                    if self.cells[self._index(nsx, y)].ch == CJK_RIGHT:
                        i = self._index(nsx - 1, y)
                        left = self.cells[i]
                        self.cells[i] = replace(
                            left, ch=CJK_DAMAGED, attr=left.attr & ~ATTR_CJK
                        )
            width = min(self.sx, nsx)
            for y in range(min(self.sy, nsy)):
                start = self._index(0, y)
                new[y * nsx:y * nsx + width] = self.cells[start:start + width]
        self.cells = new
        self.sx, self.sy = nsx, nsy
        self.s1, self.s2 = 0, nsy
        self.cx = min(self.cx, nsx)
        self.cy = min(self.cy, nsy - 1)
        self.save_cx = min(self.save_cx, nsx)
        self.save_cy = min(self.save_cy, nsy - 1)
        return True

    def reset(self) -> None:
        """Return to power-on defaults and blank the screen."""
        self.clear_region(0, self.sx * self.sy)
        self.cx = self.cy = self.save_cx = self.save_cy = 0
        self.s1 = 0
        self.s2 = self.sy
        self.attr = 0
        self.opt_auto_wrap = True
        self.opt_cursor = True
        self.opt_kpad = False
        # G0 uses the normal set, G1 the line-drawing set.
        self.g_graphics = self.save_g_graphics = 1 << 1
        self.cur_g = self.save_cur_g = 0
        self._reset_parser()

    def _reset_parser(self) -> None:
        """Hook for input-decoding state that a reset clears."""

    def copy(self) -> Screen:
        """Return an independent snapshot of this screen."""
        new = _copy.copy(self)
        for name, value in vars(new).items():
            if isinstance(value, (list, bytearray, dict)):
                setattr(new, name, value.copy())
        return new

    def close(self) -> None:
        """Notify the listener and release the screen."""
        if self.closed:
            return
        self.closed = True
        if self.listener is not None:
            self.listener.on_free(self)
        self.listener = None

    def __enter__(self) -> Screen:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- notifications --------------------------------------------------

    def _notify_cursor(self) -> None:
        if self.listener is not None:
            self.listener.on_cursor(self, self.cx, self.cy)

    def _set_flag(self, flag: Flag, value: bool) -> None:
        setattr(self, _FLAG_OPTIONS[Flag(flag)], bool(value))
        if self.listener is not None:
            self.listener.on_flag(self, Flag(flag), int(bool(value)))

    def _scroll(self, nl: int) -> None:
        self.scroll(nl)
        if self.listener is not None:
            self.listener.on_scroll(self, nl)

    def _clear(self, x: int, y: int, length: int) -> None:
        self.clear_region(self._index(x, y), length)
        if self.listener is not None:
            self.listener.on_clear(self, x, y, length)

    # -- buffer operations ---------------------------------------------

    def clear_region(self, start: int, length: int) -> None:
        """Blank `length` cells from linear offset `start` with the current attribute."""
        if start < 0 or length < 0 or start + length > self.sx * self.sy:
            raise ValueError(f"region {start}+{length} outside the screen")
        self.cells[start:start + length] = [self._blank()] * length

    def scroll(self, nl: int) -> None:
        """Scroll the region s1 <= y < s2 by nl lines (negative: down)."""
        if self.s1 >= self.s2:
            raise ValueError("empty scrolling region")
        sx, s1, s2 = self.sx, self.s1, self.s2
        keep = s2 - s1 - abs(nl)
        if keep <= 0:
            self.clear_region(s1 * sx, (s2 - s1) * sx)
            return
        if nl < 0:
            dst = (s1 - nl) * sx
            self.cells[dst:dst + keep * sx] = self.cells[s1 * sx:(s1 + keep) * sx]
            self.clear_region(s1 * sx, -nl * sx)
        else:
            src = (s1 + nl) * sx
            self.cells[s1 * sx:(s1 + keep) * sx] = self.cells[src:src + keep * sx]
            self.clear_region((s2 - nl) * sx, nl * sx)

    def _damage(self, x: int, notify: bool) -> None:
        i = self._index(x, self.cy)
        old = self.cells[i]
        cell = Cell(CJK_DAMAGED, old.attr & ~ATTR_CJK)
        self.cells[i] = cell
        if notify and self.listener is not None:
            self.listener.on_char(self, x, self.cy, CJK_DAMAGED, cell.attr, 1)

    def _cjk_damage_left(self, x: int, notify: bool) -> None:
        """Break a wide character whose right half sits at column x."""
        if x <= 0 or x >= self.sx:
            return
        cell = self.cells[self._index(x, self.cy)]
        if not cell.attr & ATTR_CJK or cell.ch != CJK_RIGHT:
            return
        self._damage(x - 1, notify)

    def _cjk_damage_right(self, x: int, notify: bool) -> None:
        """Break a wide character whose left half sits at column x."""
        if x < 0 or x + 1 >= self.sx:
            return
        cell = self.cells[self._index(x, self.cy)]
        if not cell.attr & ATTR_CJK or cell.ch == CJK_RIGHT or wcwidth(cell.ch) != 2:
            return
        self._damage(x + 1, notify)

    def _add_comb(self, x: int, y: int, ch: int) -> None:
        i = self._index(x, y)
        cell = self.cells[i]
        if len(cell.comb) >= MAX_COMBINING:
            return
        self.cells[i] = replace(cell, comb=cell.comb + (ch,))
        if self.listener is not None:
            self.listener.on_comb(self, x, y, ch, cell.attr)

    def put_char(self, ch: int | str) -> None:
        """Place a printable character at the cursor and advance it."""
        c = ord(ch) if isinstance(ch, str) else ch
        w = wcwidth(c)
        if w < 0:
            return
        if w == 0:
            if self.cx:
                self._add_comb(self.cx - 1, self.cy, c)
            return
        if w > self.sx:
            return
        if c < 128 and self.g_graphics & (1 << self.cur_g):
            c = VT100_GRAPHICS.get(c, c)
        if self.cx + w > self.sx:
            if self.opt_auto_wrap:
                self.cx = 0
                self.cy += 1
                if self.cy >= self.s2:
                    self.cy = self.s2 - 1
                    self._scroll(1)
            else:
                self.cx = self.sx - w

        self._cjk_damage_left(self.cx, True)
        self._cjk_damage_right(self.cx + w - 1, False)

        i = self._index(self.cx, self.cy)
        self.cells[i] = Cell(c, self.attr | (ATTR_CJK if w == 2 else 0))
        if w == 2:
            self.cells[i + 1] = Cell(CJK_RIGHT, self.attr | ATTR_CJK)
        self.cx += w
        if self.listener is not None:
            self.listener.on_char(self, self.cx - w, self.cy, c, self.attr, w)