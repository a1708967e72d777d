"""Mirror a terminal's screen onto another terminal.

A :class:`Redirector` listens to a :class:`~ttyreplay.screen.Screen` and
writes the escape sequences that reproduce every change on a text stream,
such as the real terminal the program runs in.
"""

from __future__ import annotations

import os
from typing import TextIO

from .attrs import (
    ATTR_BLINK,
    ATTR_BOLD,
    ATTR_COLOR_TYPE,
    ATTR_DIM,
    ATTR_INVERSE,
    ATTR_ITALIC,
    ATTR_STRIKE,
    ATTR_UNDERLINE,
    CJK_RIGHT,
    background,
    foreground,
)
from .screen import VT100_GRAPHICS, TerminalListener
from .wcwidth import wcwidth

# Unicode -> line-drawing character, for output devices without Unicode.
_GRAPHICS_REVERSE = {uni: chr(ascii_) for ascii_, uni in VT100_GRAPHICS.items()}

_STYLE_CODES = (
    (ATTR_BOLD, ";1"),
    (ATTR_DIM, ";2"),
    (ATTR_ITALIC, ";3"),
    (ATTR_UNDERLINE, ";4"),
    (ATTR_BLINK, ";5"),
    (ATTR_INVERSE, ";7"),
    (ATTR_STRIKE, ";9"),
)


def _color_code(c: int, bg: int) -> str:
    kind = c & ATTR_COLOR_TYPE
    if kind == 1 << 24:
        base = 9 if c & 8 else 3
        return f";{base + bg}{c & 7}"
    if kind == 2 << 24:
        return f";{3 + bg}8;5;{c & 0xFF}"
    if kind == 3 << 24:
        return f";{3 + bg}8;2;{(c >> 16) & 0xFF};{(c >> 8) & 0xFF};{c & 0xFF}"
    return ""


class Redirector(TerminalListener):
    """Listener that replays screen changes as escape sequences on a stream."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.sx = 80
        self.sy = 25
        self.cx = -1
        self.cy = -1
        self.attr = -1

    def resize(self, sx: int, sy: int) -> None:
        """Set the size of the output terminal."""
        self.sx = sx
        self.sy = sy

    # -- output helpers ---------------------------------------------------

    def _emit(self, ch: int) -> bool:
        """Write a code point; False if the stream cannot represent it."""
        try:
            self.stream.write(chr(ch))
        except ValueError:
            return False
        return True

    def _set_attr(self, attr: int) -> None:
        if self.attr == attr:
            return
        self.attr = attr
        parts = ["\x1b[0"]
        parts.extend(code for bit, code in _STYLE_CODES if attr & bit)
        parts.append(_color_code(foreground(attr), 0))
        parts.append(_color_code(background(attr), 1))
        parts.append("m")
        self.stream.write("".join(parts))

    # -- listener interface -----------------------------------------------

    def on_cursor(self, vt, x, y):
        if x == self.cx and y == self.cy:
            return
        self.stream.write(f"\x1b[{y + 1};{x + 1}f")
        self.cx = x
        self.cy = y

    def on_char(self, vt, x, y, ch, attr, width):
        if x >= self.sx or y > self.sy:
            return
        if x != self.cx or y != self.cy:
            self.on_cursor(vt, x, y)
        self._set_attr(attr)
        if not self._emit(ch):
            if width == 2:
                self.stream.write("??")
            elif vt.cp437 and ch in _GRAPHICS_REVERSE:
                self.stream.write(f"\x0e{_GRAPHICS_REVERSE[ch]}\x0f")
            else:
                self.stream.write("?")
        self.cx += 1

    def on_comb(self, vt, x, y, ch, attr):
        if x >= self.sx or y > self.sy:
            return
        if x + 1 != self.cx or y != self.cy:
            self.on_cursor(vt, x + 1, y)
        self._set_attr(attr)
        self._emit(ch)

    def on_clear(self, vt, x, y, length):
        sx, sy, cx, cy = self.sx, self.sy, self.cx, self.cy
        self._set_attr(vt.attr)
        write = self.stream.write
        if x == 0 and y == 0 and length == sx * sy:
            write("\x1b[2J")
        elif x == 0 and y == 0 and length == cy * sx + cx:
            write("\x1b[1J")
        elif x == cx and y == cy and length == sx * sy - cy * sx - cx:
            write("\x1b[0J")
        elif x == 0 and y == cy and length == sx:
            write("\x1b[2K")
        elif x == 0 and y == cy and length == cx:
            write("\x1b[1K")
        elif x == cx and y == cy and length == sx - cx:
            write("\x1b[0K")
        else:
            while length > 0:
                self.on_cursor(vt, x, y)
                count = min(length, sx - x)
                if count <= 0:
                    break
                write(f"\x1b[{count}X")
                length -= count
                x = 0
                y += 1
        self.on_cursor(vt, vt.cx, vt.cy)

    def on_scroll(self, vt, nl):
        top, bottom = vt.s1 + 1, vt.s2
        if nl > 0:
            self.stream.write(f"\x1b[0m\x1b[{top};{bottom}r\x1b[{top};1f\x1b[{nl}M\x1b[r")
        elif nl < 0:
            self.stream.write(f"\x1b[0m\x1b[{top};{bottom}r\x1b[{top};1f\x1b[{-nl}L\x1b[r")
        self.cx = self.cy = -1
        self.attr = 0

    def on_osc(self, vt, cmd, text):
        # Only the window title is passed through.
        if cmd == 0:
            self.stream.write(f"\x1b]0;{text}\x1b\\")

    def on_resize(self, vt, sx, sy):
        self.stream.write(f"\x1b[8;{sy};{sx}t")

    def on_flush(self, vt):
        self.stream.flush()

    def on_bell(self, vt):
        self.stream.write("\a")

    def dump(self, vt) -> None:
        """Redraw the whole contents of the screen and place the cursor."""
        for y in range(vt.sy):
            for x in range(vt.sx):
                cell = vt.cell(x, y)
                if cell.ch != CJK_RIGHT:
                    self.on_char(vt, x, y, cell.ch, cell.attr, wcwidth(cell.ch))
        self.on_cursor(vt, vt.cx, vt.cy)


def attach(vt, stream: TextIO, dump: bool = False) -> Redirector:
    """Mirror `vt` onto `stream`; with `dump`, redraw the current contents first."""
    redirector = Redirector(stream)
    try:
        size = os.get_terminal_size(stream.fileno())
    except (OSError, ValueError, AttributeError):
        pass
    else:
        redirector.resize(size.columns, size.lines)
    vt.listener = redirector
    if dump:
        stream.write("\x1bc")
        redirector.dump(vt)
        stream.flush()
    return redirector