"""Terminal emulator that turns a byte stream into screen contents.

:class:`Terminal` decodes UTF-8 (or CP437) text and interprets the usual
VT100/ANSI control codes and escape sequences.  That covers cursor movement,
erasing, scrolling regions, SGR attributes and colours, character sets,
window titles and resize requests.  The results land in the
:class:`~ttyreplay.screen.Screen` it is built on.
"""

from __future__ import annotations

from enum import Enum, auto

from .attrs import (
    ATTR_BLINK,
    ATTR_BOLD,
    ATTR_CJK,
    ATTR_DIM,
    ATTR_INVERSE,
    ATTR_ITALIC,
    ATTR_STRIKE,
    ATTR_UNDERLINE,
    CJK_RIGHT,
    MAXTOK,
    ColorType,
    Flag,
    make_color,
    with_background,
    with_foreground,
)
from .screen import CJK_DAMAGED, Cell, Screen
from .wcwidth import wcwidth

MAXOSC = 4096
"""Capacity of an OSC string buffer; longer strings are cut."""

_INVALID_OSC = 0xFFFFFFFF
_U32 = 0xFFFFFFFF
_SPACE = ord(" ")


class _State(Enum):
    NORMAL = auto()
    ESC = auto()
    GETPARS = auto()
    SQUARE = auto()
    QUES = auto()
    SET_G0 = auto()
    SET_G1 = auto()
    PERCENT = auto()
    OSC = auto()
    OSC_STR = auto()


def _signed(value: int) -> int:
    value &= _U32
    return value - (1 << 32) if value >= 1 << 31 else value


def _utf8_lead(b: int) -> tuple[int, int]:
    """Return (continuation bytes expected, initial bits) for a lead byte."""
    if b & 0xE0 == 0xC0:
        return 1, b & 0x1F
    if b & 0xF0 == 0xE0:
        return 2, b & 0x0F
    if b & 0xF8 == 0xF0:
        return 3, b & 0x07
    if b & 0xFC == 0xF8:
        return 4, b & 0x03
    if b & 0xFE == 0xFC:
        return 5, b & 0x01
    return 0, 0


class Terminal(Screen):
    """A screen driven by a stream of terminal output."""

    def __init__(self, sx: int = 80, sy: int = 25, resizable: bool = True) -> None:
        self.state = _State.NORMAL
        self.ntok = 0
        self.tok = [0] * MAXTOK
        self.oscbuf: bytearray | None = None
        self.utf_char = 0
        self.utf_surrogate = 0
        self.utf_count = 0
        super().__init__(sx, sy, resizable)

    def _reset_parser(self) -> None:
        self.state = _State.NORMAL
        self.utf_count = 0

    # -- public interface ---------------------------------------------

    def write(self, data: bytes | bytearray | str) -> None:
        """Feed output to the terminal; text is encoded as UTF-8."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        for b in data:
            if not self._control(b):
                self._dispatch(b)
        if self.listener is not None:
            self.listener.on_flush(self)

    def printf(self, fmt: str | bytes, *args) -> None:
        """Format with the % operator and write the result."""
        self.write(fmt % args if args else fmt)

    # -- control characters --------------------------------------------

    def _control(self, b: int) -> bool:
        """Handle a C0 control; return True if the byte was consumed."""
        if b in (0, 5, 127):
            return True
        if b == 7:
            if self.state in (_State.OSC, _State.OSC_STR):
                self._osc()
                self.state = _State.NORMAL
            elif self.listener is not None:
                self.listener.on_bell(self)
            return True
        if b == 8:
            if self.cx:
                self.cx -= 1
            self._notify_cursor()
            return True
        if b == 9:
            self._tab()
            return True
        if b == 10:
            self.cx = 0
            self._newline()
            return True
        if b == 11:
            self._newline()
            return True
        if b == 12:
            self.cx = self.cy = 0
            self._clear(0, 0, self.sx * self.sy)
            self._notify_cursor()
            return True
        if b == 13:
            self.cx = 0
            self._notify_cursor()
            return True
        if b == 14:
            self.cur_g = 1
            return True
        if b == 15:
            self.cur_g = 0
            return True
        if b in (24, 26):
            self.state = _State.NORMAL
            return True
        if b == 27:
            if self.state in (_State.OSC, _State.OSC_STR):
                self._osc()
            self.state = _State.ESC
            return True
        return False

    def _tab(self) -> None:
        if self.cx >= self.sx:
            return
        self._cjk_damage_left(self.cx, True)
        if (self.cx | 7) < self.sx:
            self._cjk_damage_right(self.cx | 7, False)
        while True:
            self.cells[self._index(self.cx, self.cy)] = Cell(_SPACE, self.attr)
            self.cx += 1
            if self.listener is not None:
                self.listener.on_char(self, self.cx - 1, self.cy, _SPACE, self.attr, 1)
            if not (self.cx < self.sx and self.cx & 7):
                break

    def _newline(self) -> None:
        self.cy += 1
        if self.cy == self.s2:
            self.cy = self.s2 - 1
            self._scroll(1)
        else:
            if self.cy >= self.sy:
                self.cy = self.sy - 1
            self._notify_cursor()

    def _osc(self) -> None:
        cmd = self.tok[0]
        if cmd == _INVALID_OSC:
            return
        text = None
        if self.oscbuf is not None:
            text = bytes(self.oscbuf).decode("utf-8", "replace")
        if cmd == 0:
            self.title = text
        if self.listener is not None:
            self.listener.on_osc(self, cmd, text if text is not None else "")
        self.oscbuf = None

    # -- state machine ---------------------------------------------------

    def _dispatch(self, b: int) -> None:
        state = self.state
        if state is _State.NORMAL:
            self._normal(b)
        elif state is _State.ESC:
            self._escape(b)
        elif state is _State.SQUARE:
            if b == ord("?"):
                self.state = _State.QUES
            else:
                self.state = _State.GETPARS
                self._csi(b)
        elif state is _State.GETPARS:
            self._csi(b)
        elif state is _State.QUES:
            self._ques(b)
        elif state is _State.SET_G0:
            self._set_charset(0, b)
            self.state = _State.NORMAL
        elif state is _State.SET_G1:
            self._set_charset(1, b)
            self.state = _State.NORMAL
        elif state is _State.PERCENT:
            if b == ord("@"):
                self.cp437 = True
            elif b in (ord("8"), ord("G")):
                self.cp437 = False
            self.state = _State.NORMAL
        elif state is _State.OSC:
            if ord("0") <= b <= ord("9"):
                self.tok[0] = (self.tok[0] * 10 + b - ord("0")) & _U32
            elif b == ord(";"):
                self.oscbuf = bytearray()
                self.state = _State.OSC_STR
            else:
                self.tok[0] = _INVALID_OSC
                self.state = _State.OSC_STR
        elif state is _State.OSC_STR:
            if self.oscbuf is not None and len(self.oscbuf) < MAXOSC - 1:
                self.oscbuf.append(b)

    def _normal(self, b: int) -> None:
        if self.cp437:
            c = ord(bytes([b]).decode("cp437"))
        elif b < 0x80:
            self.utf_count = 0
            c = b
        elif self.utf_count > 0 and b & 0xC0 == 0x80:
            self.utf_char = ((self.utf_char << 6) | (b & 0x3F)) & _U32
            self.utf_count -= 1
            if self.utf_count:
                return
            c = self.utf_char
            if c < 0xA0:  # overlong or C1 control
                c = 0xFFFD
            if c == 0xFFEF:
                return
            # UTF-16 surrogates wrapped in UTF-8, as some programs emit.
            if 0xD800 <= c <= 0xDFFF:
                if c < 0xDC00:
                    self.utf_surrogate = c
                    return
                if self.utf_surrogate:
                    c = ((self.utf_surrogate - 0xD800) << 10) + (c - 0xDC00) + 0x10000
                    self.utf_surrogate = 0
                else:
                    c = 0xFFFD
            if c > 0x10FFFF:
                c = 0xFFFD
            elif (c & 0xFFFF) >= 0xFFFE or 0xFDD0 <= c < 0xFDF0:
                c = 0xFFFD
        else:
            self.utf_count, self.utf_char = _utf8_lead(b)
            return
        self.put_char(c)

    def _escape(self, b: int) -> None:
        ch = chr(b)
        if ch == "[":
            self.state = _State.SQUARE
            self.ntok = 0
            self.tok[0] = 0
        elif ch == "]":
            self.state = _State.OSC
            self.tok[0] = 0
        elif ch == "(":
            self.state = _State.SET_G0
        elif ch == ")":
            self.state = _State.SET_G1
        elif ch == "%":
            self.state = _State.PERCENT
        elif ch == "7":
            self.save_cx, self.save_cy = self.cx, self.cy
            self.save_attr = self.attr
            self.save_g_graphics = self.g_graphics
            self.save_cur_g = self.cur_g
            self.state = _State.NORMAL
        elif ch == "8":
            self.cx, self.cy = self.save_cx, self.save_cy
            self.attr = self.save_attr
            self.g_graphics = self.save_g_graphics
            self.cur_g = self.save_cur_g
            self._notify_cursor()
            self.state = _State.NORMAL
        elif ch == "D":
            self.state = _State.NORMAL
            self._newline()
        elif ch == "E":
            self.state = _State.NORMAL
            self.cx = 0
            self._newline()
        elif ch == "M":
            self.cy -= 1
            if self.cy == self.s1 - 1:
                self.cy = self.s1
                self._scroll(-1)
            else:
                if self.cy < 0:
                    self.cy = 0
                self._notify_cursor()
            self.state = _State.NORMAL
        elif ch == "=":
            self._set_flag(Flag.KPAD, True)
            self.state = _State.NORMAL
        elif ch == ">":
            self._set_flag(Flag.KPAD, False)
            self.state = _State.NORMAL
        else:
            self.state = _State.NORMAL

    def _set_charset(self, g: int, b: int) -> None:
        if b == ord("0"):
            self.g_graphics |= 1 << g
        elif b in (ord("B"), ord("U")):
            self.g_graphics &= ~(1 << g)

    def _param(self, b: int) -> bool:
        """Collect a digit or separator; return False on overflow."""
        if ord("0") <= b <= ord("9"):
            self.tok[self.ntok] = (self.tok[self.ntok] * 10 + b - ord("0")) & _U32
            return True
        self.ntok += 1
        if self.ntok >= MAXTOK:
            return False
        self.tok[self.ntok] = 0
        return True

    def _csi(self, b: int) -> None:
        if ord("0") <= b <= ord("9") or b == ord(";"):
            if not self._param(b):
                self.state = _State.NORMAL
            return
        handler = self._CSI.get(b)
        if handler is None:
            self.state = _State.NORMAL
            return
        handler(self)

    def _ques(self, b: int) -> None:
        if ord("0") <= b <= ord("9") or b == ord(";"):
            if not self._param(b):
                self.state = _State.NORMAL
            return
        if b in (ord("h"), ord("l")):
            on = b == ord("h")
            for t in self.tok[:self.ntok + 1]:
                if t == 7:
                    self.opt_auto_wrap = on
                elif t == 25:
                    self._set_flag(Flag.CURSOR, on)
        self.state = _State.NORMAL

    # -- CSI final characters -------------------------------------------

    def _count(self) -> int:
        i = _signed(self.tok[0])
        return i if i >= 1 else 1

    def _sgr(self) -> None:
        tok = self.tok
        attr = self.attr
        i = 0
        while i <= self.ntok:
            t = tok[i]
            if t == 0:
                attr = 0
            elif t == 1:
                attr = (attr | ATTR_BOLD) & ~ATTR_DIM
            elif t == 2:
                attr = (attr | ATTR_DIM) & ~ATTR_BOLD
            elif t == 3:
                attr |= ATTR_ITALIC
            elif t == 4:
                attr |= ATTR_UNDERLINE
            elif t == 5:
                attr |= ATTR_BLINK
            elif t == 7:
                attr |= ATTR_INVERSE
            elif t == 9:
                attr |= ATTR_STRIKE
            elif t in (21, 22):
                attr &= ~(ATTR_BOLD | ATTR_DIM)
            elif t == 23:
                attr &= ~ATTR_ITALIC
            elif t == 24:
                attr &= ~ATTR_UNDERLINE
            elif t == 25:
                attr &= ~ATTR_BLINK
            elif t == 27:
                attr &= ~ATTR_INVERSE
            elif t == 29:
                attr &= ~ATTR_STRIKE
            elif 30 <= t <= 37:
                attr = with_foreground(attr, make_color(ColorType.PALETTE16, t - 30))
            elif 40 <= t <= 47:
                attr = with_background(attr, make_color(ColorType.PALETTE16, t - 40))
            elif t in (38, 48):
                setter = with_foreground if t == 38 else with_background
                if i < MAXTOK - 1:
                    i += 1
                    sub = tok[i]
                    if sub == 5:
                        if i < MAXTOK - 1:
                            i += 1
                            attr = setter(attr, make_color(ColorType.PALETTE256, tok[i]))
                    elif sub == 2:
                        if i < MAXTOK - 3:
                            rgb = ((tok[i + 1] & 0xFF) << 16
                                   | (tok[i + 2] & 0xFF) << 8
                                   | (tok[i + 3] & 0xFF))
                            attr = setter(attr, make_color(ColorType.RGB, rgb))
                            i += 3
                    elif sub == 3:
                        i += 3
                    elif sub == 4:
                        i += 4
            elif t == 39:
                attr = with_foreground(attr, make_color(ColorType.OFF, 0))
            elif t == 49:
                attr = with_background(attr, make_color(ColorType.OFF, 0))
            elif 90 <= t <= 97:
                attr = with_foreground(attr, make_color(ColorType.PALETTE256, 8 | (t - 90)))
            elif 100 <= t <= 107:
                attr = with_background(attr, make_color(ColorType.PALETTE256, 8 | (t - 100)))
            i += 1
        self.attr = attr
        self.state = _State.NORMAL

    def _left(self) -> None:
        i = self._count()
        self.cx = self.cx - i if self.cx > i else 0
        self._notify_cursor()
        self.state = _State.NORMAL

    def _right(self) -> None:
        i = self._count()
        self.cx = self.cx + i if i < self.sx - self.cx else self.sx
        self._notify_cursor()
        self.state = _State.NORMAL

    def _up(self) -> None:
        i = self._count()
        self.cy = self.cy - i if self.cy > i else 0
        self._notify_cursor()
        self.state = _State.NORMAL

    def _up_home(self) -> None:
        self.cx = 0
        self._up()

    def _down(self) -> None:
        i = self._count()
        self.cy = self.cy + i if i < self.sy - self.cy else self.sy - 1
        self._notify_cursor()
        self.state = _State.NORMAL

    def _down_home(self) -> None:
        self.cx = 0
        self._down()

    def _region(self) -> None:
        tok = self.tok
        if not tok[0]:
            tok[0] = 1
        if not self.ntok:
            tok[1] = 0
        if not tok[1]:
            tok[1] = self.sy
        if tok[1] <= self.sy and tok[0] < tok[1]:
            self.s1 = tok[0] - 1
            self.s2 = tok[1]
            self.cx = 0
            self.cy = self.s1
        self.state = _State.NORMAL

    def _erase_screen(self) -> None:
        sx, sy, cx, cy = self.sx, self.sy, self.cx, self.cy
        mode = self.tok[0]
        if mode == 0:
            if cx < sx:
                self._cjk_damage_left(cx, True)
            self._clear(cx, cy, sx * sy - (cy * sx + cx))
        elif mode == 1:
            if cx > 0:
                self._cjk_damage_right(cx - 1, True)
            self._clear(0, 0, cy * sx + cx)
        elif mode == 2:
            self._clear(0, 0, sx * sy)
        self.state = _State.NORMAL

    def _erase_line(self) -> None:
        sx, cx, cy = self.sx, self.cx, self.cy
        mode = self.tok[0]
        if mode == 0:
            if cx < sx:
                self._cjk_damage_left(cx, True)
                self._clear(cx, cy, sx - cx)
        elif mode == 1:
            if cx > 0:
                self._cjk_damage_right(cx - 1, True)
                self._clear(0, cy, cx)
        elif mode == 2:
            self._clear(0, cy, sx)
        self.state = _State.NORMAL

    def _scroll_lines(self, sign: int) -> None:
        if self.s1 <= self.cy < self.s2:
            self.tok[1] = self.s1
            self.s1 = self.cy
            i = _signed(self.tok[0])
            if i <= 0:
                i = 1
            self._scroll(sign * i)
            self.s1 = self.tok[1]
        self.state = _State.NORMAL

    def _insert_lines(self) -> None:
        self._scroll_lines(-1)

    def _delete_lines(self) -> None:
        self._scroll_lines(1)

    def _span(self) -> int:
        i = _signed(self.tok[0])
        if i <= 0:
            i = 1
        return min(i, self.sx - self.cx)

    def _report_row_from(self, start: int) -> None:
        if self.listener is None:
            return
        for x in range(start, self.sx):
            cell = self.cells[self._index(x, self.cy)]
            self.listener.on_char(self, x, self.cy, cell.ch, cell.attr, wcwidth(cell.ch))

    def _insert_chars(self) -> None:
        i = self._span()
        if i <= 0:
            return
        sx, cx = self.sx, self.cx
        self._cjk_damage_left(cx, True)
        here = self._index(cx, self.cy)
        if self.cells[here].ch == CJK_RIGHT:
            self.cells[here] = Cell(CJK_DAMAGED, self.cells[here].attr & ~ATTR_CJK)
        self._cjk_damage_left(sx - i, True)
        row = self._index(0, self.cy)
        self.cells[row + cx + i:row + sx] = self.cells[row + cx:row + sx - i]
        self.clear_region(row + cx, i)
        self._report_row_from(cx)
        self.state = _State.NORMAL

    def _delete_chars(self) -> None:
        i = self._span()
        if i <= 0:
            return
        sx, cx = self.sx, self.cx
        self._cjk_damage_left(cx, True)
        self._cjk_damage_right(cx + i - 1, True)
        row = self._index(0, self.cy)
        self.cells[row + cx:row + sx - i] = self.cells[row + cx + i:row + sx]
        self._report_row_from_range(cx, sx - i)
        self.clear_region(row + sx - i, i)
        self.state = _State.NORMAL

    def _report_row_from_range(self, start: int, stop: int) -> None:
        if self.listener is None:
            return
        for x in range(start, stop):
            cell = self.cells[self._index(x, self.cy)]
            self.listener.on_char(self, x, self.cy, cell.ch, cell.attr, wcwidth(cell.ch))

    def _erase_chars(self) -> None:
        i = self._span()
        if not i:
            return
        self._cjk_damage_left(self.cx, True)
        self._cjk_damage_right(self.cx + i - 1, True)
        self._clear(self.cx, self.cy, i)
        self.state = _State.NORMAL

    def _goto(self) -> None:
        self.cy = min(max(_signed(self.tok[0]) - 1, 0), self.sy - 1)
        x = _signed(self.tok[1]) - 1 if self.ntok else 0
        self.cx = min(max(x, 0), self.sx - 1)
        self._notify_cursor()
        self.state = _State.NORMAL

    def _goto_column(self) -> None:
        self.cx = min(max(_signed(self.tok[0]) - 1, 0), self.sx - 1)
        self._notify_cursor()
        self.state = _State.NORMAL

    def _goto_row(self) -> None:
        self.cy = min(max(_signed(self.tok[0]) - 1, 0), self.sy - 1)
        self._notify_cursor()
        self.state = _State.NORMAL

    def _power_on(self) -> None:
        self.reset()
        if self.listener is not None:
            self.listener.on_clear(self, 0, 0, self.sx * self.sy)
        self._notify_cursor()

    def _window(self) -> None:
        self.state = _State.NORMAL
        tok = self.tok
        if tok[0] != 8 or not self.allow_resize:
            return
        while self.ntok < 2:
            self.ntok += 1
            tok[self.ntok] = 0
        if tok[1] > 256 or tok[2] > 512:
            return
        if tok[1] <= 0:
            tok[1] = self.sy
        if tok[2] <= 0:
            tok[2] = self.sx
        if tok[1] < 1 or tok[2] < 2:  # a wide character needs two cells
            return
        self.resize(tok[2], tok[1])
        if self.listener is not None:
            self.listener.on_resize(self, tok[2], tok[1])

    _CSI = {
        ord("m"): _sgr,
        ord("D"): _left,
        ord("C"): _right,
        ord("a"): _right,
        ord("F"): _up_home,
        ord("A"): _up,
        ord("E"): _down_home,
        ord("B"): _down,
        ord("r"): _region,
        ord("J"): _erase_screen,
        ord("K"): _erase_line,
        ord("L"): _insert_lines,
        ord("M"): _delete_lines,
        ord("@"): _insert_chars,
        ord("P"): _delete_chars,
        ord("X"): _erase_chars,
        ord("f"): _goto,
        ord("H"): _goto,
        ord("G"): _goto_column,
        ord("`"): _goto_column,
        ord("d"): _goto_row,
        ord("c"): _power_on,
        ord("t"): _window,
    }