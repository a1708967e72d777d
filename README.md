# ttyreplay

A pure-Python library with three parts:

- an emulator for a VT100-style terminal;
- readers and writers for recordings of terminal sessions;
- an in-memory timeline for moving around inside a recording.

It has no dependencies outside the standard library.

## Modules

### `ttyreplay.terminal`

`Terminal(sx, sy, resizable)` is a terminal emulator. You feed it output with
`write()`, which accepts bytes or str. `printf(fmt, *args)` formats with `%`
and then writes the result.

The emulator handles:

- UTF-8 input, with CP437 selectable through `ESC % @`;
- control characters;
- cursor movement;
- erasing and insertion;
- scrolling regions;
- SGR attributes, including 16, 256 and RGB colours;
- the DEC line-drawing character set;
- window titles set through OSC 0, stored in `title`;
- resize requests through `ESC [ 8 ; h ; w t`.

### `ttyreplay.screen`

`Screen` is the grid that a `Terminal` builds on. Its main members are:

- `cell(x, y)`, which returns a `Cell` with the code point `ch`, the attribute `attr` and the combining marks `comb`;
- `line_text(y)`;
- `resize()`;
- `reset()`;
- `copy()`;
- `close()`.

A screen can also be used as a context manager.

To observe changes as they happen, set `listener` to a `TerminalListener`. You can use it in either of two ways:

- override methods such as `on_char`, `on_cursor`, `on_clear`, `on_scroll`, `on_osc` or `on_bell`;
- fill its `handlers` dict, keyed by event name (`"char"`, `"cursor"`, ...).

### `ttyreplay.wcwidth`

`wcwidth(ucs)` returns the number of cells a code point takes:

- 0 for NUL and combining marks;
- 2 for East Asian wide characters;
- -1 for other control characters;
- 1 for everything else.

### `ttyreplay.attrs`

This module covers packed 64-bit cell attributes. It has:

- the style bits `ATTR_BOLD`, `ATTR_ITALIC` and others;
- the enums `ColorType` and `Flag`;
- the helpers `make_color`, `color_type`, `foreground`, `background`, `with_foreground` and `with_background`.

### `ttyreplay.vtredir`

`attach(vt, stream, dump)` installs a `Redirector` as the terminal's listener. The redirector writes escape sequences that reproduce every screen change on a text stream. With `dump` set, it first redraws the current contents.

### `ttyreplay.formats`

Players read a binary stream and report what they find to a `PlaybackSink` through three methods:

- `init_wait` for the start time;
- `wait` for delays, in seconds;
- `print` for output chunks.

| Player             | Reads                                                         |
|--------------------|---------------------------------------------------------------|
| `play_ttyrec`      | ttyrec files                                                  |
| `play_nh_recorder` | nh_recorder files                                             |
| `play_baudrate`    | plain text, paced like a 2400 baud line                       |
| `play_live`        | output as it arrives, timed by the wall clock                 |
| `play_auto`        | detects ttyrec from the first 12 bytes, otherwise plays live  |

Recorders take absolute timestamps and output chunks. They are `Recorder` subclasses and can be used as context managers:

- `AnsiRecorder`;
- `TtyrecRecorder`;
- `NhRecorder`;
- `LiveRecorder`;
- `NullRecorder`.

`find_player(name)` and `find_recorder(name)` look formats up by name. They raise `UnsupportedFormatError` for unknown names.

### `ttyreplay.timeline`

`Timeline.load(stream, fmt, vt)` reads a whole recording into a list of `Frame`s, each with an absolute time `t` and its `data`. It keeps a copy of the screen every 64 KiB of output. Delays longer than five seconds are cut to five.

The main methods are:

- `seek(t, want_vt)` finds the last frame at or before `t`. When asked, it also rebuilds the screen as of that frame.
- `next_frame()` returns the frame that follows.
- `add_frame()` appends a frame.
- `save(stream, fmt, selstart, selend)` writes a time range in another format and returns the number of frames written.

## Installation

```
pip install .
```

## Examples

```python
from ttyreplay.terminal import Terminal

vt = Terminal(80, 25, True)
vt.write(b"\x1b[1mhello\x1b[0m world\r\n")
print(vt.line_text(0))
```

Writing a ttyrec file:

```python
from ttyreplay.formats import TtyrecRecorder

with open("session.ttyrec", "wb") as f, TtyrecRecorder(f, 0.0) as rec:
    rec.write(0.0, b"$ ls\r\n")
    rec.write(1.5, b"README.md\r\n")
```

Loading a recording, rebuilding the screen ten seconds in, and saving the rest as plain text:

```python
from ttyreplay.timeline import Timeline

with open("session.ttyrec", "rb") as f:
    tl = Timeline.load(f, "ttyrec", None)

start = tl.frames[0].t
frame, screen = tl.seek(start + 10.0, True)
print(screen.line_text(0))

with open("tail.txt", "wb") as out:
    tl.save(out, "ansi", start + 10.0, None)
```

## What it does not do

- **No command-line programs.** The package does not record or play sessions on its own.
- **No pseudo-terminals.** It does not start or spawn programs under a pseudo-terminal.
- **No asciicast support.** Asciicast files are neither read nor written. `play_auto` raises `UnsupportedFormatError` when it detects one.
- **No compression or URLs.** Compressed recordings and network sources are not handled. Players read from any binary file object you give them.

## Running the tests

```
pip install .[test]
pytest
```