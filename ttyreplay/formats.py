"""Recording formats: players that decode them and recorders that write them.

A player reads a binary stream and reports what it finds to a
:class:`PlaybackSink`: the start time of the recording, delays between
chunks, and the chunks of terminal output themselves.  A recorder is
given absolute timestamps and output chunks and writes them to a stream.
Times are seconds as floats.
"""

from __future__ import annotations

import math
import struct
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

BUFFER_SIZE = 32768

_TTYREC_HEADER = struct.Struct("<III")
_U32 = 0xFFFFFFFF
_BAUDRATE_CHUNK = 60  # 2400 baud
_BAUDRATE_DELAY = 0.2
_WHITESPACE = frozenset(b" \t\n\r")


class UnsupportedFormatError(ValueError):
    """The named format is unknown or cannot be handled here."""


class PlaybackSink:
    """Receives the events of a recording being played.

    Every method does nothing; subclasses override what they need.
    """

    def init_wait(self, ts: float) -> None:
        """The recording started at absolute time `ts`."""

    def wait(self, delay: float) -> None:
        """`delay` seconds passed since the previous event."""

    def print(self, data: bytes) -> None:
        """A chunk of terminal output."""


def _split(t: float) -> tuple[int, int]:
    sec = math.floor(t)
    usec = round((t - sec) * 1_000_000)
    if usec >= 1_000_000:
        sec += 1
        usec -= 1_000_000
    return sec, usec


def _join(sec: int, usec: int) -> float:
    return sec + usec / 1_000_000


def _read_some(stream: BinaryIO, n: int) -> bytes:
    read1 = getattr(stream, "read1", None)
    return read1(n) if read1 is not None else stream.read(n)


def _as_bytes(data: bytes | bytearray | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


# -- players ------------------------------------------------------------


def play_baudrate(stream: BinaryIO, sink: PlaybackSink, cont: Optional[float] = None) -> None:
    """Play plain output at the pace of a 2400 baud line."""
    while chunk := stream.read(_BAUDRATE_CHUNK):
        sink.print(chunk)
        sink.wait(_BAUDRATE_DELAY)


def play_live(stream: BinaryIO, sink: PlaybackSink, cont: Optional[float] = None) -> None:
    """Pass output on as it arrives, timed by the wall clock."""
    if cont is not None:
        previous = cont
    else:
        previous = time.time()
        sink.init_wait(previous)
    while chunk := _read_some(stream, BUFFER_SIZE):
        now = time.time()
        sink.wait(now - previous)
        previous = now
        sink.print(chunk)


def play_ttyrec(stream: BinaryIO, sink: PlaybackSink, cont: Optional[float] = None) -> None:
    """Play a ttyrec file: frames of a 12-byte header and the data."""
    prev = None if cont is None else _split(cont)
    while True:
        head = stream.read(_TTYREC_HEADER.size)
        if len(head) < _TTYREC_HEADER.size:
            return
        sec, usec, remaining = _TTYREC_HEADER.unpack(head)
        # Read the first block before reporting the delay, for accurate timing.
        want = min(remaining, BUFFER_SIZE)
        block = stream.read(want)
        if len(block) < want:
            return
        remaining -= want
        if prev is None:
            sink.init_wait(_join(sec, usec))
        else:
            sink.wait((sec - prev[0]) + (usec - prev[1]) / 1_000_000)
        prev = (sec, usec)
        while block:
            sink.print(block)
            if not remaining:
                break
            want = min(remaining, BUFFER_SIZE)
            block = stream.read(want)
            if len(block) < want:
                return
            remaining -= want


def play_nh_recorder(stream: BinaryIO, sink: PlaybackSink, cont: Optional[float] = None) -> None:
    """Play an nh_recorder file: output with NUL + 32-bit centisecond stamps."""
    buf = bytearray()
    stamp = 0
    while chunk := stream.read(BUFFER_SIZE):
        buf += chunk
        while True:
            nul = buf.find(0)
            if nul < 0:
                if buf:
                    sink.print(bytes(buf))
                    buf.clear()
                break
            if nul:
                sink.print(bytes(buf[:nul]))
                del buf[:nul]
            if len(buf) < 5:
                break  # the timestamp continues in the next block
            previous = stamp
            (stamp,) = struct.unpack_from("<I", buf, 1)
            del buf[:5]
            sink.wait(((stamp - previous) & _U32) / 100)


def is_asciicast(head: bytes) -> bool:
    """Tell whether the first 12 bytes of a file may start an asciicast."""
    data = bytes(head[:12])
    budget = 12
    pos = 0

    def current() -> int:
        return data[pos] if pos < len(data) else -1

    for step in '{ "version" : ':
        if step == " ":
            while True:
                if not budget:
                    return True
                budget -= 1
                if current() not in _WHITESPACE:
                    break
                pos += 1
        else:
            if not budget:
                return True
            budget -= 1
            if current() != ord(step):
                return False
            pos += 1
    return not budget or current() in (ord("1"), ord("2"))


def play_auto(stream: BinaryIO, sink: PlaybackSink, cont: Optional[float] = None) -> None:
    """Guess the format from the first 12 bytes and play accordingly.

    A plausible ttyrec header selects ttyrec; anything not recognised is
    played live.  Asciicast input raises :class:`UnsupportedFormatError`.
    """
    head = b""
    while len(head) < _TTYREC_HEADER.size:
        chunk = _read_some(stream, _TTYREC_HEADER.size - len(head))
        if not chunk:
            return
        head += chunk
    sec, usec, length = _TTYREC_HEADER.unpack(head)
    if usec < 1_000_000 and 0 < length < 65536:
        start = _join(sec, usec)
        sink.init_wait(start)
        while length > 0:
            chunk = stream.read(min(length, BUFFER_SIZE))
            if not chunk:
                return
            sink.print(chunk)
            length -= len(chunk)
        play_ttyrec(stream, sink, start)
        return

    if is_asciicast(head):
        raise UnsupportedFormatError("asciicast playback is not available")

    start = time.time()
    sink.init_wait(start)
    sink.print(head)
    play_live(stream, sink, start)


# -- recorders ------------------------------------------------------------


class Recorder:
    """Writes a recording to a stream; this base class discards everything.

    `start` is the date of the recording, or None when timestamps are
    relative to zero.
    """

    def __init__(self, stream: BinaryIO, start: Optional[float] = None) -> None:
        self.stream = stream
        self.start = start

    def write(self, tm: float, data: bytes | str) -> None:
        """Record a chunk of output produced at absolute time `tm`."""

    def finish(self) -> None:
        """End the recording."""

    def __enter__(self) -> Recorder:
        return self

    def __exit__(self, *exc) -> None:
        self.finish()


class AnsiRecorder(Recorder):
    """Plain output with no timing information."""

    def write(self, tm, data):
        self.stream.write(_as_bytes(data))


class TtyrecRecorder(Recorder):
    """ttyrec: each chunk preceded by seconds, microseconds and length."""

    def write(self, tm, data):
        payload = _as_bytes(data)
        sec, usec = _split(tm)
        self.stream.write(_TTYREC_HEADER.pack(sec & _U32, usec, len(payload)))
        self.stream.write(payload)


class NhRecorder(Recorder):
    """nh_recorder: output followed by NUL and centiseconds since the start."""

    def __init__(self, stream, start=None):
        super().__init__(stream, start)
        self._origin = _split(start) if start is not None else (0, 0)
        stream.write(b"\0\0\0\0\0")

    def write(self, tm, data):
        sec, usec = _split(tm)
        stamp = (sec - self._origin[0]) * 100 + int((usec - self._origin[1]) / 10000)
        self.stream.write(_as_bytes(data))
        self.stream.write(b"\0")
        self.stream.write(struct.pack("<I", stamp & _U32))


class LiveRecorder(Recorder):
    """Write output in real time, sleeping until each chunk is due."""

    def __init__(
        self,
        stream,
        start=None,
        *,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(stream, start)
        self._clock = clock
        self._sleep = sleep
        now = clock()
        self._origin = now - start if start is not None else now

    def write(self, tm, data):
        ahead = tm + self._origin - self._clock()
        if ahead > 0:
            self._sleep(ahead)
        else:
            # Can't go back in time: shift the origin by the time skipped.
            self._origin -= ahead
        self.stream.write(_as_bytes(data))
        self.stream.flush()


class NullRecorder(Recorder):
    """Discards everything."""


# -- registry ---------------------------------------------------------------


@dataclass(frozen=True)
class RecorderInfo:
    name: str
    ext: Optional[str]
    factory: type[Recorder]


@dataclass(frozen=True)
class PlayerInfo:
    name: str
    ext: Optional[str]
    play: Callable[..., None]


RECORDERS: dict[str, RecorderInfo] = {
    info.name: info
    for info in (
        RecorderInfo("ansi", ".txt", AnsiRecorder),
        RecorderInfo("ttyrec", ".ttyrec", TtyrecRecorder),
        RecorderInfo("nh_recorder", ".nh", NhRecorder),
        RecorderInfo("live", None, LiveRecorder),
        RecorderInfo("null", None, NullRecorder),
    )
}

PLAYERS: dict[str, PlayerInfo] = {
    info.name: info
    for info in (
        PlayerInfo("baudrate", ".txt", play_baudrate),
        PlayerInfo("ttyrec", ".ttyrec", play_ttyrec),
        PlayerInfo("nh_recorder", ".nh", play_nh_recorder),
        PlayerInfo("live", None, play_live),
        PlayerInfo("auto", None, play_auto),
    )
}


def find_recorder(name: str) -> RecorderInfo:
    """Return the recorder registered under `name`."""
    try:
        return RECORDERS[name]
    except KeyError:
        raise UnsupportedFormatError(f"no recorder for format {name!r}") from None


def find_player(name: str) -> PlayerInfo:
    """Return the player registered under `name`."""
    try:
        return PLAYERS[name]
    except KeyError:
        raise UnsupportedFormatError(f"no player for format {name!r}") from None