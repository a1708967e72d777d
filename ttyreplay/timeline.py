"""A recording held in memory as a sequence of timed frames.

A :class:`Timeline` collects the chunks of output a player reports,
stamping each with its absolute time.  It feeds them through a terminal
as it goes, and keeps a copy of the screen every 64 KiB of data.  Seeking
to any moment then needs only a short replay from the nearest snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional

from .formats import PlaybackSink, find_player, find_recorder
from .terminal import Terminal

SNAPSHOT_CHUNK = 65536
"""Bytes of output between two screen snapshots."""

MAX_DELAY = 5.0
"""Longest pause kept between frames; longer or negative ones are cut to this."""


@dataclass
class Frame:
    """One chunk of output and the absolute time it appeared."""

    t: float
    data: Optional[bytes] = None
    snapshot: Optional[Terminal] = field(default=None, repr=False, compare=False)
    index: int = field(default=0, compare=False)


def _snapshot(vt: Terminal) -> Terminal:
    copy = vt.copy()
    copy.listener = None
    return copy


class Timeline(PlaybackSink):
    """Frames of a recording together with the terminal they are drawn on."""

    def __init__(self, vt: Optional[Terminal] = None) -> None:
        self.vt = vt if vt is not None else Terminal(80, 25, True)
        self.frames: list[Frame] = [Frame(0.0, None, _snapshot(self.vt), 0)]
        self.nchunk = SNAPSHOT_CHUNK
        self.ndelay = 0.0

    @classmethod
    def load(
        cls,
        stream: BinaryIO,
        fmt: str = "auto",
        vt: Optional[Terminal] = None,
    ) -> Timeline:
        """Read a whole recording in format `fmt` from `stream`."""
        player = find_player(fmt)
        timeline = cls(vt)
        player.play(stream, timeline)
        return timeline

    # -- playback sink ------------------------------------------------------

    def init_wait(self, ts: float) -> None:
        """Set the start time of the recording."""
        self.frames[0].t = ts

    def wait(self, delay: float) -> None:
        """Add a delay before the next frame, capped at MAX_DELAY."""
        if delay >= MAX_DELAY or delay < 0:
            self.ndelay += MAX_DELAY
        else:
            self.ndelay += delay

    def print(self, data: bytes) -> None:
        """Append a frame with the given output."""
        data = bytes(data)
        tail = self.frames[-1]
        frame = Frame(tail.t + self.ndelay, data, None, len(self.frames))
        self.ndelay = 0.0
        self.frames.append(frame)
        self.vt.write(data)
        self.nchunk += len(data)
        if self.nchunk >= SNAPSHOT_CHUNK:
            frame.snapshot = _snapshot(self.vt)
            self.nchunk = 0

    # -- navigation ---------------------------------------------------------

    def seek(
        self, t: Optional[float] = None, want_vt: bool = False
    ) -> tuple[Frame, Optional[Terminal]]:
        """Find the last frame at or before time `t`.

        With no time, the first frame with data is chosen.  With `want_vt`,
        a terminal showing the screen as of that frame is returned too;
        otherwise the second item is None.
        """
        frames = self.frames
        idx = 0
        snap: Optional[int] = None
        if t is not None:
            while idx + 1 < len(frames) and frames[idx + 1].t <= t:
                idx += 1
                if frames[idx].snapshot is not None:
                    snap = idx
        elif len(frames) > 1:
            idx = 1
        if frames[idx].snapshot is not None:
            snap = idx

        if not want_vt:
            return frames[idx], None

        if snap is not None:
            vt = frames[snap].snapshot.copy()
        else:
            snap = 0
            vt = Terminal(80, 25, True)
        for frame in frames[snap + 1:idx + 1]:
            if frame.data:
                vt.write(frame.data)
        return frames[idx], vt

    def next_frame(self, frame: Optional[Frame]) -> Optional[Frame]:
        """Return the frame after `frame`, or None at the end."""
        if frame is None:
            return None
        nxt = frame.index + 1
        return self.frames[nxt] if nxt < len(self.frames) else None

    def add_frame(self, delay: Optional[float], data: bytes) -> None:
        """Append output that came `delay` seconds after the previous frame."""
        if delay is not None:
            self.wait(delay)
        self.print(data)

    def save(
        self,
        stream: BinaryIO,
        fmt: str,
        selstart: Optional[float] = None,
        selend: Optional[float] = None,
    ) -> int:
        """Write the frames between `selstart` and `selend` in format `fmt`.

        Returns the number of frames written.
        """
        info = find_recorder(fmt)
        frame, _ = self.seek(selstart)
        written = 0
        with info.factory(stream, frame.t) as recorder:
            while frame is not None:
                if selend is not None and frame.t > selend:
                    break
                if frame.data is not None:
                    recorder.write(frame.t, frame.data)
                    written += 1
                frame = self.next_frame(frame)
        return written

    def __iter__(self) -> Iterator[Frame]:
        """Iterate over the frames that carry output."""
        return iter(self.frames[1:])

    def __len__(self) -> int:
        return len(self.frames) - 1