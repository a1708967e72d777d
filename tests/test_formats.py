import io
import struct

import pytest

from ttyreplay.formats import (
    AnsiRecorder,
    LiveRecorder,
    NhRecorder,
    NullRecorder,
    PlaybackSink,
    TtyrecRecorder,
    UnsupportedFormatError,
    find_player,
    find_recorder,
    is_asciicast,
    play_auto,
    play_baudrate,
    play_live,
    play_nh_recorder,
    play_ttyrec,
)


class Collector(PlaybackSink):
    def __init__(self):
        self.events = []

    def init_wait(self, ts):
        self.events.append(("init", ts))

    def wait(self, delay):
        self.events.append(("wait", delay))

    def print(self, data):
        self.events.append(("print", data))

    def printed(self):
        return b"".join(d for kind, d in self.events if kind == "print")


def _ttyrec(frames):
    out = io.BytesIO()
    rec = TtyrecRecorder(out, frames[0][0])
    for tm, data in frames:
        rec.write(tm, data)
    rec.finish()
    return out.getvalue()


def test_ttyrec_header_layout():
    out = io.BytesIO()
    TtyrecRecorder(out, None).write(1.5, b"ab")
    assert out.getvalue()[12:] == b"ab"
    assert struct.unpack("<III", out.getvalue()[:12]) == (1, 500000, 2)


def test_ttyrec_round_trip():
    data = _ttyrec([(1.0, b"hello"), (1.5, b"world")])
    sink = Collector()
    play_ttyrec(io.BytesIO(data), sink)
    assert sink.events == [
        ("init", 1.0),
        ("print", b"hello"),
        ("wait", 0.5),
        ("print", b"world"),
    ]


def test_ttyrec_with_continuation_reports_delay_only():
    data = _ttyrec([(2.0, b"x")])
    sink = Collector()
    play_ttyrec(io.BytesIO(data), sink, 1.0)
    assert sink.events == [("wait", 1.0), ("print", b"x")]


def test_ttyrec_truncated_frame_is_dropped():
    data = struct.pack("<III", 1, 0, 10) + b"abc"
    sink = Collector()
    play_ttyrec(io.BytesIO(data), sink)
    assert sink.events == []


def test_nh_recorder_round_trip():
    out = io.BytesIO()
    rec = NhRecorder(out, 10.0)
    rec.write(10.5, b"a")
    rec.write(11.0, b"b")
    raw = out.getvalue()
    assert raw.startswith(b"\0\0\0\0\0")
    sink = Collector()
    play_nh_recorder(io.BytesIO(raw), sink)
    assert sink.events == [
        ("wait", 0.0),
        ("print", b"a"),
        ("wait", 0.5),
        ("print", b"b"),
        ("wait", 0.5),
    ]


def test_nh_recorder_drops_incomplete_timestamp():
    sink = Collector()
    play_nh_recorder(io.BytesIO(b"text\0\1\0"), sink)
    assert sink.events == [("print", b"text")]


def test_baudrate_chunks_and_delays():
    sink = Collector()
    play_baudrate(io.BytesIO(b"x" * 130), sink)
    sizes = [len(d) for kind, d in sink.events if kind == "print"]
    waits = [d for kind, d in sink.events if kind == "wait"]
    assert sizes == [60, 60, 10]
    assert waits == [0.2] * 3


def test_ansi_recorder_writes_raw_data():
    out = io.BytesIO()
    with AnsiRecorder(out, None) as rec:
        rec.write(0.0, b"abc")
        rec.write(5.0, "déf")
    assert out.getvalue() == b"abc" + "déf".encode("utf-8")


def test_null_recorder_writes_nothing():
    out = io.BytesIO()
    rec = NullRecorder(out, 3.0)
    rec.write(4.0, b"ignored")
    rec.finish()
    assert out.getvalue() == b""


def test_live_recorder_sleeps_until_due():
    out = io.BytesIO()
    sleeps = []
    rec = LiveRecorder(out, 100.0, clock=lambda: 50.0, sleep=sleeps.append)
    rec.write(101.0, b"z")
    assert sleeps == [1.0]
    assert out.getvalue() == b"z"


def test_live_recorder_does_not_sleep_for_past_chunks():
    out = io.BytesIO()
    sleeps = []
    rec = LiveRecorder(out, 100.0, clock=lambda: 50.0, sleep=sleeps.append)
    rec.write(99.0, b"late")
    rec.write(99.0, b"again")
    assert sleeps == []
    assert out.getvalue() == b"lateagain"


def test_play_live_reports_start_delay_and_data():
    sink = Collector()
    play_live(io.BytesIO(b"data"), sink, None)
    assert [kind for kind, _ in sink.events] == ["init", "wait", "print"]
    assert sink.events[1][1] >= 0
    assert sink.events[2] == ("print", b"data")


def test_play_live_with_continuation_skips_init():
    sink = Collector()
    play_live(io.BytesIO(b"more"), sink, 0.0)
    assert [kind for kind, _ in sink.events] == ["wait", "print"]
    assert sink.printed() == b"more"


def test_auto_detects_ttyrec():
    data = _ttyrec([(1.0, b"first"), (3.0, b"second")])
    sink = Collector()
    play_auto(io.BytesIO(data), sink)
    assert sink.events[0] == ("init", 1.0)
    assert ("wait", 2.0) in sink.events
    assert sink.printed() == b"firstsecond"


def test_auto_falls_back_to_live():
    sink = Collector()
    text = b"plain text, not a recording"
    play_auto(io.BytesIO(text), sink)
    assert sink.events[0][0] == "init"
    assert sink.events[1] == ("print", text[:12])
    assert sink.printed() == text


def test_auto_rejects_asciicast():
    with pytest.raises(UnsupportedFormatError):
        play_auto(io.BytesIO(b'{"version": 2, "width": 80}'), Collector())


def test_auto_on_short_input_does_nothing():
    sink = Collector()
    play_auto(io.BytesIO(b"short"), sink)
    assert sink.events == []


@pytest.mark.parametrize(
    "head, expected",
    [
        (b'{"version": 2}', True),
        (b'{ "version":1', True),
        (b"hello world!", False),
        (b'{"verbose": 1', False),
    ],
)
def test_is_asciicast(head, expected):
    assert is_asciicast(head) is expected


def test_registry_lookup():
    assert find_recorder("ttyrec").ext == ".ttyrec"
    assert find_recorder("nh_recorder").factory is NhRecorder
    assert find_player("baudrate").play is play_baudrate
    assert find_player("auto").ext is None


def test_unknown_formats_raise():
    with pytest.raises(UnsupportedFormatError):
        find_recorder("nope")
    with pytest.raises(UnsupportedFormatError):
        find_player("nope")