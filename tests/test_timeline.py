import io

import pytest

from ttyreplay.formats import TtyrecRecorder, UnsupportedFormatError
from ttyreplay.terminal import Terminal
from ttyreplay.timeline import MAX_DELAY, SNAPSHOT_CHUNK, Frame, Timeline


def _ttyrec(frames):
    buf = io.BytesIO()
    rec = TtyrecRecorder(buf, frames[0][0])
    for tm, data in frames:
        rec.write(tm, data)
    rec.finish()
    buf.seek(0)
    return buf


def test_load_ttyrec_frames_and_times():
    stream = _ttyrec([(100.0, b"hello"), (101.5, b" world")])
    tl = Timeline.load(stream, "ttyrec")
    frames = list(tl)
    assert [f.data for f in frames] == [b"hello", b" world"]
    assert frames[0].t == pytest.approx(100.0)
    assert frames[1].t == pytest.approx(101.5)
    assert tl.vt.line_text(0).startswith("hello world")


def test_long_delays_are_capped():
    stream = _ttyrec([(100.0, b"a"), (200.0, b"b")])
    tl = Timeline.load(stream, "ttyrec")
    frames = list(tl)
    assert frames[1].t - frames[0].t == pytest.approx(MAX_DELAY)


def test_negative_delay_is_capped():
    tl = Timeline()
    tl.add_frame(None, b"x")
    tl.add_frame(-3.0, b"y")
    frames = list(tl)
    assert frames[1].t - frames[0].t == pytest.approx(MAX_DELAY)


def test_unknown_format_raises():
    with pytest.raises(UnsupportedFormatError):
        Timeline.load(io.BytesIO(b""), "no-such-format")


def test_first_frame_gets_snapshot_and_next_after_chunk():
    tl = Timeline()
    tl.add_frame(None, b"a")
    tl.add_frame(1.0, b"\r" * (SNAPSHOT_CHUNK - 1))
    tl.add_frame(1.0, b"\r")
    frames = list(tl)
    assert frames[0].snapshot is not None
    assert frames[1].snapshot is None
    assert frames[2].snapshot is not None


def test_next_frame_walks_and_ends():
    tl = Timeline()
    tl.add_frame(None, b"1")
    tl.add_frame(0.5, b"2")
    first, _ = tl.seek()
    assert first.data == b"1"
    second = tl.next_frame(first)
    assert second.data == b"2"
    assert tl.next_frame(second) is None
    assert tl.next_frame(None) is None


def test_seek_by_time_and_screen_reconstruction():
    tl = Timeline()
    tl.init_wait(10.0)
    tl.add_frame(None, b"one\r\n")
    tl.add_frame(1.0, b"two\r\n")
    tl.add_frame(1.0, b"three\r\n")
    frame, vt = tl.seek(11.5, want_vt=True)
    assert frame.data == b"two\r\n"
    expected = Terminal(80, 25, True)
    expected.write(b"one\r\ntwo\r\n")
    assert [vt.line_text(y) for y in range(3)] == [expected.line_text(y) for y in range(3)]


def test_seek_without_vt_returns_none_screen():
    tl = Timeline()
    tl.add_frame(None, b"a")
    frame, vt = tl.seek(None)
    assert frame.data == b"a"
    assert vt is None


def test_seek_before_start_returns_head():
    tl = Timeline()
    tl.init_wait(50.0)
    tl.add_frame(None, b"a")
    frame, _ = tl.seek(10.0)
    assert frame.data is None
    assert frame.index == 0


def test_save_round_trip_ttyrec():
    tl = Timeline()
    tl.init_wait(1000.0)
    tl.add_frame(None, b"abc")
    tl.add_frame(0.25, b"def")
    out = io.BytesIO()
    assert tl.save(out, "ttyrec") == 2
    out.seek(0)
    again = Timeline.load(out, "ttyrec")
    assert [(f.t, f.data) for f in again] == [(f.t, f.data) for f in tl]


def test_save_respects_selection_end():
    tl = Timeline()
    tl.init_wait(0.0)
    tl.add_frame(None, b"a")
    tl.add_frame(1.0, b"b")
    tl.add_frame(1.0, b"c")
    out = io.BytesIO()
    assert tl.save(out, "ansi", selstart=None, selend=1.0) == 2
    assert out.getvalue() == b"ab"


def test_save_unknown_format_raises():
    tl = Timeline()
    tl.add_frame(None, b"a")
    with pytest.raises(UnsupportedFormatError):
        tl.save(io.BytesIO(), "bogus")


def test_len_and_frame_indices_consistent():
    tl = Timeline()
    for i in range(4):
        tl.add_frame(0.1, bytes([65 + i]))
    assert len(tl) == 4
    assert [f.index for f in tl] == [1, 2, 3, 4]
    assert all(isinstance(f, Frame) for f in tl)
    times = [f.t for f in tl]
    assert times == sorted(times)