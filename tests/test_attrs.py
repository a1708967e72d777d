import pytest

from ttyreplay.attrs import (
    ATTR_BLINK,
    ATTR_BOLD,
    ATTR_CJK,
    ATTR_COLOR_MASK,
    ColorType,
    background,
    color_type,
    foreground,
    make_color,
    with_background,
    with_foreground,
)


@pytest.mark.parametrize("kind", list(ColorType))
def test_color_type_round_trip(kind):
    assert color_type(make_color(kind, 0xABCDEF)) is kind


def test_make_color_layout_fixed_by_format():
    assert make_color(ColorType.RGB, 0x123456) == 0x3123456
    assert make_color(ColorType.PALETTE16, 5) >> 24 == ColorType.PALETTE16


def test_make_color_truncates_value():
    assert make_color(ColorType.PALETTE256, 0x1FFFFFF) == make_color(
        ColorType.PALETTE256, 0xFFFFFF
    )


def test_make_color_rejects_unknown_type():
    with pytest.raises(ValueError):
        make_color(4, 0)


def test_foreground_round_trip():
    color = make_color(ColorType.RGB, 0x102030)
    attr = with_foreground(ATTR_BOLD | ATTR_CJK, color)
    assert foreground(attr) == color
    assert attr & ATTR_BOLD
    assert attr & ATTR_CJK
    assert background(attr) == 0


def test_background_round_trip():
    color = make_color(ColorType.PALETTE256, 200)
    attr = with_background(ATTR_BLINK | ATTR_BOLD, color)
    assert background(attr) == color
    assert foreground(attr) == 0
    assert attr & ATTR_BLINK
    assert attr & ATTR_BOLD


def test_foreground_and_background_independent():
    fg = make_color(ColorType.PALETTE16, 3)
    bg = make_color(ColorType.RGB, 0xFFFFFF)
    attr = with_background(with_foreground(0, fg), bg)
    assert foreground(attr) == fg
    assert background(attr) == bg
    replaced = with_foreground(attr, make_color(ColorType.OFF, 0))
    assert background(replaced) == bg
    assert foreground(replaced) == 0


def test_replacing_clears_old_color():
    attr = with_background(0, make_color(ColorType.RGB, 0xFFFFFF))
    attr = with_background(attr, make_color(ColorType.PALETTE16, 1))
    assert background(attr) == make_color(ColorType.PALETTE16, 1)
    assert color_type(background(attr)) is ColorType.PALETTE16


def test_color_fits_in_mask():
    for kind in ColorType:
        assert make_color(kind, 0xFFFFFF) & ~ATTR_COLOR_MASK == 0


def test_attribute_stays_within_64_bits():
    attr = with_background(ATTR_CJK, make_color(ColorType.RGB, 0xFFFFFF))
    assert attr < 1 << 64
    assert attr & ATTR_CJK