import pytest

from builders import bitmap_body, cast_record, shape_body, text_body, transition_body
from director_re.director.cast_types import (
    BitmapInfo,
    ButtonInfo,
    ShapeType,
    TextInfo,
    decode_member,
)
from director_re.director.chunks import CastType
from director_re.errors import TruncatedRecord


def test_bitmap_member():
    data = cast_record(CastType.BITMAP, "Hero", bitmap_body(rect=(0, 0, 10, 20), reg=(5, 4), depth=8))
    member = decode_member(data)
    assert member.cast_type == CastType.BITMAP
    assert member.name == "Hero"
    assert member.type_name == "Bitmap"
    info = member.properties
    assert isinstance(info, BitmapInfo)
    assert (info.width, info.height) == (20, 10)
    assert info.reg_point == (5, 4)
    assert info.bit_depth == 8
    assert info.palette == (0, -1)
    assert member.payload == b""


def test_odd_header_is_padded():
    # 3-byte header + 2-byte name is odd, so one pad byte precedes the body
    data = cast_record(CastType.SCRIPT, "ab", b"\x00\x03")
    assert len(data) == 8
    member = decode_member(data)
    assert member.properties.script_type == 3
    assert member.properties.kind == "movie"


def test_trailing_bytes_kept_as_payload():
    member = decode_member(cast_record(CastType.SOUND, "boom", b"\x00\x10extra"))
    assert member.properties.looped
    assert member.payload == b"extra"


def test_button_extends_text_body():
    member = decode_member(cast_record(CastType.BUTTON, "OK", text_body() + b"\x00\x02"))
    assert isinstance(member.properties, ButtonInfo)
    assert isinstance(member.properties.text, TextInfo)
    assert member.properties.button_type == 2


def test_shape_member():
    member = decode_member(cast_record(CastType.SHAPE, "", shape_body(shape_type=ShapeType.OVAL)))
    assert member.properties.shape_type == ShapeType.OVAL
    assert member.properties.filled
    assert member.properties.line_size == 2


def test_transition_member():
    member = decode_member(cast_record(CastType.TRANSITION, "fade", transition_body(transition_type=51)))
    assert member.properties.name == "Dissolve, Pixels"
    assert member.properties.duration == 500


def test_palette_has_no_fixed_body():
    member = decode_member(cast_record(CastType.PALETTE, "sys", b"\x01\x02"))
    assert member.properties is None
    assert member.payload == b"\x01\x02"


def test_member_type_overrides_header():
    data = cast_record(0, "x", text_body())
    member = decode_member(data, member_type=CastType.TEXT)
    assert member.cast_type == CastType.TEXT
    assert member.properties.margin == 2


def test_unknown_type_keeps_payload():
    member = decode_member(cast_record(42, "mystery", b"\xde\xad\xbe\xef"))
    assert member.cast_type == 42
    assert member.properties is None
    assert member.payload == b"\xde\xad\xbe\xef"
    assert member.type_name == "Unknown(42)"


def test_name_encoding():
    data = bytes([CastType.SCRIPT, 0, 1, 0x8A]) + b"\x00\x01"
    assert decode_member(data).name == "ä"
    assert decode_member(data, encoding="latin-1").name == "\x8a"


@pytest.mark.parametrize(
    "cast_type, body",
    [
        (CastType.BITMAP, bitmap_body()[:17]),
        (CastType.SHAPE, shape_body()[:16]),
        (CastType.FIELD, text_body()[:11]),
        (CastType.BUTTON, text_body()),
        (CastType.TRANSITION, b"\x00" * 7),
        (CastType.DIGITAL_VIDEO, b"\x00" * 15),
        (CastType.SOUND, b"\x00"),
    ],
)
def test_short_bodies_are_truncated(cast_type, body):
    with pytest.raises(TruncatedRecord):
        decode_member(cast_record(cast_type, "short", body))


@pytest.mark.parametrize("data", [b"", b"\x01", b"\x01\x00", b"\x01\x00\x05ab"])
def test_short_headers_are_truncated(data):
    with pytest.raises(TruncatedRecord):
        decode_member(data)
