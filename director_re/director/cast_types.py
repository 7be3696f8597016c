"""Cast member record (CASt) decoder.

A record is big-endian:

    type u8 | flags u8 | name length u8 | name | pad to even
    type-specific body

Body layouts by cast type:

    1  Bitmap         rect 4 x i16, reg y i16, reg x i16, depth u8,
                      flags u8, palette (lib i16, num i16)
    2  Film loop      rect, flags u32
    3  Field          border u8, margin u8, shadow u8, box type u8,
                      alignment i16, background rgb 3 x u16
    4  Palette        (no fixed body)
    5  Picture        rect
    6  Sound          flags u16
    7  Button         field body, button type u16
    8  Shape          shape type u16, rect, pattern u16, fore u8, back u8,
                      fill u8, line size u8, line direction u8
    9  Movie          as film loop
    10 Digital video  rect, flags u32, video type tag
    11 Script         script type u16
    12 Text           as field
    13 OLE            (no fixed body)
    14 Transition     chunk size u16, type u16, duration u16, area u8,
                      smoothness u8

Rects are (top, left, bottom, right).  Bytes after the fixed body, and the
whole body of an unknown type, are kept as ``payload``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable

from ..errors import OutOfBounds, TruncatedRecord
from .chunks import CAST_TYPE_NAMES, CastType
from .reader import BinaryReader

log = logging.getLogger(__name__)

Rect = tuple[int, int, int, int]


def _read_rect(r: BinaryReader) -> Rect:
    return (r.read_int16(), r.read_int16(), r.read_int16(), r.read_int16())


def _rect_size(rect: Rect) -> tuple[int, int]:
    return rect[3] - rect[1], rect[2] - rect[0]


# ---------------------------------------------------------------------------
# Cast member
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CastMember:
    """A decoded cast member.

    ``library`` and ``number`` are 0 until the resolver fills them in;
    ``resource`` is the ``(tag, id)`` of the record in its owning file.
    """

    library: int
    number: int
    cast_type: int
    name: str = ""
    flags: int = 0
    properties: Any = None
    payload: bytes = b""
    resource: tuple[str, int] | None = None

    @property
    def type_name(self) -> str:
        return CAST_TYPE_NAMES.get(self.cast_type, f"Unknown({self.cast_type})")


# ---------------------------------------------------------------------------
# Bitmaps
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BitmapInfo:
    rect: Rect
    reg_point: tuple[int, int]  # x, y
    bit_depth: int
    flags: int
    palette: tuple[int, int]  # lib, num

    @property
    def width(self) -> int:
        return _rect_size(self.rect)[0]

    @property
    def height(self) -> int:
        return _rect_size(self.rect)[1]


def parse_bitmap(r: BinaryReader) -> BitmapInfo:
    """Decode a bitmap member body.

    Parameters
    ----------
    r : BinaryReader
        Positioned at the type-specific body of the CASt record.

    The registration point is stored y first; ``reg_point`` is (x, y).
    """
    rect = _read_rect(r)
    reg_y = r.read_int16()
    reg_x = r.read_int16()
    depth = r.read_uint8()
    flags = r.read_uint8()
    palette = (r.read_int16(), r.read_int16())
    return BitmapInfo(rect=rect, reg_point=(reg_x, reg_y), bit_depth=depth, flags=flags, palette=palette)


# ---------------------------------------------------------------------------
# Film loops and movies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilmLoopInfo:
    rect: Rect
    flags: int

    @property
    def looped(self) -> bool:
        return not self.flags & 0x20


def parse_film_loop(r: BinaryReader) -> FilmLoopInfo:
    """Film loop or movie body: rect, then flags (0x20 clear means looped)."""
    return FilmLoopInfo(rect=_read_rect(r), flags=r.read_uint32())


# ---------------------------------------------------------------------------
# Text fields and buttons
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextInfo:
    """Field and text member layout settings."""

    border: int
    margin: int
    shadow: int
    box_type: int
    alignment: int
    background: tuple[int, int, int]


def parse_text(r: BinaryReader) -> TextInfo:
    """Decode a field or text body.

    Parameters
    ----------
    r : BinaryReader
        Positioned at the type-specific body of the CASt record.
    """
    border = r.read_uint8()
    margin = r.read_uint8()
    shadow = r.read_uint8()
    box_type = r.read_uint8()
    alignment = r.read_int16()
    background = (r.read_uint16(), r.read_uint16(), r.read_uint16())
    return TextInfo(border, margin, shadow, box_type, alignment, background)


class ButtonType(IntEnum):
    PUSH = 1
    CHECK_BOX = 2
    RADIO = 3


@dataclass(frozen=True)
class ButtonInfo:
    text: TextInfo
    button_type: int


def parse_button(r: BinaryReader) -> ButtonInfo:
    """A text body followed by the button type."""
    text = parse_text(r)
    return ButtonInfo(text=text, button_type=r.read_uint16())


# ---------------------------------------------------------------------------
# Pictures, sounds, scripts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PictureInfo:
    rect: Rect


def parse_picture(r: BinaryReader) -> PictureInfo:
    """PICT body: bounding rect only."""
    return PictureInfo(rect=_read_rect(r))


@dataclass(frozen=True)
class SoundInfo:
    flags: int

    @property
    def looped(self) -> bool:
        return bool(self.flags & 0x10)


def parse_sound(r: BinaryReader) -> SoundInfo:
    """Sound body: flags word (0x10 loops)."""
    return SoundInfo(flags=r.read_uint16())


SCRIPT_TYPE_NAMES: dict[int, str] = {1: "score", 3: "movie", 7: "parent"}


@dataclass(frozen=True)
class ScriptInfo:
    script_type: int

    @property
    def kind(self) -> str:
        return SCRIPT_TYPE_NAMES.get(self.script_type, f"unknown({self.script_type})")


def parse_script(r: BinaryReader) -> ScriptInfo:
    """Script body: the script type word."""
    return ScriptInfo(script_type=r.read_uint16())


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------


class ShapeType(IntEnum):
    RECTANGLE = 1
    ROUND_RECT = 2
    OVAL = 3
    LINE = 4


@dataclass(frozen=True)
class ShapeInfo:
    shape_type: int
    rect: Rect
    pattern: int
    fore_color: int
    back_color: int
    filled: bool
    line_size: int
    line_direction: int


def parse_shape(r: BinaryReader) -> ShapeInfo:
    """Decode a QuickDraw shape body (type, rect, pattern, colours, line)."""
    shape_type = r.read_uint16()
    rect = _read_rect(r)
    pattern = r.read_uint16()
    fore = r.read_uint8()
    back = r.read_uint8()
    fill = r.read_uint8()
    line_size = r.read_uint8()
    line_direction = r.read_uint8()
    return ShapeInfo(shape_type, rect, pattern, fore, back, bool(fill), line_size, line_direction)


# ---------------------------------------------------------------------------
# Digital video
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DigitalVideoInfo:
    rect: Rect
    flags: int
    video_type: str  # "MooV" QuickTime, "AVI " Video for Windows

    @property
    def loop(self) -> bool:
        return bool(self.flags & 0x02)

    @property
    def direct_to_stage(self) -> bool:
        return bool(self.flags & 0x01)


def parse_digital_video(r: BinaryReader) -> DigitalVideoInfo:
    """Digital video body: rect, flags, then the video format FourCC."""
    rect = _read_rect(r)
    flags = r.read_uint32()
    video_type = r.read_fourcc()
    return DigitalVideoInfo(rect=rect, flags=flags, video_type=video_type)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


TRANSITION_NAMES: dict[int, str] = {
    0: "None",
    1: "Wipe Right",
    2: "Wipe Left",
    3: "Wipe Down",
    4: "Wipe Up",
    5: "Center Out, Horizontal",
    6: "Edges In, Horizontal",
    7: "Center Out, Vertical",
    8: "Edges In, Vertical",
    9: "Center Out, Square",
    10: "Edges In, Square",
    11: "Push Left",
    12: "Push Right",
    13: "Push Down",
    14: "Push Up",
    23: "Dissolve, Pixels Fast",
    24: "Dissolve, Boxy Rectangles",
    25: "Dissolve, Boxy Squares",
    26: "Dissolve, Patterns",
    50: "Dissolve, Bits Fast",
    51: "Dissolve, Pixels",
    52: "Dissolve, Bits",
}


@dataclass(frozen=True)
class TransitionInfo:
    chunk_size: int
    transition_type: int
    duration: int  # milliseconds
    area: int  # 0 whole stage, 1 changing area only
    smoothness: int

    @property
    def name(self) -> str:
        return TRANSITION_NAMES.get(self.transition_type, f"Custom({self.transition_type})")


def parse_transition(r: BinaryReader) -> TransitionInfo:
    """Decode a transition member body.

    Parameters
    ----------
    r : BinaryReader
        Positioned at the type-specific body of the CASt record.

    Duration is in milliseconds; ``transition_type`` indexes
    ``TRANSITION_NAMES``.
    """
    chunk_size = r.read_uint16()
    transition_type = r.read_uint16()
    duration = r.read_uint16()
    area = r.read_uint8()
    smoothness = r.read_uint8()
    return TransitionInfo(chunk_size, transition_type, duration, area, smoothness)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


# cast type -> (minimum body size, body parser or None)
BODY_LAYOUTS: dict[int, tuple[int, Callable[[BinaryReader], Any] | None]] = {
    CastType.BITMAP: (18, parse_bitmap),
    CastType.FILMLOOP: (12, parse_film_loop),
    CastType.FIELD: (12, parse_text),
    CastType.PALETTE: (0, None),
    CastType.PICTURE: (8, parse_picture),
    CastType.SOUND: (2, parse_sound),
    CastType.BUTTON: (14, parse_button),
    CastType.SHAPE: (17, parse_shape),
    CastType.MOVIE: (12, parse_film_loop),
    CastType.DIGITAL_VIDEO: (16, parse_digital_video),
    CastType.SCRIPT: (2, parse_script),
    CastType.TEXT: (12, parse_text),
    CastType.OLE: (0, None),
    CastType.TRANSITION: (8, parse_transition),
}


def decode_member(data: bytes, member_type: int | None = None, encoding: str = "mac_roman") -> CastMember:
    """Decode a CASt record.

    ``member_type`` selects the body layout; the header's type byte is used
    when it is not given.  Raises ``TruncatedRecord`` when the header or the
    fixed body is short.
    """
    r = BinaryReader(data)
    try:
        header_type = r.read_uint8()
        flags = r.read_uint8()
        name = r.read_pascal_string(encoding)
    except OutOfBounds as e:
        raise TruncatedRecord(f"Cast member header truncated: {e}") from e
    if r.pos % 2:
        if r.remaining < 1:
            raise TruncatedRecord("Cast member header missing its pad byte")
        r.skip(1)

    cast_type = header_type if member_type is None else member_type
    layout = BODY_LAYOUTS.get(cast_type)
    if layout is None:
        log.debug("Unknown cast type %d, keeping %d body bytes", cast_type, r.remaining)
        return CastMember(0, 0, cast_type, name=name, flags=flags, payload=r.read_bytes(r.remaining))

    min_size, parser = layout
    if r.remaining < min_size:
        raise TruncatedRecord(
            f"{CAST_TYPE_NAMES[cast_type]} member body is {r.remaining} bytes, needs {min_size}"
        )
    properties = parser(r) if parser is not None else None
    payload = r.read_bytes(r.remaining)
    log.debug("Cast member %r: %s, %d trailing bytes", name, CAST_TYPE_NAMES[cast_type], len(payload))
    return CastMember(0, 0, cast_type, name=name, flags=flags, properties=properties, payload=payload)
