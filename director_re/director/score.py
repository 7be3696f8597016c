"""VWSC (Score) decoder.

A score is a stream of compressed frames.  Each frame is stored as a set
of byte patches against the previous frame's raw buffer; bytes that no
patch touches keep the value they had in the frame before.  Frame 1 is
patched over an all-zero buffer and is therefore a complete baseline.

Header, movies with config version >= 1113 (big-endian, 20 bytes):
  Offset  Size  Field
  0       4     own size (header plus frame stream)
  4       4     header size (20)
  8       4     frame count (not always filled in)
  12      2     score version (4-7)
  14      2     cell size (20 before version 5, 24 after)
  16      2     cells per frame (50)
  18      1     flag (0 or 1)
  19      1     reserved (0)

Older movies (config version < 1113) carry only the own-size field and
are treated as score version 3.

Frame record:
  size i16, then patches until the record ends:
    score version 3   chunk size u8 * 2, chunk offset u8 * 2, bytes
    score version 4+  chunk size i16 (< 0 ends the record, must be even),
                      chunk offset i16, bytes

Raw frame buffer: two header cells, then one cell per sprite channel.

  Header  v3            v4            v5 / v6 / v7
  script  -             num i16 @16   lib, num @0
  sound1  num i16 @6    num i16 @6    lib, num @4
  sound2  num i16 @8    num i16 @8    lib, num @8
  trans.  4 bytes @2    4 bytes @2    4 bytes @12
  tempo   trans. byte 2 trans. byte 2 trans. byte 2 (v5), i8 @21 (v6+)
  palette num i16 @16   num i16 @20   lib, num @24

  Sprite  v3 / v4       v5+
  kind    u8 @1         u8 @0
  ink     u8 @5         u8 @1
  member  num i16 @6    lib, num @2
  script  num i16 @16   lib, num @6   (v4 and later)
  colors  fore @2,      fore @10,
          back @3       back @11
  origin  x @8, y @10   x @12, y @14
  size    h @12, w @14  h @16, w @18
  score   u8 @18        u8 @20        (v4 and later)
  blend   u8 @19        u8 @21        (v4 and later)
  line    u8 @4         u8 @22
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Mapping

from ..errors import CorruptScore, OutOfBounds
from .reader import BinaryReader

log = logging.getLogger(__name__)

HEADER_SIZE = 20
LEGACY_HEADER_SIZE = 4
CELLS_PER_FRAME = 50
HEADER_CELLS = 2
CHANNEL_COUNT = CELLS_PER_FRAME - HEADER_CELLS

# Movies whose config predates this version store the short score header.
SCORE_HEADER_CONFIG_VERSION = 1113

MAX_TRANSITION = 52

# Sprite kinds.  Everything cast-based collapses to CAST before version 7.
KIND_CAST = 16
_CAST_KINDS = frozenset({1, 7, 8, 9, 10, 11, 16, 17})

INK_KIND = 0x3F
INK_TRAILS = 0x40
INK_STRETCH = 0x80
LINE_SIZE = 0x0F
SCORE_COLOR = 0x0F
SCORE_EDITABLE = 0x40
SCORE_MOVEABLE = 0x80

SPRITE_FIELDS = (
    "member",
    "position",
    "size",
    "kind",
    "ink",
    "trails",
    "stretch",
    "fore_color",
    "back_color",
    "blend",
    "line_size",
    "script",
    "score_color",
    "moveable",
    "editable",
)


@dataclass(frozen=True)
class SpriteState:
    """Complete state of one populated score channel."""

    member: tuple[int, int] = (0, 0)  # lib, num
    position: tuple[int, int] = (0, 0)  # x, y
    size: tuple[int, int] = (0, 0)  # width, height
    kind: int = 0
    ink: int = 0
    trails: bool = False
    stretch: bool = False
    fore_color: int = 0
    back_color: int = 0
    blend: int = 0
    line_size: int = 0
    script: tuple[int, int] = (0, 0)  # lib, num
    score_color: int = 0
    moveable: bool = False
    editable: bool = False

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScoreFrame:
    """One frame of the score, with every channel fully materialised.

    ``transition`` is the built-in transition kind of scores before
    version 6 (0 for none); later scores reference a transition cast
    member through ``transition_member`` instead.
    """

    number: int
    channels: Mapping[int, SpriteState | None]
    tempo: int = 0
    palette: tuple[int, int] = (0, 0)
    transition: int = 0
    transition_member: tuple[int, int] = (0, 0)
    sound1: tuple[int, int] = (0, 0)
    sound2: tuple[int, int] = (0, 0)
    script: tuple[int, int] = (0, 0)

    def sprite(self, channel: int) -> SpriteState | None:
        return self.channels[channel]

    @property
    def populated(self) -> dict[int, SpriteState]:
        return {ch: s for ch, s in self.channels.items() if s is not None}


class ScoreTimeline(Sequence):
    """Ordered frames of a decoded score; ``frame(n)`` is 1-based."""

    def __init__(self, frames: list[ScoreFrame], channel_count: int, version: int, declared_frames: int = 0):
        self._frames = frames
        self.channel_count = channel_count
        self.version = version
        self.declared_frames = declared_frames

    def __getitem__(self, index):
        return self._frames[index]

    def __len__(self) -> int:
        return len(self._frames)

    def __repr__(self) -> str:
        return f"ScoreTimeline({len(self._frames)} frames, {self.channel_count} channels)"

    def frame(self, number: int) -> ScoreFrame:
        if number < 1 or number > len(self._frames):
            raise IndexError(f"Frame {number} outside 1..{len(self._frames)}")
        return self._frames[number - 1]


# ---------------------------------------------------------------------------
# Frame layouts
# ---------------------------------------------------------------------------


def _member(num: int) -> tuple[int, int]:
    # Single-cast versions only store the member number.
    return (1 if num else 0, num)


def check_tempo(value: int) -> int:
    """Validate a raw tempo channel value.

    0 inherits, 1..120 is frames per second, -1..-60 waits that many
    seconds, -72..-120 waits for a video channel and -128, -121, -122
    wait for a click or a sound channel.
    """
    if 0 <= value <= 120 or -60 <= value <= -1 or -120 <= value <= -72 or value in (-128, -121, -122):
        return value
    raise CorruptScore(f"Invalid tempo {value}")


def _legacy_transition(raw: bytes) -> tuple[int, int]:
    """(transition kind, tempo) from the 4-byte transition channel."""
    tempo = check_tempo(raw[2] - 256 if raw[2] > 127 else raw[2])
    kind = raw[3]
    if kind > MAX_TRANSITION:
        raise CorruptScore(f"Invalid transition kind {kind}")
    return kind, tempo


class FrameLayout:
    """Where a score version keeps each field inside the raw frame buffer."""

    def __init__(self, version: int):
        self.version = version
        self.cell_size = 24 if version >= 5 else 20
        self.frame_size = self.cell_size * CELLS_PER_FRAME
        if version >= 5:
            self._header = struct.Struct(">hhhhhh4s5xb2xhh")
            self._sprite = struct.Struct(">BBhhhhBBhhhhBBBx")
        elif version == 4:
            self._header = struct.Struct(">2x4shh6xh2xh")
            self._sprite = struct.Struct(">xBBBBBhhhhhhBB")
        else:
            self._header = struct.Struct(">2x4shh6xh")
            self._sprite = struct.Struct(">xBBBBBhhhhh")

    def read_frame(self, buffer: bytes | bytearray, number: int) -> ScoreFrame:
        channels: dict[int, SpriteState | None] = {}
        for ch in range(1, CHANNEL_COUNT + 1):
            start = self.cell_size * (ch + HEADER_CELLS - 1)
            cell = buffer[start : start + self.cell_size]
            channels[ch] = self._read_sprite(cell) if any(cell) else None
        return ScoreFrame(number=number, channels=MappingProxyType(channels), **self._read_header(buffer))

    def _read_header(self, buffer) -> dict:
        fields = self._header.unpack_from(buffer)
        if self.version >= 5:
            script_lib, script, s1_lib, s1, s2_lib, s2, raw, tempo, pal_lib, pal = fields
            out = {
                "script": (script_lib, script),
                "sound1": (s1_lib, s1),
                "sound2": (s2_lib, s2),
                "palette": (pal_lib, pal),
            }
            if self.version >= 6:
                out["tempo"] = check_tempo(tempo)
                out["transition_member"] = struct.unpack(">hh", raw)
            else:
                out["transition"], out["tempo"] = _legacy_transition(raw)
            return out
        if self.version == 4:
            raw, s1, s2, script, pal = fields
        else:
            raw, s1, s2, pal = fields
            script = 0
        kind, tempo = _legacy_transition(raw)
        return {
            "script": _member(script),
            "sound1": _member(s1),
            "sound2": _member(s2),
            "palette": _member(pal),
            "transition": kind,
            "tempo": tempo,
        }

    def _read_sprite(self, cell) -> SpriteState:
        fields = self._sprite.unpack_from(cell)
        if self.version >= 5:
            (kind, ink, lib, num, script_lib, script, fore, back,
             x, y, height, width, score, blend, line) = fields
            member, script_id = (lib, num), (script_lib, script)
        else:
            kind, fore, back, line, ink, num, x, y, height, width, *rest = fields
            member = _member(num)
            script, score, blend = rest if rest else (0, 0, 0)
            script_id = _member(script)
        if self.version < 7 and kind in _CAST_KINDS:
            kind = KIND_CAST
        return SpriteState(
            member=member,
            position=(x, y),
            size=(width, height),
            kind=kind,
            ink=ink & INK_KIND,
            trails=bool(ink & INK_TRAILS),
            stretch=bool(ink & INK_STRETCH),
            fore_color=fore,
            back_color=back,
            blend=blend,
            line_size=line & LINE_SIZE,
            script=script_id,
            score_color=score & SCORE_COLOR,
            moveable=bool(score & SCORE_MOVEABLE),
            editable=bool(score & SCORE_EDITABLE),
        )


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------


def decode_score(data: bytes, config_version: int | None = None) -> ScoreTimeline:
    """Decode a VWSC payload into a fully materialised timeline.

    Parameters
    ----------
    data : bytes
        The decompressed VWSC chunk.
    config_version : optional int
        Version field of the movie's DRCF/VWCF.  Movies older than 1113
        use the short legacy header; ``None`` assumes the full header.

    Raises ``CorruptScore`` for malformed headers or frame records.
    """
    try:
        return _decode(data, config_version)
    except OutOfBounds as e:
        raise CorruptScore(f"Score data runs past its record: {e}") from e


def _read_header(data: bytes, config_version: int | None) -> tuple[int, int, int, int]:
    """(own size, frame stream start, score version, declared frames)."""
    if config_version is not None and config_version < SCORE_HEADER_CONFIG_VERSION:
        if len(data) < LEGACY_HEADER_SIZE:
            raise CorruptScore(f"Score is {len(data)} bytes, header needs {LEGACY_HEADER_SIZE}")
        own_size = BinaryReader(data).read_uint32()
        if own_size < LEGACY_HEADER_SIZE or own_size > len(data):
            raise CorruptScore(f"Score declares {own_size} bytes, payload is {len(data)}")
        return own_size, LEGACY_HEADER_SIZE, 3, 0

    if len(data) < HEADER_SIZE:
        raise CorruptScore(f"Score is {len(data)} bytes, header needs {HEADER_SIZE}")
    r = BinaryReader(data)
    own_size = r.read_uint32()
    header_size = r.read_uint32()
    declared_frames = r.read_uint32()
    version = r.read_int16()
    cell_size = r.read_uint16()
    cell_count = r.read_uint16()
    flag = r.read_uint8()
    reserved = r.read_uint8()

    if own_size < HEADER_SIZE or own_size > len(data):
        raise CorruptScore(f"Score declares {own_size} bytes, payload is {len(data)}")
    if header_size != HEADER_SIZE:
        raise CorruptScore(f"Unexpected score header size {header_size}")
    if not 4 <= version <= 7:
        raise CorruptScore(f"Unsupported score version {version}")
    expected = FrameLayout(version).cell_size
    if cell_size != expected:
        raise CorruptScore(f"Cell size {cell_size} does not match score version {version} ({expected})")
    if cell_count != CELLS_PER_FRAME:
        raise CorruptScore(f"Unexpected cell count {cell_count}")
    if flag > 1 or reserved:
        raise CorruptScore(f"Unexpected score header flags {flag}/{reserved}")
    return own_size, HEADER_SIZE, version, declared_frames


def _decode(data: bytes, config_version: int | None) -> ScoreTimeline:
    own_size, start, version, declared_frames = _read_header(data, config_version)
    layout = FrameLayout(version)
    buffer = bytearray(layout.frame_size)

    frames: list[ScoreFrame] = []
    r = BinaryReader(data, start=start, end=own_size)
    while r.remaining:
        number = len(frames) + 1
        frame_start = r.pos
        size = r.read_int16()
        if version < 4:
            frame_end = frame_start + 2 + max(size - 2, 0)
        elif size < 2:
            raise CorruptScore(f"Frame {number} declares {size} bytes")
        else:
            frame_end = frame_start + size
        if frame_end > own_size:
            raise CorruptScore(f"Frame {number} record at {frame_start} runs past the score")
        _apply_patches(BinaryReader(data, start=r.pos, end=frame_end), buffer, layout, number)
        r.seek(frame_end)
        frames.append(layout.read_frame(buffer, number))

    if declared_frames and declared_frames != len(frames):
        log.warning("Score header declares %d frames, decoded %d", declared_frames, len(frames))
    log.info("Score v%d: %d frames", version, len(frames))
    return ScoreTimeline(frames, CHANNEL_COUNT, version, declared_frames)


def _apply_patches(rec: BinaryReader, buffer: bytearray, layout: FrameLayout, number: int) -> None:
    while rec.remaining:
        if layout.version < 4:
            size = rec.read_uint8() * 2
            offset = rec.read_uint8() * 2
        else:
            size = rec.read_int16()
            if size < 0:
                break
            if size & 1:
                raise CorruptScore(f"Frame {number} patch size {size} is odd")
            offset = rec.read_int16()
        if offset < 0 or offset + size > layout.frame_size:
            channel = max(offset + size - 1, 0) // layout.cell_size - HEADER_CELLS + 1
            raise CorruptScore(
                f"Frame {number} patch at {offset}+{size} reaches channel {channel}, outside 1..{CHANNEL_COUNT}"
            )
        buffer[offset : offset + size] = rec.read_view(size)
