"""Chunk tag, cast type and container enums for Director 3-6 files."""

from __future__ import annotations

from enum import Enum, IntEnum


class ChunkType(str, Enum):
    """Canonical Director chunk FourCC tags (after synonym normalisation)."""

    # Container
    RIFX = "RIFX"
    XFIR = "XFIR"
    RIFF = "RIFF"

    # Index sources
    IMAP = "imap"
    MMAP = "mmap"
    CFTC = "CFTC"  # Director 3 for Windows chunk table

    # Movie metadata
    DRCF = "DRCF"  # Movie configuration (VWCF before Director 6)
    VWFI = "VWFI"  # Movie file info
    VWFM = "VWFM"  # Movie font map

    # Cast
    MCsL = "MCsL"  # Cast library table
    CASs = "CAS*"  # Cast member table (slot -> CASt id)
    CASt = "CASt"  # Cast member record
    KEYs = "KEY*"  # Resource linkage table
    Sord = "Sord"  # Sort order

    # Media resources
    BITD = "BITD"  # Bitmap data
    CLUT = "CLUT"  # Colour look-up table
    STXT = "STXT"  # Styled text
    sndS = "sndS"  # Sound samples
    sndH = "sndH"  # Sound header
    snd_ = "snd "  # Mac sound resource

    # Score
    VWSC = "VWSC"  # Score
    VWLB = "VWLB"  # Frame labels

    # Lingo
    Lscr = "Lscr"
    LctX = "LctX"
    Lnam = "Lnam"

    # Compressed wrapper: inner tag, inner id, compressed stream
    Zcmp = "Zcmp"

    FREE = "free"
    JUNK = "junk"


class CastType(IntEnum):
    """Director cast member types."""

    NULL = 0
    BITMAP = 1
    FILMLOOP = 2
    FIELD = 3
    PALETTE = 4
    PICTURE = 5
    SOUND = 6
    BUTTON = 7
    SHAPE = 8
    MOVIE = 9
    DIGITAL_VIDEO = 10
    SCRIPT = 11
    TEXT = 12
    OLE = 13
    TRANSITION = 14


CAST_TYPE_NAMES: dict[int, str] = {
    0: "Null",
    1: "Bitmap",
    2: "Film Loop",
    3: "Field",
    4: "Palette",
    5: "Picture",
    6: "Sound",
    7: "Button",
    8: "Shape",
    9: "Movie",
    10: "Digital Video",
    11: "Script",
    12: "Text",
    13: "OLE",
    14: "Transition",
}


# Config file version -> Director release.  Ordered, lowest first; a
# version maps to the last entry it is >= to.
VERSION_TABLE: list[tuple[int, str]] = [
    (0, "3.0"),
    (1025, "3.1"),
    (1113, "4.0"),
    (1114, "4.0.4"),
    (1201, "5.0"),
    (1214, "6.0"),
    (1223, "7.0"),
    (1405, "8.0"),
]


def release_name(version: int) -> str:
    name = VERSION_TABLE[0][1]
    for threshold, label in VERSION_TABLE:
        if version >= threshold:
            name = label
    return name


# ---------------------------------------------------------------------------
# Container classification
# ---------------------------------------------------------------------------


class ByteOrder(str, Enum):
    BIG = "big"
    LITTLE = "little"


class Platform(str, Enum):
    MAC = "mac"
    WINDOWS = "windows"


class ContainerKind(str, Enum):
    CLASSIC_RESOURCE_FORK = "classic_resource_fork"
    CHUNK_CONTAINER = "chunk_container"


class MovieKind(str, Enum):
    MOVIE = "movie"
    CAST = "cast"
    EMBEDDED = "embedded"
    PROJECTOR = "projector"
