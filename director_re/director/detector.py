"""Container format detection.

Identifies which of the Director container encodings a byte stream holds
and where the container starts:

    RIFX ....  MV93 / MC95 / APPL   big-endian tags and data (Mac)
    XFIR ....  39VM / 59CM / LPPA   little-endian tags and data (Windows)
    RIFF ....  RMMP                 big-endian tags, little-endian data
                                    (Director 3 for Windows)
    MZ                              Windows projector, movie embedded after
                                    the executable image
    (no magic)                      classic Mac resource fork (Director 3)

Projectors are located either through the trailer (the last four bytes
point at a PJ93/PJ95/PJ00 header whose next u32 is the movie offset) or by
scanning forward from the end of the PE section table.

The descriptor's ``version`` is only what the encoding implies: 3 for
RIFF and resource forks, 4 for RIFX/XFIR.  A chunk container's release
is recorded in its DRCF, so ``MovieFile`` replaces the 4 with the
config's major version and re-indexes under it.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, replace

from ..errors import DetectionFailed
from .chunks import ByteOrder, ContainerKind, MovieKind, Platform

log = logging.getLogger(__name__)

CONTAINER_MAGICS: tuple[bytes, ...] = (b"RIFX", b"XFIR", b"RIFF")

# Subtype (canonical spelling) -> movie kind
SUBTYPES: dict[str, MovieKind] = {
    "MV93": MovieKind.MOVIE,
    "MC95": MovieKind.CAST,
    "APPL": MovieKind.EMBEDDED,
}

PROJECTOR_TAGS: frozenset[bytes] = frozenset(
    {b"PJ93", b"39JP", b"PJ95", b"59JP", b"PJ00", b"00JP"}
)

PE_SECTION_SIZE = 40
RESOURCE_FORK_HEADER_SIZE = 16
RESOURCE_MAP_MIN_SIZE = 30


@dataclass(frozen=True)
class ContainerDescriptor:
    """Result of format detection."""

    kind: ContainerKind
    byte_order: ByteOrder
    tag_byte_order: ByteOrder
    base_offset: int
    size: int
    platform: Platform
    version: int
    movie_kind: MovieKind
    subtype: str = ""

    @property
    def little_endian(self) -> bool:
        return self.byte_order == ByteOrder.LITTLE

    @property
    def tags_little_endian(self) -> bool:
        return self.tag_byte_order == ByteOrder.LITTLE

    @property
    def end(self) -> int:
        """Absolute offset one past the container's last byte."""
        if self.kind == ContainerKind.CLASSIC_RESOURCE_FORK:
            return self.base_offset + self.size
        return self.base_offset + 8 + self.size


def detect(data: bytes) -> ContainerDescriptor:
    """Classify ``data``; raises ``DetectionFailed`` when nothing matches."""
    if data[:4] == b"FFIR":
        raise DetectionFailed(len(data), "little-endian RIFF is not a known encoding")

    desc = match_container(data, 0)
    if desc is not None:
        log.debug("Chunk container %s/%s at offset 0", desc.byte_order.value, desc.subtype)
        return desc

    if data[:2] == b"MZ":
        desc = _detect_projector(data)
        if desc is not None:
            log.info("Projector with embedded movie at offset 0x%x", desc.base_offset)
            return desc

    desc = _detect_resource_fork(data)
    if desc is not None:
        log.debug("Classic resource fork, %d bytes", desc.size)
        return desc

    raise DetectionFailed(len(data))


# ---------------------------------------------------------------------------
# Chunk containers
# ---------------------------------------------------------------------------


def match_container(data: bytes, offset: int) -> ContainerDescriptor | None:
    """Return a descriptor if a valid container signature sits at ``offset``."""
    header = bytes(data[offset : offset + 12])
    if len(header) < 12:
        return None
    magic = header[:4]
    raw_subtype = header[8:12].decode("latin-1")

    if magic == b"RIFF":
        if raw_subtype != "RMMP":
            return None
        size = struct.unpack_from("<I", header, 4)[0]
        # The declared size wrongly includes the 8-byte container header
        size = max(size - 8, 0)
        return ContainerDescriptor(
            kind=ContainerKind.CHUNK_CONTAINER,
            byte_order=ByteOrder.LITTLE,
            tag_byte_order=ByteOrder.BIG,
            base_offset=offset,
            size=size,
            platform=Platform.WINDOWS,
            version=3,
            movie_kind=MovieKind.MOVIE,
            subtype="RMMP",
        )

    if magic not in (b"RIFX", b"XFIR"):
        return None

    # The subtype spelling decides the byte order.
    if raw_subtype in SUBTYPES:
        order, subtype = ByteOrder.BIG, raw_subtype
    elif raw_subtype[::-1] in SUBTYPES:
        order, subtype = ByteOrder.LITTLE, raw_subtype[::-1]
    else:
        return None

    fmt = "<I" if order == ByteOrder.LITTLE else ">I"
    size = struct.unpack_from(fmt, header, 4)[0]
    return ContainerDescriptor(
        kind=ContainerKind.CHUNK_CONTAINER,
        byte_order=order,
        tag_byte_order=order,
        base_offset=offset,
        size=size,
        platform=Platform.WINDOWS if order == ByteOrder.LITTLE else Platform.MAC,
        version=4,
        movie_kind=SUBTYPES[subtype],
        subtype=subtype,
    )


# ---------------------------------------------------------------------------
# Projectors
# ---------------------------------------------------------------------------


def _detect_projector(data: bytes) -> ContainerDescriptor | None:
    desc = _projector_from_trailer(data)
    if desc is None:
        desc = _scan_for_container(data, _pe_image_end(data))
    if desc is None:
        return None
    return replace(desc, movie_kind=MovieKind.PROJECTOR, platform=Platform.WINDOWS)


def _projector_from_trailer(data: bytes) -> ContainerDescriptor | None:
    if len(data) < 8:
        return None
    header_offset = struct.unpack_from("<I", data, len(data) - 4)[0]
    if header_offset + 8 > len(data):
        return None
    if bytes(data[header_offset : header_offset + 4]) not in PROJECTOR_TAGS:
        return None
    movie_offset = struct.unpack_from("<I", data, header_offset + 4)[0]
    log.debug("Projector trailer -> header 0x%x, movie 0x%x", header_offset, movie_offset)
    return match_container(data, movie_offset)


def _pe_image_end(data: bytes) -> int:
    """End of the PE section table, or 0 when the PE header is unusable."""
    if len(data) < 0x40:
        return 0
    pe = struct.unpack_from("<I", data, 0x3C)[0]
    if pe + 24 > len(data) or bytes(data[pe : pe + 4]) != b"PE\0\0":
        return 0
    section_count = struct.unpack_from("<H", data, pe + 6)[0]
    optional_size = struct.unpack_from("<H", data, pe + 20)[0]
    end = pe + 24 + optional_size + section_count * PE_SECTION_SIZE
    return end if end <= len(data) else 0


def _scan_for_container(data: bytes, start: int) -> ContainerDescriptor | None:
    buf = data if isinstance(data, (bytes, bytearray)) else bytes(data)
    pos = start
    while pos < len(buf):
        hits = [i for i in (buf.find(magic, pos) for magic in CONTAINER_MAGICS) if i >= 0]
        if not hits:
            return None
        hit = min(hits)
        desc = match_container(buf, hit)
        if desc is not None:
            return desc
        pos = hit + 1
    return None


# ---------------------------------------------------------------------------
# Classic resource fork
# ---------------------------------------------------------------------------


def _detect_resource_fork(data: bytes) -> ContainerDescriptor | None:
    if len(data) < RESOURCE_FORK_HEADER_SIZE:
        return None
    data_offset, map_offset, data_length, map_length = struct.unpack_from(">4I", data, 0)
    if data_offset < RESOURCE_FORK_HEADER_SIZE or data_length == 0 or map_length == 0:
        return None
    if data_offset + data_length > map_offset:
        return None
    if map_length < RESOURCE_MAP_MIN_SIZE or map_offset + map_length > len(data):
        return None
    return ContainerDescriptor(
        kind=ContainerKind.CLASSIC_RESOURCE_FORK,
        byte_order=ByteOrder.BIG,
        tag_byte_order=ByteOrder.BIG,
        base_offset=0,
        size=len(data),
        platform=Platform.MAC,
        version=3,
        movie_kind=MovieKind.MOVIE,
    )
