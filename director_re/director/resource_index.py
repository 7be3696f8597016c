"""Resource index construction.

Builds a read-only ``(canonical tag, id) -> ChunkLocation`` map for every
container encoding ``detect`` recognises.  Chunk containers use whichever
index the first chunk provides:

    imap   memory map: map count u32, mmap offset u32 -> mmap chunk
    CFTC   Director 3 for Windows chunk table
    other  sequential walk; the n-th chunk after the header gets id n

mmap layout:

    header size u16 (0x18) | entry size u16 (0x14) | capacity u32 | count u32
    junk head i32 | junk head 2 i32 | free head i32
    entries: tag | size u32 | offset u32 | flags u16 | u16 | next i32

Classic Mac resource forks are read through their resource map.  A chunk
wrapped in ``Zcmp`` (inner tag, inner id, compressed stream) is indexed
under its inner key and flagged as compressed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from ..errors import CorruptContainer, OutOfBounds
from .chunks import ChunkType, ContainerKind
from .detector import ContainerDescriptor
from .reader import BinaryReader
from .tags import normalize

log = logging.getLogger(__name__)

MMAP_ENTRY_SIZE = 0x14
CFTC_ENTRY_SIZE = 16
RESOURCE_REF_SIZE = 12
RESOURCE_ATTR_COMPRESSED = 0x01

SKIPPED_TAGS = frozenset({ChunkType.FREE.value, ChunkType.JUNK.value})


@dataclass(frozen=True)
class ChunkLocation:
    """Where a chunk's payload lives in the byte stream."""

    offset: int
    length: int
    compressed: bool = False
    raw_tag: str = ""
    raw_id: int = 0
    name: str | None = None


Key = tuple[str, int]


class ResourceIndex(Mapping):
    """Read-only map of ``(canonical tag, id)`` to ``ChunkLocation``."""

    def __init__(self, entries: Mapping[Key, ChunkLocation] | None = None):
        self._entries: dict[Key, ChunkLocation] = dict(entries or {})

    def __getitem__(self, key: Key) -> ChunkLocation:
        return self._entries[key]

    def __iter__(self) -> Iterator[Key]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ResourceIndex({len(self._entries)} entries)"

    def contains(self, tag: str, id: int) -> bool:
        return (tag, id) in self._entries

    def ids(self, tag: str) -> list[int]:
        """Sorted ids present for ``tag``."""
        return sorted(i for t, i in self._entries if t == tag)

    def first(self, tag: str) -> tuple[int, ChunkLocation] | None:
        """Lowest-id entry for ``tag``, if any."""
        ids = self.ids(tag)
        if not ids:
            return None
        return ids[0], self._entries[(tag, ids[0])]


def build_index(data: bytes, desc: ContainerDescriptor) -> ResourceIndex:
    """Index every chunk of the container ``desc`` describes.

    Raises ``CorruptContainer`` when a declared offset or length runs past
    the container or the stream.
    """
    builder = _IndexBuilder(data, desc)
    try:
        if desc.kind == ContainerKind.CLASSIC_RESOURCE_FORK:
            builder.read_resource_fork()
        else:
            builder.read_chunk_container()
    except OutOfBounds as e:
        raise CorruptContainer(f"Truncated index structure: {e}") from e
    log.info("Indexed %d chunks", len(builder.entries))
    return ResourceIndex(builder.entries)


class _IndexBuilder:
    def __init__(self, data: bytes, desc: ContainerDescriptor):
        self.data = data
        self.desc = desc
        self.entries: dict[Key, ChunkLocation] = {}

    def _reader(self, start: int = 0, end: int | None = None, little_endian: bool | None = None) -> BinaryReader:
        return BinaryReader(
            self.data,
            little_endian=self.desc.little_endian if little_endian is None else little_endian,
            start=start,
            end=end,
            tags_little_endian=self.desc.tags_little_endian,
        )

    def _normalize(self, raw_tag: str) -> str:
        return normalize(raw_tag, self.desc.platform, self.desc.version)

    def _add(self, raw_tag: str, id: int, offset: int, length: int, compressed: bool = False, name: str | None = None) -> None:
        tag = self._normalize(raw_tag)
        if tag == ChunkType.Zcmp.value and not compressed:
            self._add_wrapped(raw_tag, offset, length)
            return
        key = (tag, id)
        if key in self.entries:
            log.debug("Duplicate chunk %s:%d at 0x%x overwrites earlier entry", tag, id, offset)
        self.entries[key] = ChunkLocation(
            offset=offset,
            length=length,
            compressed=compressed,
            raw_tag=raw_tag,
            raw_id=id,
            name=name,
        )

    def _add_wrapped(self, raw_tag: str, offset: int, length: int) -> None:
        if length < 8:
            raise CorruptContainer(f"{raw_tag} wrapper at 0x{offset:x} is only {length} bytes")
        r = self._reader(offset, offset + length)
        inner_tag = r.read_fourcc()
        inner_id = r.read_int32()
        self._add(inner_tag, inner_id, offset + 8, length - 8, compressed=True)

    # -- Chunk containers -----------------------------------------------------

    def read_chunk_container(self) -> None:
        desc = self.desc
        if desc.end > len(self.data):
            raise CorruptContainer(
                f"Container declares {desc.size} bytes but stream ends at {len(self.data) - desc.base_offset - 8}"
            )
        first = desc.base_offset + 12
        if first + 4 <= desc.end:
            first_tag = self._reader(first, desc.end).read_fourcc()
        else:
            first_tag = ""

        if first_tag == ChunkType.IMAP.value:
            self._read_imap(first)
        elif first_tag == ChunkType.CFTC.value:
            self._read_cftc(first)
        else:
            self._walk(first)

    def _chunk_header(self, offset: int) -> tuple[str, int]:
        """Read a chunk header at ``offset``, checking the payload fits."""
        end = self.desc.end
        if offset + 8 > end:
            raise CorruptContainer(f"Truncated chunk header at 0x{offset:x}")
        r = self._reader(offset, end)
        tag = r.read_fourcc()
        length = r.read_uint32()
        if offset + 8 + length > end:
            raise CorruptContainer(
                f"Chunk {tag!r} at 0x{offset:x} declares {length} bytes, past container end 0x{end:x}"
            )
        return tag, length

    def _walk(self, start: int) -> None:
        pos = start
        chunk_id = 1
        end = self.desc.end
        while pos < end:
            tag, length = self._chunk_header(pos)
            self._add(tag, chunk_id, pos + 8, length)
            pos += 8 + length + (length & 1)
            chunk_id += 1
        log.debug("Sequential walk found %d chunks", chunk_id - 1)

    def _read_imap(self, imap_offset: int) -> None:
        base = self.desc.base_offset
        _tag, length = self._chunk_header(imap_offset)
        r = self._reader(imap_offset + 8, imap_offset + 8 + length)
        _map_count = r.read_uint32()
        mmap_offset = base + r.read_uint32()

        tag, length = self._chunk_header(mmap_offset)
        if tag != ChunkType.MMAP.value:
            raise CorruptContainer(f"imap points at {tag!r} instead of mmap")
        r = self._reader(mmap_offset + 8, mmap_offset + 8 + length)
        header_size = r.read_uint16()
        entry_size = r.read_uint16()
        _capacity = r.read_uint32()
        count = r.read_uint32()
        if entry_size < MMAP_ENTRY_SIZE:
            raise CorruptContainer(f"mmap entry size {entry_size} too small")
        log.debug("mmap: header=0x%x entry=0x%x count=%d", header_size, entry_size, count)

        table = mmap_offset + 8 + header_size
        for chunk_id in range(count):
            r.seek(table + chunk_id * entry_size)
            tag = r.read_fourcc()
            size = r.read_uint32()
            offset = r.read_uint32()
            if tag in SKIPPED_TAGS:
                continue
            pos = base + offset
            if pos + 8 + size > self.desc.end:
                raise CorruptContainer(
                    f"mmap entry {chunk_id} ({tag!r}) at 0x{pos:x}+{size} runs past container end"
                )
            self._add(tag, chunk_id, pos + 8, size)

    def _read_cftc(self, cftc_offset: int) -> None:
        base = self.desc.base_offset
        _tag, length = self._chunk_header(cftc_offset)
        table_end = cftc_offset + 8 + length
        r = self._reader(cftc_offset + 8, table_end)
        r.skip(4)
        while r.remaining >= CFTC_ENTRY_SIZE:
            tag = r.read_fourcc()
            if tag == "\0\0\0\0":
                break
            _size = r.read_uint32()
            chunk_id = r.read_int32()
            pos = base + r.read_uint32()
            _stored_tag, stored_length = self._chunk_header(pos)
            # Payload is preceded by a resource id and a padded Pascal name
            prefix = self._reader(pos + 8, pos + 8 + stored_length)
            prefix.skip(4)
            name = prefix.read_pascal_string(pad_even=True)
            skip = prefix.pos - (pos + 8)
            payload_length = stored_length - skip
            if payload_length < 0:
                raise CorruptContainer(f"CFTC entry {tag!r}:{chunk_id} shorter than its prefix")
            self._add(tag, chunk_id, prefix.pos, payload_length, name=name or None)

    # -- Classic resource fork -----------------------------------------------

    def read_resource_fork(self) -> None:
        data_len = len(self.data)
        r = self._reader(0, data_len, little_endian=False)
        data_offset = r.read_uint32()
        map_offset = r.read_uint32()
        _data_length = r.read_uint32()
        map_length = r.read_uint32()
        map_end = map_offset + map_length
        if map_end > data_len:
            raise CorruptContainer("Resource map runs past end of stream")

        m = self._reader(map_offset, map_end, little_endian=False)
        m.seek(map_offset + 24)
        type_list = map_offset + m.read_uint16()
        name_list = map_offset + m.read_uint16()
        m.seek(type_list)
        type_count = (m.read_uint16() + 1) & 0xFFFF

        for _ in range(type_count):
            raw_tag = m.read_fourcc()
            ref_count = m.read_uint16() + 1
            ref_list = type_list + m.read_uint16()
            type_next = m.pos
            for i in range(ref_count):
                m.seek(ref_list + i * RESOURCE_REF_SIZE)
                res_id = m.read_int16()
                name_offset = m.read_uint16()
                attributes = m.read_uint8()
                rel_offset = m.read_uint24()
                name = None
                if name_offset != 0xFFFF:
                    n = self._reader(0, map_end, little_endian=False)
                    n.seek(name_list + name_offset)
                    name = n.read_pascal_string()
                pos = data_offset + rel_offset
                d = self._reader(0, data_len, little_endian=False)
                d.seek(pos)
                length = d.read_uint32()
                if pos + 4 + length > data_len:
                    raise CorruptContainer(f"Resource {raw_tag!r}:{res_id} runs past end of stream")
                self._add(
                    raw_tag,
                    res_id,
                    pos + 4,
                    length,
                    compressed=bool(attributes & RESOURCE_ATTR_COMPRESSED),
                    name=name,
                )
            m.seek(type_next)
