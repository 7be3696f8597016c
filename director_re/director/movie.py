"""Director movie / cast / projector file access.

``MovieFile`` detects the container, builds its resource index and then
reads chunks lazily: a chunk's bytes are sliced (and decompressed, for
compressed chunks) the first time they are asked for, at most once per
key, and cached for the life of the file.

KEY* (resource linkage) layout, in the container's data byte order:

    header size u16 | entry size u16 | capacity u32 | count u32
    entries: child id i32 | parent id i32 | tag
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from ..errors import OutOfBounds, TruncatedRecord
from .chunks import ChunkType, ContainerKind, MovieKind
from .compression import decompress
from .config import Config, major_version, parse_config, peek_version
from .detector import ContainerDescriptor, detect, match_container
from .labels import FrameLabel, parse_vwlb
from .reader import BinaryReader
from .resource_index import ChunkLocation, Key, ResourceIndex, build_index
from .score import ScoreTimeline, decode_score
from .tags import normalize

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyEntry:
    """A single KEY* entry linking a media chunk to its owner."""

    child_id: int
    parent_id: int
    tag: str


class MovieFile:
    """A detected and indexed Director file.

    ``source`` is a path or the file's bytes.  Nested containers (see
    ``embedded_movies``) pass ``descriptor`` to open a sub-range of the same
    buffer.
    """

    def __init__(
        self,
        source: str | Path | bytes | bytearray | memoryview,
        descriptor: ContainerDescriptor | None = None,
        encoding: str = "mac_roman",
    ):
        if isinstance(source, (str, Path)):
            self.path: Path | None = Path(source)
            self.data = self.path.read_bytes()
        else:
            self.path = None
            self.data = source if isinstance(source, bytes) else bytes(source)
        self.encoding = encoding
        self.descriptor = descriptor if descriptor is not None else detect(self.data)
        self.index: ResourceIndex = build_index(self.data, self.descriptor)

        self._cache: dict[Key, bytes] = {}
        self._slots: dict[Key, threading.Lock] = {}
        self._guard = threading.Lock()
        self._config: Config | None = None
        self._config_loaded = False
        self._key_table: list[KeyEntry] | None = None
        self._scores: dict[int, ScoreTimeline] = {}
        self._score_slots: dict[int, threading.Lock] = {}
        self._refine_version()

        log.info(
            "%s: %s %s, %d chunks",
            self.path.name if self.path else "<bytes>",
            self.descriptor.movie_kind.value,
            self.descriptor.kind.value,
            len(self.index),
        )

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self) -> str:
        return f"MovieFile({self.path or '<bytes>'!s}, {len(self.index)} chunks)"

    def close(self) -> None:
        """Drop cached chunk data."""
        with self._guard:
            self._cache.clear()
            self._slots.clear()
            self._scores.clear()
            self._score_slots.clear()

    # -- Chunk access ---------------------------------------------------------

    def _refine_version(self) -> None:
        # Chunk containers do not record their release; the config does.
        # Re-index under that release so version-bound tag synonyms apply.
        desc = self.descriptor
        if desc.kind != ContainerKind.CHUNK_CONTAINER:
            return
        first = self.index.first(ChunkType.DRCF.value)
        if first is None or first[1].compressed:
            return
        loc = first[1]
        config_version = peek_version(self.data[loc.offset : loc.offset + loc.length])
        if config_version is None:
            return
        version = major_version(config_version)
        if version != desc.version:
            log.debug("Config version %d: re-indexing as version %d", config_version, version)
            self.descriptor = replace(desc, version=version)
            self.index = build_index(self.data, self.descriptor)

    def _key(self, tag: str, id: int) -> Key:
        return normalize(tag, self.descriptor.platform, self.descriptor.version), id

    def location(self, tag: str, id: int) -> ChunkLocation | None:
        return self.index.get(self._key(tag, id))

    def raw(self, tag: str, id: int) -> bytes | None:
        """Stored payload bytes, without decompression."""
        loc = self.location(tag, id)
        if loc is None:
            return None
        return self.data[loc.offset : loc.offset + loc.length]

    def read(self, tag: str, id: int) -> bytes | None:
        """Decoded payload of chunk ``(tag, id)``, or None if not indexed.

        Raises ``DecodeFailed`` for a compressed chunk that does not decode.
        """
        key = self._key(tag, id)
        loc = self.index.get(key)
        if loc is None:
            return None
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        with self._guard:
            slot = self._slots.setdefault(key, threading.Lock())
        with slot:
            cached = self._cache.get(key)
            if cached is None:
                payload = self.data[loc.offset : loc.offset + loc.length]
                cached = decompress(payload) if loc.compressed else payload
                self._cache[key] = cached
                log.debug("Read %s:%d (%d bytes%s)", tag, id, len(cached), ", compressed" if loc.compressed else "")
        return cached

    def read_first(self, tag: str) -> bytes | None:
        """Decoded payload of the lowest-id chunk tagged ``tag``.

        Used for chunks a movie carries at most once (DRCF, KEY*, VWLB).
        """
        first = self.index.first(tag)
        return None if first is None else self.read(tag, first[0])

    # -- Structured chunks ----------------------------------------------------

    @property
    def config(self) -> Config | None:
        """Movie configuration from the lowest-id DRCF, parsed once."""
        with self._guard:
            if self._config_loaded:
                return self._config
        data = self.read_first(ChunkType.DRCF.value)
        config = parse_config(data) if data is not None else None
        with self._guard:
            if not self._config_loaded:
                self._config = config
                self._config_loaded = True
            return self._config

    @property
    def version(self) -> int:
        """Director major version: from the config when present."""
        config = self.config
        return config.major_version if config is not None else self.descriptor.version

    def key_table(self) -> list[KeyEntry]:
        with self._guard:
            if self._key_table is not None:
                return self._key_table
        data = self.read_first(ChunkType.KEYs.value)
        entries = self._parse_key_table(data) if data is not None else []
        with self._guard:
            self._key_table = entries
        return entries

    def _parse_key_table(self, data: bytes) -> list[KeyEntry]:
        desc = self.descriptor
        r = BinaryReader(data, little_endian=desc.little_endian)
        entries: list[KeyEntry] = []
        try:
            header_size = r.read_uint16()
            entry_size = r.read_uint16()
            _capacity = r.read_uint32()
            count = r.read_uint32()
            for i in range(count):
                r.seek(header_size + i * entry_size)
                child_id = r.read_int32()
                parent_id = r.read_int32()
                tag = normalize(r.read_fourcc(), desc.platform, desc.version)
                entries.append(KeyEntry(child_id, parent_id, tag))
        except OutOfBounds as e:
            raise TruncatedRecord(f"KEY* table truncated: {e}") from e
        log.debug("KEY*: %d entries", len(entries))
        return entries

    def linked_resources(self, parent_id: int) -> list[tuple[str, int]]:
        """``(tag, id)`` of every chunk the KEY* table attaches to ``parent_id``."""
        return [(e.tag, e.child_id) for e in self.key_table() if e.parent_id == parent_id]

    def scores(self) -> dict[int, ScoreTimeline]:
        """Every VWSC in the file, keyed by chunk id."""
        return {id: self.score(id) for id in self.index.ids(ChunkType.VWSC.value)}

    def score(self, id: int | None = None) -> ScoreTimeline | None:
        """Decode the VWSC chunk ``id`` (default: the lowest id).

        Each score is decoded at most once and shared by later calls.
        """
        if id is None:
            first = self.index.first(ChunkType.VWSC.value)
            if first is None:
                return None
            id = first[0]
        cached = self._scores.get(id)
        if cached is not None:
            return cached

        with self._guard:
            slot = self._score_slots.setdefault(id, threading.Lock())
        with slot:
            cached = self._scores.get(id)
            if cached is None:
                data = self.read(ChunkType.VWSC.value, id)
                if data is None:
                    return None
                config = self.config
                cached = decode_score(data, config.version if config is not None else None)
                self._scores[id] = cached
        return cached

    def labels(self) -> list[FrameLabel]:
        data = self.read_first(ChunkType.VWLB.value)
        return parse_vwlb(data, self.encoding) if data is not None else []

    def resolver(self, data_dir=None):
        """A ``CastResolver`` over this file's cast libraries."""
        from .external_casts import CastResolver

        return CastResolver(self, data_dir, self.encoding)

    def embedded_movies(self) -> list[MovieFile]:
        """Movies nested inside an embedded (APPL) container.

        Each memory-map entry of an APPL file points at a complete RIFX
        or XFIR file, header included, stored in place as a chunk.
        """
        if self.descriptor.movie_kind != MovieKind.EMBEDDED:
            return []
        movies = []
        for (tag, id), loc in sorted(self.index.items(), key=lambda item: item[1].offset):
            start = loc.offset - 8
            if loc.compressed or start <= self.descriptor.base_offset:
                continue
            desc = match_container(self.data, start)
            if desc is None or desc.end > loc.offset + loc.length:
                continue
            log.debug("Embedded %s at %d (%s:%d)", desc.subtype, start, tag, id)
            movies.append(MovieFile(self.data, descriptor=desc, encoding=self.encoding))
        return movies

    def summary(self) -> dict[str, Any]:
        """Return a JSON-friendly summary of the file."""
        desc = self.descriptor
        tags: dict[str, int] = {}
        for tag, _id in self.index:
            tags[tag] = tags.get(tag, 0) + 1
        result: dict[str, Any] = {
            "path": str(self.path) if self.path else None,
            "kind": desc.kind.value,
            "movie_kind": desc.movie_kind.value,
            "platform": desc.platform.value,
            "byte_order": desc.byte_order.value,
            "tag_byte_order": desc.tag_byte_order.value,
            "base_offset": desc.base_offset,
            "size": desc.size,
            "subtype": desc.subtype,
            "version": self.version,
            "chunk_count": len(self.index),
            "chunk_types": dict(sorted(tags.items())),
        }
        if desc.kind == ContainerKind.CHUNK_CONTAINER and desc.movie_kind == MovieKind.EMBEDDED:
            result["embedded_movies"] = len(self.embedded_movies())
        return result
