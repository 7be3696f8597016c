"""Cast library resolution, including external cast files.

A movie's cast libraries come from its MCsL table (big-endian):

    reserved u32 | count u32
    per library:
      name   Pascal string, padded to even length
      path   Pascal string, padded to even length (empty: internal)
      min member i16 | max member i16 | member table id i32 | flags u16

Without an MCsL there is one internal library, "Internal", numbered 1.

Internal members are found through the library's CAS* member table (an
array of big-endian u32 CASt ids; slot i is member ``min + i``, 0 is an
empty slot).  Without a member table, member n is ``('CASt', 1024 + n)``.

External libraries name a file that is looked up case-insensitively in a
caller-supplied data directory; each file is loaded once and its first
library resolves the member.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Hashable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import (
    DirectorError,
    ExternalFileMissing,
    LibraryNotFound,
    MemberNotFound,
    OutOfBounds,
    TruncatedRecord,
)
from .cast_types import CastMember, decode_member
from .chunks import ChunkType
from .reader import BinaryReader

if TYPE_CHECKING:
    from .movie import MovieFile

log = logging.getLogger(__name__)

INTERNAL_LIBRARY_NAME = "Internal"
DEFAULT_MEMBER_BASE = 1024
CAST_EXTENSIONS = (".cst", ".cxt", ".dir", ".dxr")


@dataclass(frozen=True)
class CastLibrary:
    number: int
    name: str
    path: str = ""
    min_member: int = 1
    max_member: int = 0
    member_table_id: int | None = None
    flags: int = 0

    @property
    def external(self) -> bool:
        return bool(self.path)

    def declares(self, member: int) -> bool:
        """Whether ``member`` lies in the declared id range.

        A max below min means the table left the upper bound unset.
        """
        if member < self.min_member:
            return False
        return self.max_member < self.min_member or member <= self.max_member


# ---------------------------------------------------------------------------
# Data directories
# ---------------------------------------------------------------------------


class DataDirectory(ABC):
    """Supplies the bytes of external cast files by name."""

    @abstractmethod
    def resolve(self, name: str) -> Hashable | None:
        """Return a key identifying the file called ``name``, or None."""

    @abstractmethod
    def read(self, location: Hashable) -> bytes:
        """Return the bytes of a file previously returned by ``resolve``."""

    def open(self, name: str) -> bytes | None:
        location = self.resolve(name)
        return None if location is None else self.read(location)


class FileSystemDataDirectory(DataDirectory):
    """Case-insensitive lookup in a directory and its immediate subdirectories."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"FileSystemDataDirectory({str(self.path)!r})"

    def resolve(self, name: str) -> Path | None:
        if not self.path.is_dir():
            return None
        wanted = name.upper()
        for child in self.path.iterdir():
            if child.is_file() and child.name.upper() == wanted:
                return child
        for subdir in self.path.iterdir():
            if subdir.is_dir():
                for child in subdir.iterdir():
                    if child.is_file() and child.name.upper() == wanted:
                        return child
        return None

    def read(self, location: Path) -> bytes:
        return location.read_bytes()


class MemoryDataDirectory(DataDirectory):
    """In-memory files keyed by name, matched case-insensitively."""

    def __init__(self, files: Mapping[str, bytes]):
        self._files = {name.upper(): bytes(data) for name, data in files.items()}

    def resolve(self, name: str) -> str | None:
        key = name.upper()
        return key if key in self._files else None

    def read(self, location: str) -> bytes:
        return self._files[location]


def candidate_names(path: str) -> list[str]:
    """File names to try for an external cast path, most specific first."""
    basename = path.replace(":", "/").replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
    stem = basename.rsplit(".", 1)[0] if "." in basename else basename
    names = [basename, stem] + [stem + ext for ext in CAST_EXTENSIONS]
    seen: set[str] = set()
    result = []
    for name in names:
        if name and name.upper() not in seen:
            seen.add(name.upper())
            result.append(name)
    return result


# ---------------------------------------------------------------------------
# MCsL / CAS* tables
# ---------------------------------------------------------------------------


def parse_mcsl(data: bytes, encoding: str = "mac_roman") -> list[CastLibrary]:
    """Decode a cast library table; raises ``TruncatedRecord`` when short."""
    r = BinaryReader(data)
    libraries: list[CastLibrary] = []
    try:
        r.skip(4)
        count = r.read_uint32()
        for number in range(1, count + 1):
            name = r.read_pascal_string(encoding, pad_even=True)
            path = r.read_pascal_string(encoding, pad_even=True)
            min_member = r.read_int16()
            max_member = r.read_int16()
            table_id = r.read_int32()
            flags = r.read_uint16()
            libraries.append(
                CastLibrary(
                    number=number,
                    name=name,
                    path=path,
                    min_member=min_member,
                    max_member=max_member,
                    member_table_id=table_id if table_id > 0 else None,
                    flags=flags,
                )
            )
    except OutOfBounds as e:
        raise TruncatedRecord(f"Cast library table truncated: {e}") from e
    return libraries


def parse_member_table(data: bytes) -> list[int]:
    """Decode a CAS* member table.

    Parameters
    ----------
    data : bytes
        The CAS* payload: one big-endian u32 CASt id per member slot,
        starting at the library's minimum member number.

    Returns the slot list; 0 marks an empty slot.  A trailing partial
    slot is ignored.
    """
    count = len(data) // 4
    r = BinaryReader(data)
    return [r.read_uint32() for _ in range(count)]


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class CastResolver:
    """Maps (library, member) pairs to decoded cast members.

    Thread-safe: external files are loaded once per resolved path and
    resolved members are cached.
    """

    def __init__(
        self,
        movie: MovieFile,
        data_dir: DataDirectory | str | Path | None = None,
        encoding: str = "mac_roman",
    ):
        if isinstance(data_dir, (str, Path)):
            data_dir = FileSystemDataDirectory(data_dir)
        self.movie = movie
        self.data_dir = data_dir
        self.encoding = encoding

        self._libraries: list[CastLibrary] | None = None
        self._tables: dict[int, list[int] | None] = {}
        self._members: dict[tuple[int, int], CastMember] = {}
        self._lock = threading.Lock()

        self._external: dict[Hashable, CastResolver] = {}
        self._external_by_library: dict[int, CastResolver] = {}
        self._path_locks: dict[Hashable, threading.Lock] = {}

    # -- Libraries ------------------------------------------------------------

    def libraries(self) -> list[CastLibrary]:
        with self._lock:
            if self._libraries is None:
                self._libraries = self._read_libraries()
            return list(self._libraries)

    def _read_libraries(self) -> list[CastLibrary]:
        data = self.movie.read(ChunkType.MCsL.value, self._first_id(ChunkType.MCsL.value))
        if data is not None:
            libraries = parse_mcsl(data, self.encoding)
            log.info("%d cast libraries", len(libraries))
            if libraries:
                return libraries

        table = self.movie.index.first(ChunkType.CASs.value)
        config = self.movie.config
        min_member = config.min_member if config is not None else 1
        max_member = config.max_member if config is not None else 0
        if config is None:
            if table is not None:
                slots = parse_member_table(self.movie.read(ChunkType.CASs.value, table[0]))
                max_member = min_member + len(slots) - 1
            else:
                cast_ids = self.movie.index.ids(ChunkType.CASt.value)
                max_member = max(cast_ids, default=DEFAULT_MEMBER_BASE) - DEFAULT_MEMBER_BASE
        return [
            CastLibrary(
                number=1,
                name=INTERNAL_LIBRARY_NAME,
                min_member=min_member,
                max_member=max_member,
                member_table_id=table[0] if table is not None else None,
            )
        ]

    def _first_id(self, tag: str) -> int:
        first = self.movie.index.first(tag)
        return first[0] if first is not None else -1

    def library(self, number: int) -> CastLibrary:
        for lib in self.libraries():
            if lib.number == number:
                return lib
        raise LibraryNotFound(number)

    # -- Members --------------------------------------------------------------

    def resolve_member(self, library: int, member: int) -> CastMember:
        """Decode member ``member`` of cast library ``library``.

        Raises ``LibraryNotFound``, ``MemberNotFound`` or
        ``ExternalFileMissing``.
        """
        key = (library, member)
        with self._lock:
            cached = self._members.get(key)
        if cached is not None:
            return cached

        lib = self.library(library)
        if lib.external:
            if not lib.declares(member):
                raise MemberNotFound(library, member)
            ext = self._external_resolver(lib)
            first = ext.libraries()[0]
            try:
                found = ext.resolve_member(first.number, member)
            except MemberNotFound:
                raise MemberNotFound(library, member) from None
        else:
            found = self._resolve_internal(lib, member)
        found = replace(found, library=library, number=member)

        with self._lock:
            found = self._members.setdefault(key, found)
        return found

    def _resolve_internal(self, lib: CastLibrary, member: int) -> CastMember:
        cast_id = self._cast_id(lib, member)
        if cast_id is None:
            raise MemberNotFound(lib.number, member)
        data = self.movie.read(ChunkType.CASt.value, cast_id)
        if data is None:
            raise MemberNotFound(lib.number, member)
        decoded = decode_member(data, encoding=self.encoding)
        log.debug("Member %d:%d -> CASt %d (%s)", lib.number, member, cast_id, decoded.type_name)
        return replace(decoded, resource=(ChunkType.CASt.value, cast_id))

    def _member_table(self, lib: CastLibrary) -> list[int] | None:
        with self._lock:
            if lib.number in self._tables:
                return self._tables[lib.number]
        table = None
        if lib.member_table_id is not None:
            data = self.movie.read(ChunkType.CASs.value, lib.member_table_id)
            if data is not None:
                table = parse_member_table(data)
        with self._lock:
            return self._tables.setdefault(lib.number, table)

    def _cast_id(self, lib: CastLibrary, member: int) -> int | None:
        table = self._member_table(lib)
        if table is None:
            return DEFAULT_MEMBER_BASE + member
        slot = member - lib.min_member
        if slot < 0 or slot >= len(table) or table[slot] == 0:
            return None
        return table[slot]

    def _member_numbers(self, lib: CastLibrary) -> list[int]:
        if lib.external:
            ext = self._external_resolver(lib)
            return ext._member_numbers(ext.libraries()[0])
        table = self._member_table(lib)
        if table is not None:
            return [lib.min_member + i for i, cast_id in enumerate(table) if cast_id]
        ids = self.movie.index.ids(ChunkType.CASt.value)
        return [i - DEFAULT_MEMBER_BASE for i in ids if i > DEFAULT_MEMBER_BASE]

    def list_members(self, library: int | None = None) -> list[CastMember]:
        """Every resolvable member, ordered by library then number.

        With no ``library`` given, external libraries whose file is missing
        are skipped with a warning.
        """
        libs = self.libraries() if library is None else [self.library(library)]
        members: list[CastMember] = []
        for lib in libs:
            try:
                numbers = self._member_numbers(lib)
            except ExternalFileMissing as e:
                if library is not None:
                    raise
                log.warning("Skipping library %d: %s", lib.number, e)
                continue
            for number in numbers:
                try:
                    members.append(self.resolve_member(lib.number, number))
                except MemberNotFound:
                    log.debug("Member %d:%d listed but not present", lib.number, number)
        return members

    # -- Owning files ---------------------------------------------------------

    def owner(self, library: int) -> MovieFile:
        """The file whose index holds the members of ``library``."""
        lib = self.library(library)
        if not lib.external:
            return self.movie
        return self._external_resolver(lib).movie

    def read_member_data(self, member: CastMember) -> bytes | None:
        if member.resource is None:
            return None
        return self.owner(member.library).read(*member.resource)

    def linked_resources(self, member: CastMember) -> list[tuple[str, int]]:
        """Media chunks attached to ``member`` through its file's KEY* table."""
        if member.resource is None:
            return []
        return self.owner(member.library).linked_resources(member.resource[1])

    def _external_resolver(self, lib: CastLibrary) -> CastResolver:
        with self._lock:
            cached = self._external_by_library.get(lib.number)
        if cached is not None:
            return cached
        if self.data_dir is None:
            raise ExternalFileMissing(lib.number, lib.path, "no data directory")

        for name in candidate_names(lib.path):
            location = self.data_dir.resolve(name)
            if location is not None:
                break
        else:
            raise ExternalFileMissing(lib.number, lib.path, f"not found in {self.data_dir!r}")

        with self._lock:
            path_lock = self._path_locks.setdefault(location, threading.Lock())
        with path_lock:
            resolver = self._external.get(location)
            if resolver is None:
                resolver = self._load_external(lib, location)
                self._external[location] = resolver
        with self._lock:
            self._external_by_library[lib.number] = resolver
        return resolver

    def _load_external(self, lib: CastLibrary, location: Hashable) -> CastResolver:
        from .movie import MovieFile

        try:
            data = self.data_dir.read(location)
        except OSError as e:
            raise ExternalFileMissing(lib.number, lib.path, str(e)) from e
        try:
            movie = MovieFile(data, encoding=self.encoding)
        except DirectorError:
            log.error("External cast %s for library %d is not readable", location, lib.number)
            raise
        log.info("Loaded external cast %s for library %d (%s)", location, lib.number, lib.name)
        return CastResolver(movie, self.data_dir, self.encoding)
