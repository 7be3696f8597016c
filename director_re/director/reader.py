"""Bounds-checked, endian-aware cursor over an in-memory byte buffer.

Every decoder reads through ``BinaryReader``.  Reads never go past the
reader's ``end`` limit; an attempt raises ``OutOfBounds`` which the
calling decoder turns into its own error kind (``CorruptContainer``,
``TruncatedRecord``, ``CorruptScore``).
"""

from __future__ import annotations

import struct

from ..errors import OutOfBounds

_U16 = struct.Struct(">H"), struct.Struct("<H")
_I16 = struct.Struct(">h"), struct.Struct("<h")
_U32 = struct.Struct(">I"), struct.Struct("<I")
_I32 = struct.Struct(">i"), struct.Struct("<i")


class BinaryReader:
    """Wraps a buffer with endian-aware read methods.

    ``little_endian`` selects the byte order of numeric reads.
    ``tags_little_endian`` selects whether four-character tags are stored
    reversed; it defaults to the numeric byte order.
    """

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        little_endian: bool = False,
        start: int = 0,
        end: int | None = None,
        tags_little_endian: bool | None = None,
    ):
        self.data = memoryview(data)
        self.little_endian = little_endian
        self.tags_little_endian = little_endian if tags_little_endian is None else tags_little_endian
        self.end = len(self.data) if end is None else min(end, len(self.data))
        if start < 0 or start > self.end:
            raise OutOfBounds(f"start offset {start} outside buffer of {self.end} bytes")
        self._pos = start

    @property
    def pos(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return self.end - self._pos

    def seek(self, offset: int) -> None:
        if offset < 0 or offset > self.end:
            raise OutOfBounds(f"seek to {offset} outside buffer of {self.end} bytes")
        self._pos = offset

    def skip(self, n: int) -> None:
        self.seek(self._pos + n)

    def _take(self, n: int) -> int:
        pos = self._pos
        if n < 0 or pos + n > self.end:
            raise OutOfBounds(f"read of {n} bytes at {pos} exceeds limit {self.end}")
        self._pos = pos + n
        return pos

    def read_bytes(self, n: int) -> bytes:
        pos = self._take(n)
        return bytes(self.data[pos : pos + n])

    def read_view(self, n: int) -> memoryview:
        """Like read_bytes, without copying."""
        pos = self._take(n)
        return self.data[pos : pos + n]

    def read_uint8(self) -> int:
        return self.data[self._take(1)]

    def read_int8(self) -> int:
        value = self.read_uint8()
        return value - 0x100 if value & 0x80 else value

    def read_uint16(self) -> int:
        return _U16[self.little_endian].unpack_from(self.data, self._take(2))[0]

    def read_int16(self) -> int:
        return _I16[self.little_endian].unpack_from(self.data, self._take(2))[0]

    def read_uint32(self) -> int:
        return _U32[self.little_endian].unpack_from(self.data, self._take(4))[0]

    def read_int32(self) -> int:
        return _I32[self.little_endian].unpack_from(self.data, self._take(4))[0]

    def read_uint24(self) -> int:
        raw = self.read_view(3)
        if self.little_endian:
            return raw[0] | (raw[1] << 8) | (raw[2] << 16)
        return (raw[0] << 16) | (raw[1] << 8) | raw[2]

    def read_fourcc(self) -> str:
        """Read a 4-byte FourCC string, flipped if tags are little-endian."""
        raw = self.read_bytes(4)
        if self.tags_little_endian:
            raw = raw[::-1]
        return raw.decode("latin-1")

    def read_pascal_string(self, encoding: str = "mac_roman", pad_even: bool = False) -> str:
        """Read a length-prefixed string.

        With ``pad_even`` the length byte plus text is padded to an even
        size, as in the cast library table.
        """
        length = self.read_uint8()
        text = self.read_bytes(length).decode(encoding, errors="replace")
        if pad_even and (length + 1) % 2:
            self.skip(1)
        return text
