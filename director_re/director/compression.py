"""Chunk compression schemes.

A compressed chunk payload is a 12-byte big-endian header followed by the
encoded data:

    scheme   u16   1 = PackBits run-length, 2 = zlib deflate
    flags    u16   reserved, written as 0
    length   u32   decoded length
    checksum u32   XOR fold of the decoded bytes

The checksum starts at 0xAAAAAAAA, XORs in every big-endian u32 word of the
decoded data, then every trailing byte.
"""

from __future__ import annotations

import logging
import struct
import zlib
from enum import IntEnum

from ..errors import DecodeFailed

log = logging.getLogger(__name__)

HEADER = struct.Struct(">HHII")
CHECKSUM_SEED = 0xAAAAAAAA


class Scheme(IntEnum):
    PACKBITS = 1
    ZLIB = 2


def checksum(data: bytes) -> int:
    value = CHECKSUM_SEED
    words = len(data) // 4
    for (word,) in struct.iter_unpack(">I", data[: words * 4]):
        value ^= word
    for byte in data[words * 4 :]:
        value ^= byte
    return value


# ---------------------------------------------------------------------------
# PackBits
# ---------------------------------------------------------------------------


def unpack_bits(data: bytes, expected: int) -> bytes:
    """Decode PackBits runs until ``expected`` bytes are produced."""
    out = bytearray()
    pos = 0
    while pos < len(data) and len(out) < expected:
        n = data[pos]
        pos += 1
        if n < 0x80:
            count = n + 1
            if pos + count > len(data):
                raise DecodeFailed(f"PackBits literal run of {count} overruns input")
            out += data[pos : pos + count]
            pos += count
        elif n > 0x80:
            if pos >= len(data):
                raise DecodeFailed("PackBits repeat run missing its byte")
            out += bytes([data[pos]]) * (257 - n)
            pos += 1
        # 0x80 is a no-op
    return bytes(out)


def pack_bits(data: bytes) -> bytes:
    out = bytearray()
    pos = 0
    while pos < len(data):
        run = 1
        while pos + run < len(data) and run < 128 and data[pos + run] == data[pos]:
            run += 1
        if run >= 2:
            out.append(257 - run)
            out.append(data[pos])
            pos += run
            continue
        start = pos
        pos += 1
        while pos < len(data) and pos - start < 128:
            if pos + 1 < len(data) and data[pos] == data[pos + 1]:
                break
            pos += 1
        out.append(pos - start - 1)
        out += data[start:pos]
    return bytes(out)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decompress(payload: bytes) -> bytes:
    """Decode a compressed chunk payload; raises ``DecodeFailed``."""
    if len(payload) < HEADER.size:
        raise DecodeFailed(f"Compressed payload of {len(payload)} bytes has no header")
    scheme, _flags, length, expected_sum = HEADER.unpack_from(payload, 0)
    body = bytes(payload[HEADER.size :])

    if scheme == Scheme.ZLIB:
        try:
            decoded = zlib.decompress(body)
        except zlib.error as e:
            raise DecodeFailed(f"zlib stream invalid: {e}") from e
    elif scheme == Scheme.PACKBITS:
        decoded = unpack_bits(body, length)
    else:
        raise DecodeFailed(f"Unsupported compression scheme {scheme}")

    if len(decoded) != length:
        raise DecodeFailed(f"Decoded length {len(decoded)} != declared {length}")
    actual_sum = checksum(decoded)
    if actual_sum != expected_sum:
        raise DecodeFailed(f"Checksum mismatch: 0x{actual_sum:08x} != 0x{expected_sum:08x}")
    log.debug("Decompressed %d -> %d bytes (scheme %d)", len(body), length, scheme)
    return decoded


def compress(payload: bytes, scheme: int = Scheme.ZLIB) -> bytes:
    """Encode ``payload`` in the layout ``decompress`` reads."""
    payload = bytes(payload)
    if scheme == Scheme.ZLIB:
        body = zlib.compress(payload)
    elif scheme == Scheme.PACKBITS:
        body = pack_bits(payload)
    else:
        raise DecodeFailed(f"Unsupported compression scheme {scheme}")
    return HEADER.pack(scheme, 0, len(payload), checksum(payload)) + body
