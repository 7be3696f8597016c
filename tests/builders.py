"""Synthetic Director byte streams for the test suite."""

from __future__ import annotations

import struct

from director_re.director.compression import compress


def fourcc(tag: str, little: bool = False) -> bytes:
    raw = tag.encode("latin-1")
    assert len(raw) == 4
    return raw[::-1] if little else raw


def u16(value: int, little: bool = False) -> bytes:
    return struct.pack("<H" if little else ">H", value)


def u32(value: int, little: bool = False) -> bytes:
    return struct.pack("<I" if little else ">I", value)


def i32(value: int, little: bool = False) -> bytes:
    return struct.pack("<i" if little else ">i", value)


def pascal(text: str, pad_even: bool = False) -> bytes:
    raw = text.encode("mac_roman")
    out = bytes([len(raw)]) + raw
    if pad_even and len(out) % 2:
        out += b"\0"
    return out


# ---------------------------------------------------------------------------
# Chunk containers
# ---------------------------------------------------------------------------


def chunk(tag: str, payload: bytes, little: bool = False) -> bytes:
    data = fourcc(tag, little) + u32(len(payload), little) + payload
    if len(payload) % 2:
        data += b"\0"
    return data


def container(chunks: list[tuple[str, bytes]], little: bool = False, subtype: str = "MV93") -> bytes:
    """RIFX/XFIR container indexed by a sequential walk (ids 1, 2, ...)."""
    body = fourcc(subtype, little) + b"".join(chunk(t, p, little) for t, p in chunks)
    magic = b"XFIR" if little else b"RIFX"
    return magic + u32(len(body), little) + body


def mmap_container(
    chunks: list[tuple[str, bytes]], little: bool = False, subtype: str = "MV93"
) -> bytes:
    """RIFX/XFIR container with imap + mmap; chunk n of ``chunks`` gets id 3 + n.

    A chunk tagged ``free`` only gets an mmap entry.
    """
    entry_count = 3 + len(chunks)
    mmap_payload_len = 24 + 20 * entry_count
    imap_offset = 12
    mmap_offset = imap_offset + 16
    pos = mmap_offset + 8 + mmap_payload_len

    entries = []
    body = b""
    for tag, payload in chunks:
        if tag == "free":
            entries.append((tag, 0, 0))
            continue
        entries.append((tag, len(payload), pos))
        data = chunk(tag, payload, little)
        body += data
        pos += len(data)
    total = pos

    def entry(tag: str, size: int, offset: int) -> bytes:
        return fourcc(tag, little) + u32(size, little) + u32(offset, little) + u16(0, little) + u16(0, little) + i32(-1, little)

    mmap_payload = (
        u16(24, little)
        + u16(20, little)
        + u32(entry_count, little)
        + u32(entry_count, little)
        + i32(-1, little)
        + i32(-1, little)
        + i32(-1, little)
        + entry("RIFX", total - 8, 0)
        + entry("imap", 8, imap_offset)
        + entry("mmap", mmap_payload_len, mmap_offset)
        + b"".join(entry(*e) for e in entries)
    )
    imap = chunk("imap", u32(1, little) + u32(mmap_offset, little), little)
    mmap = chunk("mmap", mmap_payload, little)
    rest = fourcc(subtype, little) + imap + mmap + body
    magic = b"XFIR" if little else b"RIFX"
    return magic + u32(len(rest), little) + rest


def cftc_container(chunks: list[tuple[str, int, str, bytes]]) -> bytes:
    """Director 3 for Windows RIFF/RMMP container with a CFTC table.

    ``chunks`` holds (tag, id, name, payload); tags are big-endian and
    numbers little-endian.
    """
    table_len = 4 + 16 * (len(chunks) + 1)
    pos = 12 + 8 + table_len
    table = u32(0, True)
    body = b""
    for tag, chunk_id, name, payload in chunks:
        inner = u32(chunk_id, True) + pascal(name, pad_even=True) + payload
        data = fourcc(tag) + u32(len(inner), True) + inner
        if len(inner) % 2:
            data += b"\0"
        table += fourcc(tag) + u32(len(inner), True) + i32(chunk_id, True) + u32(pos, True)
        body += data
        pos += len(data)
    table += b"\0" * 16
    rest = b"RMMP" + fourcc("CFTC") + u32(table_len, True) + table + body
    # The declared size includes the 8-byte container header
    return b"RIFF" + u32(len(rest) + 8, True) + rest


def zcmp_payload(inner_tag: str, inner_id: int, payload: bytes, scheme: int = 2, little: bool = False) -> bytes:
    return fourcc(inner_tag, little) + i32(inner_id, little) + compress(payload, scheme)


# ---------------------------------------------------------------------------
# Classic resource fork
# ---------------------------------------------------------------------------


def resource_fork(resources: list[tuple]) -> bytes:
    """Build a resource fork from (tag, id, payload[, name[, attrs]]) tuples."""
    data_area = b""
    refs_by_type: dict[str, list[tuple[int, int, int, str | None]]] = {}
    for res in resources:
        tag, res_id, payload = res[:3]
        name = res[3] if len(res) > 3 else None
        attrs = res[4] if len(res) > 4 else 0
        refs_by_type.setdefault(tag, []).append((res_id, len(data_area), attrs, name))
        data_area += u32(len(payload)) + payload

    type_list_size = 2 + 8 * len(refs_by_type)
    ref_count = sum(len(r) for r in refs_by_type.values())
    name_list_offset = 28 + type_list_size + 12 * ref_count

    type_list = u16((len(refs_by_type) - 1) & 0xFFFF)
    ref_lists = b""
    names = b""
    for tag, refs in refs_by_type.items():
        type_list += fourcc(tag) + u16(len(refs) - 1) + u16(type_list_size + len(ref_lists))
        for res_id, offset, attrs, name in refs:
            if name is None:
                name_offset = 0xFFFF
            else:
                name_offset = len(names)
                names += pascal(name)
            ref_lists += struct.pack(">hHB", res_id, name_offset, attrs) + offset.to_bytes(3, "big") + b"\0" * 4

    resource_map = b"\0" * 24 + u16(28) + u16(name_list_offset) + type_list + ref_lists + names
    data_offset = 16
    map_offset = data_offset + len(data_area)
    header = struct.pack(">4I", data_offset, map_offset, len(data_area), len(resource_map))
    return header + data_area + resource_map


# ---------------------------------------------------------------------------
# Projectors
# ---------------------------------------------------------------------------


def projector(movie: bytes, trailer: bool = True, decoy: bool = True, pe: bool = True) -> bytes:
    """Minimal PE executable followed by ``movie``."""
    exe = bytearray(0x40)
    exe[0:2] = b"MZ"
    if pe:
        struct.pack_into("<I", exe, 0x3C, 0x40)
        exe += b"PE\0\0" + struct.pack("<HHIIIHH", 0x14C, 1, 0, 0, 0, 0, 0x102)
        exe += b".text\0\0\0" + b"\0" * 32
    else:
        struct.pack_into("<I", exe, 0x3C, 0xFFFF)
    exe += b"\x90" * 16
    if decoy:
        # Magic without a valid subtype must be skipped
        exe += b"RIFX\0\0\0\0JUNK"
    movie_offset = len(exe)
    exe += movie
    if trailer:
        header_offset = len(exe)
        exe += b"PJ95" + u32(movie_offset, True) + b"\0" * 8
        exe += u32(header_offset, True)
    return bytes(exe)


# ---------------------------------------------------------------------------
# Structured chunk payloads
# ---------------------------------------------------------------------------


def cast_record(cast_type: int, name: str = "", body: bytes = b"", flags: int = 0) -> bytes:
    header = bytes([cast_type, flags]) + pascal(name)
    if len(header) % 2:
        header += b"\0"
    return header + body


def bitmap_body(rect=(0, 0, 10, 20), reg=(5, 4), depth=8, flags=0, palette=(0, -1)) -> bytes:
    return struct.pack(">4hhhBB2h", *rect, reg[1], reg[0], depth, flags, *palette)


def text_body(border=1, margin=2, shadow=0, box_type=0, alignment=0, background=(0xFFFF, 0xFFFF, 0xFFFF)) -> bytes:
    return struct.pack(">BBBBh3H", border, margin, shadow, box_type, alignment, *background)


def shape_body(shape_type=3, rect=(0, 0, 50, 100), pattern=0, fore=255, back=0, fill=1, line_size=2, line_direction=0) -> bytes:
    return struct.pack(">H4hH5B", shape_type, *rect, pattern, fore, back, fill, line_size, line_direction)


def transition_body(chunk_size=4, transition_type=23, duration=500, area=0, smoothness=1) -> bytes:
    return struct.pack(">HHHBB", chunk_size, transition_type, duration, area, smoothness)


def mcsl(libraries: list[dict]) -> bytes:
    """Cast library table; each dict has name, path, min, max, table_id."""
    out = u32(0) + u32(len(libraries))
    for lib in libraries:
        out += pascal(lib.get("name", ""), pad_even=True)
        out += pascal(lib.get("path", ""), pad_even=True)
        out += struct.pack(">hhiH", lib.get("min", 1), lib.get("max", 0), lib.get("table_id", 0), lib.get("flags", 0))
    return out


def member_table(cast_ids: list[int]) -> bytes:
    return struct.pack(f">{len(cast_ids)}I", *cast_ids)


def config_payload(
    version: int = 1201,
    rect=(0, 0, 480, 640),
    min_member: int = 1,
    max_member: int = 10,
    tempo: int = 15,
    platform: int = 1,
    checksum: int = 0,
    palette=(0, -3),
    max_cast_resource: int = 0,
) -> bytes:
    body = struct.pack(">H4hhhBB8x", version, *rect, min_member, max_member, 0, 0)
    if version >= 1025:
        body += struct.pack(">HH6xHHI10xHH", 0, 8, version, 8, 0, tempo, platform)
    if version >= 1113:
        body += struct.pack(">6xI", checksum)
    if version >= 1114:
        body += b"\0\0"
    if version >= 1115:
        body += struct.pack(">2xI", max_cast_resource)
    if version >= 1201:
        body += struct.pack(">hh", *palette)
    elif version >= 1115:
        body += struct.pack(">I", palette[1] & 0xFFFFFFFF)
    return u16(len(body) + 2) + body


def key_table(entries: list[tuple[int, int, str]], little: bool = False) -> bytes:
    """KEY* table of (child id, parent id, tag) entries."""
    out = u16(12, little) + u16(12, little) + u32(len(entries), little) + u32(len(entries), little)
    for child, parent, tag in entries:
        out += i32(child, little) + i32(parent, little) + fourcc(tag, little)
    return out


def labels_payload(labels: list[tuple[int, str]]) -> bytes:
    header = u16(len(labels))
    table = b""
    for frame, name in labels:
        header += u16(frame) + u16(len(table))
        table += pascal(name)
    return header + table


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------

# Raw frame buffer field positions: name -> (offset in cell, struct format).
SPRITE_LAYOUTS = {
    3: {
        "kind": (1, ">B"),
        "fore_color": (2, ">B"),
        "back_color": (3, ">B"),
        "line_size": (4, ">B"),
        "ink": (5, ">B"),
        "member": (6, ">h"),
        "position": (8, ">hh"),
        "height": (12, ">h"),
        "width": (14, ">h"),
    },
    5: {
        "kind": (0, ">B"),
        "ink": (1, ">B"),
        "member": (2, ">hh"),
        "script": (6, ">hh"),
        "fore_color": (10, ">B"),
        "back_color": (11, ">B"),
        "position": (12, ">hh"),
        "height": (16, ">h"),
        "width": (18, ">h"),
        "score_color": (20, ">B"),
        "blend": (21, ">B"),
        "line_size": (22, ">B"),
    },
}
SPRITE_LAYOUTS[4] = dict(SPRITE_LAYOUTS[3], script=(16, ">h"), score_color=(18, ">B"), blend=(19, ">B"))

HEADER_LAYOUTS = {
    3: {"transition": (2, "4s"), "sound1": (6, ">h"), "sound2": (8, ">h"), "palette": (16, ">h")},
    4: {"transition": (2, "4s"), "sound1": (6, ">h"), "sound2": (8, ">h"), "script": (16, ">h"), "palette": (20, ">h")},
    5: {
        "script": (0, ">hh"),
        "sound1": (4, ">hh"),
        "sound2": (8, ">hh"),
        "transition": (12, "4s"),
        "tempo": (21, ">b"),
        "palette": (24, ">hh"),
    },
}


def cell_size(version: int) -> int:
    return 24 if version >= 5 else 20


def sprite_offset(channel: int, version: int = 5) -> int:
    """Start of ``channel``'s cell in the raw frame buffer."""
    return cell_size(version) * (channel + 1)


def _pack_into(buffer: bytearray, base: int, layout: dict, fields: dict, version: int) -> None:
    for name, value in fields.items():
        offset, fmt = layout[name]
        if version < 5 and isinstance(value, tuple) and fmt == ">h":
            value = value[1]
        values = value if isinstance(value, tuple) else (value,)
        struct.pack_into(fmt, buffer, base + offset, *values)


def sprite_cell(version: int = 5, **fields) -> bytes:
    """One sprite cell; ``size`` is (width, height)."""
    if "size" in fields:
        fields["width"], fields["height"] = fields.pop("size")
    cell = bytearray(cell_size(version))
    _pack_into(cell, 0, SPRITE_LAYOUTS[min(version, 5)], fields, version)
    return bytes(cell)


def frame_buffer(sprites: dict[int, bytes] | None = None, version: int = 5, tempo: int = 0, transition: int = 0, **header) -> bytes:
    """Complete raw frame: header cells plus one cell per channel 1-48."""
    size = cell_size(version)
    buffer = bytearray(size * 50)
    if version >= 6:
        header["transition"] = struct.pack(">hh", *header.pop("transition_member", (0, 0)))
        header["tempo"] = tempo
    else:
        header["transition"] = bytes([0, 0, tempo & 0xFF, transition])
    _pack_into(buffer, 0, HEADER_LAYOUTS[min(version, 5)], header, version)
    for channel, cell in (sprites or {}).items():
        start = sprite_offset(channel, version)
        buffer[start : start + size] = cell
    return bytes(buffer)


def diff_patches(old: bytes, new: bytes, limit: int | None = None) -> list[tuple[int, bytes]]:
    """Word-aligned (offset, bytes) patches turning ``old`` into ``new``."""
    patches = []
    pos = 0
    while pos < len(new):
        if new[pos : pos + 2] == old[pos : pos + 2]:
            pos += 2
            continue
        start = pos
        while pos < len(new) and new[pos : pos + 2] != old[pos : pos + 2] and (limit is None or pos - start < limit):
            pos += 2
        patches.append((start, bytes(new[start:pos])))
    return patches


def frame_record(patches: list[tuple[int, bytes]], version: int = 5) -> bytes:
    body = b""
    for offset, data in patches:
        if version < 4:
            body += bytes([len(data) // 2, offset // 2]) + data
        else:
            body += struct.pack(">hh", len(data), offset) + data
    return struct.pack(">h", len(body) + 2) + body


def frame_records(buffers: list[bytes], version: int = 5) -> list[bytes]:
    """Delta-encode full frame buffers against the frame before each."""
    records = []
    previous = bytes(len(buffers[0])) if buffers else b""
    for buffer in buffers:
        records.append(frame_record(diff_patches(previous, buffer, 510 if version < 4 else None), version))
        previous = buffer
    return records


def score(records: list[bytes], version: int = 5, frame_count: int | None = None, legacy: bool = False) -> bytes:
    stream = b"".join(records)
    if legacy:
        return u32(4 + len(stream)) + stream
    declared = len(records) if frame_count is None else frame_count
    header = struct.pack(">IIIhHHBB", 20 + len(stream), 20, declared, version, cell_size(version), 50, 0, 0)
    return header + stream
