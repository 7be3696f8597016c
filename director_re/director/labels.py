"""VWLB (frame labels) decoder.

Labels name score frames for navigation (``go to frame "start"``).

    count u16
    count x (frame u16, name offset u16)
    string table: Pascal strings, offsets relative to the table start
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import OutOfBounds, TruncatedRecord
from .reader import BinaryReader

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameLabel:
    frame: int
    name: str


def parse_vwlb(data: bytes, encoding: str = "mac_roman") -> list[FrameLabel]:
    """Decode a VWLB payload, ordered by frame number.

    Raises ``TruncatedRecord`` when an entry or a name runs past the data.
    """
    r = BinaryReader(data)
    try:
        count = r.read_uint16()
        entries = [(r.read_uint16(), r.read_uint16()) for _ in range(count)]
        table = r.pos
        labels = []
        for frame, name_offset in entries:
            r.seek(table + name_offset)
            labels.append(FrameLabel(frame=frame, name=r.read_pascal_string(encoding)))
    except OutOfBounds as e:
        raise TruncatedRecord(f"Frame label table truncated: {e}") from e

    labels.sort(key=lambda label: label.frame)
    log.debug("Parsed %d frame labels", len(labels))
    return labels
