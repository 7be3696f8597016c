"""Movie configuration (DRCF / VWCF) decoder.

Big-endian, grows with the config version:

    all      own size u16 | version u16 | stage rect 4 x i16
             min cast i16 | max cast i16 | legacy tempo u8
             legacy black background u8 | 8 reserved
    >= 1025  stage colour u16 | colour depth u16 | 6 reserved
             original version u16 | max cast colour depth u16 | flags u32
             10 reserved | tempo u16 | platform u16
    >= 1113  6 reserved | checksum u32
    >= 1114  2 reserved
    >= 1115  2 reserved | max cast resource u32
    palette  (lib i16, num i16) from 1201, u32 member from 1115
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import OutOfBounds, TruncatedRecord
from .chunks import release_name
from .reader import BinaryReader

log = logging.getLogger(__name__)

CONFIG_PLATFORMS = {0: "unknown", 1: "mac", 2: "windows"}


@dataclass(frozen=True)
class Config:
    """Decoded movie configuration."""

    own_size: int
    version: int
    stage_rect: tuple[int, int, int, int]  # top, left, bottom, right
    min_member: int
    max_member: int
    legacy_tempo: int
    legacy_black_background: bool
    stage_color: int = 0
    color_depth: int = 0
    original_version: int = 0
    max_cast_color_depth: int = 0
    flags: int = 0
    tempo: int = 0
    platform: int = 0
    checksum: int = 0
    max_cast_resource: int = 0
    default_palette: tuple[int, int] | int | None = None

    @property
    def major_version(self) -> int:
        """Director release implied by the config version."""
        return major_version(self.version)

    @property
    def release(self) -> str:
        return release_name(self.version)

    @property
    def stage_width(self) -> int:
        return self.stage_rect[3] - self.stage_rect[1]

    @property
    def stage_height(self) -> int:
        return self.stage_rect[2] - self.stage_rect[0]

    @property
    def platform_name(self) -> str:
        return CONFIG_PLATFORMS.get(self.platform, f"unknown({self.platform})")


def major_version(version: int) -> int:
    if version < 1113:
        return 3
    if version < 1201:
        return 4
    if version < 1214:
        return 5
    return 6


def peek_version(data: bytes) -> int | None:
    """Config version field alone, or None when the payload is too short."""
    if len(data) < 4:
        return None
    return BinaryReader(data, start=2).read_uint16()


def parse_config(data: bytes) -> Config:
    """Decode a DRCF payload; raises ``TruncatedRecord`` when it is short."""
    try:
        return _parse_config(BinaryReader(data), len(data))
    except OutOfBounds as e:
        raise TruncatedRecord(f"Movie config truncated: {e}") from e


def _parse_config(r: BinaryReader, size: int) -> Config:
    own_size = r.read_uint16()
    if own_size != size:
        log.warning("Config declares %d bytes, payload is %d", own_size, size)
    version = r.read_uint16()
    rect = (r.read_int16(), r.read_int16(), r.read_int16(), r.read_int16())
    min_member = r.read_int16()
    max_member = r.read_int16()
    legacy_tempo = r.read_uint8()
    legacy_black = r.read_uint8() != 0
    r.skip(8)

    fields: dict = {}
    if version >= 1025:
        fields["stage_color"] = r.read_uint16()
        fields["color_depth"] = r.read_uint16()
        r.skip(6)
        fields["original_version"] = r.read_uint16()
        fields["max_cast_color_depth"] = r.read_uint16()
        fields["flags"] = r.read_uint32()
        r.skip(10)
        fields["tempo"] = r.read_uint16()
        fields["platform"] = r.read_uint16()
    if version >= 1113:
        r.skip(6)
        fields["checksum"] = r.read_uint32()
    if version >= 1114:
        r.skip(2)
    if version >= 1115:
        r.skip(2)
        fields["max_cast_resource"] = r.read_uint32()
    if version >= 1201:
        fields["default_palette"] = (r.read_int16(), r.read_int16())
    elif version >= 1115:
        fields["default_palette"] = r.read_uint32()

    config = Config(
        own_size=own_size,
        version=version,
        stage_rect=rect,
        min_member=min_member,
        max_member=max_member,
        legacy_tempo=legacy_tempo,
        legacy_black_background=legacy_black,
        **fields,
    )
    log.debug(
        "Config v%d (Director %s): stage=%dx%d cast=%d..%d",
        version,
        config.release,
        config.stage_width,
        config.stage_height,
        min_member,
        max_member,
    )
    return config
