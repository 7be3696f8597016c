"""Macromedia Director 3-6 container, cast and score decoder."""

from .chunks import ByteOrder, CastType, ChunkType, ContainerKind, MovieKind, Platform
from .detector import ContainerDescriptor, detect
from .resource_index import ChunkLocation, ResourceIndex, build_index
from .compression import compress, decompress
from .tags import normalize
from .movie import KeyEntry, MovieFile
from .config import Config, parse_config
from .cast_types import (
    decode_member,
    CastMember,
    BitmapInfo,
    FilmLoopInfo,
    TextInfo,
    ButtonInfo,
    PictureInfo,
    SoundInfo,
    ScriptInfo,
    ShapeInfo,
    DigitalVideoInfo,
    TransitionInfo,
    ShapeType,
    TRANSITION_NAMES,
)
from .external_casts import (
    CastLibrary,
    CastResolver,
    DataDirectory,
    FileSystemDataDirectory,
    MemoryDataDirectory,
)
from .score import ScoreFrame, ScoreTimeline, SpriteState, decode_score
from .labels import FrameLabel, parse_vwlb

__all__ = [
    "ByteOrder",
    "CastType",
    "ChunkType",
    "ContainerKind",
    "MovieKind",
    "Platform",
    "ContainerDescriptor",
    "detect",
    "ChunkLocation",
    "ResourceIndex",
    "build_index",
    "compress",
    "decompress",
    "normalize",
    "KeyEntry",
    "MovieFile",
    "Config",
    "parse_config",
    "decode_member",
    "CastMember",
    "BitmapInfo",
    "FilmLoopInfo",
    "TextInfo",
    "ButtonInfo",
    "PictureInfo",
    "SoundInfo",
    "ScriptInfo",
    "ShapeInfo",
    "DigitalVideoInfo",
    "TransitionInfo",
    "ShapeType",
    "TRANSITION_NAMES",
    "CastLibrary",
    "CastResolver",
    "DataDirectory",
    "FileSystemDataDirectory",
    "MemoryDataDirectory",
    "ScoreFrame",
    "ScoreTimeline",
    "SpriteState",
    "decode_score",
    "FrameLabel",
    "parse_vwlb",
]
