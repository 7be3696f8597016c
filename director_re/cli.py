"""CLI entry point for director-re.

Usage:
    director-re detect <file>                   Identify the container encoding
    director-re list-resources <file>           List every indexed chunk
    director-re list-members <file>             List decodable cast members
    director-re get-member <file> <lib> <num>   Decode one cast member
    director-re get-config <file>               Decode the movie configuration
    director-re get-score <file>                Decode the score timeline

All output is JSON on stdout.  Decoding failures print a message on stderr
and exit with the error's code.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import click

from . import __version__
from .errors import DirectorError

DATA_DIR_ENV = "DIRECTOR_RE_DATA_DIR"


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging (default: info)")
def main(verbose: bool) -> None:
    """Macromedia Director container, cast and score decoder."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(name)s %(levelname)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit(obj: Any) -> None:
    out = json.dumps(obj, indent=2, ensure_ascii=False)
    sys.stdout.buffer.write(out.encode("utf-8"))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()


@contextmanager
def _director_errors() -> Iterator[None]:
    try:
        yield
    except DirectorError as e:
        click.echo(f"error: {e}", err=True)
        sys.exit(e.exit_code)


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {k: _to_json(v) for k, v in dataclasses.asdict(value).items()}
    if isinstance(value, (tuple, list)):
        return [_to_json(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _to_json(v) for k, v in value.items()}
    if isinstance(value, bytes):
        return value.hex()
    return value


def _data_dir(movie, data_dir: str | None) -> str | None:
    """Explicit data directory, else the projector's own directory."""
    from .director.chunks import MovieKind

    if data_dir:
        return data_dir
    if movie.path is not None and movie.descriptor.movie_kind == MovieKind.PROJECTOR:
        return str(movie.path.parent)
    return None


def _member_json(resolver, member) -> dict[str, Any]:
    return {
        "library": member.library,
        "number": member.number,
        "type": member.cast_type,
        "type_name": member.type_name,
        "name": member.name,
        "flags": member.flags,
        "properties": _to_json(member.properties),
        "payload_length": len(member.payload),
        "resource": list(member.resource) if member.resource else None,
        "linked_resources": [list(r) for r in resolver.linked_resources(member)],
    }


data_dir_option = click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    envvar=DATA_DIR_ENV,
    default=None,
    help=f"Directory holding external cast files (env: {DATA_DIR_ENV})",
)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def detect(file: str) -> None:
    """Identify a file's container encoding."""
    from .director.detector import detect as detect_container

    with _director_errors():
        desc = detect_container(Path(file).read_bytes())
    _emit(
        {
            "kind": desc.kind.value,
            "movie_kind": desc.movie_kind.value,
            "platform": desc.platform.value,
            "byte_order": desc.byte_order.value,
            "tag_byte_order": desc.tag_byte_order.value,
            "base_offset": desc.base_offset,
            "size": desc.size,
            "version": desc.version,
            "subtype": desc.subtype,
        }
    )


@main.command(name="list-resources")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def list_resources(file: str) -> None:
    """List every chunk in the resource index, by file offset."""
    from .director.movie import MovieFile

    with _director_errors(), MovieFile(file) as movie:
        entries = sorted(movie.index.items(), key=lambda item: (item[1].offset, item[0]))
        rows = [
            {
                "tag": tag,
                "id": id,
                "offset": loc.offset,
                "length": loc.length,
                "compressed": loc.compressed,
                "raw_tag": loc.raw_tag,
                "raw_id": loc.raw_id,
                "name": loc.name,
            }
            for (tag, id), loc in entries
        ]
    _emit(rows)


@main.command(name="list-members")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--library", type=int, default=None, help="Only this cast library")
@data_dir_option
def list_members(file: str, library: int | None, data_dir: str | None) -> None:
    """List all cast members, across every cast library."""
    from .director.movie import MovieFile

    with _director_errors(), MovieFile(file) as movie:
        resolver = movie.resolver(_data_dir(movie, data_dir))
        result = {
            "libraries": [_to_json(lib) | {"external": lib.external} for lib in resolver.libraries()],
            "members": [_member_json(resolver, m) for m in resolver.list_members(library)],
        }
    _emit(result)


@main.command(name="get-member")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.argument("library", type=int)
@click.argument("member", type=int)
@data_dir_option
def get_member(file: str, library: int, member: int, data_dir: str | None) -> None:
    """Decode cast member MEMBER of cast library LIBRARY."""
    from .director.movie import MovieFile

    with _director_errors(), MovieFile(file) as movie:
        resolver = movie.resolver(_data_dir(movie, data_dir))
        found = resolver.resolve_member(library, member)
        result = _member_json(resolver, found)
    _emit(result)


@main.command(name="get-config")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def get_config(file: str) -> None:
    """Decode the movie configuration (DRCF)."""
    from .director.movie import MovieFile

    with _director_errors(), MovieFile(file) as movie:
        config = movie.config
        if config is None:
            click.echo("error: file has no movie configuration", err=True)
            sys.exit(1)
        result = _to_json(config)
        result.update(
            major_version=config.major_version,
            release=config.release,
            stage_width=config.stage_width,
            stage_height=config.stage_height,
        )
    _emit(result)


def _parse_frames(value: str | None) -> tuple[int, int] | None:
    if value is None:
        return None
    try:
        if "-" in value:
            start, end = value.split("-", 1)
            return int(start), int(end)
        return int(value), int(value)
    except ValueError:
        raise click.BadParameter(f"expected A-B or N, got {value!r}", param_hint="--frames") from None


@main.command(name="get-score")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--id", "score_id", type=int, default=None, help="VWSC chunk id (default: lowest)")
@click.option("--frames", default=None, help="Frame range A-B (1-based, inclusive)")
@click.option("--fields", default=None, help="Comma-separated sprite fields to include")
def get_score(file: str, score_id: int | None, frames: str | None, fields: str | None) -> None:
    """Decode the score and print each frame's populated channels."""
    from .director.movie import MovieFile
    from .director.score import SPRITE_FIELDS

    frame_range = _parse_frames(frames)
    known = list(SPRITE_FIELDS)
    selected = known
    if fields:
        selected = [f.strip() for f in fields.split(",") if f.strip()]
        unknown = [f for f in selected if f not in known]
        if unknown:
            raise click.BadParameter(f"unknown fields {', '.join(unknown)}", param_hint="--fields")

    with _director_errors(), MovieFile(file) as movie:
        timeline = movie.score(score_id)
        if timeline is None:
            click.echo("error: file has no score", err=True)
            sys.exit(1)
        out_frames = []
        for frame in timeline:
            if frame_range and not frame_range[0] <= frame.number <= frame_range[1]:
                continue
            out_frames.append(
                {
                    "number": frame.number,
                    "tempo": frame.tempo,
                    "palette": _to_json(frame.palette),
                    "transition": frame.transition,
                    "transition_member": _to_json(frame.transition_member),
                    "sound1": _to_json(frame.sound1),
                    "sound2": _to_json(frame.sound2),
                    "script": _to_json(frame.script),
                    "channels": {
                        str(ch): {k: _to_json(v) for k, v in sprite.as_dict().items() if k in selected}
                        for ch, sprite in frame.populated.items()
                    },
                }
            )
        result = {
            "version": timeline.version,
            "channel_count": timeline.channel_count,
            "frame_count": len(timeline),
            "frames": out_frames,
        }
    _emit(result)


if __name__ == "__main__":
    main()
