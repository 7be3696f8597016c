import pytest

from builders import cftc_container, container, projector, resource_fork
from director_re.director.chunks import ByteOrder, ContainerKind, MovieKind, Platform
from director_re.director.detector import detect, match_container
from director_re.errors import DetectionFailed


def test_rifx_movie_is_big_endian_mac():
    desc = detect(container([("DRCF", b"\0" * 4)]))
    assert desc.kind == ContainerKind.CHUNK_CONTAINER
    assert desc.byte_order == ByteOrder.BIG
    assert desc.tag_byte_order == ByteOrder.BIG
    assert desc.platform == Platform.MAC
    assert desc.movie_kind == MovieKind.MOVIE
    assert desc.base_offset == 0
    assert desc.subtype == "MV93"


def test_xfir_cast_is_little_endian_windows():
    desc = detect(container([("CASt", b"\0" * 4)], little=True, subtype="MC95"))
    assert desc.byte_order == ByteOrder.LITTLE
    assert desc.tag_byte_order == ByteOrder.LITTLE
    assert desc.platform == Platform.WINDOWS
    assert desc.movie_kind == MovieKind.CAST
    assert desc.subtype == "MC95"


def test_embedded_container_subtype():
    desc = detect(container([], subtype="APPL"))
    assert desc.movie_kind == MovieKind.EMBEDDED


def test_riff_rmmp_size_excludes_header():
    data = cftc_container([("VWCF", 1, "", b"\0" * 4)])
    desc = detect(data)
    assert desc.byte_order == ByteOrder.LITTLE
    assert desc.tag_byte_order == ByteOrder.BIG
    assert desc.version == 3
    assert desc.end == len(data)


def test_classic_resource_fork():
    desc = detect(resource_fork([("CASt", 1, b"abcd")]))
    assert desc.kind == ContainerKind.CLASSIC_RESOURCE_FORK
    assert desc.platform == Platform.MAC
    assert desc.version == 3
    assert desc.byte_order == ByteOrder.BIG


def test_projector_trailer():
    movie = container([("DRCF", b"\0" * 4)])
    data = projector(movie, trailer=True)
    desc = detect(data)
    assert desc.movie_kind == MovieKind.PROJECTOR
    assert desc.platform == Platform.WINDOWS
    assert data[desc.base_offset : desc.base_offset + 4] == b"RIFX"


def test_projector_scan_skips_decoy_magic():
    movie = container([("DRCF", b"\0" * 4)], little=True)
    data = projector(movie, trailer=False, decoy=True)
    desc = detect(data)
    assert desc.movie_kind == MovieKind.PROJECTOR
    assert desc.byte_order == ByteOrder.LITTLE
    assert data[desc.base_offset : desc.base_offset + 12] == movie[:12]


def test_projector_without_pe_header_scans_from_start():
    movie = container([("DRCF", b"\0" * 4)])
    data = projector(movie, trailer=False, pe=False)
    desc = detect(data)
    assert desc.base_offset == len(data) - len(movie)


def test_match_container_rejects_unknown_subtype():
    assert match_container(b"RIFX\0\0\0\x04JUNK", 0) is None


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"hello world, not a movie at all",
        b"\0" * 64,
        b"MZ" + b"\0" * 100,
        b"FFIR\x04\0\0\0MV93",
    ],
)
def test_unrecognised_streams_fail(data):
    with pytest.raises(DetectionFailed) as excinfo:
        detect(data)
    assert excinfo.value.searched_length == len(data)
    assert excinfo.value.exit_code == 2


def test_implausible_resource_fork_header_fails():
    # Data area overlaps the map
    data = bytearray(resource_fork([("CASt", 1, b"abcd")]))
    data[4:8] = (8).to_bytes(4, "big")
    with pytest.raises(DetectionFailed):
        detect(bytes(data))
