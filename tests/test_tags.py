import pytest

from director_re.director.chunks import Platform
from director_re.director.tags import CANONICAL_TAGS, SYNONYM_RULES, normalize

ALL_RAW_TAGS = sorted(
    {rule.raw for rule in SYNONYM_RULES}
    | CANONICAL_TAGS
    | {tag[::-1] for tag in CANONICAL_TAGS}
    | {"Lscr", "BITD", "snd ", "XYZW", "PJ95"}
)


@pytest.mark.parametrize(
    "raw, platform, version, expected",
    [
        ("VWCF", Platform.MAC, 3, "DRCF"),
        ("VWCF", Platform.WINDOWS, 5, "DRCF"),
        ("VWCF", Platform.MAC, 6, "VWCF"),
        ("Lctx", Platform.MAC, 4, "LctX"),
        ("Lctx", Platform.MAC, 3, "Lctx"),
        ("clut", Platform.MAC, 3, "CLUT"),
        ("clut", Platform.WINDOWS, 3, "clut"),
        ("DIB ", Platform.WINDOWS, 3, "BITD"),
        ("DIB ", Platform.WINDOWS, 4, "DIB "),
        ("CAST", Platform.WINDOWS, 4, "CASt"),
        ("CAST", Platform.MAC, 4, "CAST"),
        ("MCSL", Platform.WINDOWS, 5, "MCsL"),
        ("VWsc", Platform.MAC, 3, "VWSC"),
        ("ZCMP", Platform.WINDOWS, 4, "Zcmp"),
        ("tFCS", Platform.WINDOWS, 4, "tFCS"),
        ("tSAC", Platform.WINDOWS, 6, "CASt"),
        ("tSAC", Platform.MAC, 6, "tSAC"),
        ("FCRD", Platform.WINDOWS, 5, "DRCF"),
    ],
)
def test_synonyms(raw, platform, version, expected):
    assert normalize(raw, platform, version) == expected


def test_unknown_tags_pass_through():
    assert normalize("XYZW", Platform.MAC, 4) == "XYZW"
    assert normalize("Lscr", Platform.WINDOWS, 5) == "Lscr"


@pytest.mark.parametrize("platform", list(Platform))
@pytest.mark.parametrize("version", [3, 4, 5, 6])
def test_normalize_is_idempotent(platform, version):
    for tag in ALL_RAW_TAGS:
        once = normalize(tag, platform, version)
        assert normalize(once, platform, version) == once, tag
