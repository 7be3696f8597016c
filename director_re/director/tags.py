"""Tag synonym table.

Different Director versions and platforms spell the same logical chunk
with different FourCCs.  ``normalize`` maps a stored tag to its canonical
spelling so the resource index can be keyed uniformly.

Rules (raw -> canonical, platform, versions):

    VWCF -> DRCF   any       3-5   movie configuration
    Lctx -> LctX   any       4-5   script context
    clut -> CLUT   Mac       3-4   palette
    DIB  -> BITD   Windows   3     bitmap data
    CAST -> CASt   Windows   3-4   cast member record
    MCSL -> MCsL   Windows   4-5   cast library table
    VWsc -> VWSC   Mac       3     score
    ZCMP -> Zcmp   any       3-4   compressed wrapper

On Windows the byte-reversed spelling of any canonical tag also maps to
that tag.  Unknown tags pass through unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass

from .chunks import Platform


@dataclass(frozen=True)
class SynonymRule:
    raw: str
    canonical: str
    platform: Platform | None  # None: any platform
    min_version: int
    max_version: int

    def applies(self, platform: Platform, version: int) -> bool:
        if self.platform is not None and self.platform != platform:
            return False
        return self.min_version <= version <= self.max_version


SYNONYM_RULES: tuple[SynonymRule, ...] = (
    SynonymRule("VWCF", "DRCF", None, 3, 5),
    SynonymRule("Lctx", "LctX", None, 4, 5),
    SynonymRule("clut", "CLUT", Platform.MAC, 3, 4),
    SynonymRule("DIB ", "BITD", Platform.WINDOWS, 3, 3),
    SynonymRule("CAST", "CASt", Platform.WINDOWS, 3, 4),
    SynonymRule("MCSL", "MCsL", Platform.WINDOWS, 4, 5),
    SynonymRule("VWsc", "VWSC", Platform.MAC, 3, 3),
    SynonymRule("ZCMP", "Zcmp", None, 3, 4),
)

CANONICAL_TAGS: frozenset[str] = frozenset(rule.canonical for rule in SYNONYM_RULES)

_REVERSED = {tag[::-1]: tag for tag in CANONICAL_TAGS if tag[::-1] != tag}


def normalize(raw_tag: str, platform: Platform, version: int) -> str:
    """Return the canonical spelling of ``raw_tag``.

    Pure and idempotent: ``normalize(normalize(t)) == normalize(t)``.
    """
    if raw_tag in CANONICAL_TAGS:
        return raw_tag
    for rule in SYNONYM_RULES:
        if rule.raw == raw_tag and rule.applies(platform, version):
            return rule.canonical
    if platform == Platform.WINDOWS and raw_tag in _REVERSED:
        return _REVERSED[raw_tag]
    return raw_tag
