"""Carpet pattern families and the reference descriptor tag table."""

import re
from enum import Enum


class PatternFamily(str, Enum):
    """Coarse carpet-pattern classification."""

    GEOMETRIC = "geometric"
    ORNAMENTAL = "ornamental"
    PLAIN = "plain"
    MIXED = "mixed"


UNKNOWN_TAG = "unknown"

# Families that carry visible structure; plain is the only "simple" family.
COMPLEX_FAMILIES = frozenset(
    {PatternFamily.GEOMETRIC, PatternFamily.ORNAMENTAL, PatternFamily.MIXED}
)

# Closed table of descriptor tokens, matched against whole tokens only
DESCRIPTOR_TAGS: dict[str, PatternFamily] = {
    "geometric": PatternFamily.GEOMETRIC,
    "square": PatternFamily.GEOMETRIC,
    "squares": PatternFamily.GEOMETRIC,
    "diamond": PatternFamily.GEOMETRIC,
    "diamonds": PatternFamily.GEOMETRIC,
    "hexagonal": PatternFamily.GEOMETRIC,
    "triangular": PatternFamily.GEOMETRIC,
    "stripe": PatternFamily.GEOMETRIC,
    "stripes": PatternFamily.GEOMETRIC,
    "check": PatternFamily.GEOMETRIC,
    "ornamental": PatternFamily.ORNAMENTAL,
    "floral": PatternFamily.ORNAMENTAL,
    "leaf": PatternFamily.ORNAMENTAL,
    "vine": PatternFamily.ORNAMENTAL,
    "botanical": PatternFamily.ORNAMENTAL,
    "paisley": PatternFamily.ORNAMENTAL,
    "scroll": PatternFamily.ORNAMENTAL,
    "mixed": PatternFamily.MIXED,
    "complex": PatternFamily.MIXED,
    "intricate": PatternFamily.MIXED,
    "patchwork": PatternFamily.MIXED,
    "plain": PatternFamily.PLAIN,
    "solid": PatternFamily.PLAIN,
    "uniform": PatternFamily.PLAIN,
    "simple": PatternFamily.PLAIN,
}

_TOKEN_RE = re.compile(r"[a-z]+")


def parse_descriptor(text: str) -> tuple[PatternFamily, str]:
    """Resolve a reference pattern descriptor to a family and the tag that matched.

    The descriptor is lower-cased and split on anything that is not a letter, so
    ``"floral/leaf"`` yields the tokens ``floral`` and ``leaf``. The first token
    present in :data:`DESCRIPTOR_TAGS` decides the family.

    Args:
        text: Free-text or tag descriptor, e.g. ``"geometric squares"``.

    Returns:
        ``(family, tag)``. Unrecognized descriptors resolve to
        ``(PatternFamily.MIXED, "unknown")``.
    """
    for token in _TOKEN_RE.findall(text.lower()):
        family = DESCRIPTOR_TAGS.get(token)
        if family is not None:
            return family, token
    return PatternFamily.MIXED, UNKNOWN_TAG
