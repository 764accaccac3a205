"""
Canonical forms of account names and addresses used for duplicate scoring.

Only the normalized copies are compared; display strings are never mutated.
"""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")
_APOSTROPHE_RE = re.compile(r"[‘’ʼ`]")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_BUSINESS_SUFFIX_RE = re.compile(r"\b(inc|llc|ltd|corp|corporation|company|co)\b\.?")

# Longer phrases first so "fertility center" is removed before "fertility"
NOISE_PHRASES: tuple[str, ...] = (
    "fertility center",
    "fertility clinic",
    "fertility care",
    "reproductive health",
    "reproductive medicine",
    "reproductive center",
    "women's center",
    "women's",
    "for women",
    "medical group",
    "associates",
    "fertility",
    "medical",
    "group",
    "clinic",
    "center",
    "ob/gyn",
    "obgyn",
    "m.d.",
    "md",
    "the",
)

_NOISE_RES = tuple(
    re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)") for phrase in NOISE_PHRASES
)

STREET_ABBREVIATIONS: dict[str, str] = {
    "street": "st",
    "avenue": "ave",
    "suite": "ste",
    "drive": "dr",
    "boulevard": "blvd",
    "road": "rd",
    "lane": "ln",
    "parkway": "pkwy",
    "highway": "hwy",
    "court": "ct",
    "place": "pl",
    "north": "n",
    "south": "s",
    "east": "e",
    "west": "w",
}

_STREET_RE = re.compile(r"\b(" + "|".join(STREET_ABBREVIATIONS) + r")\b")
_ADDRESS_PUNCTUATION_RE = re.compile(r"[.,#]")


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(value: object | None) -> str:
    """Lower-case, trim, fold curly apostrophes and collapse whitespace."""

    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    text = _APOSTROPHE_RE.sub("'", text.lower())
    return _collapse(text)


def _strip_punctuation(text: str) -> str:
    return _collapse(_PUNCTUATION_RE.sub(" ", text.replace("'", "")))


def normalize_name(value: object | None) -> str:
    """
    Normalize an organization name for comparison.

    Business suffixes and industry noise words ("fertility center", "clinic",
    "the", ...) are removed. When nothing distinctive survives, the
    punctuation-free full name is returned instead so that two different
    all-noise names do not collapse onto the same empty key.
    """

    text = normalize_text(value)
    if not text:
        return ""

    stripped = _BUSINESS_SUFFIX_RE.sub(" ", text)
    for pattern in _NOISE_RES:
        stripped = pattern.sub(" ", stripped)
    stripped = _strip_punctuation(stripped)
    if stripped:
        return stripped
    return _strip_punctuation(text)


def _normalize_street(value: object | None) -> str:
    text = normalize_text(value)
    if not text:
        return ""
    text = _ADDRESS_PUNCTUATION_RE.sub("", text)
    text = _STREET_RE.sub(lambda match: STREET_ABBREVIATIONS[match.group(1)], text)
    return _collapse(text)


def normalize_zip(value: object | None) -> str:
    """Reduce a ZIP/postal code to its first five digits (or the trimmed text if it has none)."""

    text = normalize_text(value)
    digits = "".join(ch for ch in text if ch.isdigit())
    if digits:
        return digits[:5]
    return _strip_punctuation(text)


def normalize_address(
    line1: object | None = None,
    line2: object | None = None,
    city: object | None = None,
    state: object | None = None,
    zip_code: object | None = None,
) -> str:
    """Join the non-empty normalized address parts into one comparison string."""

    parts = [
        _normalize_street(line1),
        _normalize_street(line2),
        _strip_punctuation(normalize_text(city)),
        _strip_punctuation(normalize_text(state)),
        normalize_zip(zip_code),
    ]
    return " ".join(part for part in parts if part)


def normalize_group_key(value: object | None) -> str:
    """Exact-match grouping key: trim and case-fold only."""

    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    return text.strip().casefold()


__all__ = [
    "NOISE_PHRASES",
    "STREET_ABBREVIATIONS",
    "normalize_text",
    "normalize_name",
    "normalize_address",
    "normalize_zip",
    "normalize_group_key",
]
