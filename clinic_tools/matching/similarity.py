from __future__ import annotations

from rapidfuzz.distance import Levenshtein

from clinic_tools.matching.normalize import normalize_text
from clinic_tools.matching.records import AccountRecord

# Blend weights; the blended score is floored by the raw edit similarity so a
# pure misspelling (no shared tokens) still scores high.
TOKEN_WEIGHT = 0.6
EDIT_WEIGHT = 0.4

MATCH_MODES: tuple[str, ...] = ("name", "address", "both")


def _clamp(value: float) -> float:
    return float(max(0.0, min(1.0, value)))


def token_overlap(a: str, b: str) -> float:
    """Overlap coefficient of the two token sets (0..1); order insensitive."""

    tokens_a = set(normalize_text(a).split())
    tokens_b = set(normalize_text(b).split())
    if not tokens_a or not tokens_b:
        return 0.0
    shared = len(tokens_a & tokens_b)
    return _clamp(shared / min(len(tokens_a), len(tokens_b)))


def edit_similarity(a: str, b: str) -> float:
    """Return ``1 - levenshtein / max_len`` on case-folded input (0..1)."""

    text_a = normalize_text(a)
    text_b = normalize_text(b)
    if not text_a and not text_b:
        return 1.0
    if not text_a or not text_b:
        return 0.0
    return _clamp(Levenshtein.normalized_similarity(text_a, text_b))


def score(a: str | None, b: str | None) -> float:
    """
    Symmetric similarity between two normalized strings (0..1).

    ``score("", "") == 1``; ``score(x, "") == 0`` for non-empty ``x``;
    ``score(x, x) == 1``.
    """

    text_a = normalize_text(a)
    text_b = normalize_text(b)
    if not text_a and not text_b:
        return 1.0
    if not text_a or not text_b:
        return 0.0
    if text_a == text_b:
        return 1.0

    edit = edit_similarity(text_a, text_b)
    blended = TOKEN_WEIGHT * token_overlap(text_a, text_b) + EDIT_WEIGHT * edit
    return _clamp(max(edit, blended))


def account_name_score(first: AccountRecord, second: AccountRecord) -> float:
    return score(first.normalized_name, second.normalized_name)


def account_address_score(first: AccountRecord, second: AccountRecord) -> float:
    return score(first.normalized_address, second.normalized_address)


def account_score(first: AccountRecord, second: AccountRecord, mode: str) -> float:
    """
    Score two accounts under ``mode``.

    ``both`` averages the name and address scores; when either side has no
    address the pair is scored on name alone.
    """

    if mode == "name":
        return account_name_score(first, second)
    if mode == "address":
        return account_address_score(first, second)
    if mode == "both":
        name_score = account_name_score(first, second)
        if not (first.has_address and second.has_address):
            return name_score
        return _clamp((name_score + account_address_score(first, second)) / 2.0)
    raise ValueError(f"Unsupported match mode: {mode!r}")


__all__ = [
    "TOKEN_WEIGHT",
    "EDIT_WEIGHT",
    "MATCH_MODES",
    "token_overlap",
    "edit_similarity",
    "score",
    "account_name_score",
    "account_address_score",
    "account_score",
]
