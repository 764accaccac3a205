"""Duplicate detection for accounts: normalization, scoring and grouping."""

from __future__ import annotations

from .grouping import SimilarityGroup, find_similar_accounts, group
from .normalize import normalize_address, normalize_group_key, normalize_name, normalize_text
from .records import AccountRecord, AddressRecord
from .similarity import MATCH_MODES, account_score, score

__all__ = [
    "AccountRecord",
    "AddressRecord",
    "MATCH_MODES",
    "SimilarityGroup",
    "account_score",
    "find_similar_accounts",
    "group",
    "normalize_address",
    "normalize_group_key",
    "normalize_name",
    "normalize_text",
    "score",
]
