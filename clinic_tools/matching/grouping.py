"""
Duplicate grouping for single-location accounts.

Pairs scoring at or above ``min_score`` become edges of a networkx graph and
groups are its connected components (single-link clustering), so A~B and B~C
put A, B and C together even when A and C alone score lower. The reported
group score is the minimum over *all* member pairs, which surfaces such weak
links to the operator who makes the final merge decision.

Pairwise comparison is O(N^2); account volumes are in the low thousands.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from itertools import combinations
from typing import Iterable, Sequence

import networkx as nx
from sqlalchemy.orm import Session, selectinload

from clinic_tools.errors import ValidationError
from clinic_tools.matching.records import AccountRecord
from clinic_tools.matching.similarity import MATCH_MODES, account_score
from clinic_tools.models import Account, AccountStatus, AccountType

logger = logging.getLogger(__name__)


@dataclass
class SimilarityGroup:
    """Candidate duplicate accounts; computed per search and never persisted."""

    key: str
    name: str
    score: float
    match_type: str
    accounts: list[AccountRecord] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.accounts)

    @property
    def account_ids(self) -> list[str]:
        return [account.id for account in self.accounts]

    def as_dict(self) -> dict[str, object]:
        return {
            "key": self.key,
            "name": self.name,
            "similarityScore": round(self.score, 3),
            "matchType": self.match_type,
            "accounts": [account.as_dict() for account in self.accounts],
        }


def _validate(mode: str, min_score: float) -> None:
    if mode not in MATCH_MODES:
        raise ValidationError(f"Unsupported match mode '{mode}'. Expected one of: {', '.join(MATCH_MODES)}.")
    if not isinstance(min_score, (int, float)) or not 0.0 <= float(min_score) <= 1.0:
        raise ValidationError(f"min_score must be between 0 and 1 (got {min_score!r}).")


def _eligible(account: AccountRecord, mode: str) -> bool:
    if not account.is_single_location:
        return False
    if mode == "address":
        return account.has_address
    return bool(account.normalized_name)


def representative(accounts: Sequence[AccountRecord]) -> tuple[str, str]:
    """
    Pick ``(key, display_name)`` for a group.

    The key is the most frequent normalized name; ties go to the key whose
    shortest original display name is shortest, then alphabetical order.
    """

    counts = Counter(account.normalized_name for account in accounts)
    shortest: dict[str, str] = {}
    for account in accounts:
        current = shortest.get(account.normalized_name)
        candidate = account.name.strip()
        if current is None or (len(candidate), candidate) < (len(current), current):
            shortest[account.normalized_name] = candidate

    key = min(counts, key=lambda item: (-counts[item], len(shortest[item]), shortest[item], item))
    return key, shortest[key]


def group(
    accounts: Iterable[AccountRecord],
    mode: str = "name",
    min_score: float = 0.7,
) -> list[SimilarityGroup]:
    """Cluster single-location accounts into groups of likely duplicates."""

    _validate(mode, min_score)
    candidates = [account for account in accounts if _eligible(account, mode)]
    threshold = float(min_score)

    pair_scores: dict[tuple[int, int], float] = {}
    graph = nx.Graph()
    graph.add_nodes_from(range(len(candidates)))
    for left, right in combinations(range(len(candidates)), 2):
        score = account_score(candidates[left], candidates[right], mode)
        pair_scores[(left, right)] = score
        if score >= threshold:
            graph.add_edge(left, right)

    groups: list[SimilarityGroup] = []
    for component in sorted(nx.connected_components(graph), key=min):
        if len(component) < 2:
            continue
        indexes = sorted(component)
        group_accounts = [candidates[index] for index in indexes]
        min_pair = min(pair_scores[pair] for pair in combinations(indexes, 2))
        key, name = representative(group_accounts)
        groups.append(
            SimilarityGroup(key=key, name=name, score=min_pair, match_type=mode, accounts=group_accounts)
        )

    groups.sort(key=lambda item: (-item.score, -item.size, item.key))
    logger.debug(
        "Grouped %s candidate accounts into %s duplicate groups (mode=%s, min_score=%.2f)",
        len(candidates),
        len(groups),
        mode,
        threshold,
    )
    return groups


def find_similar_accounts(session: Session, *, mode: str = "name", min_score: float = 0.7) -> list[SimilarityGroup]:
    """Load active single-location accounts from the store and group them."""

    _validate(mode, min_score)
    rows = (
        session.query(Account)
        .options(selectinload(Account.locations))
        .filter(
            Account.account_type == AccountType.SINGLE_LOCATION,
            Account.status == AccountStatus.ACTIVE,
        )
        .order_by(Account.name, Account.id)
        .all()
    )
    records = [AccountRecord.from_model(row) for row in rows]
    groups = group(records, mode=mode, min_score=min_score)
    logger.info(
        "Similar account search: %s accounts scanned, %s groups found (mode=%s, min_score=%.2f)",
        len(records),
        len(groups),
        mode,
        float(min_score),
    )
    return groups


__all__ = ["SimilarityGroup", "group", "representative", "find_similar_accounts"]
