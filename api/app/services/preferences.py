from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .compatibility import Candidate, mutually_eligible, score
from .errors import InputError


@dataclass(frozen=True)
class PreferenceList:
    owner_id: str
    ranked_candidate_ids: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.ranked_candidate_ids)


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((user_a, user_b)))


def _ordered_pool(pool: Iterable[Candidate]) -> list[Candidate]:
    ordered = sorted(pool, key=lambda c: c.id)
    for prev, cur in zip(ordered, ordered[1:]):
        if prev.id == cur.id:
            raise InputError(f"Duplicate candidate id in pool: {cur.id}")
    return ordered


def score_eligible_pairs(pool: Iterable[Candidate]) -> dict[tuple[str, str], int]:
    """Score every mutually-eligible unordered pair exactly once.

    Keys are canonical (sorted) id tuples so both directions read the same
    value.
    """
    candidates = _ordered_pool(pool)
    scores: dict[tuple[str, str], int] = {}
    for i in range(len(candidates)):
        for j in range(i + 1, len(candidates)):
            u = candidates[i]
            v = candidates[j]
            if not mutually_eligible(u, v):
                continue
            scores[canonical_pair(u.id, v.id)] = score(u, v)
    return scores


def build_preference_lists(
    pool: Iterable[Candidate],
    pair_scores: dict[tuple[str, str], int] | None = None,
) -> dict[str, PreferenceList]:
    """Rank every mutually-eligible partner for each candidate in the pool.

    Lists are ordered by score descending with ties broken by ascending id,
    so the result does not depend on input order. ``pair_scores`` may be
    passed in to reuse scores already computed by :func:`score_eligible_pairs`.
    """
    candidates = _ordered_pool(pool)
    if pair_scores is None:
        pair_scores = score_eligible_pairs(candidates)

    by_id = {c.id: c for c in candidates}
    by_user: dict[str, list[tuple[str, int]]] = {c.id: [] for c in candidates}
    for (a_id, b_id), pair_score in pair_scores.items():
        if a_id not in by_id or b_id not in by_id or a_id == b_id:
            continue
        # Supplied scores do not imply eligibility.
        if not mutually_eligible(by_id[a_id], by_id[b_id]):
            continue
        by_user[a_id].append((b_id, pair_score))
        by_user[b_id].append((a_id, pair_score))

    prefs: dict[str, PreferenceList] = {}
    for uid, vals in by_user.items():
        vals.sort(key=lambda x: (-x[1], x[0]))
        prefs[uid] = PreferenceList(owner_id=uid, ranked_candidate_ids=tuple(v for v, _ in vals))
    return prefs
