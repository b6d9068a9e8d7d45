from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from .compatibility import Candidate, score
from .errors import InputError
from .preferences import PreferenceList, canonical_pair

logger = logging.getLogger(__name__)

_UNRANKED = 10**9

Preferences = Mapping[str, "PreferenceList | Sequence[str]"]


@dataclass(frozen=True)
class MatchPair:
    a_id: str
    b_id: str
    compatibility_score: int

    def as_dict(self) -> dict[str, Any]:
        return {"a_id": self.a_id, "b_id": self.b_id, "compatibility_score": self.compatibility_score}


def _ranked_ids(value: PreferenceList | Sequence[str]) -> list[str]:
    if isinstance(value, PreferenceList):
        return list(value.ranked_candidate_ids)
    return [str(v) for v in value]


def _rank_table(owner: str, ranked: list[str]) -> dict[str, int]:
    out: dict[str, int] = {}
    for i, cid in enumerate(ranked):
        if cid != owner:
            out.setdefault(cid, i)
    return out


def _blocking_pairs(
    prefs: dict[str, list[str]],
    rank: dict[str, dict[str, int]],
    matching: Mapping[str, str],
    first_only: bool = False,
) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    seen: set[tuple[str, str]] = set()
    for x in sorted(prefs):
        partner = matching.get(x)
        for y in prefs[x]:
            if y == partner:
                # Everyone after the current partner is less preferred.
                break
            if y == x:
                continue
            y_rank = rank.get(y)
            if not y_rank or x not in y_rank:
                continue
            y_partner = matching.get(y)
            if y_partner is not None and y_rank[x] >= y_rank.get(y_partner, _UNRANKED):
                continue
            pair = canonical_pair(x, y)
            if pair in seen:
                continue
            if first_only:
                return [pair]
            seen.add(pair)
            out.append(pair)
    return out


def find_blocking_pairs(preferences: Preferences, matching: Mapping[str, str]) -> list[tuple[str, str]]:
    """Return every pair that would rather be together than with their partners.

    A pair ``(x, y)`` blocks ``matching`` when each lists the other, they are
    not matched to each other, and each is either unmatched or ranks the other
    above its current partner. An empty result means the matching is stable.
    """
    prefs = {str(uid): _ranked_ids(v) for uid, v in preferences.items()}
    rank = {uid: _rank_table(uid, ranked) for uid, ranked in prefs.items()}
    return _blocking_pairs(prefs, rank, matching)


@dataclass
class MatchingSession:
    """Engagement state for one deferred-acceptance run.

    Every candidate proposes down its own list while also holding or
    rejecting proposals it receives.
    """

    preferences: dict[str, list[str]]
    rank: dict[str, dict[str, int]] = field(default_factory=dict)
    cursor: dict[str, int] = field(default_factory=dict)
    engaged_to: dict[str, str] = field(default_factory=dict)
    free: deque[str] = field(default_factory=deque)
    queued: set[str] = field(default_factory=set)
    proposals: int = 0
    repairs: int = 0

    @classmethod
    def start(cls, preferences: Preferences) -> "MatchingSession":
        prefs = {str(uid): _ranked_ids(v) for uid, v in preferences.items()}
        session = cls(preferences=prefs)
        for uid in sorted(prefs):
            session.rank[uid] = _rank_table(uid, prefs[uid])
            session.cursor[uid] = 0
            session._enqueue(uid)
        return session

    def _enqueue(self, uid: str) -> None:
        if uid not in self.queued:
            self.queued.add(uid)
            self.free.append(uid)

    def prefers(self, who: str, candidate: str, over: str | None) -> bool:
        ranks = self.rank.get(who) or {}
        if candidate not in ranks:
            return False
        if over is None:
            return True
        return ranks[candidate] < ranks.get(over, _UNRANKED)

    def _pair(self, a: str, b: str) -> list[str]:
        freed: list[str] = []
        for uid in (a, b):
            old = self.engaged_to.pop(uid, None)
            if old is not None and old not in (a, b):
                self.engaged_to.pop(old, None)
                freed.append(old)
        self.engaged_to[a] = b
        self.engaged_to[b] = a
        return freed

    def propose(self, p: str) -> None:
        ranked = self.preferences[p]
        r = ranked[self.cursor[p]]
        self.cursor[p] += 1
        self.proposals += 1

        if r == p or p not in (self.rank.get(r) or {}):
            self._enqueue(p)
            return

        current = self.engaged_to.get(r)
        if current is None or self.prefers(r, p, over=current):
            for uid in self._pair(p, r):
                self._enqueue(uid)
            return
        self._enqueue(p)

    def run(self) -> dict[str, str]:
        while self.free:
            p = self.free.popleft()
            self.queued.discard(p)
            if p in self.engaged_to:
                continue
            if self.cursor[p] >= len(self.preferences[p]):
                continue
            self.propose(p)

        self.resolve_blocking_pairs()
        return dict(self.engaged_to)

    def resolve_blocking_pairs(self) -> None:
        # A free candidate that accepts a proposal stops proposing, which can
        # leave it unmatched to someone both would prefer. Re-pair such pairs
        # until none remain; with score-derived lists each re-pairing strictly
        # improves the matching, so this terminates.
        limit = max(1, len(self.preferences)) ** 2
        for _ in range(limit):
            blocking = _blocking_pairs(self.preferences, self.rank, self.engaged_to, first_only=True)
            if not blocking:
                return
            x, y = blocking[0]
            self._pair(x, y)
            self.repairs += 1

        if _blocking_pairs(self.preferences, self.rank, self.engaged_to, first_only=True):
            logger.warning(
                "[MATCHING] blocking pairs remain after %s repairs; these preferences admit no stable matching",
                self.repairs,
            )


def stable_match(preferences: Preferences) -> dict[str, str]:
    """Run deferred acceptance with every candidate proposing and responding.

    Returns a symmetric engagement map: ``m[a] == b`` iff ``m[b] == a``.
    Candidates absent from the map end the run unmatched.
    """
    session = MatchingSession.start(preferences)
    engagements = session.run()
    logger.debug(
        "[MATCHING] %s candidates, %s proposals, %s repairs, %s pairs",
        len(session.preferences),
        session.proposals,
        session.repairs,
        len(engagements) // 2,
    )
    return engagements


def to_match_pairs(
    engagements: Mapping[str, str],
    pair_scores: Mapping[tuple[str, str], int] | None = None,
    pool: Iterable[Candidate] | None = None,
) -> list[MatchPair]:
    pair_scores = pair_scores or {}
    by_id = {c.id: c for c in (pool or [])}
    seen: set[tuple[str, str]] = set()
    pairs: list[MatchPair] = []

    for a, b in engagements.items():
        if engagements.get(b) != a:
            logger.warning("[MATCHING] dropping one-sided engagement %s -> %s", a, b)
            continue
        key = canonical_pair(a, b)
        if key in seen:
            continue
        seen.add(key)

        value = pair_scores.get(key)
        if value is None:
            if key[0] not in by_id or key[1] not in by_id:
                raise InputError(f"No compatibility score available for pair {key}")
            value = score(by_id[key[0]], by_id[key[1]])
        pairs.append(MatchPair(a_id=key[0], b_id=key[1], compatibility_score=int(value)))

    pairs.sort(key=lambda p: (-p.compatibility_score, p.a_id, p.b_id))
    return pairs
