from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..config import MATCH_POOL_CAP
from .compatibility import Candidate, compute_compatibility
from .errors import InputError, NotFoundError, PersistenceConflict, UpstreamStoreError
from .matching import MatchPair, stable_match, to_match_pairs
from .preferences import build_preference_lists, score_eligible_pairs
from .stores import MatchStore, ProfileStore

logger = logging.getLogger(__name__)

INSUFFICIENT_POOL_MESSAGE = "Not enough users for matching"


@dataclass
class RunMatchingResult:
    pool_size: int
    discovered: list[MatchPair] = field(default_factory=list)
    created: list[MatchPair] = field(default_factory=list)
    skipped_existing: list[MatchPair] = field(default_factory=list)
    failed: list[MatchPair] = field(default_factory=list)
    cohorts: int = 0
    insufficient_pool: bool = False
    dry_run: bool = False
    message: str = ""

    def summary(self) -> dict[str, Any]:
        return {
            "pool_size": self.pool_size,
            "cohorts": self.cohorts,
            "discovered_pairs": len(self.discovered),
            "created_pairs": len(self.created),
            "skipped_existing": len(self.skipped_existing),
            "failed_pairs": len(self.failed),
            "insufficient_pool": self.insufficient_pool,
            "dry_run": self.dry_run,
        }


def _require_id(value: Any, name: str) -> str:
    v = str(value or "").strip()
    if not v:
        raise InputError(f"{name} is required")
    return v


def split_into_cohorts(pool: list[Candidate], cap: int | None) -> list[list[Candidate]]:
    ordered = sorted(pool, key=lambda c: c.id)
    seen: set[str] = set()
    for c in ordered:
        if c.id in seen:
            raise InputError(f"Duplicate candidate id in pool: {c.id}")
        seen.add(c.id)
    if not cap or cap <= 0 or len(ordered) <= cap:
        return [ordered]
    return [ordered[i : i + cap] for i in range(0, len(ordered), cap)]


def discover_pairs(pool: list[Candidate]) -> list[MatchPair]:
    """Score, rank and stably match one cohort."""
    pair_scores = score_eligible_pairs(pool)
    preferences = build_preference_lists(pool, pair_scores)
    engagements = stable_match(preferences)
    return to_match_pairs(engagements, pair_scores)


def run_matching(
    profile_store: ProfileStore,
    match_store: MatchStore,
    *,
    pool_cap: int | None = None,
    persist: bool = True,
) -> RunMatchingResult:
    pool = profile_store.list_dating_eligible()
    if len(pool) < 2:
        logger.info("[MATCHING] %s eligible profiles, nothing to match", len(pool))
        return RunMatchingResult(pool_size=len(pool), insufficient_pool=True, dry_run=not persist, message=INSUFFICIENT_POOL_MESSAGE)

    cap = MATCH_POOL_CAP if pool_cap is None else pool_cap
    cohorts = split_into_cohorts(pool, cap)
    if len(cohorts) > 1:
        logger.warning("[MATCHING] pool of %s exceeds cap %s, matching %s cohorts independently", len(pool), cap, len(cohorts))
    logger.info("[MATCHING] processing %s profiles", len(pool))

    result = RunMatchingResult(pool_size=len(pool), cohorts=len(cohorts), dry_run=not persist)
    for cohort in cohorts:
        result.discovered.extend(discover_pairs(cohort))
    logger.info("[MATCHING] generated %s stable matches", len(result.discovered))

    if not persist:
        result.message = f"Dry run: found {len(result.discovered)} stable matches"
        return result

    # Loaded before any write so a store failure here leaves nothing half-persisted.
    existing = match_store.existing_pairs()

    for pair in result.discovered:
        key = (pair.a_id, pair.b_id)
        if key in existing:
            logger.info("[MATCHING] match already exists for %s <-> %s", pair.a_id, pair.b_id)
            result.skipped_existing.append(pair)
            continue
        try:
            match_store.insert_match_pair(pair)
        except PersistenceConflict:
            logger.info("[MATCHING] match recorded concurrently for %s <-> %s", pair.a_id, pair.b_id)
            result.skipped_existing.append(pair)
            continue
        except UpstreamStoreError as exc:
            logger.error("[MATCHING] failed to persist %s <-> %s: %s", pair.a_id, pair.b_id, exc)
            result.failed.append(pair)
            continue
        existing.add(key)
        result.created.append(pair)

    result.message = f"Created {len(result.created)} stable matches"
    if result.failed:
        result.message += f" ({len(result.failed)} failed, safe to re-run)"
    return result


def get_user_matches(profile_store: ProfileStore, match_store: MatchStore, user_id: Any) -> list[dict[str, Any]]:
    user_id = _require_id(user_id, "userId")
    rows = match_store.list_user_matches(user_id)
    profiles = profile_store.get_public_profiles(str(r["liked_user_id"]) for r in rows)
    return [{**row, "matched_profile": profiles.get(str(row["liked_user_id"]))} for row in rows]


def get_compatibility(profile_store: ProfileStore, user_id: Any, other_user_id: Any) -> dict[str, Any]:
    user_id = _require_id(user_id, "userId")
    other_user_id = _require_id(other_user_id, "otherUserId")
    if user_id == other_user_id:
        raise InputError("userId and otherUserId must be different profiles")

    user = profile_store.get_by_id(user_id)
    other = profile_store.get_by_id(other_user_id)
    missing = [uid for uid, c in ((user_id, user), (other_user_id, other)) if c is None]
    if missing:
        raise NotFoundError(f"Could not find profile(s): {', '.join(missing)}")

    comp = compute_compatibility(user, other)
    return {
        "user_id": user_id,
        "other_user_id": other_user_id,
        "compatibility_score": comp["score_total"],
        "score_breakdown": comp["score_breakdown"],
    }
