import logging
from typing import Any

from fastapi import APIRouter, Depends, Header
from sqlalchemy.exc import SQLAlchemyError

from ..config import ADMIN_TOKEN
from ..deps import get_db, stores_for, validate_admin_token
from ..schemas import (
    CompatibilityResponse,
    EnrichedMatch,
    MatchedProfile,
    MatchingActionRequest,
    MatchPairOut,
    RunMatchingResponse,
    UserMatchesResponse,
)
from ..services.errors import InputError
from ..services.events import log_matching_run_event
from ..services.matching import MatchPair
from ..services.runner import get_compatibility, get_user_matches, run_matching

logger = logging.getLogger(__name__)

router = APIRouter()


def _pair_out(pair: MatchPair) -> MatchPairOut:
    return MatchPairOut(user1_id=pair.a_id, user2_id=pair.b_id, compatibility_score=pair.compatibility_score)


def _enriched(row: dict[str, Any]) -> EnrichedMatch:
    profile = row.get("matched_profile")
    return EnrichedMatch(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        liked_user_id=str(row["liked_user_id"]),
        is_match=bool(row.get("is_match")),
        compatibility_score=row.get("compatibility_score"),
        created_at=row.get("created_at"),
        matched_profile=MatchedProfile(**profile) if profile else None,
    )


def _run(db) -> RunMatchingResponse:
    profiles, matches = stores_for(db)
    result = run_matching(profiles, matches)
    try:
        log_matching_run_event(db, event_type="matching_run", payload={**result.summary(), "message": result.message})
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("[MATCHING] could not record run event: %s", exc)
    return RunMatchingResponse(
        message=result.message,
        matches=[_pair_out(p) for p in result.created],
        created_count=len(result.created),
        skipped_existing=len(result.skipped_existing),
        failed=[_pair_out(p) for p in result.failed],
        pool_size=result.pool_size,
    )


def _user_matches(db, user_id: str | None) -> UserMatchesResponse:
    profiles, matches = stores_for(db)
    rows = get_user_matches(profiles, matches, user_id)
    return UserMatchesResponse(matches=[_enriched(r) for r in rows])


def _compatibility(db, user_id: str | None, other_user_id: str | None) -> CompatibilityResponse:
    profiles, _ = stores_for(db)
    out = get_compatibility(profiles, user_id, other_user_id)
    return CompatibilityResponse(compatibility_score=out["compatibility_score"], score_breakdown=out["score_breakdown"])


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "module": "matching"}


@router.post("/matching")
def dispatch_matching_action(
    payload: MatchingActionRequest,
    x_admin_token: str | None = Header(default=None),
    db=Depends(get_db),
):
    logger.info("[MATCHING] action=%s user=%s", payload.action, payload.user_id)
    if payload.action == "run_matching":
        validate_admin_token(x_admin_token, ADMIN_TOKEN)
        return _run(db)
    if payload.action == "get_user_matches":
        return _user_matches(db, payload.user_id)
    if payload.action == "get_compatibility":
        return _compatibility(db, payload.user_id, payload.other_user_id)
    raise InputError(f"Unknown action: {payload.action}")


@router.post("/matching/run", response_model=RunMatchingResponse)
def run_matching_route(x_admin_token: str | None = Header(default=None), db=Depends(get_db)) -> RunMatchingResponse:
    validate_admin_token(x_admin_token, ADMIN_TOKEN)
    return _run(db)


@router.get("/users/{user_id}/matches", response_model=UserMatchesResponse)
def get_user_matches_route(user_id: str, db=Depends(get_db)) -> UserMatchesResponse:
    return _user_matches(db, user_id)


@router.get("/compatibility/{user_id}/{other_user_id}", response_model=CompatibilityResponse)
def get_compatibility_route(user_id: str, other_user_id: str, db=Depends(get_db)) -> CompatibilityResponse:
    return _compatibility(db, user_id, other_user_id)
