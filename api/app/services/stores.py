from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Iterable, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .compatibility import Candidate
from .errors import PersistenceConflict, UpstreamStoreError
from .matching import MatchPair
from .preferences import canonical_pair

logger = logging.getLogger(__name__)

PUBLIC_PROFILE_FIELDS = ("id", "full_name", "avatar_url", "department", "interests", "dating_bio")


class ProfileStore(Protocol):
    def list_dating_eligible(self) -> list[Candidate]: ...

    def get_by_id(self, user_id: str) -> Candidate | None: ...

    def get_public_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]: ...


class MatchStore(Protocol):
    def exists_pair(self, a_id: str, b_id: str) -> bool: ...

    def existing_pairs(self) -> set[tuple[str, str]]: ...

    def insert_directional_match(self, from_id: str, to_id: str, compatibility_score: int) -> None: ...

    def insert_match_pair(self, pair: MatchPair) -> None: ...

    def list_user_matches(self, user_id: str) -> list[dict[str, Any]]: ...


def _interests(value: Any) -> list[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


class SqlProfileStore:
    def __init__(self, db) -> None:
        self.db = db

    def _candidate(self, row: dict[str, Any]) -> Candidate:
        data = dict(row)
        data["interests"] = _interests(data.get("interests"))
        return Candidate.from_row(data)

    def list_dating_eligible(self) -> list[Candidate]:
        try:
            rows = self.db.execute(
                text(
                    """
                    SELECT id, dating_gender, dating_looking_for, interests, department, year_of_study
                    FROM profiles
                    WHERE dating_enabled = TRUE
                    ORDER BY id
                    """
                )
            ).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to load dating-eligible profiles: %s", exc)
            raise UpstreamStoreError("Failed to fetch profiles") from exc
        return [self._candidate(r) for r in rows]

    def get_by_id(self, user_id: str) -> Candidate | None:
        try:
            row = self.db.execute(
                text(
                    """
                    SELECT id, dating_gender, dating_looking_for, interests, department, year_of_study
                    FROM profiles
                    WHERE id = :id
                    """
                ),
                {"id": user_id},
            ).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to load profile %s: %s", user_id, exc)
            raise UpstreamStoreError("Failed to fetch profile") from exc
        return self._candidate(row) if row else None

    def get_public_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        ids = sorted({str(u) for u in user_ids})
        if not ids:
            return {}
        try:
            rows = self.db.execute(
                text(
                    """
                    SELECT id, full_name, avatar_url, department, interests, dating_bio
                    FROM profiles
                    WHERE id = ANY(:ids)
                    """
                ),
                {"ids": ids},
            ).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to load public profiles: %s", exc)
            raise UpstreamStoreError("Failed to fetch matched profiles") from exc

        out: dict[str, dict[str, Any]] = {}
        for row in rows:
            profile = {k: row.get(k) for k in PUBLIC_PROFILE_FIELDS}
            profile["id"] = str(row["id"])
            profile["interests"] = _interests(row.get("interests"))
            out[profile["id"]] = profile
        return out


class SqlMatchStore:
    def __init__(self, db) -> None:
        self.db = db

    def exists_pair(self, a_id: str, b_id: str) -> bool:
        try:
            row = self.db.execute(
                text(
                    """
                    SELECT 1
                    FROM dating_matches
                    WHERE (user_id = :a AND liked_user_id = :b)
                       OR (user_id = :b AND liked_user_id = :a)
                    LIMIT 1
                    """
                ),
                {"a": a_id, "b": b_id},
            ).first()
        except SQLAlchemyError as exc:
            raise UpstreamStoreError("Failed to check existing match") from exc
        return row is not None

    def existing_pairs(self) -> set[tuple[str, str]]:
        try:
            rows = self.db.execute(text("SELECT user_id, liked_user_id FROM dating_matches")).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to load existing matches: %s", exc)
            raise UpstreamStoreError("Failed to fetch existing matches") from exc
        return {canonical_pair(str(r["user_id"]), str(r["liked_user_id"])) for r in rows}

    def insert_directional_match(self, from_id: str, to_id: str, compatibility_score: int) -> None:
        try:
            result = self.db.execute(
                text(
                    """
                    INSERT INTO dating_matches (id, user_id, liked_user_id, is_match, compatibility_score, algorithm_matched)
                    VALUES (:id, :user_id, :liked_user_id, TRUE, :compatibility_score, TRUE)
                    ON CONFLICT (user_id, liked_user_id)
                    DO NOTHING
                    """
                ),
                {
                    "id": str(uuid.uuid4()),
                    "user_id": from_id,
                    "liked_user_id": to_id,
                    "compatibility_score": compatibility_score,
                },
            )
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to insert match %s -> %s: %s", from_id, to_id, exc)
            raise UpstreamStoreError(f"Failed to persist match {from_id} -> {to_id}") from exc
        if result.rowcount == 0:
            raise PersistenceConflict(f"Match already exists for {from_id} -> {to_id}")

    def insert_match_pair(self, pair: MatchPair) -> None:
        """Write both directional records or neither."""
        try:
            self.insert_directional_match(pair.a_id, pair.b_id, pair.compatibility_score)
            self.insert_directional_match(pair.b_id, pair.a_id, pair.compatibility_score)
            self.db.commit()
        except (PersistenceConflict, UpstreamStoreError):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamStoreError(f"Failed to persist match {pair.a_id} <-> {pair.b_id}") from exc

    def list_user_matches(self, user_id: str) -> list[dict[str, Any]]:
        try:
            rows = self.db.execute(
                text(
                    """
                    SELECT id, user_id, liked_user_id, is_match, compatibility_score, created_at
                    FROM dating_matches
                    WHERE user_id = :user_id
                      AND is_match = TRUE
                    ORDER BY created_at DESC
                    """
                ),
                {"user_id": user_id},
            ).mappings().all()
        except SQLAlchemyError as exc:
            logger.error("[MATCHING] failed to load matches for %s: %s", user_id, exc)
            raise UpstreamStoreError("Failed to fetch user matches") from exc
        return [dict(r) for r in rows]
