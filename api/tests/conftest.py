from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import pytest

from app.services.compatibility import Candidate
from app.services.errors import PersistenceConflict, UpstreamStoreError
from app.services.matching import MatchPair
from app.services.preferences import canonical_pair


def profile_row(
    user_id: str,
    *,
    gender: str | None = None,
    seeking: str | None = None,
    interests: list[str] | None = None,
    department: str | None = None,
    year: int | None = None,
    dating_enabled: bool = True,
    full_name: str | None = None,
) -> dict[str, Any]:
    return {
        "id": user_id,
        "full_name": full_name or f"User {user_id}",
        "avatar_url": f"https://cdn.example.edu/avatars/{user_id}.png",
        "department": department,
        "interests": interests or [],
        "dating_bio": f"Hi, I'm {user_id}",
        "dating_enabled": dating_enabled,
        "dating_gender": gender,
        "dating_looking_for": seeking,
        "year_of_study": year,
    }


class InMemoryProfileStore:
    def __init__(self, rows: list[dict[str, Any]], fail: bool = False):
        self.rows = {r["id"]: r for r in rows}
        self.fail = fail

    def list_dating_eligible(self) -> list[Candidate]:
        if self.fail:
            raise UpstreamStoreError("Failed to fetch profiles")
        return [Candidate.from_row(r) for r in self.rows.values() if r.get("dating_enabled")]

    def get_by_id(self, user_id: str) -> Candidate | None:
        row = self.rows.get(user_id)
        return Candidate.from_row(row) if row else None

    def get_public_profiles(self, user_ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        out = {}
        for uid in user_ids:
            row = self.rows.get(uid)
            if row:
                out[uid] = {k: row.get(k) for k in ("id", "full_name", "avatar_url", "department", "interests", "dating_bio")}
        return out


class InMemoryMatchStore:
    def __init__(self, fail_pairs: set[tuple[str, str]] | None = None, fail_existing: bool = False):
        self.records: list[dict[str, Any]] = []
        self.fail_pairs = fail_pairs or set()
        self.fail_existing = fail_existing
        self.conflict_pairs: set[tuple[str, str]] = set()

    def exists_pair(self, a_id: str, b_id: str) -> bool:
        return canonical_pair(a_id, b_id) in self.existing_pairs()

    def existing_pairs(self) -> set[tuple[str, str]]:
        if self.fail_existing:
            raise UpstreamStoreError("Failed to fetch existing matches")
        return {canonical_pair(r["user_id"], r["liked_user_id"]) for r in self.records}

    def _has_direction(self, from_id: str, to_id: str) -> bool:
        return any(r["user_id"] == from_id and r["liked_user_id"] == to_id for r in self.records)

    def insert_directional_match(self, from_id: str, to_id: str, compatibility_score: int, is_match: bool = True) -> None:
        if self._has_direction(from_id, to_id):
            raise PersistenceConflict(f"Match already exists for {from_id} -> {to_id}")
        self.records.append(
            {
                "id": str(uuid.uuid4()),
                "user_id": from_id,
                "liked_user_id": to_id,
                "is_match": is_match,
                "compatibility_score": compatibility_score,
                "created_at": datetime.now(timezone.utc),
            }
        )

    def insert_match_pair(self, pair: MatchPair) -> None:
        key = (pair.a_id, pair.b_id)
        if key in self.fail_pairs:
            raise UpstreamStoreError(f"Failed to persist match {pair.a_id} <-> {pair.b_id}")
        if key in self.conflict_pairs:
            raise PersistenceConflict(f"Match already exists for {pair.a_id} -> {pair.b_id}")
        if self._has_direction(pair.a_id, pair.b_id) or self._has_direction(pair.b_id, pair.a_id):
            raise PersistenceConflict(f"Match already exists for {pair.a_id} -> {pair.b_id}")
        self.insert_directional_match(pair.a_id, pair.b_id, pair.compatibility_score)
        self.insert_directional_match(pair.b_id, pair.a_id, pair.compatibility_score)

    def list_user_matches(self, user_id: str) -> list[dict[str, Any]]:
        return [dict(r) for r in self.records if r["user_id"] == user_id and r["is_match"]]


@pytest.fixture
def campus_rows() -> list[dict[str, Any]]:
    return [
        profile_row("ana", gender="f", seeking="m", interests=["chess", "hiking", "jazz"], department="CS", year=2),
        profile_row("ben", gender="m", seeking="f", interests=["chess", "hiking"], department="CS", year=2),
        profile_row("cara", gender="f", seeking="m", interests=["film"], department="Math", year=4),
        profile_row("dev", gender="m", seeking="f", interests=["film", "jazz"], department="Math", year=3),
        profile_row("eli", gender="m", seeking="m", interests=["rowing"], department="Bio", year=1),
        profile_row("fay", gender="f", seeking="everyone", interests=["jazz"], department="CS", year=1),
        profile_row("gus", gender="m", seeking="f", interests=[], dating_enabled=False),
    ]


@pytest.fixture
def profile_store(campus_rows) -> InMemoryProfileStore:
    return InMemoryProfileStore(campus_rows)


@pytest.fixture
def match_store() -> InMemoryMatchStore:
    return InMemoryMatchStore()
