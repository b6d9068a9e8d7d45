from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

INTEREST_POINTS = 10
INTEREST_CAP = 50
DEPARTMENT_POINTS = 20
YEAR_POINTS = 10
GENDER_POINTS = 20
MAX_SCORE = 100

NO_GENDER_FILTER = "everyone"


def _normalize_label(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip().lower()
    return v or None


def _normalize_text(value: Any) -> str | None:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


def _normalize_interests(values: Any) -> frozenset[str]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    out: set[str] = set()
    for item in values:
        tag = _normalize_text(item)
        if tag:
            out.add(tag)
    return frozenset(out)


def _normalize_year(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        year = int(value)
    except (TypeError, ValueError):
        return None
    return year if year > 0 else None


@dataclass(frozen=True)
class Candidate:
    id: str
    gender_identity: str | None = None
    seeking_gender: str | None = None
    interests: frozenset[str] = field(default_factory=frozenset)
    department: str | None = None
    year_of_study: int | None = None

    @classmethod
    def build(
        cls,
        candidate_id: Any,
        gender_identity: Any = None,
        seeking_gender: Any = None,
        interests: Any = None,
        department: Any = None,
        year_of_study: Any = None,
    ) -> "Candidate":
        return cls(
            id=str(candidate_id),
            gender_identity=_normalize_label(gender_identity),
            seeking_gender=_normalize_label(seeking_gender),
            interests=_normalize_interests(interests),
            department=_normalize_text(department),
            year_of_study=_normalize_year(year_of_study),
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Candidate":
        return cls.build(
            candidate_id=row["id"],
            gender_identity=row.get("dating_gender"),
            seeking_gender=row.get("dating_looking_for"),
            interests=row.get("interests"),
            department=row.get("department"),
            year_of_study=row.get("year_of_study"),
        )


def gender_satisfies(x: Candidate, y: Candidate) -> bool:
    """True when ``x``'s gender is acceptable to ``y``."""
    if not y.seeking_gender or y.seeking_gender == NO_GENDER_FILTER:
        return True
    return x.gender_identity == y.seeking_gender


def mutually_eligible(u: Candidate, v: Candidate) -> bool:
    return gender_satisfies(u, v) and gender_satisfies(v, u)


def compute_compatibility(a: Candidate, b: Candidate) -> dict[str, Any]:
    shared = a.interests & b.interests
    interest_points = min(len(shared) * INTEREST_POINTS, INTEREST_CAP)

    department_points = 0
    if a.department and b.department and a.department == b.department:
        department_points = DEPARTMENT_POINTS

    year_points = 0
    if a.year_of_study is not None and b.year_of_study is not None:
        if abs(a.year_of_study - b.year_of_study) <= 1:
            year_points = YEAR_POINTS

    # Evaluated once as a pair so the total stays symmetric.
    gender_points = GENDER_POINTS if mutually_eligible(a, b) else 0

    total = interest_points + department_points + year_points + gender_points
    total = max(0, min(MAX_SCORE, total))

    return {
        "score_total": total,
        "score_breakdown": {
            "shared_interests": sorted(shared),
            "interest_points": interest_points,
            "department_points": department_points,
            "year_points": year_points,
            "gender_points": gender_points,
        },
    }


def score(a: Candidate, b: Candidate) -> int:
    return int(compute_compatibility(a, b)["score_total"])
