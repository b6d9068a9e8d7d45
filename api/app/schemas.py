from datetime import datetime
from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class MatchingActionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    user_id: str | None = Field(default=None, alias="userId")
    other_user_id: str | None = Field(default=None, alias="otherUserId")


class MatchPairOut(BaseModel):
    user1_id: str
    user2_id: str
    compatibility_score: int
    algorithm_matched: bool = True


class RunMatchingResponse(BaseModel):
    success: bool = True
    message: str
    matches: list[MatchPairOut] = Field(default_factory=list)
    created_count: int = 0
    skipped_existing: int = 0
    failed: list[MatchPairOut] = Field(default_factory=list)
    pool_size: int = 0


class MatchedProfile(BaseModel):
    id: str
    full_name: str | None = None
    avatar_url: str | None = None
    department: str | None = None
    interests: list[str] = Field(default_factory=list)
    dating_bio: str | None = None


class EnrichedMatch(BaseModel):
    id: str
    user_id: str
    liked_user_id: str
    is_match: bool
    compatibility_score: int | None = None
    created_at: datetime | None = None
    matched_profile: MatchedProfile | None = None


class UserMatchesResponse(BaseModel):
    success: bool = True
    matches: list[EnrichedMatch] = Field(default_factory=list)


class CompatibilityResponse(BaseModel):
    success: bool = True
    compatibility_score: int
    score_breakdown: dict[str, Any] = Field(default_factory=dict)
