import uuid
from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from .database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=True)
    avatar_url = Column(Text, nullable=True)
    department = Column(String, nullable=True)
    interests = Column(JSONB, nullable=False, server_default="[]")
    dating_bio = Column(Text, nullable=True)
    dating_enabled = Column(Boolean, nullable=False, server_default="false")
    dating_gender = Column(String, nullable=True)
    dating_looking_for = Column(String, nullable=True)
    year_of_study = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_profiles_dating_enabled", "dating_enabled"),)


class DatingMatch(Base):
    __tablename__ = "dating_matches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String, nullable=False)
    liked_user_id = Column(String, nullable=False)
    is_match = Column(Boolean, nullable=False, server_default="false")
    compatibility_score = Column(Integer, nullable=True)
    algorithm_matched = Column(Boolean, nullable=False, server_default="false")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "liked_user_id", name="uq_dating_match_direction"),
        Index("idx_dating_matches_user_id", "user_id"),
        Index("idx_dating_matches_liked_user_id", "liked_user_id"),
    )


class MatchingRunEvent(Base):
    __tablename__ = "matching_run_event"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(String, nullable=False)
    payload = Column(JSONB, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
