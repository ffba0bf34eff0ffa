"""
SQLAlchemy ORM models for the swim training tracker.
"""

import enum
import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Enum,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from swimtrain.database.db import Base


def generate_id() -> str:
    """Locally generated identifier (used when no provider id exists)."""
    return str(uuid.uuid4())


class TeamRole(str, enum.Enum):
    """Role of a user within their team."""

    CAPTAIN = "CAPTAIN"
    MEMBER = "MEMBER"


class WorkoutType(str, enum.Enum):
    """Kind of practice session."""

    WARMUP = "WARMUP"
    MAIN_SET = "MAIN_SET"
    COOLDOWN = "COOLDOWN"
    TECHNIQUE = "TECHNIQUE"
    SPRINT = "SPRINT"
    ENDURANCE = "ENDURANCE"
    KICK = "KICK"
    PULL = "PULL"


class Stroke(str, enum.Enum):
    """Swim stroke."""

    FREESTYLE = "FREESTYLE"
    BACKSTROKE = "BACKSTROKE"
    BREASTSTROKE = "BREASTSTROKE"
    BUTTERFLY = "BUTTERFLY"
    INDIVIDUAL_MEDLEY = "INDIVIDUAL_MEDLEY"
    MIXED = "MIXED"


class Intensity(str, enum.Enum):
    """Perceived session intensity."""

    EASY = "EASY"
    MODERATE = "MODERATE"
    HARD = "HARD"
    RACE_PACE = "RACE_PACE"
    RECOVERY = "RECOVERY"


class Team(Base):
    """Swim teams. Users join with the invite code."""

    __tablename__ = "teams"

    id = Column(String(64), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    avatar = Column(String, nullable=True)
    invite_code = Column(String(16), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    members = relationship("User", back_populates="team")
    sessions = relationship("Session", back_populates="team")


class User(Base):
    """
    Local user records.

    The id is the identity provider's subject id whenever the user signed up
    through the provider; rows created before the provider knew the user keep
    their locally generated id and are matched by email.
    """

    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=generate_id)
    email = Column(String, nullable=False, unique=True)
    username = Column(String, nullable=False, unique=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=True)
    role = Column(Enum(TeamRole, name="team_role"), default=TeamRole.MEMBER, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    team = relationship("Team", back_populates="members")
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_users_team", "team_id"),)


class Session(Base):
    """Practice sessions, owned by the user who recorded them."""

    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True, default=generate_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)  # May be in the future (scheduled)
    duration = Column(Integer, nullable=False)  # Minutes
    distance = Column(Integer, nullable=True)  # Meters
    workout_type = Column(Enum(WorkoutType, name="workout_type"), nullable=True)
    stroke = Column(Enum(Stroke, name="stroke"), nullable=True)
    intensity = Column(Enum(Intensity, name="intensity"), nullable=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String(64), ForeignKey("teams.id"), nullable=True)  # Explicit team attribution
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="sessions")
    team = relationship("Team", back_populates="sessions")

    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_sessions_duration_positive"),
        CheckConstraint("distance IS NULL OR distance >= 0", name="ck_sessions_distance_non_negative"),
        Index("idx_sessions_user_date", "user_id", "date"),
        Index("idx_sessions_team", "team_id"),
        Index("idx_sessions_created_at", "created_at"),
    )
