"""
Pydantic models for API request/response validation.

JSON on the wire uses camelCase keys; Python code uses snake_case.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from swimtrain.database.models import Intensity, Stroke, TeamRole, WorkoutType
from swimtrain.services import auth_service
from swimtrain.utils.constants import MIN_PASSWORD_LENGTH, MIN_USERNAME_LENGTH


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(CamelModel):
    """Email/password registration."""

    email: str
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    username: str = Field(min_length=MIN_USERNAME_LENGTH)
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        if not auth_service.validate_email(v):
            raise ValueError("Invalid email address")
        return v.strip().lower()

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_USERNAME_LENGTH:
            raise ValueError(f"Username must be at least {MIN_USERNAME_LENGTH} characters long")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str


class GoogleAuthRequest(CamelModel):
    """Provider access token obtained through Google OAuth."""

    token: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UpdateProfileRequest(CamelModel):
    username: str = Field(min_length=MIN_USERNAME_LENGTH)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None


class UserResponse(CamelModel):
    """The caller's own user record."""

    id: str
    email: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    team_id: Optional[str] = None
    role: Optional[TeamRole] = None
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    """Session token plus the user; isNewUser is set when the local profile was just created."""

    token: str
    user: UserResponse
    implicit_login: bool = False
    is_new_user: bool = False


class ProfileResponse(CamelModel):
    user: UserResponse


class MessageResponse(CamelModel):
    message: str


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class SessionCreate(CamelModel):
    """A practice session to record. Date may be in the future."""

    title: str = Field(min_length=1)
    description: Optional[str] = None
    date: datetime
    duration: int = Field(gt=0, description="Minutes")
    distance: Optional[int] = Field(default=None, ge=0, description="Meters")
    workout_type: Optional[WorkoutType] = None
    stroke: Optional[Stroke] = None
    intensity: Optional[Intensity] = None


class SessionUpdate(CamelModel):
    """Partial update; only fields present in the body are changed."""

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    distance: Optional[int] = Field(default=None, ge=0)
    workout_type: Optional[WorkoutType] = None
    stroke: Optional[Stroke] = None
    intensity: Optional[Intensity] = None


class SessionResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    date: datetime
    duration: int
    distance: Optional[int] = None
    workout_type: Optional[WorkoutType] = None
    stroke: Optional[Stroke] = None
    intensity: Optional[Intensity] = None
    user_id: str
    team_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SessionEnvelope(CamelModel):
    session: SessionResponse


class SessionListResponse(CamelModel):
    sessions: List[SessionResponse]


class UserStatsResponse(CamelModel):
    """Personal dashboard totals."""

    total_sessions: int
    total_distance: int
    total_duration: int
    weekly_sessions: int
    weekly_distance: int
    weekly_duration: int
    monthly_sessions: int
    monthly_distance: int
    monthly_duration: int
    most_common_stroke: Optional[Stroke] = None


# ---------------------------------------------------------------------------
# Teams
# ---------------------------------------------------------------------------


class TeamCreate(CamelModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    avatar: Optional[str] = None


class JoinTeamRequest(CamelModel):
    invite_code: str = Field(min_length=1)


class UpdateMemberRoleRequest(CamelModel):
    role: TeamRole


class TeamMemberResponse(CamelModel):
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    role: TeamRole


class TeamResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    avatar: Optional[str] = None
    invite_code: str
    created_at: Optional[datetime] = None
    members: List[TeamMemberResponse] = []


class TeamEnvelope(CamelModel):
    """Team of the caller; team is null when the caller has none."""

    team: Optional[TeamResponse] = None


class TeamStatsResponse(CamelModel):
    members: int
    total_sessions: int
    total_distance: int
    weekly_sessions: int
    weekly_distance: int
    most_common_stroke: Optional[Stroke] = None


class LeaderboardEntry(CamelModel):
    rank: int
    user_id: str
    username: str
    avatar: Optional[str] = None
    role: TeamRole
    total_distance: int
    total_duration: int
    session_count: int


class LeaderboardResponse(CamelModel):
    period: str
    entries: List[LeaderboardEntry]


# ---------------------------------------------------------------------------
# Member profiles
# ---------------------------------------------------------------------------


class MemberStats(CamelModel):
    total_sessions: int
    total_distance: int
    total_duration: int
    avg_distance: int
    weekly_distance: int
    weekly_duration: int
    weekly_session_count: int
    workout_types: Dict[str, int]


class RecentSession(CamelModel):
    id: str
    title: str
    date: datetime
    distance: Optional[int] = None
    duration: int
    workout_type: Optional[WorkoutType] = None
    intensity: Optional[Intensity] = None


class MemberProfile(CamelModel):
    id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar: Optional[str] = None
    role: TeamRole
    stats: MemberStats
    recent_sessions: List[RecentSession]


class MemberProfileResponse(CamelModel):
    profile: MemberProfile
