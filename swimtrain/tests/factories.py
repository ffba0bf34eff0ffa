"""
Helpers that insert rows directly. Each helper commits so data is visible to
code that opens its own sessions.
"""

from datetime import timedelta
from typing import Optional

from swimtrain.database.models import Session, Team, TeamRole, User, Stroke, WorkoutType, Intensity
from swimtrain.utils.datetime_utils import utcnow


async def make_user(
    db_session,
    username: str,
    email: Optional[str] = None,
    user_id: Optional[str] = None,
    team: Optional[Team] = None,
    role: TeamRole = TeamRole.MEMBER,
    **kwargs,
) -> User:
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        team_id=team.id if team else None,
        role=role,
        **kwargs,
    )
    if user_id:
        user.id = user_id
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def make_team(db_session, name: str = "Sharks", invite_code: str = "SHARKS01") -> Team:
    team = Team(name=name, invite_code=invite_code)
    db_session.add(team)
    await db_session.commit()
    await db_session.refresh(team)
    return team


async def make_session(
    db_session,
    user: User,
    title: str = "Morning swim",
    distance: Optional[int] = 2000,
    duration: int = 60,
    stroke: Optional[Stroke] = None,
    workout_type: Optional[WorkoutType] = None,
    intensity: Optional[Intensity] = None,
    team_id: Optional[str] = None,
    days_ago: float = 0,
    created_days_ago: Optional[float] = None,
) -> Session:
    """
    Insert a session dated ``days_ago`` days back. ``created_days_ago`` sets
    created_at explicitly; by default the database sets it to now.
    """
    practice = Session(
        title=title,
        date=utcnow() - timedelta(days=days_ago),
        distance=distance,
        duration=duration,
        stroke=stroke,
        workout_type=workout_type,
        intensity=intensity,
        user_id=user.id,
        team_id=team_id,
    )
    if created_days_ago is not None:
        practice.created_at = utcnow() - timedelta(days=created_days_ago)
    db_session.add(practice)
    await db_session.commit()
    await db_session.refresh(practice)
    return practice
