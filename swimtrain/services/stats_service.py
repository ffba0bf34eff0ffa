"""
Team statistics aggregation.

A session counts toward a team when it was explicitly attributed to the team
(Session.team_id) OR its owner is currently a member of the team. The two
predicates are combined with OR, so a session recorded on an old team by a
user who has since moved is counted by both teams.
"""

import asyncio
import logging
from collections import Counter
from typing import Callable, Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.database import db
from swimtrain.database.models import Session, User
from swimtrain.services.errors import Forbidden, ValidationError
from swimtrain.services.session_service import pick_most_common_stroke
from swimtrain.utils.constants import (
    WEEKLY_WINDOW_DAYS,
    MONTHLY_WINDOW_DAYS,
    RECENT_SESSIONS_LIMIT,
)
from swimtrain.utils.datetime_utils import days_ago, ensure_utc

logger = logging.getLogger(__name__)

LEADERBOARD_PERIODS = {
    "week": WEEKLY_WINDOW_DAYS,
    "month": MONTHLY_WINDOW_DAYS,
    "all": None,
}


def team_session_predicate(team_id: str):
    """Sessions attributed to the team explicitly or through their owner's membership."""
    return or_(
        Session.team_id == team_id,
        Session.user_id.in_(select(User.id).where(User.team_id == team_id)),
    )


async def _count_members(session_factory: Callable, team_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count(User.id)).where(User.team_id == team_id))
        return result.scalar_one()


async def _session_totals(session_factory: Callable, team_id: str, since=None) -> Dict[str, int]:
    query = select(
        func.count(Session.id), func.coalesce(func.sum(Session.distance), 0)
    ).where(team_session_predicate(team_id))
    if since is not None:
        query = query.where(Session.created_at >= since)
    async with session_factory() as session:
        result = await session.execute(query)
        count, distance = result.one()
    return {"sessions": count or 0, "distance": int(distance or 0)}


async def _most_common_stroke(session_factory: Callable, team_id: str) -> Optional[str]:
    """Modal stroke across the team's sessions. Degrades to None on failure."""
    try:
        async with session_factory() as session:
            result = await session.execute(
                select(Session.stroke, func.count(Session.id))
                .where(team_session_predicate(team_id), Session.stroke.is_not(None))
                .group_by(Session.stroke)
            )
            return pick_most_common_stroke(result.all())
    except Exception as e:
        logger.error(f"Error computing most common stroke for team {team_id}: {e}", exc_info=True)
        return None


async def get_team_stats(team_id: str, session_factory: Optional[Callable] = None) -> Dict:
    """
    Compute the team dashboard aggregates.

    The component queries run concurrently, each on its own database session;
    they are not taken from a single snapshot. Only the most-common-stroke
    query may fail softly; when any other query fails the remaining ones are
    cancelled and the error is raised.

    Args:
        team_id: Team ID
        session_factory: Async session factory; defaults to the application's

    Returns:
        Dict with members, total_sessions, total_distance, weekly_sessions,
        weekly_distance and most_common_stroke
    """
    session_factory = session_factory or db.AsyncSessionLocal
    week_start = days_ago(WEEKLY_WINDOW_DAYS)

    tasks = [
        asyncio.ensure_future(_count_members(session_factory, team_id)),
        asyncio.ensure_future(_session_totals(session_factory, team_id)),
        asyncio.ensure_future(_session_totals(session_factory, team_id, since=week_start)),
        asyncio.ensure_future(_most_common_stroke(session_factory, team_id)),
    ]
    try:
        members, totals, weekly, stroke = await asyncio.gather(*tasks)
    except Exception:
        # gather does not cancel siblings; stop them before releasing the error
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return {
        "members": members,
        "total_sessions": totals["sessions"],
        "total_distance": totals["distance"],
        "weekly_sessions": weekly["sessions"],
        "weekly_distance": weekly["distance"],
        "most_common_stroke": stroke,
    }


async def get_member_profile(session: AsyncSession, requester_id: str, target_id: str) -> Dict:
    """
    Public profile of a teammate with their training stats and recent sessions.

    Args:
        session: Database session
        requester_id: Caller ID
        target_id: Member whose profile is requested

    Returns:
        Profile dict: id, username, first_name, last_name, avatar, role,
        stats and recent_sessions

    Raises:
        Forbidden: If the target does not exist or is not on the caller's team
    """
    result = await session.execute(select(User).where(User.id.in_([requester_id, target_id])))
    users = {u.id: u for u in result.scalars().all()}

    # an unknown target is reported like any non-teammate so ids cannot be enumerated
    target = users.get(target_id)
    requester = users.get(requester_id)
    if (
        target is None
        or requester is None
        or requester.team_id is None
        or requester.team_id != target.team_id
    ):
        raise Forbidden("You can only view profiles of your teammates")

    result = await session.execute(
        select(Session).where(Session.user_id == target_id).order_by(Session.date.desc())
    )
    sessions = list(result.scalars().all())

    week_start = days_ago(WEEKLY_WINDOW_DAYS)
    weekly = [s for s in sessions if ensure_utc(s.date) >= week_start]

    total_distance = sum(s.distance or 0 for s in sessions)
    workout_types = Counter(s.workout_type.value for s in sessions if s.workout_type)

    stats = {
        "total_sessions": len(sessions),
        "total_distance": total_distance,
        "total_duration": sum(s.duration or 0 for s in sessions),
        "avg_distance": round(total_distance / len(sessions)) if sessions else 0,
        "weekly_distance": sum(s.distance or 0 for s in weekly),
        "weekly_duration": sum(s.duration or 0 for s in weekly),
        "weekly_session_count": len(weekly),
        "workout_types": dict(workout_types),
    }

    recent_sessions = [
        {
            "id": s.id,
            "title": s.title,
            "date": s.date,
            "distance": s.distance,
            "duration": s.duration,
            "workout_type": s.workout_type.value if s.workout_type else None,
            "intensity": s.intensity.value if s.intensity else None,
        }
        for s in sessions[:RECENT_SESSIONS_LIMIT]
    ]

    return {
        "id": target.id,
        "username": target.username,
        "first_name": target.first_name,
        "last_name": target.last_name,
        "avatar": target.avatar,
        "role": target.role.value,
        "stats": stats,
        "recent_sessions": recent_sessions,
    }


async def get_team_leaderboard(session: AsyncSession, team_id: str, period: str = "week") -> List[Dict]:
    """
    Rank current members by the distance of their own sessions in a period.

    Args:
        session: Database session
        team_id: Team ID
        period: "week" (last 7 days), "month" (last 30 days) or "all"

    Returns:
        Ranked list of entries (rank, user_id, username, avatar, role,
        total_distance, total_duration, session_count). Ties on distance are
        broken by session count, then username.

    Raises:
        ValidationError: If the period is unknown
    """
    if period not in LEADERBOARD_PERIODS:
        raise ValidationError(f"Invalid period: {period}")
    window = LEADERBOARD_PERIODS[period]

    join_on = Session.user_id == User.id
    if window is not None:
        join_on = join_on & (Session.date >= days_ago(window))

    distance = func.coalesce(func.sum(Session.distance), 0)
    duration = func.coalesce(func.sum(Session.duration), 0)
    count = func.count(Session.id)

    result = await session.execute(
        select(
            User.id, User.username, User.avatar, User.role,
            distance.label("total_distance"),
            duration.label("total_duration"),
            count.label("session_count"),
        )
        .outerjoin(Session, join_on)
        .where(User.team_id == team_id)
        .group_by(User.id, User.username, User.avatar, User.role)
        .order_by(distance.desc(), count.desc(), User.username.asc())
    )

    return [
        {
            "rank": rank,
            "user_id": row.id,
            "username": row.username,
            "avatar": row.avatar,
            "role": row.role.value,
            "total_distance": int(row.total_distance or 0),
            "total_duration": int(row.total_duration or 0),
            "session_count": row.session_count,
        }
        for rank, row in enumerate(result.all(), start=1)
    ]
