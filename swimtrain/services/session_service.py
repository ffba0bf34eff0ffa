"""
Practice session store.

Every read and write is scoped to the owning user: a session that does not
exist and a session owned by someone else are both reported as NotFound.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.database.models import Session, User, WorkoutType, Stroke, Intensity
from swimtrain.services.errors import NotFound, ValidationError
from swimtrain.utils.constants import WEEKLY_WINDOW_DAYS, MONTHLY_WINDOW_DAYS
from swimtrain.utils.datetime_utils import days_ago, ensure_utc

logger = logging.getLogger(__name__)

_ENUM_FIELDS = {
    "workout_type": WorkoutType,
    "stroke": Stroke,
    "intensity": Intensity,
}
_EDITABLE_FIELDS = (
    "title",
    "description",
    "date",
    "duration",
    "distance",
    "workout_type",
    "stroke",
    "intensity",
)


def session_to_dict(s: Session) -> Dict:
    return {
        "id": s.id,
        "title": s.title,
        "description": s.description,
        "date": s.date,
        "duration": s.duration,
        "distance": s.distance,
        "workout_type": s.workout_type.value if s.workout_type else None,
        "stroke": s.stroke.value if s.stroke else None,
        "intensity": s.intensity.value if s.intensity else None,
        "user_id": s.user_id,
        "team_id": s.team_id,
        "created_at": s.created_at,
        "updated_at": s.updated_at,
    }


def _clean_fields(data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    """
    Validate and coerce session fields.

    Args:
        data: Raw field values (snake_case keys)
        partial: True for updates, where absent fields are left untouched

    Raises:
        ValidationError: On a missing required field or an out-of-range value
    """
    fields = {k: v for k, v in data.items() if k in _EDITABLE_FIELDS}

    if not partial:
        for required in ("title", "date", "duration"):
            if fields.get(required) is None:
                raise ValidationError(f"{required.capitalize()} is required")

    if "title" in fields:
        title = (fields["title"] or "").strip()
        if not title:
            raise ValidationError("Title is required")
        fields["title"] = title

    if "date" in fields:
        if not isinstance(fields["date"], datetime):
            raise ValidationError("Date must be a datetime")

    if "duration" in fields:
        duration = fields["duration"]
        if duration is None or duration <= 0:
            raise ValidationError("Duration must be greater than 0")

    if fields.get("distance") is not None and fields["distance"] < 0:
        raise ValidationError("Distance cannot be negative")

    for name, enum_cls in _ENUM_FIELDS.items():
        value = fields.get(name)
        if value is None or isinstance(value, enum_cls):
            continue
        try:
            fields[name] = enum_cls(value)
        except ValueError:
            raise ValidationError(f"Invalid {name}: {value}")

    return fields


async def _get_owned_session(session: AsyncSession, user_id: str, session_id: str) -> Session:
    result = await session.execute(
        select(Session).where(Session.id == session_id, Session.user_id == user_id)
    )
    practice = result.scalar_one_or_none()
    if practice is None:
        raise NotFound("Session not found")
    return practice


async def list_sessions(session: AsyncSession, user_id: str) -> List[Dict]:
    """
    Get all sessions owned by a user.

    Args:
        session: Database session
        user_id: Owner ID

    Returns:
        List of session dictionaries, most recent date first
    """
    result = await session.execute(
        select(Session)
        .where(Session.user_id == user_id)
        .order_by(Session.date.desc(), Session.created_at.desc())
    )
    return [session_to_dict(s) for s in result.scalars().all()]


async def get_session(session: AsyncSession, user_id: str, session_id: str) -> Dict:
    """Get one owned session. Raises NotFound otherwise."""
    return session_to_dict(await _get_owned_session(session, user_id, session_id))


async def create_session(session: AsyncSession, user_id: str, data: Dict[str, Any]) -> Dict:
    """
    Record a practice session.

    The session is attributed to the owner's current team, if any.

    Args:
        session: Database session
        user_id: Owner ID
        data: Session fields (title, date and duration required)

    Returns:
        Created session dictionary

    Raises:
        ValidationError: If a field is missing or invalid
        NotFound: If the owner does not exist
    """
    fields = _clean_fields(data, partial=False)

    result = await session.execute(select(User.team_id).where(User.id == user_id))
    row = result.first()
    if row is None:
        raise NotFound("User not found")

    practice = Session(user_id=user_id, team_id=row.team_id, **fields)
    session.add(practice)
    await session.commit()
    await session.refresh(practice)
    logger.info(f"User {user_id} recorded session {practice.id}")
    return session_to_dict(practice)


async def update_session(
    session: AsyncSession, user_id: str, session_id: str, data: Dict[str, Any]
) -> Dict:
    """
    Update fields of an owned session. Team attribution never changes on edit.

    Raises:
        NotFound: If the session does not exist or belongs to someone else
        ValidationError: If a provided field is invalid
    """
    practice = await _get_owned_session(session, user_id, session_id)
    fields = _clean_fields(data, partial=True)
    for name, value in fields.items():
        setattr(practice, name, value)
    await session.commit()
    await session.refresh(practice)
    return session_to_dict(practice)


async def delete_session(session: AsyncSession, user_id: str, session_id: str) -> None:
    """Delete an owned session. Raises NotFound otherwise."""
    practice = await _get_owned_session(session, user_id, session_id)
    await session.delete(practice)
    await session.commit()
    logger.info(f"User {user_id} deleted session {session_id}")


def pick_most_common_stroke(rows: Iterable) -> Optional[str]:
    """
    Pick the stroke with the highest count from (stroke, count) rows.

    Ties are broken by stroke name, alphabetically. None strokes are ignored.
    """
    best = None
    for stroke, count in rows:
        if stroke is None:
            continue
        name = stroke.value if isinstance(stroke, Stroke) else str(stroke)
        if best is None or count > best[1] or (count == best[1] and name < best[0]):
            best = (name, count)
    return best[0] if best else None


async def get_user_stats(session: AsyncSession, user_id: str) -> Dict:
    """
    Personal dashboard totals over the user's own sessions.

    Windows (weekly, monthly) are rolling and measured on the session date.

    Returns:
        Dict with total_*, weekly_*, monthly_* session counts, distance and
        duration, plus most_common_stroke
    """
    result = await session.execute(
        select(Session.date, Session.distance, Session.duration, Session.stroke).where(
            Session.user_id == user_id
        )
    )
    rows = result.all()

    week_start = days_ago(WEEKLY_WINDOW_DAYS)
    month_start = days_ago(MONTHLY_WINDOW_DAYS)

    def _totals(selected) -> Dict[str, int]:
        return {
            "sessions": len(selected),
            "distance": sum(r.distance or 0 for r in selected),
            "duration": sum(r.duration or 0 for r in selected),
        }

    total = _totals(rows)
    weekly = _totals([r for r in rows if ensure_utc(r.date) >= week_start])
    monthly = _totals([r for r in rows if ensure_utc(r.date) >= month_start])
    strokes = Counter(r.stroke for r in rows if r.stroke is not None)

    return {
        "total_sessions": total["sessions"],
        "total_distance": total["distance"],
        "total_duration": total["duration"],
        "weekly_sessions": weekly["sessions"],
        "weekly_distance": weekly["distance"],
        "weekly_duration": weekly["duration"],
        "monthly_sessions": monthly["sessions"],
        "monthly_distance": monthly["distance"],
        "monthly_duration": monthly["duration"],
        "most_common_stroke": pick_most_common_stroke(strokes.items()),
    }
