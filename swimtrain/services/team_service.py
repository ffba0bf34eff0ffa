"""
Team membership.

A user is in exactly one of three states: unaffiliated (no team), member of a
team, or captain of a team. Transitions:

    unaffiliated --create_team--> captain
    unaffiliated --join_team----> member
    member/captain --leave_team--> unaffiliated
    member <--set_member_role--> captain

A team with more than one member always keeps at least one captain.
"""

import logging
import secrets
import string
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.database.models import Team, User, TeamRole
from swimtrain.services.errors import Conflict, Forbidden, InvariantViolation, NotFound, ValidationError
from swimtrain.utils.constants import INVITE_CODE_LENGTH, INVITE_CODE_ATTEMPTS

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code() -> str:
    """Random invite code of upper-case letters and digits."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return (code or "").strip().upper()


def _member_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "avatar": user.avatar,
        "role": user.role.value,
    }


def _team_to_dict(team: Team, members: Optional[List[User]] = None) -> Dict:
    data = {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "avatar": team.avatar,
        "invite_code": team.invite_code,
        "created_at": team.created_at,
        "updated_at": team.updated_at,
    }
    if members is not None:
        data["members"] = [_member_to_dict(m) for m in members]
    return data


async def _load_user(session: AsyncSession, user_id: str, lock: bool = False) -> User:
    query = select(User).where(User.id == user_id)
    if lock:
        query = query.with_for_update()
    result = await session.execute(query)
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def _team_members(session: AsyncSession, team_id: str) -> List[User]:
    """Members of a team, captains first, then by username."""
    result = await session.execute(
        select(User)
        .where(User.team_id == team_id)
        .order_by((User.role == TeamRole.CAPTAIN).desc(), User.username.asc())
    )
    return list(result.scalars().all())


async def _lock_team(session: AsyncSession, team_id: str) -> Team:
    result = await session.execute(select(Team).where(Team.id == team_id).with_for_update())
    team = result.scalar_one_or_none()
    if team is None:
        raise NotFound("Team not found")
    return team


async def _captain_count(session: AsyncSession, team_id: str) -> int:
    result = await session.execute(
        select(func.count(User.id)).where(User.team_id == team_id, User.role == TeamRole.CAPTAIN)
    )
    return result.scalar_one()


async def _member_count(session: AsyncSession, team_id: str) -> int:
    result = await session.execute(select(func.count(User.id)).where(User.team_id == team_id))
    return result.scalar_one()


async def get_user_team(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get the caller's team with its invite code and member roster.

    Args:
        session: Database session
        user_id: Caller ID

    Returns:
        Team dictionary with a "members" list, or None if the caller has no team
    """
    user = await _load_user(session, user_id)
    if user.team_id is None:
        return None

    result = await session.execute(select(Team).where(Team.id == user.team_id))
    team = result.scalar_one_or_none()
    if team is None:
        logger.warning(f"User {user_id} references missing team {user.team_id}")
        return None
    return _team_to_dict(team, await _team_members(session, team.id))


async def create_team(
    session: AsyncSession,
    user_id: str,
    name: str,
    description: Optional[str] = None,
    avatar: Optional[str] = None,
) -> Dict:
    """
    Create a team and make the caller its captain, in one transaction.

    Invite code collisions are retried with a fresh code a bounded number of
    times.

    Args:
        session: Database session
        user_id: Caller ID (must not be on a team)
        name: Team name
        description: Optional description
        avatar: Optional avatar URL

    Returns:
        Team dictionary with members

    Raises:
        ValidationError: If the name is empty
        Conflict: If the caller is already on a team
        IntegrityError: If no unique invite code could be found
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Team name is required")

    for attempt in range(1, INVITE_CODE_ATTEMPTS + 1):
        user = await _load_user(session, user_id, lock=True)
        if user.team_id is not None:
            await session.rollback()
            raise Conflict("You are already on a team")

        team = Team(
            name=name,
            description=description,
            avatar=avatar,
            invite_code=generate_invite_code(),
        )
        session.add(team)
        try:
            await session.flush()
            user.team_id = team.id
            user.role = TeamRole.CAPTAIN
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if attempt == INVITE_CODE_ATTEMPTS:
                logger.error(f"Could not create team for user {user_id}: no unique invite code")
                raise
            logger.warning(f"Invite code collision creating team for user {user_id}, retrying")
            continue
        except Exception:
            await session.rollback()
            raise

        logger.info(f"User {user_id} created team {team.id}")
        await session.refresh(team)
        return _team_to_dict(team, await _team_members(session, team.id))


async def join_team(session: AsyncSession, user_id: str, invite_code: str) -> Dict:
    """
    Join a team by invite code. Codes match after trimming, case-insensitively.

    Raises:
        Conflict: If the caller is already on a team
        NotFound: If no team has this invite code
    """
    user = await _load_user(session, user_id, lock=True)
    if user.team_id is not None:
        await session.rollback()
        raise Conflict("You are already on a team")

    code = normalize_invite_code(invite_code)
    result = await session.execute(select(Team).where(Team.invite_code == code))
    team = result.scalar_one_or_none()
    if team is None:
        await session.rollback()
        raise NotFound("Invalid invite code")

    user.team_id = team.id
    user.role = TeamRole.MEMBER
    await session.commit()
    logger.info(f"User {user_id} joined team {team.id}")
    return _team_to_dict(team, await _team_members(session, team.id))


async def leave_team(session: AsyncSession, user_id: str) -> None:
    """
    Leave the caller's team.

    The team row is locked while the captain guard is evaluated, so two
    captains leaving at once cannot strand the team without one.

    Raises:
        Conflict: If the caller is not on a team
        InvariantViolation: If the caller is the only captain and others remain
    """
    user = await _load_user(session, user_id)
    if user.team_id is None:
        raise Conflict("You are not on a team")

    team_id = user.team_id
    try:
        await _lock_team(session, team_id)
        await session.refresh(user)
        if user.team_id != team_id:
            raise Conflict("You are not on a team")

        if user.role == TeamRole.CAPTAIN:
            captains = await _captain_count(session, team_id)
            members = await _member_count(session, team_id)
            if captains <= 1 and members > 1:
                raise InvariantViolation("Promote another member to captain before leaving")

        user.team_id = None
        user.role = TeamRole.MEMBER
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"User {user_id} left team {team_id}")


async def set_member_role(
    session: AsyncSession, captain_id: str, target_id: str, role: TeamRole
) -> Dict:
    """
    Promote or demote a teammate.

    Args:
        session: Database session
        captain_id: Caller ID (must be a captain)
        target_id: Member whose role changes (may be the caller)
        role: New role

    Returns:
        Team dictionary with members

    Raises:
        Forbidden: If the caller is not a captain
        NotFound: If the target is not on the caller's team
        InvariantViolation: If the change would leave the team without a captain
    """
    role = TeamRole(role)
    caller = await _load_user(session, captain_id)
    if caller.team_id is None or caller.role != TeamRole.CAPTAIN:
        raise Forbidden("Only a team captain can change member roles")

    team_id = caller.team_id
    try:
        team = await _lock_team(session, team_id)
        result = await session.execute(
            select(User).where(User.id == target_id, User.team_id == team_id)
        )
        target = result.scalar_one_or_none()
        if target is None:
            raise NotFound("Member not found on your team")

        if (
            target.role == TeamRole.CAPTAIN
            and role == TeamRole.MEMBER
            and await _captain_count(session, team_id) <= 1
        ):
            raise InvariantViolation("A team must keep at least one captain")

        target.role = role
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"User {captain_id} set role of {target_id} to {role.value} on team {team_id}")
    return _team_to_dict(team, await _team_members(session, team_id))
