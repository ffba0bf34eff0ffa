"""
User service layer for the local users table.

Unique-constraint violations on write are re-raised as IntegrityError after
rolling back, so the identity layer can treat them as a concurrent create and
re-read.
"""

from typing import Optional, Dict, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError
from swimtrain.database.models import User, Session
from swimtrain.services.errors import Conflict, NotFound
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "avatar": user.avatar,
        "team_id": user.team_id,
        "role": user.role.value if user.role else None,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email address.

    Args:
        session: Database session
        email: Email address (will be normalized to lowercase)

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(select(User).where(func.lower(User.email) == email).limit(1))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def is_username_available(
    session: AsyncSession, username: str, exclude_user_id: Optional[str] = None
) -> bool:
    """Check that no other user holds this username."""
    query = select(User.id).where(User.username == username)
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await session.execute(query.limit(1))
    return result.scalar_one_or_none() is None


async def upsert_user(
    session: AsyncSession,
    user_id: str,
    email: str,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    avatar: Optional[str] = None,
) -> Dict:
    """
    Insert or update the local row keyed by ``user_id``.

    On update, only the fields that are not None are written. On insert a
    username is required.

    Args:
        session: Database session
        user_id: Provider subject id
        email: Email address (stored lowercase)
        username: Username
        first_name: Optional first name
        last_name: Optional last name
        avatar: Optional avatar URL

    Returns:
        User dictionary

    Raises:
        IntegrityError: If email or username belongs to another row (session is rolled back)
        ValueError: If the row does not exist and no username was given
    """
    email = email.strip().lower()
    try:
        result = await session.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            if not username:
                raise ValueError("username is required to create a user")
            user = User(
                id=user_id,
                email=email,
                username=username,
                first_name=first_name,
                last_name=last_name,
                avatar=avatar,
            )
            session.add(user)
        else:
            user.email = email
            if username is not None:
                user.username = username
            if first_name is not None:
                user.first_name = first_name
            if last_name is not None:
                user.last_name = last_name
            if avatar is not None:
                user.avatar = avatar
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise

    await session.refresh(user)
    return _user_to_dict(user)


async def update_profile(
    session: AsyncSession,
    user_id: str,
    username: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    avatar: Optional[str] = None,
) -> Dict:
    """
    Update the caller's profile fields.

    Raises:
        NotFound: If the user does not exist
        Conflict: If the username is taken (reported as 400)
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")

    username = username.strip()
    if not await is_username_available(session, username, exclude_user_id=user_id):
        raise Conflict("Username is already taken", status_code=400)

    user.username = username
    user.first_name = first_name
    user.last_name = last_name
    if avatar is not None:
        user.avatar = avatar
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict("Username is already taken", status_code=400)

    await session.refresh(user)
    return _user_to_dict(user)


async def list_users(session: AsyncSession) -> List[Dict]:
    """All local users, oldest first."""
    result = await session.execute(select(User).order_by(User.created_at.asc(), User.id.asc()))
    return [_user_to_dict(user) for user in result.scalars().all()]


async def delete_user_and_sessions(session: AsyncSession, user_id: str) -> int:
    """
    Hard-delete a user and every session they own (administrative use only).

    Returns:
        Number of sessions deleted

    Raises:
        NotFound: If the user does not exist
    """
    result = await session.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise NotFound("User not found")

    deleted = await session.execute(delete(Session).where(Session.user_id == user_id))
    await session.execute(delete(User).where(User.id == user_id))
    await session.commit()
    logger.info(f"Deleted user {user_id} and {deleted.rowcount} sessions")
    return deleted.rowcount
