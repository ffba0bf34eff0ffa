"""
Authentication dependencies for FastAPI routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from swimtrain.services import auth_service, user_service
from swimtrain.services.identity_provider import IdentityProvider, ProviderError, get_identity_provider
from swimtrain.database.db import get_db_session
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from the session token.

    A missing token is 401; a token that is invalid, expired or names a user
    that no longer exists is 403.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: If the token is missing or rejected
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth_service.verify_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or expired token")

    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token payload")

    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User not found")

    return user


async def require_user(user: dict = Depends(get_current_user)) -> dict:
    """Require any authenticated user."""
    return user


async def require_team_member(user: dict = Depends(get_current_user)) -> dict:
    """Require an authenticated user who is on a team."""
    if not user.get("team_id"):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not on a team")
    return user


def get_provider() -> IdentityProvider:
    """Identity provider dependency; overridden in tests."""
    try:
        return get_identity_provider()
    except ProviderError as e:
        logger.error(f"Identity provider unavailable: {e}")
        raise HTTPException(status_code=503, detail="Authentication service unavailable")
