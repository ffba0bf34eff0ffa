"""User profile route handlers."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.api.routes import to_http_exception, internal_error
from swimtrain.api.auth_dependencies import require_user
from swimtrain.database.db import get_db_session
from swimtrain.models.schemas import MemberProfileResponse
from swimtrain.services import stats_service
from swimtrain.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/users/{user_id}/profile", response_model=MemberProfileResponse)
async def get_member_profile(
    user_id: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Public profile of a teammate: stats and 10 most recent sessions."""
    try:
        profile = await stats_service.get_member_profile(session, user["id"], user_id)
        return MemberProfileResponse(profile=profile)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("get_member_profile", e, user_id=user["id"], target_id=user_id)
