"""Team route handlers: membership, roles, dashboard stats and leaderboard."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.api.routes import to_http_exception, internal_error
from swimtrain.api.auth_dependencies import require_user, require_team_member
from swimtrain.database.db import get_db_session
from swimtrain.models.schemas import (
    TeamCreate,
    JoinTeamRequest,
    UpdateMemberRoleRequest,
    TeamEnvelope,
    TeamStatsResponse,
    LeaderboardResponse,
    MessageResponse,
)
from swimtrain.services import team_service, stats_service
from swimtrain.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/teams", response_model=TeamEnvelope)
async def get_my_team(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """The caller's team with invite code and roster; team is null when unaffiliated."""
    try:
        return TeamEnvelope(team=await team_service.get_user_team(session, user["id"]))
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("get_my_team", e, user_id=user["id"])


@router.post("/api/teams", response_model=TeamEnvelope, status_code=201)
async def create_team(
    payload: TeamCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Create a team; the caller becomes its captain."""
    try:
        team = await team_service.create_team(
            session, user["id"], payload.name, description=payload.description, avatar=payload.avatar
        )
        return TeamEnvelope(team=team)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("create_team", e, user_id=user["id"])


@router.post("/api/teams/join", response_model=TeamEnvelope)
async def join_team(
    payload: JoinTeamRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Join a team with its invite code."""
    try:
        return TeamEnvelope(team=await team_service.join_team(session, user["id"], payload.invite_code))
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("join_team", e, user_id=user["id"])


@router.delete("/api/teams/leave", response_model=MessageResponse)
async def leave_team(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave the caller's team. The only captain must promote someone first."""
    try:
        await team_service.leave_team(session, user["id"])
        return MessageResponse(message="Left team")
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("leave_team", e, user_id=user["id"])


@router.get("/api/teams/stats", response_model=TeamStatsResponse)
async def get_team_stats(user: dict = Depends(require_team_member)):
    """Team dashboard aggregates."""
    try:
        return await stats_service.get_team_stats(user["team_id"])
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("get_team_stats", e, user_id=user["id"], team_id=user["team_id"])


@router.get("/api/teams/leaderboard", response_model=LeaderboardResponse)
async def get_team_leaderboard(
    period: str = Query("week", pattern="^(week|month|all)$"),
    user: dict = Depends(require_team_member),
    session: AsyncSession = Depends(get_db_session),
):
    """Members ranked by distance over the last week, month or all time."""
    try:
        entries = await stats_service.get_team_leaderboard(session, user["team_id"], period)
        return LeaderboardResponse(period=period, entries=entries)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("get_team_leaderboard", e, user_id=user["id"], team_id=user["team_id"])


@router.put("/api/teams/members/{user_id}/role", response_model=TeamEnvelope)
async def set_member_role(
    user_id: str,
    payload: UpdateMemberRoleRequest,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Promote a teammate to captain or demote a captain. Captains only."""
    try:
        team = await team_service.set_member_role(session, user["id"], user_id, payload.role)
        return TeamEnvelope(team=team)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("set_member_role", e, user_id=user["id"], target_id=user_id)
