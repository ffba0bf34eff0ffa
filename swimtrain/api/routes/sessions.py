"""Practice session route handlers. Every route is scoped to the caller's own sessions."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from swimtrain.api.routes import to_http_exception, internal_error
from swimtrain.api.auth_dependencies import require_user
from swimtrain.database.db import get_db_session
from swimtrain.models.schemas import (
    SessionCreate,
    SessionUpdate,
    SessionEnvelope,
    SessionListResponse,
    UserStatsResponse,
    MessageResponse,
)
from swimtrain.services import session_service
from swimtrain.services.errors import ServiceError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/sessions", response_model=SessionListResponse)
async def list_sessions(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the caller's sessions, most recent first."""
    try:
        sessions = await session_service.list_sessions(session, user["id"])
        return SessionListResponse(sessions=sessions)
    except Exception as e:
        raise internal_error("list_sessions", e, user_id=user["id"])


@router.post("/api/sessions", response_model=SessionEnvelope, status_code=201)
async def create_session(
    payload: SessionCreate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Record a practice session."""
    try:
        created = await session_service.create_session(session, user["id"], payload.model_dump())
        return SessionEnvelope(session=created)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("create_session", e, user_id=user["id"])


@router.get("/api/sessions/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Personal totals for the dashboard: all time, last 7 days and last 30 days."""
    try:
        return await session_service.get_user_stats(session, user["id"])
    except Exception as e:
        raise internal_error("get_user_stats", e, user_id=user["id"])


@router.get("/api/sessions/{session_id}", response_model=SessionEnvelope)
async def get_session(
    session_id: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        return SessionEnvelope(session=await session_service.get_session(session, user["id"], session_id))
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("get_session", e, user_id=user["id"], session_id=session_id)


@router.put("/api/sessions/{session_id}", response_model=SessionEnvelope)
async def update_session(
    session_id: str,
    payload: SessionUpdate,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Update the fields present in the body."""
    try:
        updated = await session_service.update_session(
            session, user["id"], session_id, payload.model_dump(exclude_unset=True)
        )
        return SessionEnvelope(session=updated)
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("update_session", e, user_id=user["id"], session_id=session_id)


@router.delete("/api/sessions/{session_id}", response_model=MessageResponse)
async def delete_session(
    session_id: str,
    user: dict = Depends(require_user),
    session: AsyncSession = Depends(get_db_session),
):
    try:
        await session_service.delete_session(session, user["id"], session_id)
        return MessageResponse(message="Session deleted")
    except ServiceError as e:
        raise to_http_exception(e)
    except Exception as e:
        raise internal_error("delete_session", e, user_id=user["id"], session_id=session_id)
